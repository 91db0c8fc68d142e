import numpy as np
import pytest

from winrate_engine.core.options import DimensionSpec, PreprocessOptions
from winrate_engine.errors import ValidationError
from winrate_engine.preprocess import UNKNOWN_CODE, encode_record, iqr_bounds, preprocess

RECORDS = [
    {"id": "a", "amount": 10, "region": "EU", "won": True},
    {"id": "b", "amount": 20, "region": "US", "won": False},
    {"id": "c", "amount": None, "region": "EU", "won": True},
    {"id": "d", "amount": 40, "region": None, "won": False},
]


def test_preprocess_encodes_categories_in_first_seen_order():
    m = preprocess(RECORDS, ["amount", "region"], options=PreprocessOptions(outliers="none"))
    assert m.dimensions == ["amount", "region"]
    assert m.encoding.mappings["region"] == {"EU": 0, "US": 1}
    assert m.X[:, 0].tolist() == [10.0, 20.0, 0.0, 40.0]
    assert m.X[:, 1].tolist() == [0.0, 1.0, 0.0, float(UNKNOWN_CODE)]
    assert m.y.tolist() == [1.0, 0.0, 1.0, 0.0]
    assert m.record_ids == ["a", "b", "c", "d"]


def test_preprocess_drop_and_defaults():
    dropped = preprocess(
        RECORDS, ["amount", "region"], options=PreprocessOptions(missing="drop", outliers="none")
    )
    assert dropped.record_ids == ["a", "b"]

    filled = preprocess(
        RECORDS,
        ["amount", "region"],
        options=PreprocessOptions(defaults={"amount": 15, "region": "US"}, outliers="none"),
    )
    assert filled.X[2, 0] == 15.0
    assert filled.X[3, 1] == 1.0


def test_declared_categories_take_the_first_codes():
    dims = [DimensionSpec("region", "categorical", categories=["US", "EU", "APAC"])]
    m = preprocess(RECORDS, dims)
    assert m.encoding.mappings["region"] == {"US": 0, "EU": 1, "APAC": 2}


def test_iqr_bounds_use_sorted_index_quartiles():
    assert iqr_bounds([1, 2, 3, 4, 100]) == (-1.0, 7.0)


def test_outliers_cap_and_remove():
    records = [{"x": v, "won": i % 2} for i, v in enumerate([1, 2, 3, 4, 100])]
    capped = preprocess(records, ["x"])
    assert capped.X[:, 0].tolist() == [1.0, 2.0, 3.0, 4.0, 7.0]
    removed = preprocess(records, ["x"], options=PreprocessOptions(outliers="remove"))
    assert len(removed) == 4
    assert removed.X[:, 0].max() == 4.0


def test_minmax_scaling_and_constant_column():
    records = [{"amount": v, "flat": 5, "won": 1} for v in (10, 20, 30)]
    m = preprocess(records, ["amount", "flat"], options=PreprocessOptions(normalize="minmax"))
    assert m.X[:, 0].tolist() == [0.0, 0.5, 1.0]
    assert m.X[:, 1].tolist() == [1.0, 1.0, 1.0]

    z = preprocess(records, ["amount", "flat"], options=PreprocessOptions(normalize="zscore"))
    assert z.X[:, 0].mean() == pytest.approx(0.0)
    assert z.X[:, 1].tolist() == [0.0, 0.0, 0.0]


def test_encode_record_reuses_encoding_and_scaling():
    records = [
        {"amount": 10, "region": "EU", "won": 1},
        {"amount": 30, "region": "US", "won": 0},
    ]
    m = preprocess(records, ["amount", "region"], options=PreprocessOptions(normalize="minmax"))
    row = encode_record({"amount": "20", "region": "APAC"}, m.dimensions, m.encoding, m.scaling)
    assert row == [0.5, float(UNKNOWN_CODE)]
    assert encode_record({"region": "US"}, m.dimensions, m.encoding) == [0.0, 1.0]


def test_preprocess_rejects_empty_input():
    with pytest.raises(ValidationError):
        preprocess([], ["amount"])
    with pytest.raises(ValidationError):
        preprocess(
            [{"amount": None, "won": 1}], ["amount"], options=PreprocessOptions(missing="drop")
        )


def test_feature_matrix_take_keeps_metadata():
    m = preprocess(RECORDS, ["amount", "region"], options=PreprocessOptions(outliers="none"))
    part = m.take(np.array([3, 0]))
    assert part.record_ids == ["d", "a"]
    assert part.encoding is m.encoding
