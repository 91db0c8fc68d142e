"""Turn labeled records into a numeric feature matrix."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from ..core.dataset import as_float, is_missing, records_frame, resolve_dimensions
from ..core.options import DimensionSpec, PreprocessOptions, parse_dimensions
from ..errors import ValidationError
from .cleaning import Scaling, fit_scaling, handle_missing, handle_outliers
from .encoding import EncodingInfo

LOGGER = logging.getLogger(__name__)


@dataclass
class FeatureMatrix:
    """Rows of float features paired with 0/1 targets."""

    X: np.ndarray
    y: np.ndarray
    dimensions: List[str]
    record_ids: List[Any] = field(default_factory=list)
    encoding: EncodingInfo = field(default_factory=EncodingInfo)
    scaling: Optional[Scaling] = None
    dimension_specs: List[DimensionSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.X = np.asarray(self.X, dtype=float)
        self.y = np.asarray(self.y, dtype=float)
        if self.X.ndim != 2:
            raise ValidationError("feature matrix must be two-dimensional")
        if len(self.X) == 0:
            raise ValidationError("feature matrix is empty")
        if len(self.X) != len(self.y):
            raise ValidationError(
                f"X has {len(self.X)} rows but y has {len(self.y)} values",
                rows=len(self.X),
                targets=len(self.y),
            )
        if self.X.shape[1] != len(self.dimensions):
            raise ValidationError(
                f"rows have {self.X.shape[1]} columns for {len(self.dimensions)} dimensions"
            )
        if not self.record_ids:
            self.record_ids = list(range(len(self.X)))

    def __len__(self) -> int:
        return len(self.y)

    def take(self, indices: Sequence[int]) -> "FeatureMatrix":
        """Return a new matrix holding the rows at *indices* (in that order)."""

        idx = np.asarray(indices, dtype=int)
        return FeatureMatrix(
            X=self.X[idx],
            y=self.y[idx],
            dimensions=list(self.dimensions),
            record_ids=[self.record_ids[i] for i in idx],
            encoding=self.encoding,
            scaling=self.scaling,
            dimension_specs=list(self.dimension_specs),
        )


def _encode_frame(df, dims: Sequence[DimensionSpec], encoding: EncodingInfo) -> np.ndarray:
    X = np.zeros((len(df), len(dims)), dtype=float)
    for j, dim in enumerate(dims):
        column = df[dim.name].tolist()
        if dim.is_categorical:
            X[:, j] = [encoding.encode(dim.name, v) for v in column]
        else:
            parsed = [as_float(v) for v in column]
            X[:, j] = [0.0 if p is None else p for p in parsed]
    return X


def preprocess(
    records: Sequence[Mapping[str, Any]],
    dimensions: Sequence[Any],
    target_field: str = "won",
    options: PreprocessOptions | None = None,
    encoding: EncodingInfo | None = None,
    id_field: str = "id",
) -> FeatureMatrix:
    """Build a :class:`FeatureMatrix` from raw records.

    Steps: missing-value policy, IQR outlier policy on numeric dimensions,
    categorical label encoding (first-seen order, reusing *encoding* when
    given), then optional normalisation.
    """

    if not records:
        raise ValidationError("no records to preprocess")
    options = options or PreprocessOptions()
    dims = resolve_dimensions(records, parse_dimensions(dimensions))
    names = [d.name for d in dims]

    df = records_frame(records, names, outcome_field=target_field, id_field=id_field)
    df = handle_missing(df, names, options.missing, options.defaults)
    numeric = [d.name for d in dims if not d.is_categorical]
    df = handle_outliers(df, numeric, options.outliers)
    if df.empty:
        raise ValidationError(
            "no records left after missing-value and outlier handling",
            missing=options.missing,
            outliers=options.outliers,
        )

    encoding = EncodingInfo.from_dict(encoding.to_dict()) if encoding is not None else EncodingInfo()
    for dim in dims:
        if not dim.is_categorical:
            continue
        if dim.categories:
            encoding.fit(dim.name, dim.categories)
        encoding.fit(dim.name, df[dim.name].tolist())

    X = _encode_frame(df, dims, encoding)
    scaling = fit_scaling(X, names, numeric, options.normalize)
    if scaling is not None:
        X = scaling.apply(X, names)

    LOGGER.debug(
        "preprocessed %d records into %d features (%d categorical)",
        len(df),
        len(names),
        len(names) - len(numeric),
    )
    return FeatureMatrix(
        X=X,
        y=df["_won"].to_numpy(dtype=float),
        dimensions=names,
        record_ids=df["_id"].tolist(),
        encoding=encoding,
        scaling=scaling,
        dimension_specs=dims,
    )


def encode_record(
    record: Mapping[str, Any],
    dimensions: Sequence[str],
    encoding: EncodingInfo,
    scaling: Scaling | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> List[float]:
    """Encode one unseen record with stored encoding and scaling.

    Dimensions present in *encoding* are categorical; anything else is
    parsed as a number, with missing or unparsable values becoming ``0``.
    """

    defaults = defaults or {}
    row: List[float] = []
    for dim in dimensions:
        value = record.get(dim)
        if is_missing(value) and dim in defaults:
            value = defaults[dim]
        if dim in encoding:
            row.append(float(encoding.encode(dim, value)))
            continue
        parsed = as_float(value)
        parsed = 0.0 if parsed is None else parsed
        if scaling is not None:
            parsed = scaling.apply_value(dim, parsed)
        row.append(parsed)
    return row


__all__ = ["FeatureMatrix", "preprocess", "encode_record"]
