import math

import numpy as np
import pytest

from winrate_engine.core.options import PreprocessOptions, TrainingOptions
from winrate_engine.errors import ConvergenceWarning, ValidationError
from winrate_engine.stats import logistic
from winrate_engine.stats.metrics import classification_metrics

X_SEP = [[-20], [-15], [-10], [10], [15], [20]]
Y_SEP = [0, 0, 0, 1, 1, 1]


def test_separable_data_converges():
    model = logistic.train(X_SEP, Y_SEP, dimensions=["amount"])
    assert model.converged
    assert model.iterations == 5
    assert model.initial_cost == pytest.approx(math.log(2), abs=1e-6)
    assert model.final_cost <= model.initial_cost
    assert model.weights[1] > 0
    assert model.performance["accuracy"] == 1.0
    assert model.performance_split == "training"
    assert len(model.cost_history) == model.iterations


def test_iteration_cap_warns_without_raising():
    with pytest.warns(ConvergenceWarning):
        model = logistic.train(X_SEP, Y_SEP, TrainingOptions(max_iterations=3))
    assert not model.converged
    assert model.iterations == 3


def test_uncentred_separable_data_classifies_within_default_budget():
    with pytest.warns(ConvergenceWarning):
        model = logistic.train([[0], [1], [2], [3], [4], [5]], Y_SEP)
    assert not model.converged
    assert model.iterations == TrainingOptions().max_iterations == 500
    assert model.final_cost < model.initial_cost
    assert model.performance["accuracy"] == 1.0


def test_validation_split_reports_held_out_metrics():
    model = logistic.train(X_SEP, Y_SEP, TrainingOptions(validation_split=0.5, seed=1))
    assert model.performance_split == "validation"
    assert model.performance["samples"] == 2
    assert model.training_performance["samples"] == 4


def test_explicit_validation_pair():
    model = logistic.train(X_SEP, Y_SEP, validation=([[-5], [5]], [0, 1]))
    assert model.performance_split == "validation"
    assert model.performance["accuracy"] == 1.0


def test_train_rejects_bad_targets():
    with pytest.raises(ValidationError):
        logistic.train([[1], [2]], [0, 2])
    with pytest.raises(ValidationError):
        logistic.train([[1], [2]], [0])


def test_metrics_zero_denominators():
    metrics = classification_metrics([0, 0, 0], [0.1, 0.2, 0.3])
    assert metrics["accuracy"] == 1.0
    assert metrics["precision"] == 0.0
    assert metrics["recall"] == 0.0
    assert metrics["f1Score"] == 0.0
    assert metrics["confusionMatrix"]["trueNegatives"] == 3


def test_model_dict_round_trip():
    model = logistic.train(X_SEP, Y_SEP, dimensions=["amount"])
    restored = logistic.LogisticModel.from_dict(model.to_dict())
    assert restored.weights == model.weights
    assert restored.dimensions == ("amount",)
    assert restored.converged is True

    bare = logistic.LogisticModel.from_dict({"weights": [0.1, 0.2, 0.3]})
    assert bare.dimensions == ("x1", "x2")
    with pytest.raises(ValidationError):
        logistic.LogisticModel(weights=(0.0,), dimensions=("a",))


def test_feature_importance_normalises_scores():
    model = logistic.LogisticModel(weights=(0.0, 2.0, -1.0), dimensions=("a", "b"))
    result = logistic.feature_importance(model, [[0, 0], [2, 2]])
    ranked = result["featureImportance"]
    assert [r["feature"] for r in ranked] == ["a", "b"]
    assert ranked[0]["importance"] == pytest.approx(2 / 3)
    assert ranked[1]["importance"] == pytest.approx(1 / 3)
    assert result["topFeatures"][0]["feature"] == "a"
    assert result["bottomFeatures"][0]["feature"] == "b"

    flat = logistic.feature_importance(model, [[1, 1], [1, 1]])
    assert all(r["importance"] == 0.0 for r in flat["featureImportance"])


def _records(n: int = 60):
    rng = np.random.default_rng(1234)
    records = []
    for i in range(n):
        won = i % 3 == 0
        records.append(
            {
                "id": f"opp-{i}",
                "amount": float(rng.normal(80 if won else 20, 5)),
                "region": ["EU", "US", "APAC"][int(rng.integers(0, 3))],
                "won": won,
            }
        )
    return records


@pytest.mark.filterwarnings("ignore::winrate_engine.errors.ConvergenceWarning")
def test_build_prediction_model_from_records():
    model = logistic.build_prediction_model(
        _records(),
        ["amount", "region"],
        preprocess_options=PreprocessOptions(normalize="minmax"),
        training_options=TrainingOptions(max_iterations=300, learning_rate=0.5),
        balance="oversample",
        rng=42,
    )
    assert model.dimensions == ("amount", "region")
    assert set(model.encoding.mappings["region"]) == {"EU", "US", "APAC"}
    assert model.scaling is not None and model.scaling.method == "minmax"
    assert model.performance_split == "validation"
    assert model.performance["samples"] == 12
    assert model.weights[1] > 0
    assert 0.0 <= model.performance["accuracy"] <= 1.0
