import pytest
from scipy.special import expit

from winrate_engine.core.options import FormulaOptions, PredictionThresholds
from winrate_engine.errors import ValidationError
from winrate_engine.predict import batch_score, categorize, generate_formula, score
from winrate_engine.preprocess import EncodingInfo
from winrate_engine.stats.logistic import LogisticModel

MODEL = LogisticModel(
    weights=(-1.0, 2.0, 0.5),
    dimensions=("amount", "region"),
    encoding=EncodingInfo({"region": {"EU": 0, "US": 1}}),
)


def test_score_record_uses_stored_encoding():
    prediction = score(MODEL, {"amount": 1.0, "region": "US"})
    assert prediction.probability == pytest.approx(float(expit(1.5)))
    assert prediction.category == "high"
    assert prediction.baseline == -1.0
    assert [c["dimension"] for c in prediction.contributions] == ["amount", "region"]
    assert prediction.contributions[0]["contribution"] == 2.0
    assert [c["dimension"] for c in prediction.top_positive] == ["amount", "region"]
    assert prediction.top_negative == []


def test_unseen_category_scores_as_unknown():
    prediction = score(MODEL, {"amount": 1.0, "region": "APAC"})
    assert prediction.features == [1.0, -1.0]
    assert prediction.probability == pytest.approx(float(expit(0.5)))
    assert prediction.category == "medium"
    assert prediction.top_negative[0]["dimension"] == "region"


def test_score_feature_vector():
    prediction = score(MODEL, [0, 0])
    assert prediction.probability == pytest.approx(float(expit(-1.0)))
    assert prediction.category == "low"
    with pytest.raises(ValidationError):
        score(MODEL, [1.0])
    with pytest.raises(ValidationError):
        score(MODEL, [1.0, "abc"])


def test_custom_thresholds():
    thresholds = PredictionThresholds(high=0.9, medium=0.5)
    assert score(MODEL, {"amount": 1.0, "region": "US"}, thresholds).category == "medium"
    assert categorize(0.9, thresholds) == "high"
    assert categorize(0.49, thresholds) == "low"


def test_batch_summary():
    result = batch_score(MODEL, [{"amount": 1.0, "region": "US"}, [0.75, 0], [0, 0]])
    summary = result["summary"]
    assert summary["count"] == 3
    assert summary["categoryBreakdown"] == {"high": 1, "medium": 1, "low": 1}
    expected = (expit(1.5) + expit(0.5) + expit(-1.0)) / 3
    assert summary["averageProbability"] == pytest.approx(float(expected))
    assert len(result["predictions"]) == 3


def test_empty_batch():
    result = batch_score(MODEL, [])
    assert result["predictions"] == []
    assert result["summary"]["count"] == 0
    assert result["summary"]["averageProbability"] == 0.0


def test_formula_text_and_ordering():
    model = LogisticModel(weights=(0.5, 1.0, -2.0), dimensions=("a", "b"))
    formula = generate_formula(model)
    assert formula["detailedFormula"] == (
        "Win Probability = 1 / (1 + e^-z), where z = 0.500 + 1.000 × a - 2.000 × b"
    )
    assert "[other factors]" not in formula["simplifiedFormula"]
    pairs = formula["featureWeightPairs"]
    assert [p["feature"] for p in pairs] == ["b", "a", "Intercept"]
    assert "b lowers" in formula["explanation"]
    assert "a raises" in formula["explanation"]


def test_simplified_formula_truncates():
    weights = (0.0, 7.0, 6.0, 5.0, 4.0, 3.0, 2.0, 1.0)
    model = LogisticModel(weights=weights, dimensions=tuple(f"d{i}" for i in range(1, 8)))
    formula = generate_formula(model, options=FormulaOptions(max_terms=5, precision=1))
    assert formula["simplifiedFormula"].endswith("+ [other factors]")
    assert "d6" not in formula["simplifiedFormula"]
    assert "+ 7.0 × d1" in formula["simplifiedFormula"]
    assert generate_formula(model, options=FormulaOptions(simplify=False))["simplifiedFormula"] == ""


def test_formula_feature_name_mismatch():
    with pytest.raises(ValidationError):
        generate_formula(MODEL, feature_names=["only_one"])
