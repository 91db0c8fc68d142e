import numpy as np
import pytest

from winrate_engine.api import dispatch, schemas
from winrate_engine.api.worker import EngineWorker
from winrate_engine.errors import ValidationError

SEPARABLE = {"X": [[-20], [-15], [-10], [10], [15], [20]], "y": [0, 0, 0, 1, 1, 1]}


def test_fit_regression_round_trip():
    msg = dispatch.handle_message(
        {
            "action": "fit_regression",
            "id": "r1",
            "data": {"X": [[1], [2], [3], [4]], "y": [2, 4, 6, 8], "variableNames": ["n"]},
        }
    )
    assert msg["success"] is True
    assert msg["id"] == "r1"
    assert "error" not in msg
    result = msg["result"]
    assert result["variableNames"] == ["intercept", "n"]
    assert result["coefficients"][1] == pytest.approx(2.0)
    assert result["tStats"][1] is None
    assert result["fStatistic"] is None


def test_failures_carry_error_type():
    singular = dispatch.handle(
        {"action": "fit_regression", "id": 7, "data": {"X": [[1, 2], [2, 4], [3, 6], [4, 8]], "y": [1, 2, 3, 5]}}
    )
    assert not singular.success
    assert singular.id == 7
    assert singular.error_type == "SingularMatrixError"
    assert singular.result is None

    bad_k = dispatch.handle({"action": "cluster_kmeans", "id": 8, "data": {"points": [[0], [1]], "k": 5}})
    assert bad_k.error_type == "InvalidKError"


def test_unknown_action_and_malformed_payload():
    unknown = dispatch.handle({"action": "explode", "id": "x"})
    assert unknown.error_type == "ValidationError"
    assert "Unknown action" in unknown.error

    missing_y = dispatch.handle({"action": "fit_regression", "id": "y", "data": {"X": [[1]]}})
    assert missing_y.error_type == "ValidationError"
    assert missing_y.id == "y"

    no_action = dispatch.handle({"id": "z"})
    assert no_action.error_type == "ValidationError"
    assert no_action.id == "z"


def test_unexpected_exception_becomes_single_failure(monkeypatch):
    def boom(payload):
        raise RuntimeError("kaboom")

    monkeypatch.setitem(dispatch._ACTIONS, "boom", (schemas.Payload, boom))
    response = dispatch.handle({"action": "boom", "id": 1})
    assert response.to_message() == {
        "success": False,
        "id": 1,
        "error": "kaboom",
        "error_type": "RuntimeError",
    }


def test_train_then_predict_and_formula():
    trained = dispatch.handle(
        {"action": "train_logistic", "id": 1, "data": {**SEPARABLE, "dimensions": ["amount"]}}
    )
    assert trained.success
    model = trained.result
    assert model["converged"] is True
    assert model["performance"]["accuracy"] == 1.0

    predicted = dispatch.handle({"action": "predict", "id": 2, "data": {"model": model, "features": [12]}})
    assert predicted.result["category"] == "high"
    by_name = dispatch.handle({"action": "predict", "id": 3, "data": {"model": model, "features": {"amount": -12}}})
    assert by_name.result["category"] == "low"

    batch = dispatch.handle(
        {"action": "batch_predict", "id": 4, "data": {"model": model, "featuresList": [[12], [-12], [0]]}}
    )
    assert batch.result["summary"]["categoryBreakdown"] == {"high": 1, "medium": 1, "low": 1}
    assert len(batch.result["predictions"]) == 3

    formula = dispatch.handle({"action": "generate_formula", "id": 5, "data": {"model": model}})
    assert formula.result["detailedFormula"].startswith("Win Probability = 1 / (1 + e^-z)")


def test_cluster_then_analyze():
    points = [[0], [0], [1], [10], [10], [11]]
    first = dispatch.handle({"action": "cluster_kmeans", "id": 1, "data": {"points": points, "k": 2, "seed": 3}})
    again = dispatch.handle({"action": "cluster_kmeans", "id": 2, "data": {"points": points, "k": 2, "seed": 3}})
    assert first.result["labels"] == again.result["labels"]

    analysis = dispatch.handle(
        {
            "action": "cluster_analysis",
            "id": 3,
            "data": {
                "clusters": first.result["clusters"],
                "originalData": [{"point": p, "won": i < 3} for i, p in enumerate(points)],
                "dimensions": ["amount"],
            },
        }
    )
    assert analysis.success
    rates = sorted(c["winRate"] for c in analysis.result["clusterAnalysis"])
    assert rates == [0.0, 1.0]


def test_lookup_and_aggregate_actions():
    records = [{"stage": s, "won": w} for s, w in (("A", 1), ("A", 0), ("B", 1))]
    table = dispatch.handle(
        {"action": "generate_lookup_table", "id": 1, "data": {"records": records, "dimensions": [{"name": "stage"}], "minSampleSize": 2}}
    )
    rows = {row["stage"]: row for row in table.result["lookupTable"]}
    assert rows["A"]["winRate"] == 0.5
    assert rows["A"]["isStatisticallySignificant"] is True
    assert rows["B"]["isStatisticallySignificant"] is False

    groups = dispatch.handle({"action": "aggregate_by_dimensions", "id": 2, "data": {"records": records, "dimensions": ["stage"]}})
    assert groups.result["groups"][0]["stage"] == "A"


def test_confidence_intervals_and_validation_actions():
    data = {"X": [[1], [2], [3], [4], [5]], "y": [1.1, 1.9, 3.2, 3.9, 5.1], "levels": [0.9, 0.99]}
    result = dispatch.handle({"action": "confidence_intervals", "id": 1, "data": data}).result
    assert set(result["intervals"]) == {"0.9", "0.99"}

    checked = dispatch.handle(
        {"action": "validate_records", "id": 2, "data": {"records": [{"id": 1}], "rules": {"requiredFields": ["amount"]}}}
    )
    assert checked.result["valid"] is False


def test_available_actions():
    names = dispatch.available_actions()
    for expected in (
        "fit_regression",
        "train_logistic",
        "predict",
        "batch_predict",
        "cluster_kmeans",
        "cluster_analysis",
        "generate_lookup_table",
        "generate_formula",
    ):
        assert expected in names


def test_thread_worker_resolves_every_request():
    with EngineWorker("thread", max_workers=2) as worker:
        future = worker.submit(schemas.EngineRequest(action="fit_regression", id="a", data={"X": [[1], [2], [3]], "y": [1, 2, 4]}))
        assert future.result().success
        responses = worker.map([{"action": "explode", "id": i} for i in range(4)])
    assert sorted(r.id for r in responses) == [0, 1, 2, 3]
    assert all(not r.success for r in responses)


def test_process_worker():
    with EngineWorker("process", max_workers=1) as worker:
        response = worker.submit({"action": "cluster_kmeans", "id": "p", "data": {"points": [[0], [1]], "k": 1}}).result()
    assert response.success
    assert response.result["centroids"] == [[0.5]]


def test_unknown_worker_kind():
    with pytest.raises(ValidationError):
        EngineWorker("fiber")


def test_fit_regression_reports_dimension_impacts():
    amounts = [10, 20, 30, 40, 50, 60, 70, 80]
    regions = [0, 1, 0, 1, 2, 2, 1, 0]
    data = {
        "X": [[a, r] for a, r in zip(amounts, regions)],
        "y": [3, 7, 8, 12, 16, 18, 20, 22],
        "variableNames": ["amount", "region"],
        "dimensions": [{"name": "amount", "type": "numeric"}, {"name": "region", "type": "categorical"}],
    }
    result = dispatch.handle({"action": "fit_regression", "id": 1, "data": data}).result
    coefs = dict(zip(result["variableNames"], result["coefficients"]))
    impacts = {i["dimension"]: i for i in result["impacts"]}
    assert impacts["amount"]["impact"] == pytest.approx(coefs["amount"] * np.std(amounts, ddof=1))
    assert impacts["region"]["impact"] == pytest.approx(coefs["region"])

    raw = dispatch.handle(
        {"action": "fit_regression", "id": 2, "data": {**data, "impactPolicy": "raw"}}
    ).result
    raw_impacts = {i["dimension"]: i["impact"] for i in raw["impacts"]}
    assert raw_impacts["amount"] == pytest.approx(coefs["amount"])

    bad = dispatch.handle({"action": "fit_regression", "id": 3, "data": {**data, "impactPolicy": "elasticity"}})
    assert bad.error_type == "ValidationError"
