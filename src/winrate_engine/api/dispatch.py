"""Route engine requests to actions and wrap the outcome in one response.

``handle`` never raises: every failure, expected or not, becomes a single
``success=False`` response carrying the exception class name.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Tuple, Type

import numpy as np
from pydantic import ValidationError as PydanticValidationError

from ..core.rng import make_rng
from ..core.options import (
    formula_options_from_dict,
    preprocess_options_from_dict,
    thresholds_from_dict,
    training_options_from_dict,
)
from ..errors import EngineError, ValidationError
from ..predict import formula as formula_mod
from ..predict import service
from ..stats import clustering, logistic, lookup, regression
from ..validate.records import validate_records
from . import schemas

LOGGER = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
_ACTIONS: Dict[str, Tuple[Type[schemas.Payload], Handler]] = {}


def action(name: str, payload: Type[schemas.Payload]) -> Callable[[Handler], Handler]:
    """Register *func* as the handler of action *name*."""

    def register(func: Handler) -> Handler:
        _ACTIONS[name] = (payload, func)
        return func

    return register


def available_actions() -> List[str]:
    return sorted(_ACTIONS)


def json_safe(value: Any) -> Any:
    """Convert numpy scalars/arrays and tuples to plain JSON types.

    Non-finite floats (perfect-fit t statistics, for example) become
    ``None`` since JSON has no infinity.
    """

    if isinstance(value, Mapping):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, np.ndarray):
        return [json_safe(v) for v in value.tolist()]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if hasattr(value, "to_dict"):
        return json_safe(value.to_dict())
    return value


def _validation_message(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


# ---------------------------------------------------------------------------
# Actions


@action("fit_regression", schemas.RegressionPayload)
def _fit_regression(p: schemas.RegressionPayload) -> Dict[str, Any]:
    model = regression.fit(p.X, p.y, p.variable_names, p.confidence_level)
    result = model.to_dict()
    result["impacts"] = regression.coefficient_impacts(model, p.dimensions, p.impact_policy, X=p.X)
    return result


@action("confidence_intervals", schemas.ConfidenceIntervalsPayload)
def _confidence_intervals(p: schemas.ConfidenceIntervalsPayload) -> Dict[str, Any]:
    model = regression.fit(p.X, p.y, p.variable_names, p.confidence_level)
    return {
        "variableNames": list(model.variable_names),
        "coefficients": list(model.coefficients),
        "intervals": {
            str(level): [list(ci) for ci in regression.confidence_intervals(model, level)]
            for level in p.levels
        },
        "aic": model.aic,
        "bic": model.bic,
    }


@action("train_logistic", schemas.TrainLogisticPayload)
def _train_logistic(p: schemas.TrainLogisticPayload) -> Dict[str, Any]:
    options = training_options_from_dict(p.options)
    return logistic.train(p.X, p.y, options, dimensions=p.dimensions).to_dict()


@action("predict", schemas.PredictPayload)
def _predict(p: schemas.PredictPayload) -> Dict[str, Any]:
    model = logistic.LogisticModel.from_dict(p.model)
    return service.score(model, p.features, thresholds_from_dict(p.thresholds)).to_dict()


@action("batch_predict", schemas.BatchPredictPayload)
def _batch_predict(p: schemas.BatchPredictPayload) -> Dict[str, Any]:
    model = logistic.LogisticModel.from_dict(p.model)
    return service.batch_score(model, p.features_list, thresholds_from_dict(p.thresholds))


@action("cluster_kmeans", schemas.ClusterPayload)
def _cluster_kmeans(p: schemas.ClusterPayload) -> Dict[str, Any]:
    result = clustering.cluster(
        p.points,
        p.k,
        max_iterations=p.max_iterations,
        rng=make_rng(p.seed),
        dimensions=p.dimensions,
        outcomes=p.outcomes,
    )
    return result.to_dict()


def _members(raw: Any) -> List[int]:
    if isinstance(raw, Mapping):
        raw = raw.get("members", raw.get("indices", []))
    return [int(i) for i in raw]


def _split_original(data: List[Any]) -> Tuple[List[Any], List[Any] | None]:
    points, outcomes = [], []
    for item in data:
        if isinstance(item, Mapping):
            points.append(item.get("point"))
            outcomes.append(item.get("won", item.get("isWon")))
        else:
            points.append(item)
            outcomes.append(None)
    if all(o is None for o in outcomes):
        return points, None
    return points, outcomes


@action("cluster_analysis", schemas.ClusterAnalysisPayload)
def _cluster_analysis(p: schemas.ClusterAnalysisPayload) -> Dict[str, Any]:
    points, outcomes = _split_original(p.original_data)
    clusters = clustering.analyze_clusters(
        points, [_members(c) for c in p.clusters], p.dimensions, outcomes
    )
    return {"clusterAnalysis": [c.to_dict() for c in clusters]}


@action("generate_lookup_table", schemas.LookupPayload)
def _generate_lookup_table(p: schemas.LookupPayload) -> Dict[str, Any]:
    names = [(d.get("name") or d.get("id")) if isinstance(d, Mapping) else d for d in p.dimensions]
    table = lookup.generate(
        p.records,
        names,
        max_combinations=p.max_combinations,
        min_sample_size=p.min_sample_size,
        outcome_field=p.outcome_field,
    )
    return table.to_dict()


@action("generate_formula", schemas.FormulaPayload)
def _generate_formula(p: schemas.FormulaPayload) -> Dict[str, Any]:
    model = logistic.LogisticModel.from_dict(p.model)
    return formula_mod.generate_formula(model, p.feature_names, formula_options_from_dict(p.options))


@action("feature_importance", schemas.FeatureImportancePayload)
def _feature_importance(p: schemas.FeatureImportancePayload) -> Dict[str, Any]:
    model = logistic.LogisticModel.from_dict(p.model)
    return logistic.feature_importance(model, p.X, p.feature_names)


@action("build_model", schemas.BuildModelPayload)
def _build_model(p: schemas.BuildModelPayload) -> Dict[str, Any]:
    model = logistic.build_prediction_model(
        p.records,
        p.dimensions,
        target_field=p.target_field,
        preprocess_options=preprocess_options_from_dict(p.preprocess),
        training_options=training_options_from_dict(p.options),
        test_ratio=p.test_ratio,
        balance=p.balance,
        rng=p.seed,
    )
    return model.to_dict()


@action("aggregate_by_dimensions", schemas.AggregatePayload)
def _aggregate(p: schemas.AggregatePayload) -> Dict[str, Any]:
    groups = lookup.aggregate_by_dimensions(p.records, p.dimensions, p.metrics, p.outcome_field)
    return {"groups": groups, "dimensions": list(p.dimensions)}


@action("validate_records", schemas.ValidateRecordsPayload)
def _validate_records(p: schemas.ValidateRecordsPayload) -> Dict[str, Any]:
    errors = validate_records(p.records, p.rules)
    return {"valid": not errors, "errors": errors}


# ---------------------------------------------------------------------------


def _request_id(raw: Any) -> Any:
    if isinstance(raw, schemas.EngineRequest):
        return raw.id
    if isinstance(raw, Mapping):
        return raw.get("id")
    return None


def handle(request: schemas.EngineRequest | Mapping[str, Any]) -> schemas.EngineResponse:
    """Run one request and return exactly one response."""

    request_id = _request_id(request)
    try:
        try:
            req = (
                request
                if isinstance(request, schemas.EngineRequest)
                else schemas.EngineRequest.model_validate(request)
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"malformed request: {_validation_message(exc)}") from exc
        entry = _ACTIONS.get(req.action)
        if entry is None:
            raise ValidationError(f"Unknown action: {req.action}", action=req.action)
        payload_cls, handler = entry
        try:
            payload = payload_cls.model_validate(req.data)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"invalid {req.action} payload: {_validation_message(exc)}", action=req.action
            ) from exc
        LOGGER.debug("handling %s (id=%r)", req.action, request_id)
        result = json_safe(handler(payload))
    except EngineError as exc:
        LOGGER.info("request %r failed: %s: %s", request_id, exc.__class__.__name__, exc)
        return schemas.EngineResponse.fail(request_id, exc)
    except Exception as exc:
        LOGGER.exception("unexpected error while handling request %r", request_id)
        return schemas.EngineResponse.fail(request_id, exc)
    return schemas.EngineResponse.ok(request_id, result)


def handle_message(message: Mapping[str, Any]) -> Dict[str, Any]:
    """Plain-dict variant of :func:`handle` for message-passing transports."""

    return handle(message).to_message()


__all__ = ["action", "available_actions", "json_safe", "handle", "handle_message"]
