"""Message contract: ``{action, id, data}`` in, ``{success, id, result|error}`` out.

Payload models accept the camelCase keys used by browser-side callers as
well as snake_case keys from Python callers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EngineRequest(BaseModel):
    """One request; ``id`` is an opaque correlation token echoed back."""

    model_config = ConfigDict(extra="ignore")

    action: str
    id: Any = None
    data: Dict[str, Any] = Field(default_factory=dict)


class EngineResponse(BaseModel):
    """Exactly one response per request: a result or an error, never both."""

    success: bool
    id: Any = None
    result: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, request_id: Any, result: Any) -> "EngineResponse":
        return cls(success=True, id=request_id, result=result)

    @classmethod
    def fail(cls, request_id: Any, exc: BaseException) -> "EngineResponse":
        return cls(
            success=False,
            id=request_id,
            error=str(exc) or exc.__class__.__name__,
            error_type=exc.__class__.__name__,
        )

    def to_message(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "id": self.id, "result": self.result}
        return {
            "success": False,
            "id": self.id,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class SubmitResponse:
    id: str


@dataclass
class StatusResponse:
    status: str


# ---------------------------------------------------------------------------
# Action payloads


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())


class RegressionPayload(Payload):
    X: List[List[float]]
    y: List[float]
    variable_names: Optional[List[str]] = Field(None, alias="variableNames")
    confidence_level: float = Field(0.95, alias="confidenceLevel")
    dimensions: Optional[List[Any]] = None
    impact_policy: str = Field("std_scaled", alias="impactPolicy")


class ConfidenceIntervalsPayload(RegressionPayload):
    levels: List[float] = Field(default_factory=lambda: [0.90, 0.95, 0.99])


class TrainLogisticPayload(Payload):
    X: List[List[float]]
    y: List[float]
    options: Dict[str, Any] = Field(default_factory=dict)
    dimensions: Optional[List[str]] = None


class PredictPayload(Payload):
    model: Dict[str, Any]
    features: Union[Dict[str, Any], List[Any]]
    thresholds: Optional[Dict[str, float]] = None


class BatchPredictPayload(Payload):
    model: Dict[str, Any]
    features_list: List[Union[Dict[str, Any], List[Any]]] = Field(alias="featuresList")
    thresholds: Optional[Dict[str, float]] = None


class ClusterPayload(Payload):
    points: List[List[float]]
    k: int
    max_iterations: int = Field(100, alias="maxIterations")
    seed: Optional[int] = None
    dimensions: Optional[List[str]] = None
    outcomes: Optional[List[Any]] = None


class ClusterAnalysisPayload(Payload):
    clusters: List[Any]
    original_data: List[Any] = Field(alias="originalData")
    dimensions: Optional[List[str]] = None


class LookupPayload(Payload):
    records: List[Dict[str, Any]]
    dimensions: List[Any]
    max_combinations: Optional[int] = Field(None, alias="maxCombinations")
    min_sample_size: Optional[int] = Field(None, alias="minSampleSize")
    outcome_field: str = Field("won", alias="outcomeField")


class FormulaPayload(Payload):
    model: Dict[str, Any]
    feature_names: Optional[List[str]] = Field(None, alias="featureNames")
    options: Dict[str, Any] = Field(default_factory=dict)


class FeatureImportancePayload(Payload):
    model: Dict[str, Any]
    X: List[List[float]]
    feature_names: Optional[List[str]] = Field(None, alias="featureNames")


class BuildModelPayload(Payload):
    records: List[Dict[str, Any]]
    dimensions: List[Any]
    target_field: str = Field("won", alias="targetField")
    preprocess: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)
    test_ratio: float = Field(0.2, alias="testRatio")
    balance: Optional[str] = None
    seed: Optional[int] = None


class AggregatePayload(Payload):
    records: List[Dict[str, Any]]
    dimensions: List[str]
    metrics: List[str] = Field(default_factory=list)
    outcome_field: str = Field("won", alias="outcomeField")


class ValidateRecordsPayload(Payload):
    records: List[Dict[str, Any]]
    rules: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "EngineRequest",
    "EngineResponse",
    "SubmitResponse",
    "StatusResponse",
    "Payload",
    "RegressionPayload",
    "ConfidenceIntervalsPayload",
    "TrainLogisticPayload",
    "PredictPayload",
    "BatchPredictPayload",
    "ClusterPayload",
    "ClusterAnalysisPayload",
    "LookupPayload",
    "FormulaPayload",
    "FeatureImportancePayload",
    "BuildModelPayload",
    "AggregatePayload",
    "ValidateRecordsPayload",
]
