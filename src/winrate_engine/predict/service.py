"""Score new records against a trained logistic model."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from scipy.special import expit

from ..core.dataset import as_float
from ..core.options import PredictionThresholds
from ..errors import ValidationError
from ..preprocess.pipeline import encode_record
from ..stats.logistic import LogisticModel

LOGGER = logging.getLogger(__name__)

HIGH = "high"
MEDIUM = "medium"
LOW = "low"


def categorize(probability: float, thresholds: PredictionThresholds | None = None) -> str:
    thresholds = thresholds or PredictionThresholds.from_settings()
    if probability >= thresholds.high:
        return HIGH
    if probability >= thresholds.medium:
        return MEDIUM
    return LOW


@dataclass
class Prediction:
    probability: float
    category: str
    baseline: float
    contributions: List[Dict[str, Any]] = field(default_factory=list)
    features: List[float] = field(default_factory=list)

    @property
    def top_positive(self) -> List[Dict[str, Any]]:
        return [c for c in self.contributions if c["contribution"] > 0][:3]

    @property
    def top_negative(self) -> List[Dict[str, Any]]:
        return [c for c in self.contributions if c["contribution"] < 0][:3]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probability": self.probability,
            "category": self.category,
            "baseline": self.baseline,
            "contributions": [dict(c) for c in self.contributions],
            "topPositiveFactors": [dict(c) for c in self.top_positive],
            "topNegativeFactors": [dict(c) for c in self.top_negative],
            "encodedFeatures": list(self.features),
        }


def _features(model: LogisticModel, record: Any) -> tuple[List[float], List[Any]]:
    """Return ``(encoded, raw)`` feature values for *record*."""

    if isinstance(record, Mapping):
        encoded = encode_record(record, model.dimensions, model.encoding, model.scaling, model.defaults)
        return encoded, [record.get(dim) for dim in model.dimensions]
    values = list(record)
    if len(values) != len(model.dimensions):
        raise ValidationError(
            f"expected {len(model.dimensions)} features, got {len(values)}",
            expected=len(model.dimensions),
            received=len(values),
        )
    encoded = []
    for dim, value in zip(model.dimensions, values):
        number = as_float(value)
        if number is None:
            raise ValidationError(f"feature {dim!r} is not numeric: {value!r}", dimension=dim)
        encoded.append(number)
    return encoded, values


def score(
    model: LogisticModel,
    record: Mapping[str, Any] | Sequence[float],
    thresholds: PredictionThresholds | None = None,
) -> Prediction:
    """Win probability, category and ranked contributions for one record.

    *record* is either raw dimension values (encoded with the model's
    stored encoding and scaling) or an already-encoded feature vector.
    """

    encoded, raw = _features(model, record)
    bias = model.weights[0]
    contributions = []
    for dim, weight, value, x in zip(model.dimensions, model.weights[1:], raw, encoded):
        contributions.append(
            {
                "dimension": dim,
                "weight": weight,
                "value": value,
                "encodedValue": x,
                "contribution": weight * x,
            }
        )
    contributions.sort(key=lambda c: abs(c["contribution"]), reverse=True)
    z = bias + sum(c["contribution"] for c in contributions)
    if not math.isfinite(z):
        raise ValidationError("linear predictor is not finite", value=z)
    probability = float(expit(z))
    return Prediction(
        probability=probability,
        category=categorize(probability, thresholds),
        baseline=bias,
        contributions=contributions,
        features=encoded,
    )


def batch_score(
    model: LogisticModel,
    records: Sequence[Any],
    thresholds: PredictionThresholds | None = None,
) -> Dict[str, Any]:
    """Score every record and summarise the category mix."""

    thresholds = thresholds or PredictionThresholds.from_settings()
    predictions = [score(model, record, thresholds) for record in records]
    breakdown = {HIGH: 0, MEDIUM: 0, LOW: 0}
    for prediction in predictions:
        breakdown[prediction.category] += 1
    count = len(predictions)
    average = sum(p.probability for p in predictions) / count if count else 0.0
    LOGGER.debug("scored %d records (avg probability %.3f)", count, average)
    return {
        "predictions": predictions,
        "summary": {
            "count": count,
            "averageProbability": average,
            "categoryBreakdown": breakdown,
        },
    }


__all__ = ["HIGH", "MEDIUM", "LOW", "Prediction", "categorize", "score", "batch_score"]
