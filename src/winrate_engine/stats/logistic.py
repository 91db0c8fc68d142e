"""L2-regularised logistic regression trained by batch gradient descent.

The trained :class:`LogisticModel` carries everything needed to score a
new record later: weights, dimension order, the categorical encoding and
any normalisation applied during preprocessing.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.special import expit

from ..core.rng import make_rng
from ..core.options import PreprocessOptions, TrainingOptions, training_options_from_dict
from ..errors import ConvergenceWarning, ValidationError
from ..preprocess.cleaning import Scaling
from ..preprocess.encoding import EncodingInfo
from ..preprocess.pipeline import preprocess
from ..validate.splitter import balance_classes, split_indices, train_test_split
from .metrics import classification_metrics

LOGGER = logging.getLogger(__name__)

LOG_GUARD = 1e-10


@dataclass(frozen=True)
class LogisticModel:
    """Trained win-probability model; ``weights[0]`` is the bias."""

    weights: Tuple[float, ...]
    dimensions: Tuple[str, ...]
    encoding: EncodingInfo = field(default_factory=EncodingInfo)
    scaling: Optional[Scaling] = None
    defaults: Dict[str, Any] = field(default_factory=dict)
    performance: Dict[str, Any] = field(default_factory=dict)
    performance_split: str = "training"
    training_performance: Dict[str, Any] = field(default_factory=dict)
    cost_history: Tuple[float, ...] = ()
    initial_cost: float = float("nan")
    iterations: int = 0
    converged: bool = False
    options: TrainingOptions = field(default_factory=TrainingOptions)

    def __post_init__(self) -> None:
        if len(self.weights) != len(self.dimensions) + 1:
            raise ValidationError(
                f"{len(self.weights)} weights for {len(self.dimensions)} dimensions",
                weights=len(self.weights),
                dimensions=len(self.dimensions),
            )

    @property
    def bias(self) -> float:
        return self.weights[0]

    @property
    def final_cost(self) -> float:
        return self.cost_history[-1] if self.cost_history else self.initial_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": list(self.weights),
            "dimensions": list(self.dimensions),
            "numFeatures": len(self.weights),
            "encoding": self.encoding.to_dict(),
            "scaling": self.scaling.to_dict() if self.scaling is not None else None,
            "defaults": dict(self.defaults),
            "performance": self.performance,
            "performanceSplit": self.performance_split,
            "trainingPerformance": self.training_performance,
            "costHistory": list(self.cost_history),
            "initialCost": self.initial_cost,
            "finalCost": self.final_cost,
            "iterations": self.iterations,
            "converged": self.converged,
            "options": asdict(self.options),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "LogisticModel":
        """Rebuild a model from :meth:`to_dict` output.

        Only ``weights`` is required; missing dimension names default to
        ``x1..xn`` so bare ``{"weights": [...]}`` payloads still score.
        """

        if "weights" not in raw:
            raise ValidationError("model payload has no weights")
        weights = tuple(float(w) for w in raw["weights"])
        dimensions = raw.get("dimensions") or [f"x{i}" for i in range(1, len(weights))]
        options = raw.get("options") or {}
        return cls(
            weights=weights,
            dimensions=tuple(str(d) for d in dimensions),
            encoding=EncodingInfo.from_dict(raw.get("encoding")),
            scaling=Scaling.from_dict(raw.get("scaling")),
            defaults=dict(raw.get("defaults") or {}),
            performance=dict(raw.get("performance") or {}),
            performance_split=str(raw.get("performanceSplit", raw.get("performance_split", "training"))),
            training_performance=dict(raw.get("trainingPerformance") or {}),
            cost_history=tuple(float(c) for c in raw.get("costHistory", ())),
            initial_cost=float(raw.get("initialCost", float("nan"))),
            iterations=int(raw.get("iterations", 0)),
            converged=bool(raw.get("converged", False)),
            options=training_options_from_dict(options),
        )


def _design(X: Any) -> np.ndarray:
    try:
        arr = np.asarray(X, dtype=float)
    except ValueError as exc:
        raise ValidationError("rows of X have different lengths") from exc
    if arr.ndim != 2 or len(arr) == 0:
        raise ValidationError("X must be a non-empty list of feature rows")
    if not np.all(np.isfinite(arr)):
        raise ValidationError("X must contain finite numbers only")
    return np.column_stack([np.ones(len(arr)), arr])


def _targets(y: Any, rows: int) -> np.ndarray:
    arr = np.asarray(y, dtype=float).ravel()
    if len(arr) != rows:
        raise ValidationError(f"X has {rows} rows but y has {len(arr)} values", rows=rows, targets=len(arr))
    if not np.all((arr == 0.0) | (arr == 1.0)):
        raise ValidationError("y must contain only 0/1 outcomes")
    return arr


def cost(Xb: np.ndarray, y: np.ndarray, weights: np.ndarray, regularization: float) -> float:
    """Mean cross-entropy plus ``lambda / (2m) * sum(w[1:]**2)``."""

    m = len(y)
    h = expit(Xb @ weights)
    ce = -np.mean(y * np.log(h + LOG_GUARD) + (1.0 - y) * np.log(1.0 - h + LOG_GUARD))
    penalty = regularization / (2.0 * m) * float(np.sum(weights[1:] ** 2))
    return float(ce + penalty)


def predict_proba(weights: Sequence[float], X: Any) -> np.ndarray:
    return expit(_design(X) @ np.asarray(weights, dtype=float))


def train(
    X: Any,
    y: Any,
    options: TrainingOptions | None = None,
    validation: Tuple[Any, Any] | None = None,
    dimensions: Sequence[str] | None = None,
    encoding: EncodingInfo | None = None,
    scaling: Scaling | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> LogisticModel:
    """Fit weights by gradient descent and report classification metrics.

    Training stops once the Euclidean norm of a weight update falls below
    ``options.tolerance`` after ``options.min_iterations`` updates, or at
    ``options.max_iterations`` with ``converged=False``.  When no
    *validation* pair is given and ``options.validation_split`` is positive
    a stratified hold-out is carved from the input first.

    Uncentred features slow the descent considerably; standardise them
    (see :mod:`winrate_engine.preprocess`) or raise ``max_iterations``
    when the update norm stalls above the tolerance.
    """

    options = options or TrainingOptions()
    Xb = _design(X)
    y_arr = _targets(y, len(Xb))
    n_features = Xb.shape[1] - 1
    names = list(dimensions) if dimensions else [f"x{i + 1}" for i in range(n_features)]
    if len(names) != n_features:
        raise ValidationError(f"{len(names)} dimension names for {n_features} feature columns")

    if validation is None and options.validation_split > 0:
        rng = make_rng(options.seed)
        train_idx, test_idx = split_indices(y_arr, options.validation_split, True, rng)
        if len(test_idx) and len(train_idx):
            validation = (Xb[test_idx, 1:], y_arr[test_idx])
            Xb, y_arr = Xb[train_idx], y_arr[train_idx]

    m = len(y_arr)
    reg = options.regularization
    weights = np.zeros(Xb.shape[1])
    initial = cost(Xb, y_arr, weights, reg)
    history: List[float] = []
    converged = False
    iteration = 0
    while iteration < options.max_iterations:
        iteration += 1
        errors = expit(Xb @ weights) - y_arr
        penalty = reg * weights
        penalty[0] = 0.0
        gradient = (Xb.T @ errors + penalty) / m
        step = options.learning_rate * gradient
        weights = weights - step
        history.append(cost(Xb, y_arr, weights, reg))
        if iteration >= options.min_iterations and float(np.linalg.norm(step)) < options.tolerance:
            converged = True
            break

    if not converged:
        message = (
            f"logistic training stopped at {iteration} iterations without converging "
            f"(last cost {history[-1]:.6f})"
        )
        LOGGER.warning(message)
        warnings.warn(message, ConvergenceWarning, stacklevel=2)
    else:
        LOGGER.debug("logistic training converged after %d iterations", iteration)

    training_perf = classification_metrics(y_arr, expit(Xb @ weights), options.threshold)
    performance, split = training_perf, "training"
    if validation is not None:
        Xv, yv = validation
        if len(Xv):
            Xvb = _design(Xv)
            yv_arr = _targets(yv, len(Xvb))
            performance = classification_metrics(yv_arr, expit(Xvb @ weights), options.threshold)
            split = "validation"

    return LogisticModel(
        weights=tuple(float(w) for w in weights),
        dimensions=tuple(names),
        encoding=encoding or EncodingInfo(),
        scaling=scaling,
        defaults=dict(defaults or {}),
        performance=performance,
        performance_split=split,
        training_performance=training_perf,
        cost_history=tuple(history),
        initial_cost=initial,
        iterations=iteration,
        converged=converged,
        options=options,
    )


def build_prediction_model(
    records: Sequence[Mapping[str, Any]],
    dimensions: Sequence[Any],
    target_field: str = "won",
    preprocess_options: PreprocessOptions | None = None,
    training_options: TrainingOptions | None = None,
    test_ratio: float = 0.2,
    balance: str | None = None,
    rng: Any = None,
) -> LogisticModel:
    """Preprocess records, hold out a stratified test set and train.

    *balance* (``undersample`` / ``oversample``) is applied to the training
    partition only so the held-out metrics reflect the real class mix.
    """

    training_options = training_options or TrainingOptions()
    preprocess_options = preprocess_options or PreprocessOptions()
    rng = make_rng(rng if rng is not None else training_options.seed)
    matrix = preprocess(records, dimensions, target_field=target_field, options=preprocess_options)
    train_part, test_part = train_test_split(matrix, test_ratio=test_ratio, stratified=True, rng=rng)
    if balance:
        train_part = balance_classes(train_part, balance, rng)
    validation = (test_part.X, test_part.y) if test_part is not None else None
    LOGGER.info(
        "training on %d records (%d held out) with %d dimensions",
        len(train_part),
        0 if test_part is None else len(test_part),
        len(matrix.dimensions),
    )
    return train(
        train_part.X,
        train_part.y,
        options=training_options,
        validation=validation,
        dimensions=matrix.dimensions,
        encoding=matrix.encoding,
        scaling=matrix.scaling,
        defaults=preprocess_options.defaults,
    )


def feature_importance(
    model: LogisticModel, X: Any, feature_names: Sequence[str] | None = None
) -> Dict[str, Any]:
    """Normalised ``|weight| * std(feature)`` scores, largest first."""

    arr = np.asarray(X, dtype=float)
    if arr.ndim != 2 or len(arr) == 0:
        raise ValidationError("X must be a non-empty list of feature rows")
    names = list(feature_names) if feature_names else list(model.dimensions)
    if len(names) != len(model.weights) - 1 or arr.shape[1] != len(names):
        raise ValidationError(
            "feature names, X columns and model weights disagree",
            names=len(names),
            columns=arr.shape[1],
            weights=len(model.weights) - 1,
        )
    weights = np.asarray(model.weights[1:], dtype=float)
    scores = np.abs(weights) * arr.std(axis=0)
    total = float(scores.sum())
    normalised = scores / total if total > 0 else np.zeros_like(scores)
    ranked = sorted(
        (
            {
                "feature": name,
                "importance": float(normalised[i]),
                "weight": float(weights[i]),
                "weightMagnitude": float(abs(weights[i])),
            }
            for i, name in enumerate(names)
        ),
        key=lambda item: item["importance"],
        reverse=True,
    )
    return {
        "featureImportance": ranked,
        "topFeatures": ranked[:5],
        "bottomFeatures": list(reversed(ranked[-5:])),
    }


__all__ = [
    "LOG_GUARD",
    "LogisticModel",
    "cost",
    "predict_proba",
    "train",
    "build_prediction_model",
    "feature_importance",
]
