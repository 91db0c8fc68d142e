"""Option models for the analytics engine.

Light-weight dataclasses describing per-call options.  Payloads coming
through the message contract use camelCase keys (``maxIterations``) while
Python callers use snake_case; ``pick`` accepts both so the same parser
serves every entry point.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import get_settings
from ..errors import ValidationError

NUMERIC = "numeric"
CATEGORICAL = "categorical"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def pick(raw: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Return ``raw[name]`` trying snake_case then camelCase spellings."""

    if name in raw:
        return raw[name]
    camel = _camel(name)
    if camel in raw:
        return raw[camel]
    return default


@dataclass
class DimensionSpec:
    """Metadata about one record dimension."""

    name: str
    type: str = NUMERIC
    categories: List[Any] | None = None
    std: float | None = None

    @property
    def is_categorical(self) -> bool:
        return self.type == CATEGORICAL


@dataclass
class PreprocessOptions:
    """How raw records become a feature matrix."""

    missing: str = "impute"
    defaults: Dict[str, Any] = field(default_factory=dict)
    outliers: str = "cap"
    normalize: str = "none"


@dataclass
class TrainingOptions:
    """Gradient-descent settings for the logistic trainer."""

    max_iterations: int = 500
    learning_rate: float = 0.1
    regularization: float = 0.01
    tolerance: float = 1e-4
    min_iterations: int = 5
    threshold: float = 0.5
    validation_split: float = 0.0
    seed: int | None = None


@dataclass
class PredictionThresholds:
    """Probability cut-offs for the high/medium/low buckets."""

    high: float = 0.7
    medium: float = 0.4

    @classmethod
    def from_settings(cls) -> "PredictionThresholds":
        settings = get_settings()
        return cls(high=settings.high_threshold, medium=settings.medium_threshold)


@dataclass
class FormulaOptions:
    simplify: bool = True
    precision: int = 3
    max_terms: int = 5


# ---------------------------------------------------------------------------


def _check_choice(value: str, allowed: Sequence[str], field_name: str) -> str:
    if value not in allowed:
        raise ValidationError(
            f"{field_name} must be one of {', '.join(allowed)} (got {value!r})",
            field=field_name,
        )
    return value


def parse_dimension(raw: Any) -> DimensionSpec:
    """Build a :class:`DimensionSpec` from a name or a metadata mapping."""

    if isinstance(raw, DimensionSpec):
        return raw
    if isinstance(raw, str):
        return DimensionSpec(name=raw, type="")
    if isinstance(raw, Mapping):
        name = raw.get("name") or raw.get("id")
        if not name:
            raise ValidationError("dimension metadata requires a name")
        dim_type = str(raw.get("type") or "").lower()
        if dim_type in ("categorical", "category", "string", "picklist"):
            dim_type = CATEGORICAL
        elif dim_type:
            dim_type = NUMERIC
        categories = raw.get("categories")
        std = raw.get("std")
        if std is None:
            stats = raw.get("stats") or {}
            std = stats.get("standardDeviation") or stats.get("std")
        return DimensionSpec(
            name=str(name),
            type=dim_type,
            categories=list(categories) if categories is not None else None,
            std=float(std) if std is not None else None,
        )
    raise ValidationError(f"Unsupported dimension description: {raw!r}")


def parse_dimensions(raw: Sequence[Any]) -> List[DimensionSpec]:
    if raw is None or len(raw) == 0:
        raise ValidationError("at least one dimension is required")
    dims = [parse_dimension(item) for item in raw]
    names = [d.name for d in dims]
    if len(set(names)) != len(names):
        raise ValidationError("dimension names must be unique", dimensions=names)
    return dims


def preprocess_options_from_dict(raw: Optional[Mapping[str, Any]]) -> PreprocessOptions:
    raw = raw or {}
    missing = str(pick(raw, "missing", "impute"))
    if pick(raw, "remove_incomplete", False):
        missing = "drop"
    return PreprocessOptions(
        missing=_check_choice(missing, ("impute", "drop"), "missing"),
        defaults=dict(pick(raw, "defaults", None) or pick(raw, "default_values", None) or {}),
        outliers=_check_choice(str(pick(raw, "outliers", "cap")), ("cap", "remove", "none"), "outliers"),
        normalize=_check_choice(str(pick(raw, "normalize", "none")), ("none", "minmax", "zscore"), "normalize"),
    )


def training_options_from_dict(raw: Optional[Mapping[str, Any]]) -> TrainingOptions:
    raw = raw or {}
    opts = TrainingOptions(
        max_iterations=int(pick(raw, "max_iterations", 500)),
        learning_rate=float(pick(raw, "learning_rate", 0.1)),
        regularization=float(pick(raw, "regularization", 0.01)),
        tolerance=float(pick(raw, "tolerance", 1e-4)),
        min_iterations=int(pick(raw, "min_iterations", 5)),
        threshold=float(pick(raw, "threshold", 0.5)),
        validation_split=float(pick(raw, "validation_split", 0.0)),
        seed=pick(raw, "seed", None),
    )
    if opts.max_iterations < 1:
        raise ValidationError("maxIterations must be at least 1", field="max_iterations")
    if opts.learning_rate <= 0:
        raise ValidationError("learningRate must be positive", field="learning_rate")
    if opts.regularization < 0:
        raise ValidationError("regularization must be non-negative", field="regularization")
    if not 0.0 <= opts.validation_split < 1.0:
        raise ValidationError("validationSplit must be in [0, 1)", field="validation_split")
    return opts


def thresholds_from_dict(raw: Optional[Mapping[str, Any]]) -> PredictionThresholds:
    base = PredictionThresholds.from_settings()
    if not raw:
        return base
    thresholds = PredictionThresholds(
        high=float(pick(raw, "high", base.high)),
        medium=float(pick(raw, "medium", base.medium)),
    )
    if thresholds.medium > thresholds.high:
        raise ValidationError("medium threshold must not exceed the high threshold")
    return thresholds


def formula_options_from_dict(raw: Optional[Mapping[str, Any]]) -> FormulaOptions:
    raw = raw or {}
    return FormulaOptions(
        simplify=bool(pick(raw, "simplify", True)),
        precision=int(pick(raw, "precision", 3)),
        max_terms=int(pick(raw, "max_terms", 5)),
    )


__all__ = [
    "NUMERIC",
    "CATEGORICAL",
    "DimensionSpec",
    "PreprocessOptions",
    "TrainingOptions",
    "PredictionThresholds",
    "FormulaOptions",
    "pick",
    "parse_dimension",
    "parse_dimensions",
    "preprocess_options_from_dict",
    "training_options_from_dict",
    "thresholds_from_dict",
    "formula_options_from_dict",
]
