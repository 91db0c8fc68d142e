"""Error taxonomy shared by every engine component.

Failures are local and recoverable: a caller can drop a collinear
dimension, raise the iteration cap or fix the payload and retry.
Degenerate-but-legal situations (non-convergence, empty clusters, empty
lookup cells) are reported with warnings and flagged results instead.
"""
from __future__ import annotations

from typing import Any, Dict


class EngineError(Exception):
    """Base class for errors raised by the analytics engine."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}


class ValidationError(EngineError, ValueError):
    """Malformed or mismatched input (shapes, empty sets, unknown actions)."""


class InvalidKError(ValidationError):
    """Requested cluster count is outside ``[1, len(points)]``."""


class NumericalError(EngineError, ArithmeticError):
    """A required statistic cannot be computed from the given data."""

    def __init__(
        self,
        message: str,
        statistic: str | None = None,
        dimension: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, statistic=statistic, dimension=dimension, **context)
        self.statistic = statistic
        self.dimension = dimension


class SingularMatrixError(NumericalError):
    """``X'X`` is not invertible (collinear features or too few rows)."""


class InsufficientDataError(NumericalError):
    """Residual degrees of freedom are not positive."""


class ConvergenceWarning(UserWarning):
    """An iterative fit stopped at its iteration cap."""


class DegenerateInputWarning(UserWarning):
    """A documented fallback value was used (zero variance, empty cluster...)."""


__all__ = [
    "EngineError",
    "ValidationError",
    "InvalidKError",
    "NumericalError",
    "SingularMatrixError",
    "InsufficientDataError",
    "ConvergenceWarning",
    "DegenerateInputWarning",
]
