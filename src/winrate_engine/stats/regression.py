"""Closed-form multivariate linear regression with inferential statistics.

``fit`` solves the normal equations on a design matrix with a leading
intercept column and reports the classic OLS summary: R², adjusted R²,
residual standard error, per-coefficient standard errors, t-tests and
confidence intervals, and the overall F-test.  Student-t and F
probabilities come from :mod:`scipy.stats` via ``stats.distributions``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.options import DimensionSpec, parse_dimension
from ..errors import InsufficientDataError, NumericalError, SingularMatrixError, ValidationError
from .distributions import f_p_value, t_critical, t_two_tailed_p

LOGGER = logging.getLogger(__name__)

INTERCEPT = "intercept"
_EPS = np.finfo(float).eps


@dataclass(frozen=True)
class RegressionModel:
    """Immutable result of one regression fit."""

    variable_names: Tuple[str, ...]
    coefficients: Tuple[float, ...]
    standard_errors: Tuple[float, ...]
    t_stats: Tuple[float, ...]
    p_values: Tuple[float, ...]
    confidence_intervals: Tuple[Tuple[float, float], ...]
    r_squared: float
    adjusted_r_squared: float
    residual_standard_error: float
    f_statistic: float
    f_p_value: float
    n_observations: int
    n_features: int
    df_resid: int
    aic: float
    bic: float
    confidence_level: float = 0.95
    fitted: Tuple[float, ...] = ()
    residuals: Tuple[float, ...] = ()

    @property
    def intercept(self) -> float:
        return self.coefficients[0]

    @property
    def slopes(self) -> Tuple[float, ...]:
        return self.coefficients[1:]

    @property
    def significant(self) -> Tuple[bool, ...]:
        alpha = 1.0 - self.confidence_level
        return tuple(p < alpha for p in self.p_values)

    def coefficient(self, name: str) -> float:
        return self.coefficients[self.variable_names.index(name)]

    def coefficient_table(self) -> List[Dict[str, Any]]:
        rows = []
        for i, name in enumerate(self.variable_names):
            low, high = self.confidence_intervals[i]
            rows.append(
                {
                    "name": name,
                    "coefficient": self.coefficients[i],
                    "standardError": self.standard_errors[i],
                    "tStat": self.t_stats[i],
                    "pValue": self.p_values[i],
                    "confidenceInterval": [low, high],
                    "significant": self.significant[i],
                }
            )
        return rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variableNames": list(self.variable_names),
            "coefficients": list(self.coefficients),
            "intercept": self.intercept,
            "standardErrors": list(self.standard_errors),
            "tStats": list(self.t_stats),
            "pValues": list(self.p_values),
            "confidenceIntervals": [list(ci) for ci in self.confidence_intervals],
            "coefficientTable": self.coefficient_table(),
            "rSquared": self.r_squared,
            "adjustedRSquared": self.adjusted_r_squared,
            "residualStandardError": self.residual_standard_error,
            "fStatistic": self.f_statistic,
            "fPValue": self.f_p_value,
            "nObservations": self.n_observations,
            "nFeatures": self.n_features,
            "degreesOfFreedom": self.df_resid,
            "aic": self.aic,
            "bic": self.bic,
            "confidenceLevel": self.confidence_level,
            "fitted": list(self.fitted),
            "residuals": list(self.residuals),
        }


def _as_arrays(X: Any, y: Any) -> Tuple[np.ndarray, np.ndarray]:
    if X is None or len(X) == 0:
        raise ValidationError("X is empty")
    try:
        X_arr = np.asarray(X, dtype=float)
    except ValueError as exc:
        raise ValidationError("rows of X have different lengths") from exc
    if X_arr.ndim != 2:
        raise ValidationError("X must be a list of feature rows")
    y_arr = np.asarray(y, dtype=float).ravel()
    if X_arr.shape[1] == 0:
        raise ValidationError("X has no feature columns")
    if len(X_arr) != len(y_arr):
        raise ValidationError(
            f"X has {len(X_arr)} rows but y has {len(y_arr)} values",
            rows=len(X_arr),
            targets=len(y_arr),
        )
    if not (np.all(np.isfinite(X_arr)) and np.all(np.isfinite(y_arr))):
        raise ValidationError("X and y must contain finite numbers only")
    return X_arr, y_arr


def _collinear_columns(design: np.ndarray, names: Sequence[str]) -> List[str]:
    """Names of columns that add no rank to the columns before them."""

    redundant: List[str] = []
    rank = 0
    for j in range(design.shape[1]):
        new_rank = np.linalg.matrix_rank(design[:, : j + 1])
        if new_rank == rank:
            redundant.append(names[j])
        rank = new_rank
    return redundant


def _t_stat(coef: float, se: float, scale: float) -> float:
    if se > 0:
        return coef / se
    if abs(coef) <= 1e-12 * scale:
        return 0.0
    return math.copysign(math.inf, coef)


def fit(
    X: Any,
    y: Any,
    variable_names: Optional[Sequence[str]] = None,
    confidence_level: float = 0.95,
) -> RegressionModel:
    """Fit ``y ~ 1 + X`` by ordinary least squares."""

    X_arr, y_arr = _as_arrays(X, y)
    n, p = X_arr.shape
    names = list(variable_names) if variable_names else [f"x{i + 1}" for i in range(p)]
    if len(names) != p:
        raise ValidationError(
            f"{len(names)} variable names for {p} feature columns", names=len(names), columns=p
        )
    all_names = [INTERCEPT, *names]

    design = np.column_stack([np.ones(n), X_arr])
    # Rank, conditioning and the solve work on unit-norm columns.
    norms = np.linalg.norm(design, axis=0)
    norms[norms == 0.0] = 1.0
    scaled = design / norms
    rank = np.linalg.matrix_rank(scaled)
    cond = np.linalg.cond(scaled)
    if rank < p + 1 or not np.isfinite(cond) or cond > 1.0 / math.sqrt(_EPS):
        collinear = _collinear_columns(scaled, all_names)
        raise SingularMatrixError(
            "X'X is singular; drop a collinear variable or add observations",
            statistic="XtX",
            dimension=", ".join(collinear) if collinear else None,
            rank=int(rank),
            columns=p + 1,
        )

    df_resid = n - p - 1
    if df_resid <= 0:
        raise InsufficientDataError(
            f"{n} observations leave no residual degrees of freedom for {p} variables",
            statistic="degrees_of_freedom",
            observations=n,
            variables=p,
        )

    sts = scaled.T @ scaled
    sts_inv = np.linalg.inv(sts)
    beta = np.linalg.solve(sts, scaled.T @ y_arr) / norms
    fitted = design @ beta
    residuals = y_arr - fitted

    tss = float(np.sum((y_arr - y_arr.mean()) ** 2))
    if tss == 0.0:
        raise NumericalError(
            "target has zero variance, R-squared is undefined", statistic="r_squared"
        )
    rss = float(residuals @ residuals)
    if rss <= _EPS * tss:
        rss = 0.0
    r_squared = min(max(1.0 - rss / tss, 0.0), 1.0)
    adjusted = 1.0 - (1.0 - r_squared) * (n - 1) / df_resid
    sigma2 = rss / df_resid
    rse = math.sqrt(sigma2)

    variances = sigma2 * np.diag(sts_inv) / norms ** 2
    if np.any(variances < -_EPS):
        raise NumericalError("negative coefficient variance", statistic="standard_error")
    se = np.sqrt(np.clip(variances, 0.0, None))
    scale = max(1.0, float(np.max(np.abs(beta))))
    t_stats = [_t_stat(float(b), float(s), scale) for b, s in zip(beta, se)]
    p_values = [t_two_tailed_p(t, df_resid) for t in t_stats]
    t_crit = t_critical(confidence_level, df_resid)
    intervals = tuple((float(b - t_crit * s), float(b + t_crit * s)) for b, s in zip(beta, se))

    if r_squared >= 1.0:
        f_stat = math.inf
    else:
        f_stat = (r_squared / p) / ((1.0 - r_squared) / df_resid)
    f_p = f_p_value(f_stat, p, df_resid)
    aic, bic = information_criteria(n, p, sigma2)

    LOGGER.debug("regression n=%d p=%d r2=%.4f f=%.4g", n, p, r_squared, f_stat)
    return RegressionModel(
        variable_names=tuple(all_names),
        coefficients=tuple(float(b) for b in beta),
        standard_errors=tuple(float(s) for s in se),
        t_stats=tuple(t_stats),
        p_values=tuple(p_values),
        confidence_intervals=intervals,
        r_squared=r_squared,
        adjusted_r_squared=adjusted,
        residual_standard_error=rse,
        f_statistic=f_stat,
        f_p_value=f_p,
        n_observations=n,
        n_features=p,
        df_resid=df_resid,
        aic=aic,
        bic=bic,
        confidence_level=confidence_level,
        fitted=tuple(float(v) for v in fitted),
        residuals=tuple(float(r) for r in residuals),
    )


def information_criteria(n: int, p: int, sigma2: float) -> Tuple[float, float]:
    """Return ``(AIC, BIC)`` as ``n ln(sigma²) + k (p + 1)``."""

    log_var = math.log(sigma2) if sigma2 > 0 else -math.inf
    return n * log_var + 2 * (p + 1), n * log_var + math.log(n) * (p + 1)


def confidence_intervals(model: RegressionModel, level: float) -> List[Tuple[float, float]]:
    """Coefficient intervals of *model* at another confidence *level*."""

    t_crit = t_critical(level, model.df_resid)
    return [
        (b - t_crit * s, b + t_crit * s)
        for b, s in zip(model.coefficients, model.standard_errors)
    ]


def coefficient_impacts(
    model: RegressionModel,
    dimensions: Sequence[Any] | None = None,
    policy: str = "std_scaled",
    X: Any = None,
) -> List[Dict[str, Any]]:
    """Rank slope coefficients by impact.

    ``std_scaled`` multiplies numeric coefficients by the dimension's
    standard deviation (from its metadata, or the sample std of the
    matching column of *X*); categorical coefficients stay raw.  ``raw``
    uses every coefficient as is.
    """

    if policy not in ("std_scaled", "raw"):
        raise ValidationError(f"Unknown impact policy {policy!r}")
    specs: Dict[str, DimensionSpec] = {}
    for raw in dimensions or []:
        spec = parse_dimension(raw)
        specs[spec.name] = spec
    X_arr = np.asarray(X, dtype=float) if X is not None else None

    impacts: List[Dict[str, Any]] = []
    for j, name in enumerate(model.variable_names[1:]):
        coef = model.coefficients[j + 1]
        spec = specs.get(name)
        impact = coef
        if policy == "std_scaled" and not (spec is not None and spec.is_categorical):
            std = spec.std if spec is not None else None
            if std is None and X_arr is not None and len(X_arr) > 1:
                std = float(np.std(X_arr[:, j], ddof=1))
            if std is not None:
                impact = coef * std
        impacts.append(
            {
                "dimension": name,
                "coefficient": coef,
                "impact": impact,
                "pValue": model.p_values[j + 1],
                "significant": model.significant[j + 1],
            }
        )
    impacts.sort(key=lambda item: abs(item["impact"]), reverse=True)
    return impacts


__all__ = [
    "INTERCEPT",
    "RegressionModel",
    "fit",
    "information_criteria",
    "confidence_intervals",
    "coefficient_impacts",
]
