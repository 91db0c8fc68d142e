"""Thin wrappers around the scipy reference distributions."""
from __future__ import annotations

import math

from scipy import stats

from ..errors import ValidationError


def t_two_tailed_p(t_stat: float, df: float) -> float:
    """Two-tailed p-value of a Student t statistic."""

    if math.isinf(t_stat):
        return 0.0
    if math.isnan(t_stat):
        return 1.0
    return float(2.0 * stats.t.sf(abs(t_stat), df))


def t_critical(level: float, df: float) -> float:
    """Critical value ``t`` with ``P(|T| <= t) == level``."""

    if not 0.0 < level < 1.0:
        raise ValidationError(f"confidence level must be in (0, 1), got {level}")
    return float(stats.t.ppf(1.0 - (1.0 - level) / 2.0, df))


def f_p_value(f_stat: float, df_model: float, df_resid: float) -> float:
    """Upper-tail probability of an F statistic."""

    if math.isinf(f_stat):
        return 0.0
    if df_model <= 0 or math.isnan(f_stat):
        return 1.0
    return float(stats.f.sf(f_stat, df_model, df_resid))


__all__ = ["t_two_tailed_p", "t_critical", "f_p_value"]
