"""Proportion estimators for win-rate cells."""
from __future__ import annotations

from math import sqrt
from statistics import NormalDist
from typing import Dict, Optional, Tuple

import pandas as pd

WALD_Z = 1.96


def phat(successes: int, trials: int) -> float:
    """Return the empirical success probability (``0`` for no trials)."""

    return successes / trials if trials else 0.0


def wald_interval(successes: int, n: int, z: float = WALD_Z) -> Optional[Tuple[float, float]]:
    """Normal-approximation interval ``p +- z sqrt(p (1 - p) / n)`` clamped to [0, 1].

    Returns ``None`` when there are no trials.
    """

    if n == 0:
        return None
    p = successes / n
    margin = z * sqrt(p * (1 - p) / n)
    return max(0.0, p - margin), min(1.0, p + margin)


def freq_with_wilson(successes: int, n: int, alpha: float = 0.05) -> Tuple[float, float, float]:
    """Return empirical frequency and Wilson score interval."""

    if n == 0:
        return 0.0, 0.0, 0.0
    z = NormalDist().inv_cdf(1 - alpha / 2)
    p = successes / n
    denom = 1 + z * z / n
    center = p + z * z / (2 * n)
    margin = z * sqrt(p * (1 - p) / n + z * z / (4 * n * n))
    return p, (center - margin) / denom, (center + margin) / denom


def aggregate_binary(outcomes: pd.Series) -> Dict[str, float]:
    """Count, wins, win rate and Wilson interval of a 0/1 series."""

    n = int(outcomes.count())
    wins = int(outcomes.sum()) if n else 0
    p, ci_low, ci_high = freq_with_wilson(wins, n)
    return {
        "count": n,
        "wins": wins,
        "winRate": p,
        "wilsonLow": ci_low,
        "wilsonHigh": ci_high,
    }


__all__ = ["WALD_Z", "phat", "wald_interval", "freq_with_wilson", "aggregate_binary"]
