"""Missing values, IQR outlier handling and normalisation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.dataset import as_float, is_missing

LOGGER = logging.getLogger(__name__)


def handle_missing(
    df: pd.DataFrame,
    dimensions: Sequence[str],
    method: str = "impute",
    defaults: Mapping[str, Any] | None = None,
) -> pd.DataFrame:
    """Drop incomplete rows or substitute configured defaults.

    With ``impute`` a missing value becomes ``defaults[dim]`` when one is
    configured and stays missing otherwise; encoding turns the remaining
    gaps into ``0`` (numeric) or the unknown code (categorical).
    """

    if method == "drop":
        mask = np.ones(len(df), dtype=bool)
        for dim in dimensions:
            mask &= ~df[dim].map(is_missing).to_numpy(dtype=bool)
        dropped = int((~mask).sum())
        if dropped:
            LOGGER.debug("dropped %d incomplete records", dropped)
        return df.loc[mask].reset_index(drop=True)

    defaults = defaults or {}
    out = df.copy()
    for dim in dimensions:
        if dim not in defaults:
            continue
        fill = defaults[dim]
        out[dim] = out[dim].map(lambda v: fill if is_missing(v) else v).astype(object)
    return out


def iqr_bounds(values: Sequence[float]) -> Tuple[float, float]:
    """Return ``(Q1 - 1.5 IQR, Q3 + 1.5 IQR)`` using the sorted-index quartiles."""

    ordered = np.sort(np.asarray(values, dtype=float))
    n = len(ordered)
    q1 = ordered[int(np.floor(n * 0.25))]
    q3 = ordered[min(int(np.floor(n * 0.75)), n - 1)]
    iqr = q3 - q1
    return float(q1 - 1.5 * iqr), float(q3 + 1.5 * iqr)


def handle_outliers(
    df: pd.DataFrame,
    numeric_dimensions: Sequence[str],
    method: str = "cap",
) -> pd.DataFrame:
    """Clip (``cap``) or drop (``remove``) values outside the IQR fences."""

    if method == "none" or not numeric_dimensions or df.empty:
        return df
    out = df.copy()
    keep = np.ones(len(out), dtype=bool)
    for dim in numeric_dimensions:
        parsed = out[dim].map(as_float)
        present = parsed.notna().to_numpy()
        if not present.any():
            continue
        low, high = iqr_bounds(parsed[present].astype(float).to_numpy())
        if method == "cap":
            out[dim] = [
                v if pd.isna(p) else min(max(float(p), low), high)
                for v, p in zip(out[dim], parsed)
            ]
        else:
            values = parsed.astype(float).to_numpy()
            inside = (values >= low) & (values <= high)
            keep &= ~present | inside
    if method == "remove":
        removed = int((~keep).sum())
        if removed:
            LOGGER.debug("removed %d outlier records", removed)
        out = out.loc[keep].reset_index(drop=True)
    return out


@dataclass
class Scaling:
    """Per-column affine normalisation ``(x - offset) / scale``.

    ``minmax`` maps a constant column to 1; ``zscore`` maps it to 0.
    """

    method: str
    params: Dict[str, Tuple[float, float]]

    def apply_value(self, dimension: str, value: float) -> float:
        if dimension not in self.params:
            return value
        offset, scale = self.params[dimension]
        if scale == 0:
            return 1.0 if self.method == "minmax" else 0.0
        return (value - offset) / scale

    def apply(self, X: np.ndarray, dimensions: Sequence[str]) -> np.ndarray:
        out = np.array(X, dtype=float, copy=True)
        for j, dim in enumerate(dimensions):
            if dim not in self.params:
                continue
            offset, scale = self.params[dim]
            if scale == 0:
                out[:, j] = 1.0 if self.method == "minmax" else 0.0
            else:
                out[:, j] = (out[:, j] - offset) / scale
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {"method": self.method, "params": {k: list(v) for k, v in self.params.items()}}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "Scaling | None":
        if not raw:
            return None
        params = {str(k): (float(v[0]), float(v[1])) for k, v in raw.get("params", {}).items()}
        return cls(method=str(raw.get("method", "minmax")), params=params)


def fit_scaling(X: np.ndarray, dimensions: Sequence[str], columns: List[str], method: str) -> Scaling | None:
    """Compute normalisation parameters for *columns* of *X*."""

    if method == "none":
        return None
    params: Dict[str, Tuple[float, float]] = {}
    for j, dim in enumerate(dimensions):
        if dim not in columns:
            continue
        col = X[:, j]
        if method == "minmax":
            low = float(col.min())
            params[dim] = (low, float(col.max()) - low)
        else:
            params[dim] = (float(col.mean()), float(col.std()))
    return Scaling(method=method, params=params)


__all__ = ["handle_missing", "iqr_bounds", "handle_outliers", "Scaling", "fit_scaling"]
