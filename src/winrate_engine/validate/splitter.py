"""Train/test partitioning and class balancing."""
from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

from ..errors import ValidationError
from ..preprocess.pipeline import FeatureMatrix

LOGGER = logging.getLogger(__name__)


def _class_indices(y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    won = np.flatnonzero(y >= 0.5)
    lost = np.flatnonzero(y < 0.5)
    return won, lost


def split_indices(
    y: np.ndarray,
    test_ratio: float,
    stratified: bool,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(train_idx, test_idx)`` for targets *y*."""

    if not 0.0 <= test_ratio < 1.0:
        raise ValidationError("test_ratio must be in [0, 1)", test_ratio=test_ratio)
    y = np.asarray(y, dtype=float)
    if stratified:
        train_parts, test_parts = [], []
        for group in _class_indices(y):
            shuffled = rng.permutation(group)
            n_test = int(np.floor(len(shuffled) * test_ratio))
            test_parts.append(shuffled[:n_test])
            train_parts.append(shuffled[n_test:])
        return np.concatenate(train_parts), np.concatenate(test_parts)
    shuffled = rng.permutation(len(y))
    n_test = int(np.floor(len(y) * test_ratio))
    return shuffled[n_test:], shuffled[:n_test]


def train_test_split(
    matrix: FeatureMatrix,
    test_ratio: float = 0.2,
    stratified: bool = True,
    rng: np.random.Generator | None = None,
) -> Tuple[FeatureMatrix, FeatureMatrix | None]:
    """Split *matrix* into training and test partitions.

    Stratified mode splits won and lost rows independently so both
    partitions keep the class ratio.  The test partition is ``None`` when
    the ratio leaves it empty.
    """

    rng = rng if rng is not None else np.random.default_rng()
    train_idx, test_idx = split_indices(matrix.y, test_ratio, stratified, rng)
    if len(train_idx) == 0:
        raise ValidationError("training partition is empty", test_ratio=test_ratio)
    test = matrix.take(test_idx) if len(test_idx) else None
    return matrix.take(train_idx), test


def balance_classes(
    matrix: FeatureMatrix,
    method: str = "undersample",
    rng: np.random.Generator | None = None,
) -> FeatureMatrix:
    """Equalise won/lost counts by under- or over-sampling.

    Equal class sizes leave the matrix untouched whatever the method.
    """

    if method not in ("undersample", "oversample"):
        raise ValidationError(f"Unknown balancing method {method!r}")
    rng = rng if rng is not None else np.random.default_rng()
    won, lost = _class_indices(matrix.y)
    if len(won) == 0 or len(lost) == 0:
        raise ValidationError(
            "cannot balance a single-class matrix", won=len(won), lost=len(lost)
        )
    if len(won) == len(lost):
        return matrix
    minority, majority = (won, lost) if len(won) < len(lost) else (lost, won)
    if method == "undersample":
        kept = rng.choice(majority, size=len(minority), replace=False)
        idx = np.concatenate([minority, np.sort(kept)])
    else:
        extra = rng.choice(minority, size=len(majority) - len(minority), replace=True)
        idx = np.concatenate([minority, extra, majority])
    LOGGER.debug(
        "%s: %d won / %d lost -> %d rows", method, len(won), len(lost), len(idx)
    )
    return matrix.take(idx)


__all__ = ["split_indices", "train_test_split", "balance_classes"]
