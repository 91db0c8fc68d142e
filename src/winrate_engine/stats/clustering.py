"""K-means clustering with per-cluster explanations.

Centroids start at ``k`` points drawn uniformly with replacement, then
Lloyd iterations alternate assignment and mean updates until the summed
centroid displacement drops below :data:`SHIFT_TOLERANCE`.  Each cluster
is then described by its cohesion and by how far every dimension's
in-cluster mean sits from the out-of-cluster mean.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from scipy.spatial.distance import cdist

from ..core.dataset import as_outcome
from ..core.rng import make_rng
from ..errors import ConvergenceWarning, DegenerateInputWarning, InvalidKError, ValidationError

LOGGER = logging.getLogger(__name__)

SHIFT_TOLERANCE = 1e-3


@dataclass
class Cluster:
    id: int
    centroid: List[float]
    members: List[int]
    cohesion: float
    dimensions: List[Dict[str, Any]] = field(default_factory=list)
    win_rate: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "clusterId": self.id,
            "centroid": list(self.centroid),
            "members": list(self.members),
            "size": self.size,
            "cohesion": self.cohesion,
            "distinctiveDimensions": [dict(d) for d in self.dimensions],
        }
        if self.win_rate is not None:
            out["winRate"] = self.win_rate
        return out


@dataclass
class KMeansResult:
    clusters: List[Cluster]
    centroids: List[List[float]]
    labels: List[int]
    iterations: int
    converged: bool
    inertia_history: List[float]
    silhouette: Optional[float] = None

    @property
    def inertia(self) -> float:
        return self.inertia_history[-1] if self.inertia_history else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusters": [c.to_dict() for c in self.clusters],
            "centroids": [list(c) for c in self.centroids],
            "labels": list(self.labels),
            "iterations": self.iterations,
            "converged": self.converged,
            "inertia": self.inertia,
            "inertiaHistory": list(self.inertia_history),
            "silhouetteScore": self.silhouette,
            "withinClusterDistances": [c.cohesion for c in self.clusters],
        }


def _as_points(points: Any) -> np.ndarray:
    if points is None or len(points) == 0:
        raise ValidationError("no points to cluster")
    try:
        arr = np.asarray(points, dtype=float)
    except ValueError as exc:
        raise ValidationError("points have different lengths") from exc
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2 or arr.shape[1] == 0:
        raise ValidationError("points must be a list of coordinate rows")
    if not np.all(np.isfinite(arr)):
        raise ValidationError("points must contain finite numbers only")
    return arr


def silhouette_score(points: np.ndarray, labels: np.ndarray) -> Optional[float]:
    """Mean silhouette over all points; ``None`` unless ``2 <= clusters < n``."""

    present = np.unique(labels)
    n = len(points)
    if len(present) < 2 or len(present) >= n:
        return None
    dist = cdist(points, points)
    scores = np.zeros(n)
    for i in range(n):
        own = labels == labels[i]
        own_count = int(own.sum()) - 1
        if own_count == 0:
            continue
        a = dist[i, own].sum() / own_count
        b = min(dist[i, labels == other].mean() for other in present if other != labels[i])
        denom = max(a, b)
        scores[i] = (b - a) / denom if denom > 0 else 0.0
    return float(scores.mean())


def _rank_dimensions(
    points: np.ndarray, inside: np.ndarray, names: Sequence[str]
) -> List[Dict[str, Any]]:
    n = len(points)
    outside = ~inside
    ranked: List[Dict[str, Any]] = []
    for j, name in enumerate(names):
        column = points[:, j]
        std = float(np.std(column, ddof=1)) if n > 1 else 0.0
        if not np.isfinite(std) or std == 0.0:
            std = 1.0
        cluster_mean = float(column[inside].mean()) if inside.any() else None
        other_mean = float(column[outside].mean()) if outside.any() else None
        if cluster_mean is None or other_mean is None:
            difference = 0.0
        else:
            difference = cluster_mean - other_mean
        ranked.append(
            {
                "dimension": name,
                "distinctiveness": abs(difference) / std,
                "clusterMean": cluster_mean,
                "otherMean": other_mean,
                "difference": difference,
            }
        )
    ranked.sort(key=lambda item: item["distinctiveness"], reverse=True)
    return ranked


def analyze_clusters(
    points: Any,
    members: Sequence[Sequence[int]],
    dimensions: Sequence[str] | None = None,
    outcomes: Sequence[Any] | None = None,
    centroids: Sequence[Sequence[float]] | None = None,
) -> List[Cluster]:
    """Describe clusters given as member-index lists over *points*.

    Centroids default to member means.  Distinctiveness divides the
    in/out mean gap by the sample std over all points, using ``1`` for a
    zero or undefined std; a cluster covering every point scores ``0``.
    """

    arr = _as_points(points)
    n, d = arr.shape
    names = list(dimensions) if dimensions else [f"dim{j + 1}" for j in range(d)]
    if len(names) != d:
        raise ValidationError(f"{len(names)} dimension names for {d} coordinates")
    wins = None
    if outcomes is not None:
        if len(outcomes) != n:
            raise ValidationError("outcomes must align with points")
        wins = np.asarray([as_outcome(o) for o in outcomes], dtype=float)

    clusters: List[Cluster] = []
    for cid, idx in enumerate(members):
        idx = [int(i) for i in idx]
        if any(i < 0 or i >= n for i in idx):
            raise ValidationError(f"cluster {cid} references a point outside the data")
        inside = np.zeros(n, dtype=bool)
        inside[idx] = True
        if centroids is not None:
            centroid = np.asarray(centroids[cid], dtype=float)
        elif idx:
            centroid = arr[inside].mean(axis=0)
        else:
            centroid = np.full(d, np.nan)
        if idx:
            cohesion = float(np.linalg.norm(arr[inside] - centroid, axis=1).mean())
        else:
            cohesion = 0.0
        clusters.append(
            Cluster(
                id=cid,
                centroid=[float(c) for c in centroid],
                members=idx,
                cohesion=cohesion,
                dimensions=_rank_dimensions(arr, inside, names),
                win_rate=float(wins[inside].mean()) if wins is not None and idx else None,
            )
        )
    return clusters


def cluster(
    points: Any,
    k: int,
    max_iterations: int = 100,
    rng: Any = None,
    dimensions: Sequence[str] | None = None,
    outcomes: Sequence[Any] | None = None,
) -> KMeansResult:
    """Run k-means on *points* and explain the resulting clusters."""

    arr = _as_points(points)
    n = len(arr)
    if k < 1 or k > n:
        raise InvalidKError(f"k must be between 1 and {n} (got {k})", k=k, points=n)
    if max_iterations < 1:
        raise ValidationError("max_iterations must be at least 1")
    rng = make_rng(rng)

    centroids = arr[rng.integers(0, n, size=k)].copy()
    labels = np.zeros(n, dtype=int)
    inertia_history: List[float] = []
    converged = False
    warned_empty = False
    iteration = 0
    while iteration < max_iterations:
        iteration += 1
        dist = cdist(arr, centroids)
        labels = np.argmin(dist, axis=1)
        inertia_history.append(float(np.sum(dist[np.arange(n), labels] ** 2)))

        updated = centroids.copy()
        for j in range(k):
            mask = labels == j
            if mask.any():
                updated[j] = arr[mask].mean(axis=0)
            elif not warned_empty:
                warned_empty = True
                message = f"cluster {j} is empty at iteration {iteration}; keeping its centroid"
                LOGGER.warning(message)
                warnings.warn(message, DegenerateInputWarning, stacklevel=2)
        shift = float(np.sum(np.linalg.norm(updated - centroids, axis=1)))
        centroids = updated
        if shift < SHIFT_TOLERANCE:
            converged = True
            break

    if not converged:
        message = f"k-means stopped at {iteration} iterations without converging"
        LOGGER.warning(message)
        warnings.warn(message, ConvergenceWarning, stacklevel=2)
    else:
        LOGGER.debug("k-means converged after %d iterations (k=%d, n=%d)", iteration, k, n)

    members = [np.flatnonzero(labels == j).tolist() for j in range(k)]
    clusters = analyze_clusters(arr, members, dimensions, outcomes, centroids=centroids)
    return KMeansResult(
        clusters=clusters,
        centroids=[[float(c) for c in row] for row in centroids],
        labels=[int(label) for label in labels],
        iterations=iteration,
        converged=converged,
        inertia_history=inertia_history,
        silhouette=silhouette_score(arr, labels),
    )


__all__ = [
    "SHIFT_TOLERANCE",
    "Cluster",
    "KMeansResult",
    "silhouette_score",
    "analyze_clusters",
    "cluster",
]
