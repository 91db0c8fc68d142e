"""Win-rate lookup tables over combinations of dimension values."""
from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from ..config import get_settings
from ..core.dataset import as_float, is_missing, outcome_of
from ..errors import ValidationError
from .estimators import WALD_Z, aggregate_binary, phat, wald_interval

LOGGER = logging.getLogger(__name__)

UNKNOWN_GROUP = "Unknown"


def match_key(value: Any) -> Tuple[str, Any]:
    """Loose-equality key: numbers compare as numbers, anything else as text."""

    number = as_float(value)
    if number is not None:
        return ("n", number)
    return ("s", str(value))


@dataclass(frozen=True)
class LookupCell:
    values: Tuple[Any, ...]
    wins: int
    sample_size: int
    win_rate: float
    confidence_interval: Optional[Tuple[float, float]]
    significant: bool

    def to_dict(self, dimensions: Sequence[str]) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(zip(dimensions, self.values))
        out.update(
            {
                "values": list(self.values),
                "winRate": self.win_rate,
                "wins": self.wins,
                "sampleSize": self.sample_size,
                "confidenceInterval": list(self.confidence_interval) if self.confidence_interval else None,
                "isStatisticallySignificant": self.significant,
            }
        )
        return out


@dataclass
class LookupTable:
    cells: List[LookupCell]
    dimensions: List[str]
    domains: Dict[str, List[Any]]
    pruned: bool = False
    value_limit: Optional[int] = None
    observed_combinations: int = 0
    _index: Dict[Tuple, LookupCell] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._index = {tuple(match_key(v) for v in c.values): c for c in self.cells}

    @property
    def total_combinations(self) -> int:
        return len(self.cells)

    def cell(self, *values: Any) -> Optional[LookupCell]:
        return self._index.get(tuple(match_key(v) for v in values))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lookupTable": [c.to_dict(self.dimensions) for c in self.cells],
            "dimensions": list(self.dimensions),
            "dimensionValues": {k: list(v) for k, v in self.domains.items()},
            "totalCombinations": self.total_combinations,
            "pruned": self.pruned,
            "valueLimit": self.value_limit,
            "observedCombinations": self.observed_combinations,
        }


def _domains(
    records: Sequence[Mapping[str, Any]], dimensions: Sequence[str]
) -> Tuple[Dict[str, List[Any]], Dict[str, Dict[Tuple, int]]]:
    """First-seen distinct values and their frequencies per dimension."""

    domains: Dict[str, List[Any]] = {d: [] for d in dimensions}
    counts: Dict[str, Dict[Tuple, int]] = {d: {} for d in dimensions}
    for rec in records:
        for dim in dimensions:
            value = rec.get(dim)
            if is_missing(value):
                continue
            key = match_key(value)
            seen = counts[dim]
            if key not in seen:
                seen[key] = 0
                domains[dim].append(value)
            seen[key] += 1
    return domains, counts


def value_limit(max_combinations: int, n_dimensions: int) -> int:
    """Per-dimension cap ``max(2, floor(max_combinations ** (1/d)))``.

    The cap is approximate: ``limit ** d`` can still exceed
    *max_combinations*; the minimum of 2 alone yields ``2 ** d`` cells.
    """

    limit = math.floor(max_combinations ** (1.0 / n_dimensions) + 1e-9)
    return max(2, int(limit))


def generate(
    records: Sequence[Mapping[str, Any]],
    dimensions: Sequence[str],
    max_combinations: int | None = None,
    min_sample_size: int | None = None,
    outcome_field: str = "won",
    z: float = WALD_Z,
) -> LookupTable:
    """Enumerate value combinations and compute a win rate per cell.

    When the product of domain sizes exceeds *max_combinations* every
    domain is cut to its most frequent values (first-seen order breaks
    ties).  Cells without matching records get a win rate of ``0`` and no
    interval.
    """

    settings = get_settings()
    max_combinations = settings.max_combinations if max_combinations is None else int(max_combinations)
    min_sample_size = settings.min_sample_size if min_sample_size is None else int(min_sample_size)
    dims = [str(d) for d in dimensions]
    if not dims:
        raise ValidationError("at least one dimension is required")
    if len(set(dims)) != len(dims):
        raise ValidationError("dimension names must be unique", dimensions=dims)
    if max_combinations < 1:
        raise ValidationError("max_combinations must be positive")
    if min_sample_size < 0:
        raise ValidationError("min_sample_size must not be negative", min_sample_size=min_sample_size)

    domains, counts = _domains(records, dims)
    observed = math.prod(len(v) for v in domains.values())
    pruned = observed > max_combinations
    limit = None
    if pruned:
        limit = value_limit(max_combinations, len(dims))
        for dim in dims:
            ranked = sorted(domains[dim], key=lambda v: -counts[dim][match_key(v)])
            domains[dim] = ranked[:limit]
        LOGGER.debug(
            "pruned %d combinations to %d values per dimension", observed, limit
        )

    tallies: Dict[Tuple, List[int]] = {}
    for rec in records:
        if any(is_missing(rec.get(d)) for d in dims):
            continue
        key = tuple(match_key(rec.get(d)) for d in dims)
        tally = tallies.setdefault(key, [0, 0])
        tally[0] += outcome_of(rec, outcome_field)
        tally[1] += 1

    cells: List[LookupCell] = []
    for combo in itertools.product(*(domains[d] for d in dims)):
        wins, n = tallies.get(tuple(match_key(v) for v in combo), (0, 0))
        cells.append(
            LookupCell(
                values=tuple(combo),
                wins=wins,
                sample_size=n,
                win_rate=phat(wins, n),
                confidence_interval=wald_interval(wins, n, z),
                significant=n > 0 and n >= min_sample_size,
            )
        )
    if len(cells) > max_combinations:
        LOGGER.debug("lookup table has %d cells after pruning (limit %d)", len(cells), max_combinations)
    return LookupTable(
        cells=cells,
        dimensions=dims,
        domains=domains,
        pruned=pruned,
        value_limit=limit,
        observed_combinations=observed,
    )


def aggregate_by_dimensions(
    records: Sequence[Mapping[str, Any]],
    dimensions: Sequence[str],
    metrics: Sequence[str] | None = None,
    outcome_field: str = "won",
) -> List[Dict[str, Any]]:
    """Group records by *dimensions* and summarise outcomes and metrics.

    Missing dimension values are grouped under ``"Unknown"``.  Each group
    reports count, wins, win rate with a Wilson interval, and
    sum/avg/min/max of every numeric *metric*.
    """

    dims = list(dimensions)
    if not dims:
        raise ValidationError("at least one dimension is required")
    metrics = list(metrics or [])
    if not records:
        return []
    rows = []
    for rec in records:
        row = {d: UNKNOWN_GROUP if is_missing(rec.get(d)) else rec.get(d) for d in dims}
        row["_won"] = outcome_of(rec, outcome_field)
        for metric in metrics:
            row[metric] = as_float(rec.get(metric))
        rows.append(row)
    df = pd.DataFrame(rows)

    groups: List[Dict[str, Any]] = []
    for key, group in df.groupby(dims, sort=False):
        key = key if isinstance(key, tuple) else (key,)
        entry: Dict[str, Any] = dict(zip(dims, key))
        entry.update(aggregate_binary(group["_won"]))
        for metric in metrics:
            values = group[metric].dropna()
            entry[metric] = {
                "sum": float(values.sum()),
                "avg": float(values.mean()) if len(values) else 0.0,
                "min": float(values.min()) if len(values) else None,
                "max": float(values.max()) if len(values) else None,
            }
        groups.append(entry)
    groups.sort(key=lambda g: g["count"], reverse=True)
    return groups


__all__ = [
    "UNKNOWN_GROUP",
    "LookupCell",
    "LookupTable",
    "match_key",
    "value_limit",
    "generate",
    "aggregate_by_dimensions",
]
