"""Record loading utilities.

Records arrive from an external collaborator as flat mappings: dimension
values, an outcome flag and an identifier.  This module reads them from
JSON or CSV files (CLI use), coerces outcome flags and infers dimension
types when no metadata is supplied.
"""
from __future__ import annotations

import csv
import json
import math
from numbers import Real
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from ..errors import ValidationError
from .options import CATEGORICAL, NUMERIC, DimensionSpec

_TRUE = {"true", "1", "yes", "y", "won", "closed won"}
_FALSE = {"false", "0", "no", "n", "lost", "closed lost", ""}


def is_missing(value: Any) -> bool:
    """Return ``True`` for ``None``/NaN/empty-string values."""

    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def is_number(value: Any) -> bool:
    """Real numbers count, booleans do not."""

    return isinstance(value, Real) and not isinstance(value, bool)


def as_float(value: Any) -> float | None:
    """Parse *value* as a float, returning ``None`` when impossible or NaN."""

    if is_number(value):
        parsed = float(value)
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(parsed) else parsed


def as_outcome(value: Any, field: str = "won") -> int:
    """Coerce an outcome flag to 0/1; missing outcomes count as lost."""

    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return 1 if float(value) > 0 else 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return 1
    if text in _FALSE:
        return 0
    raise ValidationError(f"Cannot interpret outcome value {value!r}", field=field)


def outcome_of(record: Mapping[str, Any], field: str = "won") -> int:
    return as_outcome(record.get(field), field)


def infer_dimension_type(values: Iterable[Any]) -> str:
    """Numeric when every non-missing value is a real number."""

    seen = False
    for value in values:
        if is_missing(value):
            continue
        seen = True
        if not is_number(value):
            return CATEGORICAL
    return NUMERIC if seen else CATEGORICAL


def resolve_dimensions(
    records: Sequence[Mapping[str, Any]], dimensions: Sequence[DimensionSpec]
) -> List[DimensionSpec]:
    """Fill in missing dimension types from the observed values."""

    resolved: List[DimensionSpec] = []
    for dim in dimensions:
        if dim.type in (NUMERIC, CATEGORICAL):
            resolved.append(dim)
            continue
        inferred = infer_dimension_type(r.get(dim.name) for r in records)
        resolved.append(
            DimensionSpec(name=dim.name, type=inferred, categories=dim.categories, std=dim.std)
        )
    return resolved


def records_frame(
    records: Sequence[Mapping[str, Any]],
    dimensions: Sequence[str],
    outcome_field: str = "won",
    id_field: str = "id",
) -> pd.DataFrame:
    """Return a DataFrame with one column per dimension plus ``_won``/``_id``."""

    rows: List[Dict[str, Any]] = []
    for idx, rec in enumerate(records):
        row = {dim: rec.get(dim) for dim in dimensions}
        row["_won"] = outcome_of(rec, outcome_field)
        row["_id"] = rec.get(id_field, idx)
        rows.append(row)
    return pd.DataFrame(rows, columns=[*dimensions, "_won", "_id"])


def _parse_row_types(row: Dict[str, str]) -> Dict[str, Any]:
    """Convert CSV row values to appropriate python types."""

    parsed: Dict[str, Any] = {}
    for key, value in row.items():
        if value is None:
            parsed[key] = None
            continue
        value = value.strip()
        if value == "":
            parsed[key] = None
            continue
        if key == "id":
            parsed[key] = value
            continue
        # Attempt integer then float conversion, falling back to the raw string
        try:
            if "." not in value and "e" not in value and "E" not in value:
                parsed[key] = int(value)
                continue
        except ValueError:
            pass
        try:
            parsed[key] = float(value)
            continue
        except ValueError:
            parsed[key] = value
    return parsed


def load_records(path: str | Path) -> List[Dict[str, Any]]:
    """Load records from a JSON array (or ``{"records": [...]}``) or a CSV file."""

    path = Path(path)
    if path.suffix.lower() == ".csv":
        with path.open(newline="") as handle:
            reader = csv.DictReader(handle)
            return [_parse_row_types(row) for row in reader]
    raw = json.loads(path.read_text())
    if isinstance(raw, Mapping):
        raw = raw.get("records", [])
    if not isinstance(raw, list):
        raise ValidationError(f"{path} does not contain a list of records")
    return [dict(r) for r in raw]


__all__ = [
    "is_missing",
    "is_number",
    "as_float",
    "as_outcome",
    "outcome_of",
    "infer_dimension_type",
    "resolve_dimensions",
    "records_frame",
    "load_records",
]
