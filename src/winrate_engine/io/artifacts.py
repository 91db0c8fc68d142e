"""Utilities to persist engine requests, responses and tables."""
from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict

import pandas as pd

from ..errors import ValidationError
from ..stats.logistic import LogisticModel
from ..stats.lookup import LookupTable


def read_json(path: str | Path) -> Any:
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{path} is not valid JSON: {exc}") from exc


def write_json(path: str | Path, payload: Any) -> None:
    Path(path).write_text(json.dumps(payload, indent=2, allow_nan=False))


def load_request(path: str | Path) -> Dict[str, Any]:
    raw = read_json(path)
    if not isinstance(raw, dict) or "action" not in raw:
        raise ValidationError(f"{path} does not hold an engine request")
    return raw


def load_model(path: str | Path) -> LogisticModel:
    """Load a logistic model from a ``to_dict`` dump or a response file."""

    raw = read_json(path)
    if isinstance(raw, dict) and "result" in raw and isinstance(raw["result"], dict):
        raw = raw["result"]
    if not isinstance(raw, dict):
        raise ValidationError(f"{path} does not hold a model")
    return LogisticModel.from_dict(raw)


def lookup_frame(table: LookupTable) -> pd.DataFrame:
    """One row per cell with the dimension values as columns."""

    rows = []
    for cell in table.cells:
        row = dict(zip(table.dimensions, cell.values))
        low, high = cell.confidence_interval or (None, None)
        row.update(
            {
                "win_rate": cell.win_rate,
                "wins": cell.wins,
                "sample_size": cell.sample_size,
                "ci_low": low,
                "ci_high": high,
                "significant": cell.significant,
            }
        )
        rows.append(row)
    columns = [*table.dimensions, "win_rate", "wins", "sample_size", "ci_low", "ci_high", "significant"]
    return pd.DataFrame(rows, columns=columns)


def write_lookup_csv(path: str | Path, table: LookupTable) -> None:
    lookup_frame(table).to_csv(path, index=False)


__all__ = [
    "read_json",
    "write_json",
    "load_request",
    "load_model",
    "lookup_frame",
    "write_lookup_csv",
]
