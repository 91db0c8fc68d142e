"""Rule-based validation of incoming records.

Returns human-readable messages rather than raising so a collaborator can
show every problem at once; :func:`ensure_valid` raises when needed.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from ..core.dataset import as_float, is_missing, is_number
from ..core.options import pick
from ..errors import ValidationError

_TYPE_CHECKS = {
    "number": is_number,
    "string": lambda v: isinstance(v, str),
    "boolean": lambda v: isinstance(v, bool),
}


def _label(record: Mapping[str, Any], index: int) -> str:
    rid = record.get("id")
    return f"record {index}" if rid is None else f"record {index} ({rid})"


def validate_records(
    records: Sequence[Mapping[str, Any]], rules: Mapping[str, Any] | None = None
) -> List[str]:
    """Check records against ``required_fields``, ``field_types``,
    ``numeric_ranges`` and ``allowed_values`` rules."""

    rules = rules or {}
    required: Sequence[str] = pick(rules, "required_fields", []) or []
    types: Dict[str, str] = pick(rules, "field_types", {}) or {}
    ranges: Dict[str, Mapping[str, Any]] = pick(rules, "numeric_ranges", {}) or {}
    allowed: Dict[str, Sequence[Any]] = pick(rules, "allowed_values", {}) or {}

    errors: List[str] = []
    for index, record in enumerate(records):
        label = _label(record, index)
        for field in required:
            if is_missing(record.get(field)):
                errors.append(f"{label}: missing required field '{field}'")
        for field, expected in types.items():
            value = record.get(field)
            if is_missing(value):
                continue
            check = _TYPE_CHECKS.get(expected)
            if check is None:
                raise ValidationError(f"Unknown field type {expected!r}", field=field)
            if not check(value):
                errors.append(f"{label}: field '{field}' should be {expected}")
        for field, bounds in ranges.items():
            value = record.get(field)
            if is_missing(value):
                continue
            number = as_float(value)
            if number is None:
                errors.append(f"{label}: field '{field}' is not numeric")
                continue
            low = bounds.get("min")
            high = bounds.get("max")
            if low is not None and number < low:
                errors.append(f"{label}: field '{field}' below minimum {low}")
            if high is not None and number > high:
                errors.append(f"{label}: field '{field}' above maximum {high}")
        for field, values in allowed.items():
            value = record.get(field)
            if is_missing(value):
                continue
            if value not in values:
                errors.append(f"{label}: field '{field}' has disallowed value {value!r}")
    return errors


def ensure_valid(records: Sequence[Mapping[str, Any]], rules: Mapping[str, Any] | None = None) -> None:
    errors = validate_records(records, rules)
    if errors:
        raise ValidationError(f"{len(errors)} record validation error(s): {errors[0]}", errors=errors)


__all__ = ["validate_records", "ensure_valid"]
