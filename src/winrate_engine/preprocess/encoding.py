"""Categorical label encoding."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping

from ..core.dataset import is_missing

UNKNOWN_CODE = -1


def category_key(value: Any) -> str:
    """Canonical string key for a category value.

    Keys are strings so the mapping survives JSON round trips; ``1`` and
    ``"1"`` land on the same code.
    """

    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


@dataclass
class EncodingInfo:
    """Category -> integer code mapping per categorical dimension.

    Codes follow first-seen order and never change once assigned, so the
    same instance must be used to score records against a trained model.
    Unseen or missing categories map to :data:`UNKNOWN_CODE`.
    """

    mappings: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def __contains__(self, dimension: str) -> bool:
        return dimension in self.mappings

    def fit(self, dimension: str, values: Iterable[Any]) -> Dict[str, int]:
        """Extend the mapping for *dimension* with newly seen values."""

        mapping = self.mappings.setdefault(dimension, {})
        for value in values:
            if is_missing(value):
                continue
            key = category_key(value)
            if key not in mapping:
                mapping[key] = len(mapping)
        return mapping

    def encode(self, dimension: str, value: Any) -> int:
        if is_missing(value):
            return UNKNOWN_CODE
        return self.mappings.get(dimension, {}).get(category_key(value), UNKNOWN_CODE)

    def categories(self, dimension: str) -> list[str]:
        mapping = self.mappings.get(dimension, {})
        return sorted(mapping, key=mapping.__getitem__)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {dim: dict(mapping) for dim, mapping in self.mappings.items()}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Mapping[str, Any]] | None) -> "EncodingInfo":
        if not raw:
            return cls()
        return cls({str(dim): {str(k): int(v) for k, v in m.items()} for dim, m in raw.items()})


__all__ = ["UNKNOWN_CODE", "EncodingInfo", "category_key"]
