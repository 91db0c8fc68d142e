"""Input validation and sampling helpers."""

from .records import ensure_valid, validate_records
from .splitter import balance_classes, split_indices, train_test_split

__all__ = [
    "ensure_valid",
    "validate_records",
    "balance_classes",
    "split_indices",
    "train_test_split",
]
