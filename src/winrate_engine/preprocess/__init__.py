"""Feature preprocessing: encoding, cleaning and matrix assembly."""

from .encoding import UNKNOWN_CODE, EncodingInfo
from .cleaning import Scaling, handle_missing, handle_outliers, iqr_bounds
from .pipeline import FeatureMatrix, encode_record, preprocess

__all__ = [
    "UNKNOWN_CODE",
    "EncodingInfo",
    "Scaling",
    "handle_missing",
    "handle_outliers",
    "iqr_bounds",
    "FeatureMatrix",
    "encode_record",
    "preprocess",
]
