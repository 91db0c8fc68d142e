"""Prediction service built on trained logistic models."""

from .formula import generate_formula
from .service import Prediction, batch_score, categorize, score

__all__ = ["Prediction", "batch_score", "categorize", "score", "generate_formula"]
