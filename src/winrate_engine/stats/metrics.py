"""Binary classification metrics for the win-probability model."""
from __future__ import annotations

from typing import Any, Dict

import numpy as np


def _ratio(num: float, denom: float) -> float:
    return num / denom if denom else 0.0


def confusion_matrix(y_true: Any, y_pred: Any) -> Dict[str, int]:
    y_true = np.asarray(y_true, dtype=float) >= 0.5
    y_pred = np.asarray(y_pred, dtype=float) >= 0.5
    return {
        "truePositives": int(np.sum(y_true & y_pred)),
        "falsePositives": int(np.sum(~y_true & y_pred)),
        "trueNegatives": int(np.sum(~y_true & ~y_pred)),
        "falseNegatives": int(np.sum(y_true & ~y_pred)),
    }


def classification_metrics(y_true: Any, probabilities: Any, threshold: float = 0.5) -> Dict[str, Any]:
    """Accuracy, precision, recall, F1 and the confusion matrix at *threshold*.

    Any ratio whose denominator is zero is reported as ``0.0``.
    """

    probabilities = np.asarray(probabilities, dtype=float)
    predicted = (probabilities >= threshold).astype(float)
    cm = confusion_matrix(y_true, predicted)
    tp, fp = cm["truePositives"], cm["falsePositives"]
    tn, fn = cm["trueNegatives"], cm["falseNegatives"]
    total = tp + fp + tn + fn
    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)
    return {
        "accuracy": _ratio(tp + tn, total),
        "precision": precision,
        "recall": recall,
        "f1Score": _ratio(2 * precision * recall, precision + recall),
        "confusionMatrix": cm,
        "threshold": threshold,
        "samples": total,
    }


__all__ = ["confusion_matrix", "classification_metrics"]
