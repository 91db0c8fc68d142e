"""Human-readable rendering of a logistic win-probability model."""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ..core.options import FormulaOptions
from ..errors import ValidationError
from ..stats.logistic import LogisticModel

INTERCEPT_LABEL = "Intercept"


def _term(weight: float, name: str, precision: int) -> str:
    sign = "+" if weight >= 0 else "-"
    return f"{sign} {abs(weight):.{precision}f} × {name}"


def _explain(bias: float, pairs: List[Dict[str, Any]], precision: int) -> str:
    parts = [f"Baseline log-odds is {bias:.{precision}f}."]
    positive = [p for p in pairs if p["weight"] > 0]
    negative = [p for p in pairs if p["weight"] < 0]
    if positive:
        top = positive[0]
        parts.append(
            f"{top['feature']} raises the win probability the most (weight {top['weight']:.{precision}f})."
        )
    if negative:
        top = negative[0]
        parts.append(
            f"{top['feature']} lowers the win probability the most (weight {top['weight']:.{precision}f})."
        )
    if not positive and not negative:
        parts.append("No dimension moves the prediction away from the baseline.")
    return " ".join(parts)


def generate_formula(
    model: LogisticModel,
    feature_names: Sequence[str] | None = None,
    options: FormulaOptions | None = None,
) -> Dict[str, Any]:
    """Detailed and simplified ``1 / (1 + e^-z)`` formulas for *model*."""

    options = options or FormulaOptions()
    names = list(feature_names) if feature_names else list(model.dimensions)
    if len(names) != len(model.weights) - 1:
        raise ValidationError(
            f"{len(names)} feature names for {len(model.weights) - 1} model features",
            names=len(names),
            features=len(model.weights) - 1,
        )
    precision = options.precision
    bias = model.weights[0]

    detailed = " ".join(
        [f"{bias:.{precision}f}", *(_term(w, n, precision) for w, n in zip(model.weights[1:], names))]
    )
    pairs = sorted(
        ({"feature": n, "weight": w, "absWeight": abs(w)} for n, w in zip(names, model.weights[1:])),
        key=lambda p: p["absWeight"],
        reverse=True,
    )

    simplified = ""
    if options.simplify:
        top = pairs[: options.max_terms]
        simplified = "Win Probability ≈ 1 / (1 + e^-z), where z = " + " ".join(
            [f"{bias:.{precision}f}", *(_term(p["weight"], p["feature"], precision) for p in top)]
        )
        if len(top) < len(pairs):
            simplified += " + [other factors]"

    weight_pairs = sorted(
        [{"feature": INTERCEPT_LABEL, "weight": bias, "absWeight": abs(bias)}, *pairs],
        key=lambda p: p["absWeight"],
        reverse=True,
    )
    return {
        "detailedFormula": "Win Probability = 1 / (1 + e^-z), where z = " + detailed,
        "simplifiedFormula": simplified,
        "featureWeightPairs": weight_pairs,
        "explanation": _explain(bias, pairs, precision),
    }


__all__ = ["generate_formula"]
