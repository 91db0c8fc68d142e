"""Statistical engines: regression, logistic training, clustering and lookup tables."""

from . import clustering, estimators, logistic, lookup, metrics, regression

__all__ = ["clustering", "estimators", "logistic", "lookup", "metrics", "regression"]
