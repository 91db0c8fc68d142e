import math

import numpy as np
import pytest
from scipy import stats

from winrate_engine.errors import (
    InsufficientDataError,
    NumericalError,
    SingularMatrixError,
    ValidationError,
)
from winrate_engine.stats import regression


def test_perfect_fit_reports_infinite_statistics():
    model = regression.fit([[1], [2], [3], [4]], [2, 4, 6, 8], ["n"])
    assert model.variable_names == ("intercept", "n")
    assert model.coefficient("n") == pytest.approx(2.0)
    assert model.intercept == pytest.approx(0.0, abs=1e-9)
    assert model.r_squared == 1.0
    assert math.isinf(model.t_stats[1]) and model.t_stats[1] > 0
    assert model.p_values[1] == 0.0
    assert math.isinf(model.f_statistic)
    assert model.f_p_value == 0.0


def _noisy(seed: int = 1234, n: int = 40):
    rng = np.random.default_rng(seed)
    x = rng.normal(size=n)
    y = 3.0 + 1.5 * x + rng.normal(scale=0.5, size=n)
    return x, y


def test_simple_regression_matches_scipy_linregress():
    x, y = _noisy()
    model = regression.fit(x.reshape(-1, 1), y)
    ref = stats.linregress(x, y)
    assert model.coefficients[1] == pytest.approx(ref.slope)
    assert model.intercept == pytest.approx(ref.intercept)
    assert model.standard_errors[1] == pytest.approx(ref.stderr)
    assert model.standard_errors[0] == pytest.approx(ref.intercept_stderr)
    assert model.p_values[1] == pytest.approx(ref.pvalue, abs=1e-12)
    assert model.r_squared == pytest.approx(ref.rvalue ** 2)
    assert model.df_resid == len(x) - 2


def test_multivariate_fit_invariants():
    rng = np.random.default_rng(7)
    X = rng.normal(size=(50, 3))
    y = 1.0 + X @ np.array([0.5, -2.0, 0.0]) + rng.normal(scale=1.0, size=50)
    model = regression.fit(X, y, ["a", "b", "c"])

    design = np.column_stack([np.ones(50), X])
    assert np.allclose(design.T @ np.asarray(model.residuals), 0.0, atol=1e-8)
    assert 0.0 <= model.r_squared <= 1.0
    assert model.adjusted_r_squared <= model.r_squared
    for coef, (low, high) in zip(model.coefficients, model.confidence_intervals):
        assert low <= coef <= high

    widths = {
        level: [high - low for low, high in regression.confidence_intervals(model, level)]
        for level in (0.90, 0.95, 0.99)
    }
    for i in range(4):
        assert widths[0.90][i] < widths[0.95][i] < widths[0.99][i]
    assert model.significant[2] is True


def test_collinear_columns_raise_singular_with_dimension():
    with pytest.raises(SingularMatrixError) as excinfo:
        regression.fit([[1, 2], [2, 4], [3, 6], [4, 8]], [1, 2, 3, 5])
    assert excinfo.value.dimension == "x2"
    assert excinfo.value.statistic == "XtX"


def test_more_variables_than_rows_is_singular():
    with pytest.raises(SingularMatrixError):
        regression.fit([[1, 2, 3, 4], [2, 1, 0, 5], [3, 3, 1, 1]], [1, 2, 3])


def test_no_residual_degrees_of_freedom():
    with pytest.raises(InsufficientDataError):
        regression.fit([[1, 0], [0, 1], [1, 1]], [1, 2, 4])


def test_constant_target_has_undefined_r_squared():
    with pytest.raises(NumericalError) as excinfo:
        regression.fit([[1], [2], [3], [4]], [5, 5, 5, 5])
    assert type(excinfo.value) is NumericalError
    assert excinfo.value.statistic == "r_squared"


def test_shape_mismatches_are_validation_errors():
    with pytest.raises(ValidationError):
        regression.fit([[1], [2], [3]], [1, 2])
    with pytest.raises(ValidationError):
        regression.fit([[1, 2], [3]], [1, 2])
    with pytest.raises(ValidationError):
        regression.fit([[1], [2], [3]], [1, 2, 3], ["a", "b"])
    with pytest.raises(ValidationError):
        regression.confidence_intervals(regression.fit(*_xy()), 1.5)


def _xy():
    x, y = _noisy(n=10)
    return x.reshape(-1, 1), y


def test_information_criteria():
    aic, bic = regression.information_criteria(10, 2, 1.0)
    assert aic == pytest.approx(6.0)
    assert bic == pytest.approx(3 * math.log(10))


def test_coefficient_impacts_scale_numeric_dimensions_only():
    rng = np.random.default_rng(3)
    amount = rng.normal(50, 10, size=30)
    region = rng.integers(0, 3, size=30).astype(float)
    y = 0.2 * amount + 1.0 * region + rng.normal(scale=0.3, size=30)
    model = regression.fit(np.column_stack([amount, region]), y, ["amount", "region"])

    dims = [
        {"name": "amount", "type": "numeric", "stats": {"standardDeviation": 10.0}},
        {"name": "region", "type": "categorical"},
    ]
    impacts = {i["dimension"]: i for i in regression.coefficient_impacts(model, dims)}
    assert impacts["amount"]["impact"] == pytest.approx(model.coefficient("amount") * 10.0)
    assert impacts["region"]["impact"] == model.coefficient("region")

    raw = regression.coefficient_impacts(model, dims, policy="raw")
    assert [i["impact"] for i in raw] == sorted((i["impact"] for i in raw), key=abs, reverse=True)
    with pytest.raises(ValidationError):
        regression.coefficient_impacts(model, dims, policy="elasticity")


def test_to_dict_uses_camel_case_keys():
    payload = regression.fit(*_xy()).to_dict()
    assert {"rSquared", "adjustedRSquared", "fStatistic", "coefficientTable"} <= set(payload)
    assert payload["coefficientTable"][0]["name"] == "intercept"


@pytest.mark.parametrize("mean, std", [(1e6, 1e4), (5e7, 1e7)])
def test_large_dollar_amounts_are_not_singular(mean, std):
    rng = np.random.default_rng(2024)
    amount = rng.normal(mean, std, size=200)
    y = 5.0 + 0.002 * amount + rng.normal(scale=1.0, size=200)
    model = regression.fit(amount.reshape(-1, 1), y, ["amount"])
    ref = stats.linregress(amount, y)
    assert model.coefficient("amount") == pytest.approx(ref.slope, rel=1e-6)
    assert model.intercept == pytest.approx(ref.intercept, rel=1e-6, abs=1e-6)
    assert model.standard_errors[1] == pytest.approx(ref.stderr, rel=1e-6)
    assert model.r_squared == pytest.approx(ref.rvalue ** 2, rel=1e-6)


def test_constant_feature_is_collinear_with_intercept():
    with pytest.raises(SingularMatrixError) as excinfo:
        regression.fit([[5], [5], [5], [5]], [1, 2, 3, 5], ["flat"])
    assert excinfo.value.dimension == "flat"
