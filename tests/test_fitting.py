from __future__ import annotations

import logging
import sys

sys.path.insert(0, "src")

import numpy as np
import pytest
from numpy.testing import assert_allclose

from friction_models.core.engine import friction_history
from friction_models.core.codec import encode
from friction_models.core.errors import ConfigurationError
from friction_models.core.fitting import fit_model, parameter_covariance
from friction_models.core.models import (
    CoulombModel,
    ElastoPlasticModel,
    GeneralizedMaxwellSlipModel,
    HyperbolicModel,
    LuGreModel,
    make_elements,
)
from friction_models.core.report import format_fit_report, parameter_table


def _coulomb_data(mu: float = 0.3, n: int = 50):
    t = np.linspace(0.0, 1.0, n)
    v = np.sin(2.0 * np.pi * t) + 0.05
    N = 100.0 + 10.0 * t
    F = mu * N * np.sign(v)
    return t, F, N, v


def test_coulomb_parameter_recovery() -> None:
    t, F, N, v = _coulomb_data()
    result = fit_model(CoulombModel(0.1), t, F, N, v)

    assert result.model.coefficient == pytest.approx(0.3, rel=1e-4)
    diag = result.diagnostics
    assert diag.success
    assert diag.reliable
    assert diag.dof == t.size - 1
    assert diag.cost < diag.initial_cost
    assert diag.residual_history[0] == pytest.approx(diag.initial_cost)
    lo, hi = diag.confidence_intervals[0]
    assert lo <= result.model.coefficient <= hi


def test_fit_respects_bounds() -> None:
    t, F, N, v = _coulomb_data()
    result = fit_model(CoulombModel(0.1), t, F, N, v, options={"lower": [0.0], "upper": [0.2]})
    mu = result.model.coefficient
    assert 0.0 <= mu <= 0.2
    assert mu == pytest.approx(0.2, abs=1e-6)


def test_initial_guess_outside_bounds_is_clipped(caplog) -> None:
    t, F, N, v = _coulomb_data()
    with caplog.at_level(logging.WARNING):
        result = fit_model(
            CoulombModel(0.5), t, F, N, v, options={"lower": [0.0], "upper": [0.4]}
        )
    assert "clipped" in caplog.text
    assert result.model.coefficient == pytest.approx(0.3, rel=1e-4)


def test_fit_input_validation() -> None:
    t, F, N, v = _coulomb_data()
    model = CoulombModel(0.1)
    with pytest.raises(ConfigurationError, match="equal length"):
        fit_model(model, t, F[:-1], N, v)
    with pytest.raises(ConfigurationError, match="two samples"):
        fit_model(model, t[:1], F[:1], N[:1], v[:1])
    with pytest.raises(ConfigurationError, match="monotonically"):
        fit_model(model, t[[0, 2, 1, *range(3, t.size)]], F, N, v)
    with pytest.raises(ConfigurationError, match="bounds"):
        fit_model(model, t, F, N, v, options={"lower": [0.0, 0.0], "upper": [1.0, 1.0]})
    with pytest.raises(ConfigurationError, match="No free parameters"):
        fit_model(model, t, F, N, v, options={"lower": [0.2], "upper": [0.2]})


def test_lugre_parameter_recovery() -> None:
    true = LuGreModel(0.3, 0.2, 0.01, 1.0e5, 300.0, 0.5)
    t = np.linspace(0.0, 0.5, 101)
    v = 0.05 * np.sin(2.0 * np.pi * 2.0 * t)
    N = np.full(t.size, 100.0)
    solver_opts = {"abstol": 1e-10, "dtmax": 5e-3}
    F = friction_history(true, t, N, v, options=solver_opts).forces

    start = LuGreModel(0.31, 0.195, 0.0105, 1.02e5, 310.0, 0.52)
    result = fit_model(start, t, F, N, v, options={**solver_opts, "diff_step": 1e-4})

    assert_allclose(encode(result.model), encode(true), rtol=1e-4)
    diag = result.diagnostics
    assert diag.success
    assert diag.cost < diag.initial_cost
    assert not any(f.stage == "ivp" for f in diag.failures)


def test_pinned_parameters_stay_fixed() -> None:
    true = LuGreModel(0.3, 0.2, 0.01, 1.0e5, 300.0, 0.5)
    t = np.linspace(0.0, 0.5, 101)
    v = 0.05 * np.sin(2.0 * np.pi * 2.0 * t)
    N = np.full(t.size, 100.0)
    solver_opts = {"abstol": 1e-10, "dtmax": 5e-3}
    F = friction_history(true, t, N, v, options=solver_opts).forces

    # only the friction levels are free
    lower = [0.0, 0.0, 0.01, 1.0e5, 300.0, 0.5]
    upper = [1.0, 1.0, 0.01, 1.0e5, 300.0, 0.5]
    start = LuGreModel(0.33, 0.18, 0.01, 1.0e5, 300.0, 0.5)
    result = fit_model(
        start,
        t,
        F,
        N,
        v,
        options={**solver_opts, "lower": lower, "upper": upper, "diff_step": 1e-4},
    )

    fitted = result.model
    assert fitted.static_coefficient == pytest.approx(0.3, rel=1e-3)
    assert fitted.coulomb_coefficient == pytest.approx(0.2, rel=1e-3)
    assert fitted.bristle_stiffness == 1.0e5
    assert_allclose(result.diagnostics.standard_errors[2:], 0.0)


def test_hyperbolic_parameter_recovery() -> None:
    true = HyperbolicModel(0.3, 1.0, 5.0, 0.7, 1.5, 0.2)
    t = np.linspace(0.0, 1.0, 201)
    v = 2.0 * np.sin(2.0 * np.pi * t) + 0.01
    N = 100.0 + 20.0 * t
    F = friction_history(true, t, N, v).forces

    # mu and n enter only as a product, so n is pinned
    lower = [0.0, 1.0, 0.1, 0.0, 0.0, 0.0]
    upper = [1.0, 1.0, 50.0, 5.0, 5.0, 10.0]
    start = HyperbolicModel(0.315, 1.0, 5.2, 0.68, 1.55, 0.21)
    result = fit_model(start, t, F, N, v, options={"lower": lower, "upper": upper})

    assert_allclose(encode(result.model), encode(true), rtol=1e-6)
    assert result.diagnostics.success


def test_elasto_plastic_bounded_fit() -> None:
    true = ElastoPlasticModel(0.3, 0.2, 0.01, 1.0e5, 300.0, 1.0e-5, 1.0e-4, 0.5)
    t = np.linspace(0.0, 0.5, 101)
    v = 0.05 * np.sin(2.0 * np.pi * 2.0 * t)
    N = np.full(t.size, 100.0)
    solver_opts = {"abstol": 1e-10, "dtmax": 5e-3}
    F = friction_history(true, t, N, v, options=solver_opts).forces

    # bristle stiffness, damping and the displacement thresholds are pinned
    lower = [0.25, 0.15, 0.005, 1.0e5, 300.0, 1.0e-5, 1.0e-4, 0.0]
    upper = [0.35, 0.25, 0.02, 1.0e5, 300.0, 1.0e-5, 1.0e-4, 1.0]
    start = ElastoPlasticModel(0.32, 0.19, 0.012, 1.0e5, 300.0, 1.0e-5, 1.0e-4, 0.6)
    result = fit_model(
        start, t, F, N, v, options={**solver_opts, "lower": lower, "upper": upper, "diff_step": 1e-4}
    )

    x = encode(result.model)
    assert np.all(x >= np.asarray(lower))
    assert np.all(x <= np.asarray(upper))
    diag = result.diagnostics
    assert diag.success
    assert diag.cost < 1e-6 * diag.initial_cost
    assert_allclose(x, encode(true), rtol=1e-3)
    assert not any(f.stage == "ivp" for f in diag.failures)


def _gms_model(stiffness: float) -> GeneralizedMaxwellSlipModel:
    return GeneralizedMaxwellSlipModel(
        elements=make_elements([(stiffness, 10.0, 0.5), (2.0 * stiffness, 5.0, 0.5)]),
        static_coefficient=0.3,
        coulomb_coefficient=0.2,
        attraction_parameter=50.0,
        stribeck_velocity=0.01,
        viscous_damping=0.5,
    )


def test_non_convergence_is_reported_not_raised() -> None:
    t = np.linspace(0.0, 0.2, 41)
    v = 0.05 * np.sin(2.0 * np.pi * 5.0 * t)
    N = np.full(t.size, 10.0)
    opts = {"dtmax": 5e-3}
    F = friction_history(_gms_model(1.0e4), t, N, v, options=opts).forces

    result = fit_model(_gms_model(2.0e4), t, F, N, v, options={**opts, "max_nfev": 1})

    diag = result.diagnostics
    assert not diag.success
    assert not diag.reliable
    assert any(f.stage == "least_squares" for f in diag.failures)
    # element count is structural and never varied
    assert len(result.model.elements) == 2
    assert diag.parameters[0] == 2.0
    assert diag.standard_errors[0] == 0.0

    table = parameter_table(result)
    assert list(table.columns) == ["parameter", "value", "std_error", "ci_lower", "ci_upper", "fixed"]
    assert table.loc[0, "parameter"] == "n_elements"
    assert bool(table.loc[0, "fixed"])
    report = format_fit_report(result)
    assert "GeneralizedMaxwellSlipModel" in report
    assert "(fixed)" in report
    assert "[least_squares]" in report


def test_covariance_matches_closed_form() -> None:
    J = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
    r = np.array([1.0, -1.0, 0.5])
    cov, dof, failures = parameter_covariance(J, r)
    expected = np.linalg.inv(J.T @ J) * float(r @ r) / 1.0
    assert dof == 1
    assert failures == []
    assert_allclose(cov, expected, rtol=1e-12)


def test_covariance_flags_rank_deficiency() -> None:
    J = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
    cov, _, failures = parameter_covariance(J, np.ones(3))
    assert np.all(np.isinf(cov))
    assert failures[0].stage == "uncertainty"
    assert failures[0].details["rank"] == 1


def test_covariance_without_degrees_of_freedom() -> None:
    J = np.eye(2)
    cov, dof, failures = parameter_covariance(J, np.zeros(2))
    assert dof == 0
    assert np.all(np.isinf(cov))
    assert "Not enough data points" in failures[0].message
