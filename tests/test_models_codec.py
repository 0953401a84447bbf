from __future__ import annotations

import sys

sys.path.insert(0, "src")

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from friction_models.core.codec import (
    decode,
    element_count,
    encode,
    fixed_parameter_mask,
    parameter_names,
)
from friction_models.core.errors import ConfigurationError, InvalidParameterError
from friction_models.core.models import (
    CoulombModel,
    ElastoPlasticModel,
    GeneralizedMaxwellSlipModel,
    HyperbolicModel,
    LuGreModel,
    MaxwellElement,
    make_elements,
    model_class,
)


def _all_models():
    return [
        CoulombModel(0.25),
        HyperbolicModel(0.3, 1.1, 50.0, 0.4, 1.5, 0.2),
        LuGreModel(0.25, 0.15, 0.01, 1.0e6, 1.0e3, 0.5),
        ElastoPlasticModel(0.3, 0.2, 0.01, 1.0e5, 300.0, 1.0e-5, 1.0e-4, 0.5),
        GeneralizedMaxwellSlipModel(
            elements=make_elements([(1.0e4, 10.0, 0.6), (2.0e4, 5.0, 0.4)]),
            static_coefficient=0.3,
            coulomb_coefficient=0.2,
            attraction_parameter=50.0,
            stribeck_velocity=0.01,
            viscous_damping=0.5,
        ),
        GeneralizedMaxwellSlipModel((), 0.3, 0.2, 50.0, 0.01, 0.5),
    ]


@pytest.mark.parametrize("model", _all_models(), ids=lambda m: f"{m.kind}-{m.n_states}")
def test_encode_decode_round_trip(model) -> None:
    x = encode(model)
    assert decode(model.kind, x) == model
    assert decode(type(model), x) == model
    assert len(parameter_names(model)) == x.size


def test_gms_vector_layout() -> None:
    model = GeneralizedMaxwellSlipModel(
        elements=make_elements([(1.0e4, 10.0, 0.6), (2.0e4, 5.0, 0.4)]),
        static_coefficient=0.3,
        coulomb_coefficient=0.2,
        attraction_parameter=50.0,
        stribeck_velocity=0.01,
        viscous_damping=0.5,
    )
    x = encode(model)
    assert x.size == 6 + 3 * 2
    assert_array_equal(
        x, [2.0, 0.3, 0.2, 50.0, 0.01, 0.5, 1.0e4, 10.0, 0.6, 2.0e4, 5.0, 0.4]
    )
    names = parameter_names(model)
    assert names[0] == "n_elements"
    assert names[-1] == "elements[1].scale_factor"
    assert_array_equal(fixed_parameter_mask(model), [True] + [False] * 11)
    assert decode("generalized_maxwell_slip", x).elements[0] == MaxwellElement(1.0e4, 10.0, 0.6)


def test_gms_fractional_element_count_rejected() -> None:
    x = [1.5, 0.3, 0.2, 50.0, 0.01, 0.5, 1.0e4, 10.0, 0.6]
    with pytest.raises(ConfigurationError, match="non-negative integer"):
        decode("generalized_maxwell_slip", x)
    with pytest.raises(ConfigurationError):
        element_count(-1.0)
    assert element_count(3.0) == 3


def test_decode_rejects_wrong_length() -> None:
    with pytest.raises(ConfigurationError):
        decode("lugre", [0.25, 0.15, 0.01])
    with pytest.raises(ConfigurationError):
        decode("generalized_maxwell_slip", [2.0, 0.3, 0.2, 50.0, 0.01, 0.5, 1.0, 2.0, 3.0])


def test_zero_stribeck_velocity_rejected() -> None:
    with pytest.raises(InvalidParameterError, match="stribeck_velocity"):
        LuGreModel(0.25, 0.15, 0.0, 1.0e6, 1.0e3, 0.0)
    with pytest.raises(InvalidParameterError):
        HyperbolicModel(0.3, 1.0, 50.0, 0.4, float("nan"), 0.0)


def test_non_numeric_parameter_rejected() -> None:
    with pytest.raises(InvalidParameterError, match="coefficient"):
        CoulombModel("high")
    with pytest.raises(InvalidParameterError):
        GeneralizedMaxwellSlipModel(((1.0, 2.0, 3.0),), 0.3, 0.2, 50.0, 0.01, 0.0)


def test_models_are_immutable_value_objects() -> None:
    a = LuGreModel(0.25, 0.15, 0.01, 1.0e6, 1.0e3, 0)
    b = LuGreModel(0.25, 0.15, 0.01, 1.0e6, 1.0e3, 0.0)
    assert a == b
    assert isinstance(a.viscous_damping, float)
    with pytest.raises(AttributeError):
        a.static_coefficient = 0.5  # type: ignore[misc]


def test_model_class_resolution() -> None:
    assert model_class("coulomb") is CoulombModel
    assert model_class(LuGreModel(0.25, 0.15, 0.01, 1.0, 1.0, 0.0)) is LuGreModel
    with pytest.raises(InvalidParameterError, match="Unknown friction model"):
        model_class("dahl")
    assert np.all(encode(CoulombModel(0.1)) == [0.1])
