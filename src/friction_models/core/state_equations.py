"""State and force equations of the bristle (heuristic) friction models.

Every stateful model implements two pure functions:

1. ``dzdt = state_derivative(model, t, N, x, v, z)``
2. ``F = force_from_state(model, t, N, x, v, z, dzdt)``

with

- ``t``: time at which the model is evaluated,
- ``N``: compressive normal force,
- ``x``: relative position of the contacting bodies,
- ``v``: relative sliding velocity,
- ``z``: state vector, one entry per bristle element,
- ``dzdt``: time derivative of ``z``.

None of the current models use ``t`` or ``x``; they are part of the
signature so position- or time-dependent laws fit the same integrator.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, NamedTuple

import numpy as np

from .errors import ConfigurationError
from .friction import FrictionConstants
from .models import (
    ElastoPlasticModel,
    FrictionModel,
    GeneralizedMaxwellSlipModel,
    LuGreModel,
)


def stribeck_curve(model: FrictionModel, normal_force: float, velocity: float) -> float:
    """Stribeck blend between static and Coulomb friction levels.

        g(v) = Fc + (Fs - Fc) * exp(-(v/vs)^2)

    with ``Fc = coulomb_coefficient * N`` and ``Fs = static_coefficient * N``.
    """
    Fc = model.coulomb_coefficient * normal_force
    Fs = model.static_coefficient * normal_force
    return Fc + (Fs - Fc) * math.exp(-((velocity / model.stribeck_velocity) ** 2))


def _safe_divisor(value: float) -> float:
    # Keep the sign, floor the magnitude (N = 0 samples give g = 0)
    if abs(value) >= FrictionConstants.ZERO_TOL:
        return value
    return math.copysign(FrictionConstants.ZERO_TOL, value)


# --------------------------------------------------------------------
# LuGre
# --------------------------------------------------------------------

def lugre_state_derivative(model: LuGreModel, t, N, x, v, z) -> np.ndarray:
    g = _safe_divisor(stribeck_curve(model, N, v))
    return np.array([v - model.bristle_stiffness * abs(v) * z[0] / g])


def lugre_force(model: LuGreModel, t, N, x, v, z, dzdt) -> float:
    c = model.bristle_damping * math.exp(-((v / model.stribeck_velocity) ** 2))
    return float(
        model.bristle_stiffness * z[0] + c * dzdt[0] + model.viscous_damping * v
    )


# --------------------------------------------------------------------
# Elasto-Plastic
# --------------------------------------------------------------------

def elasto_plastic_alpha(model: ElastoPlasticModel, z: float) -> float:
    """Adhesion factor of the elasto-plastic model.

    Returns 0 for ``|z| <= z_ba``, 1 for ``|z| >= z_max`` and a half-sine
    ramp in between. The ramp evaluates to exactly 0 and 1 at its ends, so
    alpha is continuous in ``|z|``. If ``z_max <= z_ba`` the ramp collapses
    into a step at ``z_ba``.
    """
    zba = model.breakaway_displacement
    zmax = model.max_bristle_displacement
    az = abs(z)
    if az <= zba:
        return 0.0
    if az >= zmax:
        return 1.0
    arg = math.pi * (az - 0.5 * (zmax + zba)) / (zmax - zba)
    return 0.5 * (1.0 + math.sin(arg))


def elasto_plastic_state_derivative(model: ElastoPlasticModel, t, N, x, v, z) -> np.ndarray:
    alpha = elasto_plastic_alpha(model, z[0])
    fss = _safe_divisor(stribeck_curve(model, N, v))
    return np.array(
        [v * (1.0 - alpha * model.bristle_stiffness * np.sign(v) * z[0] / fss)]
    )


def elasto_plastic_force(model: ElastoPlasticModel, t, N, x, v, z, dzdt) -> float:
    return float(
        model.bristle_stiffness * z[0]
        + model.bristle_damping * dzdt[0]
        + model.viscous_damping * v
    )


# --------------------------------------------------------------------
# Generalized Maxwell-Slip
# --------------------------------------------------------------------

def gms_state_derivative(model: GeneralizedMaxwellSlipModel, t, N, x, v, z) -> np.ndarray:
    n = model.n_states
    dzdt = np.zeros(n)
    if n == 0:
        return dzdt
    s = stribeck_curve(model, N, v)
    sv = float(np.sign(v))
    for i, e in enumerate(model.elements):
        si = e.scale_factor * s
        if abs(z[i]) <= abs(si):
            # sticking: the element deforms with the contact
            dzdt[i] = v
        else:
            C = e.scale_factor * model.attraction_parameter
            dzdt[i] = sv * C * (1.0 - z[i] / _safe_divisor(si))
    return dzdt


def gms_force(model: GeneralizedMaxwellSlipModel, t, N, x, v, z, dzdt) -> float:
    F = model.viscous_damping * v
    for i, e in enumerate(model.elements):
        F += e.stiffness * z[i] + e.damping * dzdt[i]
    return float(F)


# --------------------------------------------------------------------
# Dispatch
# --------------------------------------------------------------------

class StateEquations(NamedTuple):
    derivative: Callable[..., np.ndarray]
    force: Callable[..., float]


_STATE_EQUATIONS: Dict[type, StateEquations] = {
    LuGreModel: StateEquations(lugre_state_derivative, lugre_force),
    ElastoPlasticModel: StateEquations(elasto_plastic_state_derivative, elasto_plastic_force),
    GeneralizedMaxwellSlipModel: StateEquations(gms_state_derivative, gms_force),
}


def state_equations(model: FrictionModel) -> StateEquations:
    try:
        return _STATE_EQUATIONS[type(model)]
    except KeyError:
        raise ConfigurationError(
            f"{type(model).__name__} has no internal state; evaluate it directly"
        ) from None


def check_state(model: FrictionModel, z: np.ndarray) -> np.ndarray:
    z = np.asarray(z, dtype=float).ravel()
    if z.size != model.n_states:
        raise ConfigurationError(
            f"{type(model).__name__} has {model.n_states} state variable(s), got {z.size}"
        )
    return z


def state_derivative(model, t, normal_force, position, velocity, z) -> np.ndarray:
    """Bristle state derivative ``dz/dt`` of a stateful model."""
    eqs = state_equations(model)
    return eqs.derivative(
        model, float(t), float(normal_force), float(position), float(velocity), check_state(model, z)
    )


def force_from_state(model, t, normal_force, position, velocity, z, dzdt) -> float:
    """Friction force of a stateful model given ``z`` and ``dz/dt``."""
    eqs = state_equations(model)
    return eqs.force(
        model,
        float(t),
        float(normal_force),
        float(position),
        float(velocity),
        check_state(model, z),
        np.asarray(dzdt, dtype=float).ravel(),
    )
