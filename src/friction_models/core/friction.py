"""Memoryless friction laws.

This module contains the friction laws whose force depends only on the
current normal force and sliding velocity (no internal state): Coulomb and
the hyperbolic law of Rodriguez et al.

Sign convention
---------------
Every law in this package reports the friction force with the sign of the
sliding velocity, ``F ~ +sign(v)``. This is the convention the bristle
models produce through ``bristle_stiffness * z`` as well, so measured data
can be fitted with any variant without flipping signs. For example
``CoulombModel(0.25)`` at ``N = 100``, ``v = -0.5`` gives ``F = -25``.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from .errors import ConfigurationError
from .models import CoulombModel, FrictionModel, HyperbolicModel


class FrictionConstants:
    """Numerical constants shared by the friction laws."""

    ZERO_TOL = 1e-12  # Floor for divisors built on the Stribeck curve


def coulomb_force(model: CoulombModel, normal_force: float, velocity: float) -> float:
    """Coulomb friction.

    Parameters
    ----------
    model : CoulombModel
    normal_force : float
        Compressive normal force (N)
    velocity : float
        Relative sliding velocity (m/s)

    Returns
    -------
    float
        ``coefficient * N`` at rest, ``coefficient * N * sign(v)`` otherwise.
    """
    F = model.coefficient * float(normal_force)
    if velocity == 0.0:
        return F
    return F * float(np.sign(velocity))


def hyperbolic_force(model: HyperbolicModel, normal_force: float, velocity: float) -> float:
    """Hyperbolic friction law (Rodriguez et al.).

    Computes

        F = mu*N*n * sign(d*v) * tanh(|d*v|)^(2h-1) / (1 + atan(|d*v|)^(2s)) + b*v

    with ``d`` the dissipation coefficient, ``h`` the hysteresis coefficient
    and ``s`` the Stribeck exponent (``stribeck_velocity``).

    Notes
    -----
    For ``h < 1/2`` the tanh power has a negative exponent, so the expression
    is singular at ``d*v = 0``. The hyperbolic term is defined as 0 there,
    leaving only the viscous contribution, and the call never returns a
    non-finite value for finite inputs.
    """
    v = float(velocity)
    dv = model.dissipation_coefficient * v
    F_visc = model.viscous_damping * v
    if dv == 0.0:
        return F_visc

    a = abs(dv)
    num = np.tanh(a) ** (2.0 * model.hysteresis_coefficient - 1.0)
    den = 1.0 + np.arctan(a) ** (2.0 * model.stribeck_velocity)
    F = (
        model.friction_coefficient
        * float(normal_force)
        * model.normalization_coefficient
        * np.sign(dv)
        * num
        / den
    )
    return float(F) + F_visc


_MEMORYLESS_LAWS: Dict[type, Callable[..., float]] = {
    CoulombModel: coulomb_force,
    HyperbolicModel: hyperbolic_force,
}


def is_memoryless(model: FrictionModel) -> bool:
    return type(model) in _MEMORYLESS_LAWS


def memoryless_force(model: FrictionModel, normal_force: float, velocity: float) -> float:
    """Dispatch to the memoryless law of ``model``."""
    try:
        law = _MEMORYLESS_LAWS[type(model)]
    except KeyError:
        raise ConfigurationError(
            f"{type(model).__name__} has internal state; use the state equations instead"
        ) from None
    return law(model, normal_force, velocity)


def evaluate_memoryless(
    model: FrictionModel,
    times: np.ndarray,
    normal: Callable[[float], float],
    velocity: Callable[[float], float],
) -> np.ndarray:
    """Evaluate a memoryless law at every time point independently.

    Parameters
    ----------
    model : CoulombModel or HyperbolicModel
    times : np.ndarray
        Time points, shape (n,)
    normal, velocity : callable
        ``f(t) -> float`` signals (e.g. :class:`~.signal.LinearSignal`).

    Returns
    -------
    np.ndarray
        Friction force at each time, shape (n,)
    """
    t = np.asarray(times, dtype=float).ravel()
    F = np.zeros(t.size)
    for i, ti in enumerate(t):
        F[i] = memoryless_force(model, normal(ti), velocity(ti))
    return F
