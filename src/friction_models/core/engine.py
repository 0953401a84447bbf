"""Single entry point for evaluating any friction model variant.

``friction`` answers "what is the force right now" for a given state and
``friction_history`` produces a complete time history, integrating the
bristle state where the variant has one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union

import numpy as np

from ..config.loader import coerce_options
from ..config.models import FrictionOptions
from .errors import ConfigurationError
from .friction import evaluate_memoryless, is_memoryless, memoryless_force
from .integrator import FrictionHistory, integrate
from .models import FrictionModel
from .signal import LinearSignal, check_monotonic, zero_signal
from .state_equations import check_state, state_equations

logger = logging.getLogger(__name__)

SignalLike = Union[Callable[[float], float], Sequence[float], np.ndarray]


@dataclass(frozen=True)
class FrictionResponse:
    force: float
    state_derivative: np.ndarray


def friction(
    model: FrictionModel,
    normal_force: float,
    velocity: float,
    state: Union[float, Sequence[float], None] = None,
    *,
    time: float = 0.0,
    position: float = 0.0,
) -> FrictionResponse:
    """Friction force of ``model`` at one operating point.

    Parameters
    ----------
    model : FrictionModel
    normal_force : float
        Compressive normal force (N)
    velocity : float
        Relative sliding velocity (m/s)
    state : float or sequence of float, optional
        Bristle state of stateful variants (zeros if omitted). Ignored by
        memoryless variants.
    time, position : float
        Passed through to the state equations.

    Returns
    -------
    FrictionResponse
        ``force`` and ``state_derivative`` (empty for memoryless variants).
    """
    if is_memoryless(model):
        return FrictionResponse(
            force=memoryless_force(model, float(normal_force), float(velocity)),
            state_derivative=np.zeros(0),
        )

    if state is None:
        z = np.zeros(model.n_states)
    elif np.ndim(state) == 0:
        z = np.full(model.n_states, float(state))
    else:
        z = check_state(model, state)

    eqs = state_equations(model)
    args = (model, float(time), float(normal_force), float(position), float(velocity))
    dzdt = eqs.derivative(*args, z)
    return FrictionResponse(force=eqs.force(*args, z, dzdt), state_derivative=dzdt)


def _as_signal(signal: SignalLike, times: np.ndarray, name: str) -> Callable[[float], float]:
    if callable(signal):
        return signal
    values = np.asarray(signal, dtype=float).ravel()
    if values.size != times.size:
        raise ConfigurationError(
            f"{name} has {values.size} samples but {times.size} time points were given"
        )
    return LinearSignal(times, values)


def friction_history(
    model: FrictionModel,
    times: Sequence[float],
    normal: SignalLike,
    velocity: SignalLike,
    *,
    position: Optional[SignalLike] = None,
    z0: Union[float, Sequence[float], None] = None,
    options: Union[FrictionOptions, Dict[str, Any], None] = None,
) -> FrictionHistory:
    """Friction force time history of any variant.

    Parameters
    ----------
    model : FrictionModel
    times : sequence of float
        ``[t_start, t_end]`` or monotonic output times. Memoryless variants
        are evaluated at exactly these times.
    normal, velocity : callable or array_like
        ``f(t) -> float`` or samples aligned with ``times``.
    position : callable or array_like, optional
        Relative position; zero when omitted.
    z0 : float or sequence of float, optional
        Initial bristle state; overrides ``options.z0``.
    options : FrictionOptions or dict, optional

    Returns
    -------
    FrictionHistory
    """
    t = np.asarray(times, dtype=float).ravel()
    if t.size < 2:
        raise ConfigurationError("At least two time points are required")
    check_monotonic(t)

    normal_signal = _as_signal(normal, t, "normal")
    velocity_signal = _as_signal(velocity, t, "velocity")
    position_signal = zero_signal if position is None else _as_signal(position, t, "position")

    if is_memoryless(model):
        coerce_options(options)
        forces = evaluate_memoryless(model, t, normal_signal, velocity_signal)
        return FrictionHistory(
            times=t,
            forces=forces,
            states=np.zeros((0, t.size)),
            state_derivatives=np.zeros((0, t.size)),
        )

    history = integrate(
        model,
        t,
        normal_signal,
        position_signal,
        velocity_signal,
        z0=z0,
        options=options,
    )
    if not history.reliable:
        logger.warning(
            "%s history incomplete after %d output points",
            type(model).__name__,
            history.times.size,
        )
    return history
