"""Stiff time integration of the bristle state of heuristic friction models.

The bristle state ``z`` of the LuGre, elasto-plastic and Maxwell-slip models
follows ``dz/dt = f(t, N(t), x(t), v(t), z)``. With realistic bristle
stiffnesses (1e5 .. 1e7 N/m) the relaxation time ``g / (sigma0 |v|)`` is
orders of magnitude shorter than the time scale of the excitation, so the
ODE is stiff and explicit fixed-step schemes either blow up or need absurdly
small steps. The default solver therefore uses the implicit Radau IIA method
of ``scipy.integrate.solve_ivp``.

Time specification
------------------
- ``[t_start, t_end]``: the solver picks its own steps and reports them.
- ``[t_0, t_1, ..., t_n]`` (n >= 2): results are reported at exactly these
  times, which must be strictly increasing or strictly decreasing.

After the solve, force and ``dz/dt`` are recomputed from the solved state at
every reported time, so the returned force is always consistent with the
returned state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp

from ..config.loader import coerce_options
from ..config.models import FrictionOptions
from .errors import ConfigurationError, NumericalFailure
from .models import FrictionModel
from .signal import check_monotonic
from .state_equations import state_equations

logger = logging.getLogger(__name__)

Signal = Callable[[float], float]
RHS = Callable[[float, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class Tolerances:
    reltol: float = 1e-8
    abstol: float = 1e-6
    dtmax: float = 1e-3

    @classmethod
    def from_options(cls, options: FrictionOptions) -> "Tolerances":
        return cls(reltol=options.reltol, abstol=options.abstol, dtmax=options.dtmax)


@dataclass
class Trajectory:
    """Raw IVP solution: ``z[:, i]`` is the state at ``t[i]``."""

    t: np.ndarray
    z: np.ndarray
    success: bool = True
    message: str = ""
    status: int = 0
    nfev: int = 0


class IVPSolver(Protocol):
    """Capability interface for initial-value-problem solvers."""

    def solve(
        self,
        rhs: RHS,
        z0: np.ndarray,
        t_span: Tuple[float, float],
        t_eval: Optional[np.ndarray],
        tolerances: Tolerances,
    ) -> Trajectory:
        ...


class ScipyIVPSolver:
    """:func:`scipy.integrate.solve_ivp` with a stiffness-aware method.

    Parameters
    ----------
    method : {"Radau", "BDF", "LSODA"}
        Integration method. Radau (implicit Runge-Kutta, order 5) is the
        default; BDF is cheaper per step for long, smooth records.
    """

    STIFF_METHODS = ("Radau", "BDF", "LSODA")

    def __init__(self, method: str = "Radau"):
        if method not in self.STIFF_METHODS:
            raise ConfigurationError(
                f"IVP method '{method}' is not stiffness-aware; use one of {self.STIFF_METHODS}"
            )
        self.method = method

    def solve(self, rhs, z0, t_span, t_eval, tolerances) -> Trajectory:
        sol = solve_ivp(
            rhs,
            t_span,
            z0,
            method=self.method,
            t_eval=t_eval,
            rtol=tolerances.reltol,
            atol=tolerances.abstol,
            max_step=tolerances.dtmax,
        )
        return Trajectory(
            t=np.asarray(sol.t, dtype=float),
            z=np.asarray(sol.y, dtype=float).reshape(len(z0), -1),
            success=bool(sol.success),
            message=str(sol.message),
            status=int(sol.status),
            nfev=int(sol.nfev),
        )


@dataclass
class FrictionHistory:
    """Friction force time history.

    Attributes
    ----------
    times : np.ndarray
        Reported times, shape (n_t,)
    forces : np.ndarray
        Friction force at each time, shape (n_t,)
    states : np.ndarray
        Bristle states, shape (n_states, n_t); ``n_states = 0`` for
        memoryless models.
    state_derivatives : np.ndarray
        ``dz/dt`` at each reported time, same shape as ``states``.
    failures : list of NumericalFailure
        Non-fatal numerical problems met while computing the history.
    """

    times: np.ndarray
    forces: np.ndarray
    states: np.ndarray
    state_derivatives: np.ndarray
    failures: List[NumericalFailure] = field(default_factory=list)

    @property
    def reliable(self) -> bool:
        return not self.failures

    def to_frame(self) -> pd.DataFrame:
        data: Dict[str, Any] = {"Time_s": self.times, "Force_N": self.forces}
        for i in range(self.states.shape[0]):
            data[f"z_{i}"] = self.states[i]
        for i in range(self.state_derivatives.shape[0]):
            data[f"dzdt_{i}"] = self.state_derivatives[i]
        df = pd.DataFrame(data)
        df.attrs["reliable"] = self.reliable
        df.attrs["failures"] = [f.to_diagnostics_dict() for f in self.failures]
        return df


def resolve_time_spec(times: Sequence[float]) -> Tuple[Tuple[float, float], Optional[np.ndarray]]:
    """Split a time specification into ``(t_span, t_eval)``.

    Raises
    ------
    ConfigurationError
        For fewer than two times, or explicit output times that are not
        strictly monotonic.
    """
    t = np.asarray(times, dtype=float).ravel()
    if t.size < 2:
        raise ConfigurationError(
            "No time range for the solution has been given. "
            "Provide [t_start, t_end] or at least three output times."
        )
    if not np.all(np.isfinite(t)):
        raise ConfigurationError("Time points must be finite")
    if t.size == 2:
        if t[0] == t[1]:
            raise ConfigurationError("Integration interval has zero length")
        return (float(t[0]), float(t[1])), None
    check_monotonic(t)
    return (float(t[0]), float(t[-1])), t


def initial_state(model: FrictionModel, z0: Union[float, Sequence[float], None]) -> np.ndarray:
    """Initial state vector: scalar broadcast or one value per element."""
    n = model.n_states
    if z0 is None:
        return np.zeros(n)
    z = np.asarray(z0, dtype=float)
    if z.ndim == 0:
        return np.full(n, float(z))
    z = z.ravel()
    if z.size != n:
        raise ConfigurationError(
            f"{type(model).__name__} has {n} state variable(s), initial state has {z.size}"
        )
    return z.copy()


def solve_history(
    model: FrictionModel,
    t_span: Tuple[float, float],
    t_eval: Optional[np.ndarray],
    normal: Signal,
    position: Signal,
    velocity: Signal,
    z0: np.ndarray,
    tolerances: Tolerances,
    solver: IVPSolver,
) -> FrictionHistory:
    """Integrate the state equations and rebuild forces at reported times."""
    eqs = state_equations(model)
    n_states = model.n_states

    if n_states == 0:
        # nothing to integrate (e.g. Maxwell-slip without elements)
        t_out = np.asarray(t_eval if t_eval is not None else t_span, dtype=float)
        traj = Trajectory(t=t_out, z=np.zeros((0, t_out.size)))
    else:
        def rhs(t: float, z: np.ndarray) -> np.ndarray:
            return eqs.derivative(
                model, t, float(normal(t)), float(position(t)), float(velocity(t)), z
            )

        logger.debug(
            "Integrating %s over [%g, %g] (%s output points)",
            type(model).__name__,
            t_span[0],
            t_span[1],
            "solver-chosen" if t_eval is None else t_eval.size,
        )
        traj = solver.solve(rhs, z0, t_span, t_eval, tolerances)

    failures: List[NumericalFailure] = []
    if not traj.success:
        t_last = float(traj.t[-1]) if traj.t.size else t_span[0]
        failure = NumericalFailure(
            stage="ivp",
            message=traj.message,
            time=t_last,
            details={"status": traj.status, "n_points": int(traj.t.size), "nfev": traj.nfev},
        )
        logger.warning(
            "IVP solve for %s stopped at t=%g: %s", type(model).__name__, t_last, traj.message
        )
        failures.append(failure)

    n_t = traj.t.size
    forces = np.zeros(n_t)
    dzdt = np.zeros((n_states, n_t))
    for i, ti in enumerate(traj.t):
        N = float(normal(ti))
        x = float(position(ti))
        v = float(velocity(ti))
        z = traj.z[:, i]
        dzdt[:, i] = eqs.derivative(model, float(ti), N, x, v, z)
        forces[i] = eqs.force(model, float(ti), N, x, v, z, dzdt[:, i])

    return FrictionHistory(
        times=traj.t,
        forces=forces,
        states=traj.z,
        state_derivatives=dzdt,
        failures=failures,
    )


def integrate(
    model: FrictionModel,
    times: Sequence[float],
    normal: Signal,
    position: Signal,
    velocity: Signal,
    z0: Union[float, Sequence[float], None] = None,
    options: Union[FrictionOptions, Dict[str, Any], None] = None,
    solver: Optional[IVPSolver] = None,
) -> FrictionHistory:
    """Integrate a heuristic friction model along prescribed input signals.

    Parameters
    ----------
    model : LuGreModel, ElastoPlasticModel or GeneralizedMaxwellSlipModel
    times : sequence of float
        ``[t_start, t_end]`` or at least three monotonic output times.
    normal, position, velocity : callable
        ``f(t) -> float`` input signals.
    z0 : float or sequence of float, optional
        Initial state; overrides ``options.z0``.
    options : FrictionOptions or dict, optional
        ``reltol``, ``abstol``, ``dtmax``, ``z0``/``zi`` and ``method`` are
        used here.
    solver : IVPSolver, optional
        Defaults to :class:`ScipyIVPSolver` with ``options.method``.

    Returns
    -------
    FrictionHistory
    """
    opts = coerce_options(options)
    t_span, t_eval = resolve_time_spec(times)
    state0 = initial_state(model, opts.z0 if z0 is None else z0)
    if solver is None:
        solver = ScipyIVPSolver(opts.method)
    return solve_history(
        model,
        t_span,
        t_eval,
        normal,
        position,
        velocity,
        state0,
        Tolerances.from_options(opts),
        solver,
    )
