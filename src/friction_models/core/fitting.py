"""Calibration of friction models against measured data.

The fit minimises the sum of squared differences between the measured
friction force and the model prediction at the measurement times,

    r(p) = F_model(decode(p), t) - F_measured(t)

with a bounded trust-region least-squares solver (Levenberg-Marquardt class,
``scipy.optimize.least_squares(method="trf")``). The measured normal force,
velocity and (optionally) position samples are turned into continuous
signals with :class:`~.signal.LinearSignal`, so the IVP solver can evaluate
the stateful models between samples.

Every objective evaluation of a stateful model is a complete IVP solve over
the whole record, so fits of LuGre/GMS models cost roughly
``(n_params + 1) * n_iterations`` integrations.

Use from scripts or tests as:

    from friction_models.core.fitting import fit_model

    result = fit_model(LuGreModel(...), t, F, N, v, options={"lower": lb, "upper": ub})
    result.model                      # fitted model
    result.diagnostics.standard_errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
from scipy import stats
from scipy.linalg import svd
from scipy.optimize import least_squares

from ..config.loader import coerce_options
from ..config.models import FrictionOptions
from .codec import decode, encode, fixed_parameter_mask, parameter_names
from .errors import ConfigurationError, NumericalFailure
from .friction import evaluate_memoryless, is_memoryless
from .integrator import IVPSolver, ScipyIVPSolver, Tolerances, initial_state, solve_history
from .models import FrictionModel
from .signal import LinearSignal, check_monotonic, zero_signal

logger = logging.getLogger(__name__)

ResidualFn = Callable[[np.ndarray], np.ndarray]


@dataclass
class LeastSquaresSolution:
    x: np.ndarray
    residuals: np.ndarray
    jacobian: np.ndarray
    cost: float
    nfev: int
    status: int
    message: str
    success: bool
    njev: Optional[int] = None


class LeastSquaresSolver(Protocol):
    """Capability interface for bounded nonlinear least-squares solvers."""

    def minimize(
        self,
        residual_fn: ResidualFn,
        x0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
    ) -> LeastSquaresSolution:
        ...


class ScipyLeastSquaresSolver:
    """Bounded trust-region reflective solver from scipy.

    The Jacobian is estimated by forward differences; ``x_scale="jac"``
    rescales the parameters so bristle stiffnesses (~1e6) and friction
    coefficients (~0.1) can be fitted together.
    """

    def __init__(
        self,
        ftol: float = 1e-10,
        xtol: float = 1e-10,
        gtol: float = 1e-10,
        max_nfev: Optional[int] = None,
        diff_step: Optional[float] = None,
        method: str = "trf",
    ):
        self.ftol = ftol
        self.xtol = xtol
        self.gtol = gtol
        self.max_nfev = max_nfev
        self.diff_step = diff_step
        self.method = method

    @classmethod
    def from_options(cls, options: FrictionOptions) -> "ScipyLeastSquaresSolver":
        return cls(
            ftol=options.ftol,
            xtol=options.xtol,
            gtol=options.gtol,
            max_nfev=options.max_nfev,
            diff_step=options.diff_step,
        )

    def minimize(self, residual_fn, x0, bounds) -> LeastSquaresSolution:
        res = least_squares(
            residual_fn,
            x0,
            bounds=bounds,
            method=self.method,
            x_scale="jac",
            ftol=self.ftol,
            xtol=self.xtol,
            gtol=self.gtol,
            max_nfev=self.max_nfev,
            diff_step=self.diff_step,
        )
        return LeastSquaresSolution(
            x=np.asarray(res.x, dtype=float),
            residuals=np.asarray(res.fun, dtype=float),
            jacobian=np.atleast_2d(np.asarray(res.jac, dtype=float)),
            cost=float(res.cost),
            nfev=int(res.nfev),
            njev=None if res.njev is None else int(res.njev),
            status=int(res.status),
            message=str(res.message),
            success=bool(res.success),
        )


@dataclass
class FitDiagnostics:
    """Solver bookkeeping and uncertainty estimates of a fit.

    All per-parameter arrays follow the ``encode(model)`` layout; parameters
    held fixed during the fit have zero standard error. ``residual_history``
    holds the cost ``0.5 * sum(r**2)`` of every objective evaluation,
    finite-difference Jacobian evaluations included.
    """

    parameters: np.ndarray
    parameter_names: List[str]
    free: np.ndarray
    residuals: np.ndarray
    jacobian: np.ndarray
    cost: float
    initial_cost: float
    residual_history: List[float]
    nfev: int
    status: int
    message: str
    success: bool
    covariance: np.ndarray
    standard_errors: np.ndarray
    confidence_intervals: np.ndarray
    confidence_level: float
    dof: int
    failures: List[NumericalFailure] = field(default_factory=list)

    @property
    def reliable(self) -> bool:
        return self.success and not self.failures

    @property
    def rms_residual(self) -> float:
        if self.residuals.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(self.residuals**2)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameters": dict(zip(self.parameter_names, self.parameters.tolist())),
            "standard_errors": dict(zip(self.parameter_names, self.standard_errors.tolist())),
            "cost": self.cost,
            "initial_cost": self.initial_cost,
            "rms_residual": self.rms_residual,
            "nfev": self.nfev,
            "status": self.status,
            "message": self.message,
            "success": self.success,
            "dof": self.dof,
            "confidence_level": self.confidence_level,
            "failures": [f.to_diagnostics_dict() for f in self.failures],
        }


@dataclass
class FitResult:
    model: FrictionModel
    diagnostics: FitDiagnostics


def _as_vector(values: Sequence[float], name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} must contain only finite values")
    return arr


def _resolve_bounds(options: FrictionOptions, n: int) -> Tuple[np.ndarray, np.ndarray]:
    lower = np.full(n, -np.inf) if options.lower is None else np.asarray(options.lower, dtype=float)
    upper = np.full(n, np.inf) if options.upper is None else np.asarray(options.upper, dtype=float)
    for name, arr in (("lower", lower), ("upper", upper)):
        if arr.size != n:
            raise ConfigurationError(f"{name} bounds have {arr.size} entries, model has {n} parameters")
    if np.any(lower > upper):
        raise ConfigurationError("lower bounds must not exceed upper bounds")
    return lower, upper


def parameter_covariance(
    jacobian: np.ndarray,
    residuals: np.ndarray,
) -> Tuple[np.ndarray, int, List[NumericalFailure]]:
    """Covariance estimate ``s^2 (J^T J)^-1`` from the Jacobian at the optimum.

    Uses a truncated SVD (the same approach as ``scipy.optimize.curve_fit``).
    A rank-deficient Jacobian or missing degrees of freedom give an infinite
    covariance and a :class:`NumericalFailure`.

    Returns
    -------
    covariance : np.ndarray
        Shape (n, n)
    dof : int
        Degrees of freedom ``m - n``.
    failures : list of NumericalFailure
    """
    m, n = jacobian.shape
    failures: List[NumericalFailure] = []
    dof = m - n

    _, s, VT = svd(jacobian, full_matrices=False)
    threshold = np.finfo(float).eps * max(jacobian.shape) * (s[0] if s.size else 0.0)
    keep = s > threshold
    rank = int(np.count_nonzero(keep))

    if rank < n:
        failures.append(
            NumericalFailure(
                stage="uncertainty",
                message=f"Jacobian is rank deficient (rank {rank} < {n} parameters); "
                "parameters are not independently identifiable",
                details={"rank": rank, "n_parameters": n},
            )
        )
        return np.full((n, n), np.inf), dof, failures

    cond = float(s[0] / s[-1])
    if cond > 1.0 / np.sqrt(np.finfo(float).eps):
        failures.append(
            NumericalFailure(
                stage="uncertainty",
                message=f"Jacobian is ill-conditioned (condition number {cond:.3e})",
                details={"condition_number": cond},
            )
        )

    VT = VT[keep]
    cov = (VT.T / s[keep] ** 2) @ VT
    if dof > 0:
        cov = cov * float(residuals @ residuals) / dof
    else:
        failures.append(
            NumericalFailure(
                stage="uncertainty",
                message=f"Not enough data points ({m}) to estimate uncertainty of {n} parameters",
                details={"n_points": m, "n_parameters": n},
            )
        )
        cov = np.full((n, n), np.inf)
    return cov, dof, failures


def fit_model(
    model: FrictionModel,
    times: Sequence[float],
    friction: Sequence[float],
    normal: Sequence[float],
    velocity: Sequence[float],
    *,
    position: Optional[Sequence[float]] = None,
    z0: Union[float, Sequence[float], None] = None,
    options: Union[FrictionOptions, Dict[str, Any], None] = None,
    ivp_solver: Optional[IVPSolver] = None,
    lsq_solver: Optional[LeastSquaresSolver] = None,
) -> FitResult:
    """Fit a friction model to measured data.

    Parameters
    ----------
    model : FrictionModel
        Initial guess; its variant (and, for GMS, its element count) is kept.
    times : sequence of float
        Measurement times, strictly monotonic.
    friction : sequence of float
        Measured friction force at ``times``.
    normal, velocity : sequence of float
        Measured normal force and sliding velocity at ``times``.
    position : sequence of float, optional
        Measured relative position; zero when omitted.
    z0 : float or sequence of float, optional
        Initial bristle state; overrides ``options.z0``.
    options : FrictionOptions or dict, optional
        IVP tolerances, ``lower``/``upper`` bounds (``encode(model)``
        layout), least-squares tolerances and ``max_nfev``. Parameters with
        ``lower == upper`` are held fixed at that value.
    ivp_solver, lsq_solver : optional
        Alternative numerical back ends.

    Returns
    -------
    FitResult
        Fitted model and :class:`FitDiagnostics`. Numerical trouble
        (non-convergence, IVP failures, singular Jacobian) is listed in
        ``diagnostics.failures`` rather than raised.

    Raises
    ------
    ConfigurationError
        Mismatched sample lengths, fewer than two samples, non-monotonic
        times, or bounds not matching the parameter vector.
    """
    opts = coerce_options(options)

    t = _as_vector(times, "times")
    F = _as_vector(friction, "friction")
    N = _as_vector(normal, "normal")
    V = _as_vector(velocity, "velocity")
    samples = {"times": t, "friction": F, "normal": N, "velocity": V}
    if position is not None:
        samples["position"] = _as_vector(position, "position")
    lengths = {name: arr.size for name, arr in samples.items()}
    if len(set(lengths.values())) != 1:
        raise ConfigurationError(f"All sample arrays must have equal length, got {lengths}")
    if t.size < 2:
        raise ConfigurationError("At least two samples are required to fit a friction model")
    check_monotonic(t)

    normal_signal = LinearSignal(t, N)
    velocity_signal = LinearSignal(t, V)
    position_signal = LinearSignal(t, samples["position"]) if position is not None else zero_signal

    names = parameter_names(model)
    x_full = encode(model)
    lower, upper = _resolve_bounds(opts, x_full.size)
    pinned = lower == upper
    fixed = fixed_parameter_mask(model) | pinned
    x_full = np.where(pinned & ~fixed_parameter_mask(model), lower, x_full)
    free = ~fixed
    if not np.any(free):
        raise ConfigurationError("No free parameters left to fit")

    x0 = x_full[free]
    x0_clipped = np.clip(x0, lower[free], upper[free])
    if np.any(x0_clipped != x0):
        moved = [n for n, a, b in zip(np.asarray(names)[free], x0, x0_clipped) if a != b]
        logger.warning("Initial guess outside bounds, clipped: %s", ", ".join(moved))
    x0 = x0_clipped

    memoryless = is_memoryless(model)
    if not memoryless:
        state0 = initial_state(model, opts.z0 if z0 is None else z0)
        tolerances = Tolerances.from_options(opts)
        if ivp_solver is None:
            ivp_solver = ScipyIVPSolver(opts.method)
    if lsq_solver is None:
        lsq_solver = ScipyLeastSquaresSolver.from_options(opts)

    history: List[float] = []
    ivp_failures: List[NumericalFailure] = []

    def predict(m: FrictionModel) -> np.ndarray:
        if memoryless:
            return evaluate_memoryless(m, t, normal_signal, velocity_signal)
        hist = solve_history(
            m,
            (float(t[0]), float(t[-1])),
            t,
            normal_signal,
            position_signal,
            velocity_signal,
            state0,
            tolerances,
            ivp_solver,
        )
        ivp_failures.extend(hist.failures)
        forces = hist.forces
        if forces.size < t.size:
            # solver stopped early: hold the last force over the remaining samples
            fill = forces[-1] if forces.size else 0.0
            forces = np.concatenate([forces, np.full(t.size - forces.size, fill)])
        return forces

    def residuals(x_free: np.ndarray) -> np.ndarray:
        x = x_full.copy()
        x[free] = x_free
        r = predict(decode(model, x)) - F
        history.append(0.5 * float(r @ r))
        return r

    logger.info(
        "Fitting %s: %d parameters (%d free), %d samples",
        type(model).__name__,
        x_full.size,
        int(np.count_nonzero(free)),
        t.size,
    )
    sol = lsq_solver.minimize(residuals, x0, (lower[free], upper[free]))

    x_fit = x_full.copy()
    x_fit[free] = sol.x
    fitted = decode(model, x_fit)

    failures: List[NumericalFailure] = []
    if sol.status <= 0 or not sol.success:
        failures.append(
            NumericalFailure(
                stage="least_squares",
                message=f"Least-squares solver did not converge: {sol.message}",
                details={"status": sol.status, "nfev": sol.nfev},
            )
        )
    if ivp_failures:
        failures.append(
            NumericalFailure(
                stage="ivp",
                message=f"IVP solver failed in {len(ivp_failures)} objective evaluation(s); "
                f"first failure: {ivp_failures[0].message}",
                time=ivp_failures[0].time,
                details={"n_failures": len(ivp_failures)},
            )
        )

    cov_free, dof, cov_failures = parameter_covariance(sol.jacobian, sol.residuals)
    failures.extend(cov_failures)
    n = x_fit.size
    covariance = np.zeros((n, n))
    covariance[np.ix_(free, free)] = cov_free
    standard_errors = np.sqrt(np.diag(covariance))
    level = opts.confidence_level
    if dof > 0:
        t_crit = float(stats.t.ppf(0.5 + 0.5 * level, dof))
    else:
        t_crit = np.inf
    half_width = np.where(standard_errors > 0.0, t_crit * standard_errors, 0.0)
    confidence = np.column_stack([x_fit - half_width, x_fit + half_width])

    for failure in failures:
        logger.warning("%s fit: %s", type(model).__name__, failure.message)
    logger.info(
        "Fit finished after %d evaluations: cost %.6g -> %.6g (%s)",
        sol.nfev,
        history[0] if history else float("nan"),
        sol.cost,
        sol.message,
    )

    diagnostics = FitDiagnostics(
        parameters=x_fit,
        parameter_names=names,
        free=free,
        residuals=sol.residuals,
        jacobian=sol.jacobian,
        cost=sol.cost,
        initial_cost=history[0] if history else float("nan"),
        residual_history=history,
        nfev=sol.nfev,
        status=sol.status,
        message=sol.message,
        success=sol.success and sol.status > 0,
        covariance=covariance,
        standard_errors=standard_errors,
        confidence_intervals=confidence,
        confidence_level=level,
        dof=dof,
        failures=failures,
    )
    return FitResult(model=fitted, diagnostics=diagnostics)
