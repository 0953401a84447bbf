"""Error taxonomy for friction model evaluation and calibration.

Two kinds of problems abort a call immediately:

- :class:`ConfigurationError` for malformed inputs (sample arrays of
  different lengths, non-monotonic time arrays, bad parameter vectors, ...).
- :class:`InvalidParameterError` for model parameters violating a hard
  invariant, e.g. a zero Stribeck velocity.

Numerical trouble (IVP step-size underflow, least-squares non-convergence,
singular Jacobians) never raises. It is recorded as a
:class:`NumericalFailure` next to the best available result, so callers can
retry with other tolerances or bounds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class ConfigurationError(ValueError):
    pass


class InvalidParameterError(ValueError):
    pass


@dataclass(frozen=True)
class NumericalFailure:
    """Non-fatal numerical problem attached to a result.

    Attributes
    ----------
    stage : str
        Where the failure happened: ``"ivp"``, ``"least_squares"`` or
        ``"uncertainty"``.
    message : str
        Human-readable description (solver message where available).
    time : float, optional
        Simulation time of the failure for IVP failures.
    details : dict
        Extra solver bookkeeping (status codes, ranks, counts).
    """

    stage: str
    message: str
    time: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_diagnostics_dict(self) -> Dict[str, Any]:
        diag: Dict[str, Any] = {
            "error_type": "NumericalFailure",
            "stage": self.stage,
            "message": self.message,
            "t_last": self.time,
        }
        diag.update(self.details)
        return diag
