"""Continuous signals reconstructed from discrete samples.

Measured normal force, position and velocity are only known at sample
times, while the IVP solver asks for values anywhere in (and occasionally
slightly beyond) the measured window. :class:`LinearSignal` interpolates
linearly between samples and extrapolates with the slope of the first/last
segment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from .errors import ConfigurationError

ArrayLike = Union[float, np.ndarray]


def check_monotonic(times: np.ndarray, name: str = "times") -> int:
    """Return +1/-1 for strictly increasing/decreasing ``times``.

    Raises
    ------
    ConfigurationError
        If ``times`` is neither strictly increasing nor strictly decreasing.
    """
    dt = np.diff(times)
    if np.all(dt > 0.0):
        return 1
    if np.all(dt < 0.0):
        return -1
    raise ConfigurationError(
        f"{name} must be strictly monotonically increasing or decreasing"
    )


@dataclass(frozen=True, eq=False)
class LinearSignal:
    """Piecewise-linear signal with linear extrapolation.

    Parameters
    ----------
    times : array_like
        Sample times, strictly increasing or strictly decreasing.
    values : array_like
        Sample values, same length as ``times``.

    Examples
    --------
    >>> s = LinearSignal([0.0, 1.0, 2.0], [0.0, 2.0, 3.0])
    >>> s(0.5)
    1.0
    >>> s(3.0)  # slope of the last segment
    4.0
    """

    times: np.ndarray
    values: np.ndarray

    def __post_init__(self) -> None:
        t = np.array(self.times, dtype=float).ravel()
        y = np.array(self.values, dtype=float).ravel()
        if t.size != y.size:
            raise ConfigurationError(
                f"Signal times and values must have equal length ({t.size} != {y.size})"
            )
        if t.size < 2:
            raise ConfigurationError("A signal needs at least two samples")
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(y))):
            raise ConfigurationError("Signal samples must be finite")
        if check_monotonic(t) < 0:
            t = t[::-1].copy()
            y = y[::-1].copy()
        t.setflags(write=False)
        y.setflags(write=False)
        object.__setattr__(self, "times", t)
        object.__setattr__(self, "values", y)

    def __call__(self, t: ArrayLike) -> ArrayLike:
        tq = np.asarray(t, dtype=float)
        out = np.interp(tq, self.times, self.values)

        t0, t1 = self.times[0], self.times[1]
        tn1, tn = self.times[-2], self.times[-1]
        below = tq < t0
        above = tq > tn
        if np.any(below):
            slope = (self.values[1] - self.values[0]) / (t1 - t0)
            out = np.where(below, self.values[0] + slope * (tq - t0), out)
        if np.any(above):
            slope = (self.values[-1] - self.values[-2]) / (tn - tn1)
            out = np.where(above, self.values[-1] + slope * (tq - tn), out)

        if out.ndim == 0:
            return float(out)
        return out

    @property
    def span(self) -> tuple[float, float]:
        return float(self.times[0]), float(self.times[-1])


def zero_signal(t: ArrayLike) -> ArrayLike:
    """Signal that is identically zero (used for omitted position data)."""
    if np.ndim(t) == 0:
        return 0.0
    return np.zeros(np.shape(t))
