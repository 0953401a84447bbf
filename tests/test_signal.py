from __future__ import annotations

import sys

sys.path.insert(0, "src")

import numpy as np
import pytest
from numpy.testing import assert_allclose

from friction_models.core.errors import ConfigurationError
from friction_models.core.signal import LinearSignal, check_monotonic, zero_signal


def test_signal_is_exact_at_samples() -> None:
    t = np.array([0.0, 0.1, 0.25, 0.4])
    y = np.array([1.0, -2.0, 3.5, 0.0])
    s = LinearSignal(t, y)
    for ti, yi in zip(t, y):
        assert s(ti) == yi
    assert_allclose(s(t), y)


def test_signal_interpolates_and_extrapolates_linearly() -> None:
    s = LinearSignal([0.0, 1.0, 2.0], [0.0, 2.0, 3.0])
    assert s(0.5) == pytest.approx(1.0)
    assert s(1.5) == pytest.approx(2.5)
    # end-segment slopes outside the sample window
    assert s(3.0) == pytest.approx(4.0)
    assert s(-1.0) == pytest.approx(-2.0)
    assert isinstance(s(0.5), float)


def test_signal_accepts_decreasing_times() -> None:
    s = LinearSignal([2.0, 1.0, 0.0], [3.0, 2.0, 0.0])
    assert s(0.5) == pytest.approx(1.0)
    assert s.span == (0.0, 2.0)


def test_signal_samples_are_read_only() -> None:
    s = LinearSignal([0.0, 1.0], [0.0, 1.0])
    with pytest.raises(ValueError):
        s.values[0] = 5.0


@pytest.mark.parametrize(
    "times, values",
    [
        ([0.0], [1.0]),
        ([0.0, 1.0, 2.0], [1.0, 2.0]),
        ([0.0, 1.0, 1.0], [1.0, 2.0, 3.0]),
        ([0.0, 2.0, 1.0], [1.0, 2.0, 3.0]),
        ([0.0, np.nan], [1.0, 2.0]),
    ],
)
def test_signal_rejects_malformed_samples(times, values) -> None:
    with pytest.raises(ConfigurationError):
        LinearSignal(times, values)


def test_check_monotonic_direction() -> None:
    assert check_monotonic(np.array([0.0, 1.0, 3.0])) == 1
    assert check_monotonic(np.array([3.0, 1.0, 0.0])) == -1
    with pytest.raises(ConfigurationError, match="monotonically"):
        check_monotonic(np.array([0.0, 1.0, 0.5]))


def test_zero_signal() -> None:
    assert zero_signal(1.3) == 0.0
    assert_allclose(zero_signal(np.array([0.0, 1.0])), [0.0, 0.0])
