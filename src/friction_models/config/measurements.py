from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from ..core.errors import ConfigurationError
from .models import ColumnRef, DataSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeasurementData:
    """Measured time series, all arrays of equal length."""

    time: np.ndarray
    velocity: np.ndarray
    normal: np.ndarray
    friction: Optional[np.ndarray] = None
    position: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return int(self.time.size)


def _column(df: pd.DataFrame, ref: ColumnRef, *, csv_path: Path) -> pd.Series:
    if isinstance(ref, int):
        if not 0 <= ref < df.shape[1]:
            raise ConfigurationError(
                f"CSV {csv_path} has {df.shape[1]} columns, column index {ref} is out of range"
            )
        return df.iloc[:, ref]
    if ref not in df.columns:
        raise ConfigurationError(f"CSV {csv_path} has no column '{ref}'")
    return df[ref]


def load_measurements(spec: DataSpec, *, config_dir: Path) -> MeasurementData:
    """Read the measurement CSV described by ``spec``.

    Relative paths are resolved against ``config_dir``. Rows with missing
    values in any selected column are dropped.
    """
    csv_path = (config_dir / spec.path).resolve()
    if not csv_path.is_file():
        raise ConfigurationError(f"Measurement file not found: {csv_path}")
    df = pd.read_csv(csv_path)

    refs = {
        "time": spec.time,
        "velocity": spec.velocity,
        "normal": spec.normal,
        "friction": spec.friction,
        "position": spec.position,
    }
    selected = pd.DataFrame(
        {
            name: pd.to_numeric(_column(df, ref, csv_path=csv_path), errors="coerce")
            for name, ref in refs.items()
            if ref is not None
        }
    )
    n_raw = len(selected)
    selected = selected.dropna()
    if len(selected) < n_raw:
        logger.warning("Dropped %d incomplete rows from %s", n_raw - len(selected), csv_path)

    def _get(name: str) -> Optional[np.ndarray]:
        if name not in selected.columns:
            return None
        return selected[name].to_numpy(dtype=float)

    return MeasurementData(
        time=_get("time"),
        velocity=_get("velocity"),
        normal=_get("normal"),
        friction=_get("friction"),
        position=_get("position"),
    )
