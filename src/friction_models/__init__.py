"""
Friction laws with bristle-state integration and least-squares calibration.

Evaluate a model with ``friction`` or ``friction_history`` from
``friction_models.core.engine`` and calibrate it against measurements with
``fit_model`` from ``friction_models.core.fitting``. Importing the package
itself pulls in neither scipy nor pandas.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("friction-models")
except PackageNotFoundError:  # source checkout without installed metadata
    __version__ = "0.0.0"

__all__ = ["__version__"]
