"""Configuration loading and validation utilities."""

from .loader import coerce_options, load_run_config, normalize_config_dict
from .factory import build_model_from_spec, spec_dict_from_model
from .measurements import MeasurementData, load_measurements
from .models import FrictionOptions, RunConfig

__all__ = [
    "FrictionOptions",
    "MeasurementData",
    "RunConfig",
    "build_model_from_spec",
    "coerce_options",
    "load_measurements",
    "load_run_config",
    "normalize_config_dict",
    "spec_dict_from_model",
]
