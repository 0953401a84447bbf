from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from ..core.errors import ConfigurationError
from .models import FrictionOptions, RunConfig, format_validation_error


def load_run_config(path: Path) -> RunConfig:
    """Load and validate a fit/evaluate configuration file (YAML or JSON)."""
    raw = _load_raw_config(path)
    return normalize_config_dict(raw, filename=path.name)


def _load_raw_config(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ConfigurationError(f"Unsupported config extension '{path.suffix}'.")
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name}: configuration must be a mapping")
    return data


def normalize_config_dict(config: Dict[str, Any], *, filename: str) -> RunConfig:
    try:
        return RunConfig.model_validate(config)
    except ValidationError as exc:
        raise ConfigurationError(format_validation_error(exc, filename=filename)) from exc


def coerce_options(
    options: Union[FrictionOptions, Dict[str, Any], None] = None,
    **overrides: Any,
) -> FrictionOptions:
    """Return validated :class:`FrictionOptions`.

    ``options`` may be ``None`` (defaults), a mapping, or an existing
    instance; keyword ``overrides`` with a non-``None`` value take
    precedence.
    """
    if isinstance(options, FrictionOptions):
        data: Dict[str, Any] = options.model_dump()
    elif options is None:
        data = {}
    elif isinstance(options, dict):
        data = dict(options)
    else:
        raise ConfigurationError(f"options must be a mapping or FrictionOptions, got {type(options)}")

    for key, value in overrides.items():
        if value is not None:
            if key == "z0":
                data.pop("zi", None)
            data[key] = value
    try:
        return FrictionOptions.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(format_validation_error(exc, filename="options")) from exc

