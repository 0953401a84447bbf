"""Flat parameter vectors for friction models.

The calibration engine works on plain float vectors. The layout per variant
is fixed:

- Coulomb: ``[coefficient]``
- Hyperbolic, LuGre, Elasto-Plastic: fields in declaration order
- Generalized Maxwell-Slip:
  ``[n_elements, static, coulomb, attraction, stribeck, viscous,
  stiffness_1, damping_1, scale_1, ..., stiffness_n, damping_n, scale_n]``

``decode(kind, encode(model)) == model`` holds for every variant.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Callable, Dict, List, Union

import numpy as np

from .errors import ConfigurationError
from .models import (
    CoulombModel,
    ElastoPlasticModel,
    FrictionModel,
    GeneralizedMaxwellSlipModel,
    HyperbolicModel,
    LuGreModel,
    MaxwellElement,
    model_class,
)

_GMS_SCALARS = (
    "static_coefficient",
    "coulomb_coefficient",
    "attraction_parameter",
    "stribeck_velocity",
    "viscous_damping",
)
_ELEMENT_FIELDS = ("stiffness", "damping", "scale_factor")


def _field_names(cls: type) -> List[str]:
    return [f.name for f in fields(cls)]


def _encode_flat(model: FrictionModel) -> np.ndarray:
    return np.array([getattr(model, name) for name in _field_names(type(model))], dtype=float)


def _decode_flat(cls: type) -> Callable[[np.ndarray], FrictionModel]:
    names = _field_names(cls)

    def decode(x: np.ndarray) -> FrictionModel:
        if x.size != len(names):
            raise ConfigurationError(
                f"{cls.__name__} expects {len(names)} parameters, got {x.size}"
            )
        return cls(*(float(v) for v in x))

    return decode


def _encode_gms(model: GeneralizedMaxwellSlipModel) -> np.ndarray:
    head = [float(len(model.elements))] + [getattr(model, name) for name in _GMS_SCALARS]
    tail = [getattr(e, name) for e in model.elements for name in _ELEMENT_FIELDS]
    return np.array(head + tail, dtype=float)


def element_count(value: float) -> int:
    """Interpret the leading GMS vector entry as an element count.

    A fractional, negative or non-finite count is malformed input and raises
    :class:`ConfigurationError`; it is never truncated.
    """
    if not np.isfinite(value) or value < 0.0 or value != np.floor(value):
        raise ConfigurationError(
            f"Maxwell element count must be a non-negative integer, got {value!r}"
        )
    return int(value)


def _decode_gms(x: np.ndarray) -> GeneralizedMaxwellSlipModel:
    if x.size < 1 + len(_GMS_SCALARS):
        raise ConfigurationError(
            f"GeneralizedMaxwellSlipModel expects at least {1 + len(_GMS_SCALARS)} "
            f"parameters, got {x.size}"
        )
    n = element_count(float(x[0]))
    expected = 1 + len(_GMS_SCALARS) + len(_ELEMENT_FIELDS) * n
    if x.size != expected:
        raise ConfigurationError(
            f"GeneralizedMaxwellSlipModel with {n} elements expects {expected} "
            f"parameters, got {x.size}"
        )
    scalars = dict(zip(_GMS_SCALARS, (float(v) for v in x[1:6])))
    rows = x[6:].reshape(n, len(_ELEMENT_FIELDS))
    elements = tuple(MaxwellElement(*(float(v) for v in row)) for row in rows)
    return GeneralizedMaxwellSlipModel(elements=elements, **scalars)


_ENCODERS: Dict[type, Callable[..., np.ndarray]] = {
    CoulombModel: _encode_flat,
    HyperbolicModel: _encode_flat,
    LuGreModel: _encode_flat,
    ElastoPlasticModel: _encode_flat,
    GeneralizedMaxwellSlipModel: _encode_gms,
}

_DECODERS: Dict[type, Callable[[np.ndarray], FrictionModel]] = {
    CoulombModel: _decode_flat(CoulombModel),
    HyperbolicModel: _decode_flat(HyperbolicModel),
    LuGreModel: _decode_flat(LuGreModel),
    ElastoPlasticModel: _decode_flat(ElastoPlasticModel),
    GeneralizedMaxwellSlipModel: _decode_gms,
}


def encode(model: FrictionModel) -> np.ndarray:
    """Convert a model into its flat parameter vector."""
    return _ENCODERS[model_class(model)](model)


def decode(kind: Union[str, type, FrictionModel], x) -> FrictionModel:
    """Rebuild a model from a parameter vector.

    Parameters
    ----------
    kind : str, type or model
        Variant tag (e.g. ``"lugre"``), model class, or a model instance whose
        variant should be used.
    x : array_like
        Parameter vector in the layout documented in the module docstring.
    """
    vec = np.asarray(x, dtype=float).ravel()
    return _DECODERS[model_class(kind)](vec)


def parameter_names(model: FrictionModel) -> List[str]:
    """Names of the entries of ``encode(model)``, in order."""
    cls = model_class(model)
    if cls is GeneralizedMaxwellSlipModel:
        names = ["n_elements", *_GMS_SCALARS]
        for i in range(len(model.elements)):
            names.extend(f"elements[{i}].{name}" for name in _ELEMENT_FIELDS)
        return names
    return _field_names(cls)


def fixed_parameter_mask(model: FrictionModel) -> np.ndarray:
    """Entries of ``encode(model)`` that calibration must not vary.

    Only the GMS element count is structural; everything else is free.
    """
    mask = np.zeros(len(parameter_names(model)), dtype=bool)
    if isinstance(model, GeneralizedMaxwellSlipModel):
        mask[0] = True
    return mask
