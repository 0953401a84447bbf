"""Friction model variants.

Every model is an immutable value object holding named numeric parameters.
The set of variants is closed:

- **Coulomb**: force proportional to the normal load.
- **Hyperbolic**: smooth memoryless law built on tanh/atan (Rodriguez et al.).
- **LuGre**: single-bristle dynamic model (Canudas de Wit et al.).
- **Elasto-Plastic**: LuGre with a presliding adhesion regime
  (Dupont et al.).
- **Generalized Maxwell-Slip**: N parallel elasto-slide elements
  (Al-Bender et al.).

The last three carry an internal bristle state and are evaluated through
:mod:`friction_models.core.state_equations` and
:mod:`friction_models.core.integrator`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Iterable, Tuple, Union

from .errors import InvalidParameterError


def _as_float(model: object, name: str) -> None:
    value = getattr(model, name)
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(
            f"{type(model).__name__}.{name} must be numeric, got {value!r}"
        ) from exc
    # frozen dataclass: bypass __setattr__
    object.__setattr__(model, name, value)


def _coerce_fields(model: object) -> None:
    for f in fields(model):
        if f.name != "elements":
            _as_float(model, f.name)


def _check_stribeck_velocity(model: object) -> None:
    vs = getattr(model, "stribeck_velocity")
    if vs == 0.0 or not math.isfinite(vs):
        raise InvalidParameterError(
            f"{type(model).__name__}.stribeck_velocity must be finite and non-zero, got {vs!r}"
        )


@dataclass(frozen=True)
class CoulombModel:
    """Coulomb friction, ``F = coefficient * N``."""

    coefficient: float

    kind = "coulomb"
    is_stateful = False

    def __post_init__(self) -> None:
        _coerce_fields(self)

    @property
    def n_states(self) -> int:
        return 0


@dataclass(frozen=True)
class HyperbolicModel:
    """Hyperbolic friction law proposed by Rodriguez et al.

    ``F = mu*N*n*sign(d*v)*tanh(|d*v|)^(2h-1) / (1 + atan(|d*v|)^(2s)) + b*v``

    Note that ``stribeck_velocity`` enters as the exponent ``s`` of the
    Stribeck-like denominator, not as a velocity scale.
    """

    friction_coefficient: float
    normalization_coefficient: float
    dissipation_coefficient: float
    hysteresis_coefficient: float
    stribeck_velocity: float
    viscous_damping: float

    kind = "hyperbolic"
    is_stateful = False

    def __post_init__(self) -> None:
        _coerce_fields(self)
        _check_stribeck_velocity(self)

    @property
    def n_states(self) -> int:
        return 0


@dataclass(frozen=True)
class LuGreModel:
    """LuGre friction model.

    g(v) = Fc + (Fs - Fc) * exp(-(v/vs)^2),  Fc = mu_c*N, Fs = mu_s*N
    z_dot = v - sigma0 * |v| * z / g(v)
    F = sigma0*z + sigma1*exp(-(v/vs)^2)*z_dot + sigma2*v

    References
    ----------
    .. [1] Canudas de Wit, C., et al. "A new model for control of systems
           with friction." IEEE TAC 40.3 (1995): 419-425.
    """

    static_coefficient: float
    coulomb_coefficient: float
    stribeck_velocity: float
    bristle_stiffness: float
    bristle_damping: float
    viscous_damping: float

    kind = "lugre"
    is_stateful = True

    def __post_init__(self) -> None:
        _coerce_fields(self)
        _check_stribeck_velocity(self)

    @property
    def n_states(self) -> int:
        return 1


@dataclass(frozen=True)
class ElastoPlasticModel:
    """Elasto-plastic friction model.

    Below ``breakaway_displacement`` the bristle deforms purely elastically
    (no sliding); between breakaway and ``max_bristle_displacement`` the
    adhesion factor ramps smoothly from 0 to 1.

    References
    ----------
    .. [1] Dupont, P., et al. "Single state elastoplastic friction models."
           IEEE TAC 47.5 (2002): 787-792.
    """

    static_coefficient: float
    coulomb_coefficient: float
    stribeck_velocity: float
    bristle_stiffness: float
    bristle_damping: float
    breakaway_displacement: float
    max_bristle_displacement: float
    viscous_damping: float

    kind = "elasto_plastic"
    is_stateful = True

    def __post_init__(self) -> None:
        _coerce_fields(self)
        _check_stribeck_velocity(self)

    @property
    def n_states(self) -> int:
        return 1


@dataclass(frozen=True)
class MaxwellElement:
    """A single elasto-slide element of a Maxwell-slip model."""

    stiffness: float
    damping: float
    scale_factor: float

    def __post_init__(self) -> None:
        _coerce_fields(self)


@dataclass(frozen=True)
class GeneralizedMaxwellSlipModel:
    """Generalized Maxwell-Slip (GMS) friction model.

    Each element sticks (``z_i_dot = v``) until its deformation reaches its
    share of the Stribeck curve, then slips and relaxes towards it at a rate
    set by ``attraction_parameter``.

    References
    ----------
    .. [1] Al-Bender, F., Lampaert, V., and Swevers, J. "The generalized
           Maxwell-slip model: a novel model for friction simulation and
           compensation." IEEE TAC 50.11 (2005): 1883-1887.
    """

    elements: Tuple[MaxwellElement, ...]
    static_coefficient: float
    coulomb_coefficient: float
    attraction_parameter: float
    stribeck_velocity: float
    viscous_damping: float

    kind = "generalized_maxwell_slip"
    is_stateful = True

    def __post_init__(self) -> None:
        elements = tuple(self.elements)
        for e in elements:
            if not isinstance(e, MaxwellElement):
                raise InvalidParameterError(
                    f"GeneralizedMaxwellSlipModel.elements must hold MaxwellElement, got {e!r}"
                )
        object.__setattr__(self, "elements", elements)
        _coerce_fields(self)
        _check_stribeck_velocity(self)

    @property
    def n_states(self) -> int:
        return len(self.elements)


FrictionModel = Union[
    CoulombModel,
    HyperbolicModel,
    LuGreModel,
    ElastoPlasticModel,
    GeneralizedMaxwellSlipModel,
]

MODEL_TYPES = (
    CoulombModel,
    HyperbolicModel,
    LuGreModel,
    ElastoPlasticModel,
    GeneralizedMaxwellSlipModel,
)

MODEL_KINDS = {cls.kind: cls for cls in MODEL_TYPES}


def model_class(kind: Union[str, type, object]) -> type:
    """Resolve a variant tag, class or instance to the model class."""
    if isinstance(kind, str):
        try:
            return MODEL_KINDS[kind]
        except KeyError:
            raise InvalidParameterError(
                f"Unknown friction model '{kind}'. Known models: {sorted(MODEL_KINDS)}"
            ) from None
    if isinstance(kind, type) and kind in MODEL_TYPES:
        return kind
    if isinstance(kind, MODEL_TYPES):
        return type(kind)
    raise InvalidParameterError(f"Not a friction model: {kind!r}")


def make_elements(rows: Iterable[Iterable[float]]) -> Tuple[MaxwellElement, ...]:
    """Build Maxwell elements from ``(stiffness, damping, scale_factor)`` rows."""
    return tuple(MaxwellElement(*row) for row in rows)
