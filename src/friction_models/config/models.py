from __future__ import annotations

import math
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator


class ConfigBase(BaseModel):
    model_config = {"extra": "forbid"}


# --------------------------------------------------------------------
# Solver options
# --------------------------------------------------------------------

class FrictionOptions(ConfigBase):
    """Options shared by evaluation, integration and calibration.

    Attributes
    ----------
    z0 : float or list of float
        Initial bristle state (alias ``zi``). A scalar is broadcast to every
        state variable. Default 0.
    reltol, abstol : float
        Relative/absolute IVP tolerances. Defaults 1e-8 and 1e-6.
    dtmax : float
        Largest IVP step. Default 1e-3.
    method : {"Radau", "BDF", "LSODA"}
        Stiffness-aware ``scipy.integrate.solve_ivp`` method.
    lower, upper : list of float, optional
        Per-parameter calibration bounds (``encode(model)`` layout). ``None``
        means unbounded.
    ftol, xtol, gtol : float
        Least-squares termination tolerances.
    max_nfev : int, optional
        Least-squares evaluation budget (``None``: scipy default).
    diff_step : float, optional
        Relative finite-difference step of the Jacobian (``None``: scipy
        default). Stateful models usually need a step well above the IVP
        tolerance.
    confidence_level : float
        Level of the reported parameter confidence intervals.
    """

    z0: Union[float, List[float]] = Field(
        default=0.0, validation_alias=AliasChoices("z0", "zi")
    )
    reltol: float = 1e-8
    abstol: float = 1e-6
    dtmax: float = 1e-3
    method: Literal["Radau", "BDF", "LSODA"] = "Radau"
    lower: Optional[List[float]] = None
    upper: Optional[List[float]] = None
    ftol: float = 1e-10
    xtol: float = 1e-10
    gtol: float = 1e-10
    max_nfev: Optional[int] = None
    diff_step: Optional[float] = None
    confidence_level: float = 0.95

    @field_validator("reltol", "abstol", "dtmax", "ftol", "xtol", "gtol")
    @classmethod
    def _positive(cls, value: float) -> float:
        if not value > 0.0:
            raise ValueError("must be > 0")
        return value

    @field_validator("diff_step")
    @classmethod
    def _diff_step_positive(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not value > 0.0:
            raise ValueError("diff_step must be > 0")
        return value

    @field_validator("max_nfev")
    @classmethod
    def _nfev_positive(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("max_nfev must be > 0")
        return value

    @field_validator("confidence_level")
    @classmethod
    def _level_in_unit_interval(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("confidence_level must be in (0, 1)")
        return value

    @model_validator(mode="after")
    def _validate_bounds(self) -> "FrictionOptions":
        if self.lower is not None and self.upper is not None:
            if len(self.lower) != len(self.upper):
                raise ValueError("lower and upper must have the same length")
            for i, (lo, hi) in enumerate(zip(self.lower, self.upper)):
                if lo > hi:
                    raise ValueError(f"lower[{i}] = {lo} exceeds upper[{i}] = {hi}")
        return self


# --------------------------------------------------------------------
# Model specifications
# --------------------------------------------------------------------

class _StribeckSpec(ConfigBase):
    @field_validator("stribeck_velocity", check_fields=False)
    @classmethod
    def _nonzero_stribeck(cls, value: float) -> float:
        if value == 0.0 or not math.isfinite(value):
            raise ValueError("stribeck_velocity must be finite and non-zero")
        return value


class CoulombSpec(ConfigBase):
    type: Literal["coulomb"]
    coefficient: float


class HyperbolicSpec(_StribeckSpec):
    type: Literal["hyperbolic"]
    friction_coefficient: float
    normalization_coefficient: float
    dissipation_coefficient: float
    hysteresis_coefficient: float
    stribeck_velocity: float
    viscous_damping: float = 0.0


class LuGreSpec(_StribeckSpec):
    type: Literal["lugre"]
    static_coefficient: float
    coulomb_coefficient: float
    stribeck_velocity: float
    bristle_stiffness: float
    bristle_damping: float
    viscous_damping: float = 0.0


class ElastoPlasticSpec(_StribeckSpec):
    type: Literal["elasto_plastic"]
    static_coefficient: float
    coulomb_coefficient: float
    stribeck_velocity: float
    bristle_stiffness: float
    bristle_damping: float
    breakaway_displacement: float
    max_bristle_displacement: float
    viscous_damping: float = 0.0

    @model_validator(mode="after")
    def _validate_displacements(self) -> "ElastoPlasticSpec":
        if self.breakaway_displacement < 0.0:
            raise ValueError("breakaway_displacement must be >= 0")
        if self.max_bristle_displacement < self.breakaway_displacement:
            raise ValueError("max_bristle_displacement must be >= breakaway_displacement")
        return self


class MaxwellElementSpec(ConfigBase):
    stiffness: float
    damping: float
    scale_factor: float


class GeneralizedMaxwellSlipSpec(_StribeckSpec):
    type: Literal["generalized_maxwell_slip"]
    elements: List[MaxwellElementSpec] = Field(default_factory=list)
    static_coefficient: float
    coulomb_coefficient: float
    attraction_parameter: float
    stribeck_velocity: float
    viscous_damping: float = 0.0


ModelSpec = Annotated[
    Union[CoulombSpec, HyperbolicSpec, LuGreSpec, ElastoPlasticSpec, GeneralizedMaxwellSlipSpec],
    Field(discriminator="type"),
]


# --------------------------------------------------------------------
# Measurement data & run configuration
# --------------------------------------------------------------------

ColumnRef = Union[int, str]


class DataSpec(ConfigBase):
    """CSV measurement file description.

    Columns are referenced by header name or by zero-based index. The default
    layout is time, velocity, normal force, friction force.
    """

    path: str
    time: ColumnRef = 0
    velocity: ColumnRef = 1
    normal: ColumnRef = 2
    friction: Optional[ColumnRef] = 3
    position: Optional[ColumnRef] = None

    @field_validator("path")
    @classmethod
    def _path_required(cls, value: str) -> str:
        if not value:
            raise ValueError("path is required")
        return value


class RunConfig(ConfigBase):
    model: ModelSpec
    data: DataSpec
    options: FrictionOptions = Field(default_factory=FrictionOptions)


def format_validation_error(exc: ValidationError, *, filename: str) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error.get("loc", []))
        msg = error.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    details = "; ".join(parts) if parts else str(exc)
    return f"{filename}: invalid configuration: {details}"
