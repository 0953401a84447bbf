from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict

from ..core.models import (
    CoulombModel,
    ElastoPlasticModel,
    FrictionModel,
    GeneralizedMaxwellSlipModel,
    HyperbolicModel,
    LuGreModel,
    MaxwellElement,
    model_class,
)
from .models import (
    CoulombSpec,
    ElastoPlasticSpec,
    GeneralizedMaxwellSlipSpec,
    HyperbolicSpec,
    LuGreSpec,
    ModelSpec,
)

_SPEC_TO_MODEL = {
    CoulombSpec: CoulombModel,
    HyperbolicSpec: HyperbolicModel,
    LuGreSpec: LuGreModel,
    ElastoPlasticSpec: ElastoPlasticModel,
}


def build_model_from_spec(spec: ModelSpec) -> FrictionModel:
    """Turn a validated model specification into a model value object."""
    if isinstance(spec, GeneralizedMaxwellSlipSpec):
        elements = tuple(
            MaxwellElement(e.stiffness, e.damping, e.scale_factor) for e in spec.elements
        )
        return GeneralizedMaxwellSlipModel(
            elements=elements,
            static_coefficient=spec.static_coefficient,
            coulomb_coefficient=spec.coulomb_coefficient,
            attraction_parameter=spec.attraction_parameter,
            stribeck_velocity=spec.stribeck_velocity,
            viscous_damping=spec.viscous_damping,
        )
    cls = _SPEC_TO_MODEL.get(type(spec))
    if cls is None:
        raise ValueError(f"Unsupported model specification: {spec!r}")
    return cls(**spec.model_dump(exclude={"type"}))


def spec_dict_from_model(model: FrictionModel) -> Dict[str, Any]:
    """Plain-dict specification of ``model`` (YAML/JSON serialisable)."""
    cls = model_class(model)
    out: Dict[str, Any] = {"type": cls.kind}
    for f in fields(cls):
        value = getattr(model, f.name)
        if f.name == "elements":
            out["elements"] = [
                {"stiffness": e.stiffness, "damping": e.damping, "scale_factor": e.scale_factor}
                for e in value
            ]
        else:
            out[f.name] = float(value)
    return out
