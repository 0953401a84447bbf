from __future__ import annotations

from pathlib import Path
import sys

sys.path.insert(0, "src")

import numpy as np
import pandas as pd
import pytest
import yaml

from friction_models.config import (
    FrictionOptions,
    build_model_from_spec,
    coerce_options,
    load_measurements,
    load_run_config,
    normalize_config_dict,
    spec_dict_from_model,
)
from friction_models.core.errors import ConfigurationError
from friction_models.core.models import GeneralizedMaxwellSlipModel, LuGreModel, make_elements


def _lugre_config(**options) -> dict:
    return {
        "model": {
            "type": "lugre",
            "static_coefficient": 0.3,
            "coulomb_coefficient": 0.2,
            "stribeck_velocity": 0.01,
            "bristle_stiffness": 1.0e5,
            "bristle_damping": 300.0,
        },
        "data": {"path": "data.csv"},
        "options": options,
    }


def test_options_defaults() -> None:
    opts = FrictionOptions()
    assert opts.z0 == 0.0
    assert opts.reltol == 1e-8
    assert opts.abstol == 1e-6
    assert opts.dtmax == 1e-3
    assert opts.method == "Radau"
    assert opts.lower is None and opts.upper is None


def test_options_accept_zi_alias_and_overrides() -> None:
    assert coerce_options({"zi": 1e-5}).z0 == 1e-5
    assert coerce_options({"zi": 1e-5}, z0=2e-5).z0 == 2e-5
    assert coerce_options(FrictionOptions(dtmax=5e-3), reltol=1e-6).dtmax == 5e-3


@pytest.mark.parametrize(
    "options, fragment",
    [
        ({"reltol": 0.0}, "reltol"),
        ({"lower": [0.0, 1.0], "upper": [1.0]}, "same length"),
        ({"lower": [2.0], "upper": [1.0]}, "exceeds"),
        ({"max_nfev": 0}, "max_nfev"),
        ({"tolerance": 1e-3}, "tolerance"),
        ({"confidence_level": 1.5}, "confidence_level"),
    ],
)
def test_invalid_options_rejected(options, fragment) -> None:
    with pytest.raises(ConfigurationError, match=fragment):
        coerce_options(options)


def test_run_config_builds_model_with_default_viscous_damping() -> None:
    cfg = normalize_config_dict(_lugre_config(dtmax=5e-3), filename="fit.yml")
    model = build_model_from_spec(cfg.model)
    assert model == LuGreModel(0.3, 0.2, 0.01, 1.0e5, 300.0, 0.0)
    assert cfg.options.dtmax == 5e-3
    assert cfg.data.time == 0 and cfg.data.friction == 3


def test_invalid_model_reports_filename() -> None:
    raw = _lugre_config()
    raw["model"]["stribeck_velocity"] = 0.0
    with pytest.raises(ConfigurationError, match=r"bad\.yml.*stribeck_velocity"):
        normalize_config_dict(raw, filename="bad.yml")

    raw = _lugre_config()
    raw["model"]["type"] = "dahl"
    with pytest.raises(ConfigurationError, match="bad.yml"):
        normalize_config_dict(raw, filename="bad.yml")


def test_spec_dict_round_trip_for_gms() -> None:
    model = GeneralizedMaxwellSlipModel(
        make_elements([(1.0e4, 10.0, 0.6), (2.0e4, 5.0, 0.4)]), 0.3, 0.2, 50.0, 0.01, 0.5
    )
    spec = spec_dict_from_model(model)
    assert spec["type"] == "generalized_maxwell_slip"
    assert spec["elements"][1] == {"stiffness": 2.0e4, "damping": 5.0, "scale_factor": 0.4}

    cfg = normalize_config_dict({"model": spec, "data": {"path": "x.csv"}}, filename="gms.yml")
    assert build_model_from_spec(cfg.model) == model


def test_load_run_config_from_yaml(tmp_path: Path) -> None:
    cfg_path = tmp_path / "fit.yml"
    cfg_path.write_text(yaml.safe_dump(_lugre_config(zi=1e-6)), encoding="utf-8")
    cfg = load_run_config(cfg_path)
    assert cfg.options.z0 == 1e-6

    with pytest.raises(ConfigurationError, match="Unsupported"):
        bad = tmp_path / "fit.toml"
        bad.write_text("x = 1", encoding="utf-8")
        load_run_config(bad)


def test_load_measurements_by_name_and_index(tmp_path: Path) -> None:
    df = pd.DataFrame(
        {
            "t": [0.0, 0.1, 0.2, 0.3],
            "v": [0.1, 0.2, np.nan, 0.4],
            "N": [10.0, 10.0, 10.0, 10.0],
            "F": [1.0, 2.0, 3.0, 4.0],
            "x": [0.0, 0.01, 0.03, 0.06],
        }
    )
    df.to_csv(tmp_path / "data.csv", index=False)

    cfg = normalize_config_dict(
        {
            **_lugre_config(),
            "data": {"path": "data.csv", "time": "t", "velocity": 1, "normal": "N", "friction": "F", "position": "x"},
        },
        filename="fit.yml",
    )
    data = load_measurements(cfg.data, config_dir=tmp_path)
    # the row with the missing velocity is dropped
    assert len(data) == 3
    np.testing.assert_allclose(data.time, [0.0, 0.1, 0.3])
    np.testing.assert_allclose(data.position, [0.0, 0.01, 0.06])

    missing = normalize_config_dict(
        {**_lugre_config(), "data": {"path": "data.csv", "friction": "force"}}, filename="fit.yml"
    )
    with pytest.raises(ConfigurationError, match="no column 'force'"):
        load_measurements(missing.data, config_dir=tmp_path)
