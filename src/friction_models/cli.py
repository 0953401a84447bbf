# src/friction_models/cli.py

from __future__ import annotations

import logging
import time
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import typer
import yaml

from .config import (
    RunConfig,
    build_model_from_spec,
    load_measurements,
    load_run_config,
    spec_dict_from_model,
)
from .config.measurements import MeasurementData
from .core.engine import friction_history
from .core.errors import ConfigurationError, InvalidParameterError
from .core.fitting import FitResult, fit_model
from .core.report import format_fit_report, parameter_table

app = typer.Typer(
    add_completion=False,
    help=(
        "Friction models CLI\n\n"
        "Evaluate Coulomb, hyperbolic, LuGre, elasto-plastic and generalized\n"
        "Maxwell-slip friction models and calibrate them against measured data.\n"
        "Use 'fit' to calibrate a model and 'evaluate' for a force time history."
    ),
)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _ensure_output_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _setup_logger(output_dir: Path, log_stem: str) -> logging.Logger:
    """
    Set up a per-run log file <output_dir>/<log_stem>.log.

    The handler is attached to the package logger, so solver warnings from
    the core modules end up in the same file as the CLI messages.
    """
    _ensure_output_dir(output_dir)
    logger = logging.getLogger("friction_models")
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    log_file = output_dir / f"{log_stem}.log"
    handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def _close_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _print_and_log(logger: logging.Logger, msg: str) -> None:
    typer.echo(msg)
    logger.info(msg)


def _load_inputs(config: Path, logger: logging.Logger) -> tuple[RunConfig, MeasurementData]:
    """Load run configuration and measurements, mapping input errors to CLI errors."""
    try:
        cfg = load_run_config(config)
        data = load_measurements(cfg.data, config_dir=config.resolve().parent)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise typer.BadParameter(str(exc)) from exc
    return cfg, data


def _fit_history_frame(result: FitResult, data: MeasurementData) -> pd.DataFrame:
    residuals = result.diagnostics.residuals
    return pd.DataFrame(
        {
            "Time_s": data.time,
            "Velocity_m_s": data.velocity,
            "Normal_N": data.normal,
            "Measured_N": data.friction,
            "Fitted_N": data.friction + residuals,
            "Residual_N": residuals,
        }
    )


def _save_fit_plot(history_df: pd.DataFrame, path: Path, title: str) -> None:
    fig, (ax_f, ax_r) = plt.subplots(
        2, 1, figsize=(8, 6), sharex=True, gridspec_kw={"height_ratios": [3, 1]}
    )
    ax_f.plot(history_df["Time_s"], history_df["Measured_N"], ".", ms=3, label="measured")
    ax_f.plot(history_df["Time_s"], history_df["Fitted_N"], "-", lw=1.5, label="fitted")
    ax_f.set_ylabel("Friction force [N]")
    ax_f.set_title(title)
    ax_f.grid(True)
    ax_f.legend()

    ax_r.plot(history_df["Time_s"], history_df["Residual_N"], "-", lw=1.0, color="tab:red")
    ax_r.axhline(0.0, color="k", lw=0.5)
    ax_r.set_xlabel("Time [s]")
    ax_r.set_ylabel("Residual [N]")
    ax_r.grid(True)

    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@app.command()
def fit(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        exists=True,
        readable=True,
        help="YAML/JSON configuration file (model, data, options).",
    ),
    output_dir: Path = typer.Option(
        Path("results"),
        "--out",
        "-o",
        help="Directory for result files.",
    ),
    plot: bool = typer.Option(
        False,
        "--plot",
        help="Save a plot of measured vs fitted friction force (fit.png).",
    ),
) -> None:
    """
    Calibrate a friction model against measured friction forces.

    Examples
    --------
    Fit a LuGre model to a CSV of time, velocity, normal and friction force:

        friction-models fit --config fit_lugre.yml --out results/lugre --plot
    """
    logger = _setup_logger(output_dir, "fit")
    try:
        _print_and_log(logger, f"Loading config: {config}")
        cfg, data = _load_inputs(config, logger)
        if data.friction is None:
            raise typer.BadParameter("data.friction column is required for fitting")

        try:
            model = build_model_from_spec(cfg.model)
        except InvalidParameterError as exc:
            raise typer.BadParameter(str(exc)) from exc

        _print_and_log(
            logger, f"Fitting {type(model).__name__} to {len(data)} samples from {cfg.data.path}"
        )
        t0 = time.perf_counter()
        try:
            result = fit_model(
                model,
                data.time,
                data.friction,
                data.normal,
                data.velocity,
                position=data.position,
                options=cfg.options,
            )
        except (ConfigurationError, InvalidParameterError) as exc:
            logger.error("%s", exc)
            raise typer.BadParameter(str(exc)) from exc
        wall_time = time.perf_counter() - t0

        table = parameter_table(result)
        typer.echo("")
        typer.echo(table.to_string(index=False))
        typer.echo("")
        _print_and_log(logger, f"Fit finished in {wall_time:.2f} s ({result.diagnostics.nfev} evaluations)")
        if not result.diagnostics.reliable:
            _print_and_log(logger, "WARNING: fit result is not reliable, see fit_report.txt")

        model_path = output_dir / "fitted_model.yml"
        _print_and_log(logger, f"Writing fitted model to {model_path}")
        with model_path.open("w", encoding="utf-8") as fh:
            yaml.safe_dump({"model": spec_dict_from_model(result.model)}, fh, sort_keys=False)

        report_path = output_dir / "fit_report.txt"
        _print_and_log(logger, f"Writing fit report to {report_path}")
        report_path.write_text(format_fit_report(result) + "\n", encoding="utf-8")

        history_df = _fit_history_frame(result, data)
        history_path = output_dir / "fit_history.csv"
        _print_and_log(logger, f"Writing fit history to {history_path}")
        history_df.to_csv(history_path, index=False)

        if plot:
            plot_path = output_dir / "fit.png"
            _print_and_log(logger, f"Writing plot to {plot_path}")
            _save_fit_plot(history_df, plot_path, f"{type(model).__name__} fit")

        typer.echo(f"\nDetailed log written to {output_dir / 'fit.log'}")
        logger.info("Fit completed.")
    finally:
        _close_logger(logger)


@app.command()
def evaluate(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        exists=True,
        readable=True,
        help="YAML/JSON configuration file (model, data, options).",
    ),
    output_dir: Path = typer.Option(
        Path("results"),
        "--out",
        "-o",
        help="Directory for result files.",
    ),
) -> None:
    """
    Compute the friction force history of a model along measured inputs.

    The velocity, normal force and optional position columns of the data
    file drive the model at the times of the time column.
    """
    logger = _setup_logger(output_dir, "evaluate")
    try:
        _print_and_log(logger, f"Loading config: {config}")
        cfg, data = _load_inputs(config, logger)
        try:
            model = build_model_from_spec(cfg.model)
            history = friction_history(
                model,
                data.time,
                data.normal,
                data.velocity,
                position=data.position,
                options=cfg.options,
            )
        except (ConfigurationError, InvalidParameterError) as exc:
            logger.error("%s", exc)
            raise typer.BadParameter(str(exc)) from exc

        df = history.to_frame()
        if data.friction is not None and history.times.size == data.time.size:
            df["Measured_N"] = data.friction
        csv_path = output_dir / "friction_history.csv"
        _print_and_log(logger, f"Writing time history to {csv_path}")
        df.to_csv(csv_path, index=False)

        _print_and_log(
            logger,
            f"Peak |F| = {float(np.max(np.abs(history.forces))) if history.forces.size else 0.0:.6g} N "
            f"over {history.times.size} time points",
        )
        if not history.reliable:
            for failure in history.failures:
                _print_and_log(logger, f"WARNING: [{failure.stage}] {failure.message}")
        logger.info("Evaluation completed.")
    finally:
        _close_logger(logger)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
