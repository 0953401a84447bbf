"""Tabular and plain-text summaries of calibration results."""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd

from .fitting import FitResult


def parameter_table(result: FitResult) -> pd.DataFrame:
    """One row per parameter: value, standard error and confidence bounds.

    Parameters held fixed during the fit (e.g. the Maxwell element count)
    have a zero standard error and a degenerate interval.
    """
    diag = result.diagnostics
    return pd.DataFrame(
        {
            "parameter": diag.parameter_names,
            "value": diag.parameters,
            "std_error": diag.standard_errors,
            "ci_lower": diag.confidence_intervals[:, 0],
            "ci_upper": diag.confidence_intervals[:, 1],
            "fixed": ~diag.free,
        }
    )


def format_fit_report(result: FitResult) -> str:
    diag = result.diagnostics
    level = int(round(100 * diag.confidence_level))

    lines: List[str] = []
    lines.append(f"Model            : {type(result.model).__name__}")
    lines.append(f"Status           : {diag.status} ({diag.message})")
    lines.append(f"Converged        : {'yes' if diag.success else 'no'}")
    lines.append(f"Reliable         : {'yes' if diag.reliable else 'no'}")
    lines.append(f"Evaluations      : {diag.nfev}")
    lines.append(f"Initial cost     : {diag.initial_cost:.6e}")
    lines.append(f"Final cost       : {diag.cost:.6e}")
    lines.append(f"RMS residual     : {diag.rms_residual:.6e} N")
    lines.append(f"Degrees of freedom: {diag.dof}")
    lines.append("")

    table = parameter_table(result)
    header = f"{'parameter':<28} {'value':>14} {'std error':>12} {f'{level}% CI':>31}"
    lines.append(header)
    lines.append("-" * len(header))
    for row in table.itertuples(index=False):
        if row.fixed:
            lines.append(f"{row.parameter:<28} {row.value:>14.6g} {'(fixed)':>12}")
            continue
        if np.isfinite(row.std_error):
            ci = f"[{row.ci_lower:.6g}, {row.ci_upper:.6g}]"
            se = f"{row.std_error:.3g}"
        else:
            ci = "n/a"
            se = "inf"
        lines.append(f"{row.parameter:<28} {row.value:>14.6g} {se:>12} {ci:>31}")

    if diag.failures:
        lines.append("")
        lines.append("Numerical problems:")
        for failure in diag.failures:
            where = "" if failure.time is None else f" (t = {failure.time:g} s)"
            lines.append(f"  [{failure.stage}] {failure.message}{where}")

    return "\n".join(lines)
