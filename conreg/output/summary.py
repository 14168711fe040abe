"""Summary tables for constrained regression results.

Renders coefficients and dual values as plain-text or LaTeX tables.
"""

from __future__ import annotations

from typing import Literal, cast

import pandas as pd
from tabulate import tabulate

from conreg.core.errors import InvalidArgumentError
from conreg.regression.result import ConstrainedRegressionField, ConstrainedRegressionResult

__all__ = ["regression_summary", "result_frame"]


def result_frame(result: ConstrainedRegressionResult) -> pd.DataFrame:
    """Long table with columns ``field``, ``key`` and ``value``.

    Rows are ordered by field (beta, dual, fitted, residual) and then by key
    in the order of the result.
    """
    parts = []
    for kind in ConstrainedRegressionField:
        s = result.get(kind)
        parts.append(
            pd.DataFrame(
                {"field": kind.value, "key": list(s.index), "value": s.to_numpy()},
            ),
        )
    return pd.concat(parts, ignore_index=True)


def regression_summary(  # noqa: PLR0913
    result: ConstrainedRegressionResult,
    *,
    output: Literal["text", "latex"] = "text",
    float_format: str = ".6g",
    title: str | None = None,
    show_info: bool = True,
    latex_booktabs: bool = True,
) -> str:
    """Render coefficients, dual values and fit information as a table.

    Parameters
    ----------
    result : ConstrainedRegressionResult
        Output of :meth:`ConstrainedRegressionSolver.solve`.
    output : {"text", "latex"}
        Plain-text grid or a LaTeX ``tabular``.
    float_format : str
        Format spec applied to every number.
    title : str, optional
        Caption line printed above the text table.
    show_info : bool
        Append observation/regressor/constraint counts and the weighted RSS.
    latex_booktabs : bool
        Use ``booktabs`` rules for LaTeX output.

    """
    if output not in {"text", "latex"}:
        msg = f"output must be 'text' or 'latex'; got '{output}'."
        raise InvalidArgumentError(msg)

    def fmt(x: float) -> str:
        return format(float(x), float_format)

    rows: list[list[str]] = [[str(k), fmt(v)] for k, v in result.beta_coefficients.items()]
    if len(result.dual_values) > 0:
        rows.append(["", ""])
        rows.append(["Dual values", ""])
        rows.extend([str(k), fmt(v)] for k, v in result.dual_values.items())
    if show_info and result.model_info:
        rows.append(["", ""])
        info_keys = ("n_observations", "n_regressors", "n_constraints", "weighted_rss", "method")
        for key in info_keys:
            if key in result.model_info:
                val = result.model_info[key]
                text = fmt(val) if isinstance(val, float) else str(val)
                rows.append([str(key), text])

    regressand = result.model_info.get("regressand")
    headers = ["", str(regressand) if regressand is not None else "Estimate"]
    if output == "latex":
        tablefmt = "latex_booktabs" if latex_booktabs else "latex"
        return cast("str", tabulate(rows, headers=headers, stralign="center", tablefmt=tablefmt, disable_numparse=True))
    table = cast("str", tabulate(rows, headers=headers, stralign="center", disable_numparse=True))
    return f"{title}\n{table}" if title else table
