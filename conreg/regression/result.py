"""Result container for a constrained regression solve."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from conreg.core.errors import DimensionMismatchError, InvalidArgumentError, UnknownKeyError

if TYPE_CHECKING:
    from collections.abc import Hashable

__all__ = ["ConstrainedRegressionField", "ConstrainedRegressionResult"]


class ConstrainedRegressionField(Enum):
    """Labels of the quantities reported by a solve."""

    BETA = "beta"
    DUAL = "dual"
    FITTED = "fitted"
    RESIDUAL = "residual"


@dataclass(frozen=True, eq=False)
class ConstrainedRegressionResult:
    """Coefficients, dual values, fitted values and residuals of one solve.

    Attributes
    ----------
    beta_coefficients : pandas.Series
        Indexed by regressor key.
    dual_values : pandas.Series
        Lagrange multipliers indexed by constraint name.
    fitted_values : pandas.Series
        ``X b`` indexed by observation row key (zero-weight rows included).
    residuals : pandas.Series
        ``X b - y`` indexed by observation row key.
    model_info : dict
        Solve metadata such as the method and observation counts.

    """

    beta_coefficients: pd.Series
    dual_values: pd.Series
    fitted_values: pd.Series
    residuals: pd.Series
    model_info: dict[str, object] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        for name in ("beta_coefficients", "dual_values", "fitted_values", "residuals"):
            s = getattr(self, name)
            if not isinstance(s, pd.Series):
                msg = f"{name} must be a pandas Series."
                raise InvalidArgumentError(msg)
            object.__setattr__(self, name, s.astype(np.float64).copy())
        if not self.fitted_values.index.equals(self.residuals.index):
            msg = "fitted_values and residuals must share the observation index."
            raise DimensionMismatchError(msg)

    def get(self, kind: ConstrainedRegressionField) -> pd.Series:
        """Series for one field."""
        return {
            ConstrainedRegressionField.BETA: self.beta_coefficients,
            ConstrainedRegressionField.DUAL: self.dual_values,
            ConstrainedRegressionField.FITTED: self.fitted_values,
            ConstrainedRegressionField.RESIDUAL: self.residuals,
        }[kind]

    def get_beta_coefficient(self, regressor: Hashable) -> float:
        if regressor not in self.beta_coefficients.index:
            msg = f"Unknown regressor: '{regressor}'."
            raise UnknownKeyError(msg)
        return float(self.beta_coefficients[regressor])

    def get_dual_value(self, constraint: str) -> float:
        if constraint not in self.dual_values.index:
            msg = f"Unknown constraint: '{constraint}'."
            raise UnknownKeyError(msg)
        return float(self.dual_values[constraint])

    def observation_frame(self) -> pd.DataFrame:
        """Fitted values and residuals as columns of one frame."""
        return pd.DataFrame(
            {
                ConstrainedRegressionField.FITTED.value: self.fitted_values,
                ConstrainedRegressionField.RESIDUAL.value: self.residuals,
            },
        )
