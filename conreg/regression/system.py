"""Assembly of the augmented (KKT) normal-equation system.

For n observations, p regressors and m constraints the weighted least
squares problem

    minimise (y - X b)' W (y - X b)  subject to  A b = c

has the first-order conditions

    [ 2 X'WX   A' ] [ b      ]   [ 2 X'Wy ]
    [   A      0  ] [ lambda ] = [   c    ]

so that ``lambda`` is the marginal change in the weighted sum of squared
residuals per unit relaxation of each constraint. ``W = diag(w)`` with the
observation weights rescaled to sum to the number of strictly positive
weights.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Sequence
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from conreg.core import linalg as la
from conreg.core.config import SolverConfig
from conreg.core.errors import InvalidArgumentError, UnknownKeyError
from conreg.core.numeric import FixedDoubleComparator

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from conreg.regression.model import ConstrainedRegressionModel

LOGGER = logging.getLogger(__name__)

__all__ = ["ConstrainedRegressionSystem", "normalize_weights"]


def _readonly(a: NDArray[np.float64]) -> NDArray[np.float64]:
    a.setflags(write=False)
    return a


def normalize_weights(
    weights: Sequence[float] | NDArray[np.float64],
    comparator: FixedDoubleComparator | None = None,
) -> NDArray[np.float64]:
    """Rescale weights to sum to the number of strictly positive weights.

    Weights within the comparator tolerance of zero are set to exactly zero;
    a weight below ``-tolerance`` is rejected.

    Raises
    ------
    InvalidArgumentError
        If any weight is non-finite or negative, or none is positive.

    """
    cmp = comparator if comparator is not None else FixedDoubleComparator()
    w = np.array(weights, dtype=np.float64).reshape(-1)
    if np.any(~np.isfinite(w)):
        msg = "Observation weights must be finite."
        raise InvalidArgumentError(msg)
    negative = [i for i, x in enumerate(w) if cmp.is_negative(x)]
    if negative:
        msg = f"Observation weights must be non-negative; negative at positions {negative}."
        raise InvalidArgumentError(msg)
    positive = np.array([cmp.is_positive(x) for x in w], dtype=bool)
    w[~positive] = 0.0
    count = int(positive.sum())
    if count == 0:
        msg = "At least one observation weight must be positive."
        raise InvalidArgumentError(msg)
    return w * (count / float(w.sum()))


class ConstrainedRegressionSystem:
    """Read-only design data and augmented system for one model and frame.

    Use :meth:`build`; all arrays are read-only. Attributes
    ``design_matrix`` (n x p), ``regressand_vector`` (n), ``weight_vector``
    (n), ``constraint_matrix`` (m x p), ``constraint_values`` (m),
    ``two_xtw`` (p x n), ``augmented_matrix`` (p+m square) and
    ``augmented_vector`` (p+m).
    """

    def __init__(  # noqa: PLR0913
        self,
        model: ConstrainedRegressionModel,
        observation_rows: Sequence[Hashable],
        design_matrix: NDArray[np.float64],
        regressand_vector: NDArray[np.float64],
        weight_vector: NDArray[np.float64],
        constraint_matrix: NDArray[np.float64],
        constraint_values: NDArray[np.float64],
    ) -> None:
        self.model = model
        self.observation_rows: tuple[Hashable, ...] = tuple(observation_rows)
        self.design_matrix = _readonly(design_matrix)
        self.regressand_vector = _readonly(regressand_vector)
        self.weight_vector = _readonly(weight_vector)
        self.constraint_matrix = _readonly(constraint_matrix)
        self.constraint_values = _readonly(constraint_values)

        X, y, w = self.design_matrix, self.regressand_vector, self.weight_vector
        A, c = self.constraint_matrix, self.constraint_values
        m = A.shape[0]
        self.two_xtw = _readonly(2.0 * X.T * w)
        xtwx = 2.0 * la.gram(X, w)
        xtwy = 2.0 * la.xty(X, y, w).ravel()
        self.augmented_matrix = _readonly(la.block_matrix([[xtwx, A.T], [A, la.zeros(m, m)]]))
        self.augmented_vector = _readonly(np.concatenate([xtwy, c]))

    @classmethod
    def build(
        cls,
        model: ConstrainedRegressionModel,
        frame: pd.DataFrame,
        rows: Sequence[Hashable] | None = None,
        config: SolverConfig | None = None,
    ) -> ConstrainedRegressionSystem:
        """Read the model's columns from ``frame`` and assemble the system.

        Parameters
        ----------
        model : ConstrainedRegressionModel
            Problem description.
        frame : pandas.DataFrame
            Observations; row keys are the index and column keys the columns.
        rows : sequence, optional
            Observation row keys. Defaults to every row whose regressand is
            not missing.
        config : SolverConfig, optional
            Supplies the tolerance of the weight sign checks.

        """
        cfg = config if config is not None else SolverConfig()
        if model.regressand not in frame.columns:
            msg = f"Regressand column '{model.regressand}' not found in observation frame."
            raise UnknownKeyError(msg)
        if rows is None:
            obs = list(frame.index[frame[model.regressand].notna()])
        else:
            obs = list(rows)
            if len(set(obs)) != len(obs):
                msg = "Observation rows must be unique."
                raise InvalidArgumentError(msg)
        if not obs:
            msg = "No observations available for the regression."
            raise InvalidArgumentError(msg)
        if not frame.index.is_unique:
            msg = "Observation frame index must be unique."
            raise InvalidArgumentError(msg)

        X = la.copy_frame(frame, obs, model.regressors)
        y = la.copy_column(frame, obs, model.regressand)
        la.assert_all_finite(X, y)
        if model.weight is None:
            w = np.ones(len(obs), dtype=np.float64)
        else:
            raw = la.copy_column(frame, obs, model.weight)
            w = normalize_weights(raw, FixedDoubleComparator(cfg.weight_tolerance))

        A = model.get_constraint_matrix()
        c = model.get_constraint_values()
        LOGGER.debug(
            "system: n=%d observations, p=%d regressors, m=%d constraints",
            X.shape[0],
            X.shape[1],
            A.shape[0],
        )
        return cls(model, obs, X, y, w, A, c)

    def count_observations(self) -> int:
        return len(self.observation_rows)

    def count_regressors(self) -> int:
        return int(self.design_matrix.shape[1])

    def count_constraints(self) -> int:
        return int(self.constraint_matrix.shape[0])

    def augmented_frame(self) -> pd.DataFrame:
        """Augmented matrix labelled by regressor keys then constraint names."""
        labels = list(self.model.regressors) + self.model.get_constraint_keys()
        return pd.DataFrame(self.augmented_matrix, index=labels, columns=labels)
