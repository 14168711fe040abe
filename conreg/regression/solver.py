"""Solver for weighted least squares with linear equality constraints.

The augmented system assembled by :class:`ConstrainedRegressionSystem` is
solved once for the coefficients ``b`` (first p entries) and the Lagrange
multipliers ``lambda`` (last m entries).

Two methods are available (see :class:`conreg.core.config.SolverConfig`):

- ``"direct"`` (default): LU factorisation with a reciprocal condition check.
  An exactly or numerically singular system raises :class:`SingularSystemError`.
- ``"svd"``: minimum-norm solution from the thresholded SVD pseudo-inverse,
  which also covers collinear regressors.

The pseudo-inverse diagnostics always go through the SVD solver, whose
decomposition is computed lazily and reused across threshold changes.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Sequence
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd
import scipy.linalg as sla

from conreg.core import linalg as la
from conreg.core.config import SolverConfig
from conreg.core.errors import SingularSystemError
from conreg.core.svd import SVDSolver
from conreg.regression.result import ConstrainedRegressionResult
from conreg.regression.system import ConstrainedRegressionSystem

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from conreg.regression.model import ConstrainedRegressionModel

LOGGER = logging.getLogger(__name__)

__all__ = ["ConstrainedRegressionSolver"]


class ConstrainedRegressionSolver:
    """Solve a constrained regression model against one observation frame."""

    def __init__(self, system: ConstrainedRegressionSystem, config: SolverConfig | None = None) -> None:
        self.system = system
        self.config = config if config is not None else SolverConfig.from_env()
        self._threshold = self.config.singular_value_threshold
        self._svd_solver: SVDSolver | None = None

    @classmethod
    def build(
        cls,
        model: ConstrainedRegressionModel,
        frame: pd.DataFrame,
        rows: Sequence[Hashable] | None = None,
        config: SolverConfig | None = None,
    ) -> ConstrainedRegressionSolver:
        """Assemble (and cache) the augmented system for ``model`` over ``frame``."""
        cfg = config if config is not None else SolverConfig.from_env()
        system = ConstrainedRegressionSystem.build(model, frame, rows, cfg)
        LOGGER.debug("solver: method=%s", cfg.method)
        return cls(system, cfg)

    def get_augmented_system(self) -> ConstrainedRegressionSystem:
        return self.system

    def with_singular_value_threshold(self, threshold: float) -> ConstrainedRegressionSolver:
        """Set the SVD threshold, keeping any decomposition already computed."""
        self._threshold = SVDSolver.validate_threshold(threshold)
        if self._svd_solver is not None:
            self._svd_solver.with_threshold(self._threshold)
        return self

    def get_svd_solver(self) -> SVDSolver:
        """SVD solver over the augmented matrix (decomposed on first use)."""
        if self._svd_solver is None:
            self._svd_solver = SVDSolver(self.system.augmented_matrix, self._threshold)
        return self._svd_solver

    def _solve_direct(self) -> NDArray[np.float64]:
        """LU solve; an exact zero pivot or ``rcond < eps`` is singular."""
        M = np.array(self.system.augmented_matrix, dtype=np.float64)
        v = self.system.augmented_vector
        getrf, gecon = sla.get_lapack_funcs(("getrf", "gecon"), (M,))
        lu, piv, info = getrf(M)
        rcond = 0.0
        if info == 0:
            rcond, info = gecon(lu, np.linalg.norm(M, 1), norm="1")
        if info != 0 or not rcond >= np.finfo(np.float64).eps:
            LOGGER.debug("direct solve: info=%d rcond=%.3g", info, rcond)
            msg = (
                "The augmented regression system is singular; check for collinear "
                "regressors or use SolverConfig(method='svd') for the minimum-norm solution."
            )
            raise SingularSystemError(msg)
        return sla.lu_solve((lu, piv), v, check_finite=False)

    def solve(self) -> ConstrainedRegressionResult:
        """Solve for coefficients, dual values, fitted values and residuals."""
        sysm = self.system
        if self.config.method == "svd":
            solution = self.get_svd_solver().solve(sysm.augmented_vector)
        else:
            solution = self._solve_direct()
        p = sysm.count_regressors()
        beta = solution[:p]
        dual = solution[p:]
        fitted = sysm.design_matrix @ beta
        residual = fitted - sysm.regressand_vector
        LOGGER.debug("solve: beta=%s dual=%s", beta, dual)

        rows = pd.Index(sysm.observation_rows)
        return ConstrainedRegressionResult(
            beta_coefficients=pd.Series(beta, index=pd.Index(sysm.model.regressors)),
            dual_values=pd.Series(dual, index=pd.Index(sysm.model.get_constraint_keys(), dtype=object)),
            fitted_values=pd.Series(fitted, index=rows),
            residuals=pd.Series(residual, index=rows),
            model_info={
                "method": self.config.method,
                "regressand": sysm.model.regressand,
                "weight": sysm.model.weight,
                "n_observations": sysm.count_observations(),
                "n_regressors": p,
                "n_constraints": sysm.count_constraints(),
                "weighted_rss": float(np.sum(sysm.weight_vector * residual * residual)),
            },
        )

    def compute_augmented_inverse(self) -> NDArray[np.float64]:
        """Truncated pseudo-inverse of the augmented matrix, ``(p+m) x (p+m)``."""
        return self.get_svd_solver().invert()

    def compute_pseudo_inverse(self) -> NDArray[np.float64]:
        """Linear map from ``[y; c]`` to ``[b; lambda]``, shape ``(p+m) x (n+m)``.

        Equal to ``pinv(M) @ [[2 X'W, 0], [0, I_m]]``, so that applying it to
        the regressand stacked on the constraint values reproduces the
        solution of :meth:`solve`.
        """
        sysm = self.system
        n = sysm.count_observations()
        p = sysm.count_regressors()
        m = sysm.count_constraints()
        rhs_map = la.block_matrix(
            [
                [sysm.two_xtw, la.zeros(p, m)],
                [la.zeros(m, n), la.eye(m)],
            ],
        )
        return self.compute_augmented_inverse() @ rhs_map

    def compute_leverage(self) -> pd.Series:
        """Diagonal of the hat matrix ``H = X Q[:p, :n]`` per observation."""
        sysm = self.system
        p = sysm.count_regressors()
        n = sysm.count_observations()
        Q = self.compute_pseudo_inverse()
        lev = np.einsum("ij,ji->i", sysm.design_matrix, Q[:p, :n])
        return pd.Series(lev, index=pd.Index(sysm.observation_rows), name="leverage")
