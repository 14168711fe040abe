"""Thresholded singular value decomposition solver.

``SVDSolver`` decomposes a coefficient matrix ``A = U diag(w) V'`` once and
solves ``A X = B`` through the truncated pseudo-inverse
``V diag(1/w) U' B``, where singular values at or below the threshold are
treated as exact zeros. The decomposition is immutable; only the threshold
can change, so threshold sweeps never refactor the matrix.

The default threshold ``0.5 * sqrt(M + N + 1) * w_max * eps`` follows
Numerical Recipes (3rd ed., section 2.6).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from conreg.core import linalg as la
from conreg.core.errors import DimensionMismatchError, InvalidArgumentError
from conreg.core.numeric import DoubleComparator, epsilon

if TYPE_CHECKING:
    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = ["SVD", "SVDSolver"]

# relative perturbation used by the least-squares optimality check
_LS_PERTURBATION = 0.01


@dataclass(frozen=True)
class SVD:
    """Immutable decomposition ``A = U @ diag(s) @ V.T`` (thin form)."""

    U: NDArray[np.float64]
    s: NDArray[np.float64]
    V: NDArray[np.float64]
    nrow: int
    ncol: int

    @classmethod
    def create(cls, A: la.Matrix) -> SVD:
        Ad = la.to_dense(A)
        U, s, Vt = la.svd(Ad, full_matrices=False)
        for arr in (U, s, Vt):
            arr.setflags(write=False)
        return cls(U=U, s=s, V=Vt.T, nrow=int(Ad.shape[0]), ncol=int(Ad.shape[1]))

    @property
    def UT(self) -> NDArray[np.float64]:
        return self.U.T

    @property
    def VT(self) -> NDArray[np.float64]:
        return self.V.T

    @property
    def D(self) -> NDArray[np.float64]:
        """Diagonal matrix of singular values."""
        return np.diag(self.s)

    @property
    def max_singular_value(self) -> float:
        return float(self.s.max()) if self.s.size else 0.0

    def rank(self, tol: float | None = None) -> int:
        if tol is None:
            tol = self.max_singular_value * max(self.nrow, self.ncol) * epsilon()
        return int(np.sum(self.s > tol))


class SVDSolver:
    """Solve linear systems through a thresholded SVD.

    Parameters
    ----------
    A : Matrix
        Coefficient matrix (M x N); any shape is accepted.
    threshold : float, optional
        Singular values at or below this value are truncated. Defaults to
        :meth:`default_threshold`.

    """

    def __init__(self, A: la.Matrix, threshold: float | None = None) -> None:
        self.svd = SVD.create(A)
        self._threshold = self.default_threshold()
        if threshold is not None:
            self.threshold = threshold
        LOGGER.debug(
            "SVDSolver: %dx%d, w_max=%.6g, threshold=%.6g",
            self.svd.nrow,
            self.svd.ncol,
            self.svd.max_singular_value,
            self._threshold,
        )

    @classmethod
    def create(cls, A: la.Matrix, threshold: float | None = None) -> SVDSolver:
        return cls(A, threshold)

    def default_threshold(self) -> float:
        """``0.5 * sqrt(M + N + 1) * w_max * eps``, floored at ``eps``."""
        dim = self.svd.nrow + self.svd.ncol + 1
        value = 0.5 * math.sqrt(dim) * self.svd.max_singular_value * epsilon()
        return max(value, epsilon())

    @staticmethod
    def validate_threshold(threshold: float) -> float:
        thr = float(threshold)
        if not (math.isfinite(thr) and thr >= epsilon()):
            msg = f"Invalid singular value threshold: {threshold}."
            raise InvalidArgumentError(msg)
        return thr

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        self._threshold = self.validate_threshold(value)

    def with_threshold(self, threshold: float) -> SVDSolver:
        """Replace the threshold (decomposition is kept) and return ``self``."""
        self.threshold = threshold
        LOGGER.debug("SVDSolver threshold set to %.6g", self._threshold)
        return self

    def _inverse_singular_values(self) -> NDArray[np.float64]:
        s = self.svd.s
        keep = s > self._threshold
        return np.where(keep, 1.0 / np.where(keep, s, 1.0), 0.0)

    def invert_singular_values(self) -> NDArray[np.float64]:
        """Diagonal matrix with ``1/w_k`` where ``w_k > threshold`` and 0 elsewhere."""
        return np.diag(self._inverse_singular_values())

    def count_retained(self) -> int:
        """Number of singular values above the threshold."""
        return int(np.sum(self.svd.s > self._threshold))

    def invert(self) -> NDArray[np.float64]:
        """Truncated pseudo-inverse ``V diag(1/w) U'`` (N x M)."""
        return (self.svd.V * self._inverse_singular_values()) @ self.svd.UT

    def solve(self, B: la.Matrix) -> NDArray[np.float64]:
        """Solve ``A X = B`` for a vector or a matrix of right-hand sides.

        A 1-D ``B`` yields a 1-D solution of length N; a 2-D ``B`` with K
        columns yields an (N x K) solution.
        """
        Bd = la.to_dense(B)
        if Bd.shape[0] != self.svd.nrow:
            msg = f"right-hand side has {Bd.shape[0]} rows; coefficient matrix has {self.svd.nrow}."
            raise DimensionMismatchError(msg)
        la.assert_all_finite(Bd)
        UtB = self.svd.UT @ Bd
        if Bd.ndim == 1:
            return self.svd.V @ (self._inverse_singular_values() * UtB)
        return self.svd.V @ (self._inverse_singular_values()[:, None] * UtB)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    @staticmethod
    def compute_fitted_values(A: la.Matrix, x: la.Matrix) -> NDArray[np.float64]:
        return la.dot(A, x)

    @staticmethod
    def compute_residual(A: la.Matrix, x: la.Matrix, b: la.Matrix) -> NDArray[np.float64]:
        """``A x - b``."""
        fitted = la.dot(A, x)
        bd = la.to_dense(b)
        if fitted.shape != bd.shape:
            msg = f"fitted values of shape {fitted.shape} do not match b of shape {bd.shape}."
            raise DimensionMismatchError(msg)
        return fitted - bd

    @staticmethod
    def compute_rss(A: la.Matrix, x: la.Matrix, b: la.Matrix) -> float:
        r = SVDSolver.compute_residual(A, x, b)
        return float(np.sum(r * r))

    @staticmethod
    def is_exact_solution(
        A: la.Matrix,
        x: la.Matrix,
        b: la.Matrix,
        comparator: DoubleComparator | None = None,
    ) -> bool:
        """True when ``A`` is square and ``A x == b`` under ``comparator``."""
        Ad = la.to_dense(A)
        if Ad.ndim != 2 or Ad.shape[0] != Ad.shape[1]:  # noqa: PLR2004
            return False
        return la.equals_matrix(la.dot(Ad, x), b, comparator)

    @staticmethod
    def is_least_squares_solution(
        A: la.Matrix,
        x: la.Matrix,
        b: la.Matrix,
        comparator: DoubleComparator | None = None,
    ) -> bool:
        """Check that a +/-1% change in any one element of ``x`` never lowers the RSS.

        Intended as a test oracle; cost is 2N residual evaluations.
        """
        cmp = comparator if comparator is not None else DoubleComparator.DEFAULT
        xd = la.to_dense(x).astype(np.float64, copy=True)
        rss = SVDSolver.compute_rss(A, xd, b)
        flat = xd.reshape(-1)
        for k in range(flat.size):
            orig = flat[k]
            for factor in (1.0 - _LS_PERTURBATION, 1.0 + _LS_PERTURBATION):
                flat[k] = orig * factor
                if cmp.compare(SVDSolver.compute_rss(A, xd, b), rss) < 0:
                    return False
            flat[k] = orig
        return True
