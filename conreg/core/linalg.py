"""Linear algebra routines for constrained regression.

Dense float64 matrices are plain ``numpy`` arrays; SciPy sparse inputs are
accepted everywhere and densified on entry. This module centralises the
operations the regression engine needs: finiteness checks, weighted cross
products, block composition of the augmented system, copies from pandas
frames and tolerance-aware matrix equality.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
import scipy.sparse as sp

from conreg.core.errors import DimensionMismatchError, InvalidArgumentError, UnknownKeyError
from conreg.core.numeric import DoubleComparator

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence

    from numpy.typing import NDArray

# Matrix type alias
Matrix = Any

__all__ = [
    "as_column",
    "assert_all_finite",
    "block_matrix",
    "copy_column",
    "copy_frame",
    "dot",
    "equals_matrix",
    "eye",
    "gram",
    "matrix_rank",
    "svd",
    "to_dense",
    "validate_weights",
    "xty",
    "zeros",
]


def assert_all_finite(*arrays: NDArray[np.float64] | None) -> None:
    """Raise InvalidArgumentError if any input contains NaN or Inf."""
    for a in arrays:
        if a is None:
            continue
        _check_array_finiteness(np.asarray(a))


def _check_array_finiteness(arr: NDArray[np.float64]) -> None:
    if not np.all(np.isfinite(arr)):
        msg = "Input contains NA/NaN/Inf; please drop/clean rows before solving."
        raise InvalidArgumentError(msg)


def _assert_all_finite_matrix(*matrices: Matrix) -> None:
    """Check dense or sparse matrices for non-finite entries."""
    for M in matrices:
        if M is None:
            continue
        if _is_sparse(M):
            # Only inspect the stored data array to avoid densification.
            _check_array_finiteness(np.asarray(M.data))
        else:
            _check_array_finiteness(np.asarray(M))


def _is_sparse(A: Matrix) -> bool:
    return sp.issparse(A)


def to_dense(A: Matrix) -> NDArray[np.float64]:
    """Convert a matrix-like object to a dense float64 numpy array.

    Accepts numpy arrays, nested sequences, pandas objects and SciPy sparse
    matrices.
    """
    if _is_sparse(A):
        return np.asarray(A.todense(), dtype=np.float64)
    if isinstance(A, (pd.DataFrame, pd.Series)):
        return A.to_numpy(dtype=np.float64)
    return np.asarray(A, dtype=np.float64)


def as_column(v: Matrix) -> NDArray[np.float64]:
    """Return ``v`` as an (n, 1) column."""
    vd = to_dense(v)
    return vd.reshape(-1, 1) if vd.ndim <= 1 else vd


def zeros(nrow: int, ncol: int) -> NDArray[np.float64]:
    return np.zeros((nrow, ncol), dtype=np.float64)


def eye(n: int) -> NDArray[np.float64]:
    return np.eye(n, dtype=np.float64)


def block_matrix(blocks: Sequence[Sequence[Matrix]]) -> NDArray[np.float64]:
    """Compose a block matrix from a grid of sub-matrices.

    Every block in a grid row must share its row count and every block in a
    grid column its column count; mismatches raise DimensionMismatchError.
    1-D blocks are treated as columns. Empty (zero-row or zero-column)
    blocks are allowed so that an unconstrained system still assembles.
    """
    grid = [[as_column(B) if np.ndim(B) <= 1 else to_dense(B) for B in row] for row in blocks]
    if not grid or not grid[0]:
        return zeros(0, 0)
    ncols = len(grid[0])
    for i, row in enumerate(grid):
        if len(row) != ncols:
            msg = f"block row {i} has {len(row)} blocks; expected {ncols}."
            raise DimensionMismatchError(msg)
        heights = {B.shape[0] for B in row}
        if len(heights) != 1:
            msg = f"blocks in block row {i} have different row counts: {sorted(heights)}."
            raise DimensionMismatchError(msg)
    for j in range(ncols):
        widths = {row[j].shape[1] for row in grid}
        if len(widths) != 1:
            msg = f"blocks in block column {j} have different column counts: {sorted(widths)}."
            raise DimensionMismatchError(msg)
    return np.block(grid).astype(np.float64, copy=False)


def dot(A: Matrix, B: Matrix) -> NDArray[np.float64]:
    """Matrix product with shape checks."""
    Ad = to_dense(A)
    Bd = to_dense(B)
    inner_a = Ad.shape[-1] if Ad.ndim else 1
    inner_b = Bd.shape[0] if Bd.ndim else 1
    if inner_a != inner_b:
        msg = f"cannot multiply shapes {Ad.shape} and {Bd.shape}."
        raise DimensionMismatchError(msg)
    return Ad @ Bd


def validate_weights(weights: Sequence[float], n: int) -> NDArray[np.float64]:
    """Return weights as a finite float64 array of shape (n,)."""
    w = np.asarray(weights, dtype=np.float64).reshape(-1)
    if w.shape[0] != n:
        msg = f"weights length ({w.shape[0]}) must match the number of rows ({n})."
        raise DimensionMismatchError(msg)
    if np.any(~np.isfinite(w)):
        msg = "weights must be finite."
        raise InvalidArgumentError(msg)
    return w


def gram(X: Matrix, weights: Sequence[float] | None) -> NDArray[np.float64]:
    """Compute X' W X with W = diag(w); if weights is None, W = I."""
    _assert_all_finite_matrix(X)
    Xd = to_dense(X)
    if weights is None:
        return (Xd.T @ Xd).astype(np.float64)
    w = validate_weights(weights, Xd.shape[0]).reshape(-1, 1)
    return (Xd.T @ (Xd * w)).astype(np.float64)


def xty(X: Matrix, y: Matrix, weights: Sequence[float] | None) -> NDArray[np.float64]:
    """Compute X' W y with W = diag(w) as an (p, k) array; W = I if weights is None."""
    Xd = to_dense(X)
    yd = as_column(y)
    _assert_all_finite_matrix(Xd, yd)
    if Xd.shape[0] != yd.shape[0]:
        msg = f"X has {Xd.shape[0]} rows but y has {yd.shape[0]}."
        raise DimensionMismatchError(msg)
    if weights is None:
        return (Xd.T @ yd).astype(np.float64)
    w = validate_weights(weights, Xd.shape[0]).reshape(-1, 1)
    return (Xd.T @ (yd * w)).astype(np.float64)


def svd(
    A: Matrix, full_matrices: bool = False,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Singular value decomposition ``A = U @ diag(s) @ Vt`` (s descending)."""
    Ad = to_dense(A)
    if Ad.ndim != 2:  # noqa: PLR2004
        msg = f"svd requires a 2-D matrix; got ndim={Ad.ndim}."
        raise DimensionMismatchError(msg)
    _assert_all_finite_matrix(Ad)
    return np.linalg.svd(Ad, full_matrices=full_matrices)


def matrix_rank(A: Matrix, *, tol: float | None = None) -> int:
    """Numerical rank from the SVD.

    The default tolerance is ``s_max * max(M, N) * eps``.
    """
    Ad = to_dense(A)
    if Ad.size == 0:
        return 0
    s = svd(Ad)[1]
    if tol is None:
        tol = float(s.max()) * max(Ad.shape) * float(np.finfo(np.float64).eps)
    return int(np.sum(s > tol))


def equals_matrix(
    A: Matrix, B: Matrix, comparator: DoubleComparator | None = None,
) -> bool:
    """Shape and element-wise equality under ``comparator`` (default fixed 1e-12)."""
    cmp = comparator if comparator is not None else DoubleComparator.DEFAULT
    return cmp.equals(to_dense(A), to_dense(B))


def copy_column(frame: pd.DataFrame, rows: Sequence[Hashable], column: Hashable) -> NDArray[np.float64]:
    """Read one numeric column of ``frame`` at ``rows`` into a 1-D array."""
    return copy_frame(frame, rows, [column]).reshape(-1)


def copy_frame(
    frame: pd.DataFrame, rows: Sequence[Hashable], columns: Sequence[Hashable],
) -> NDArray[np.float64]:
    """Read ``frame.loc[rows, columns]`` into a dense float64 (n, k) array.

    Unknown row or column keys raise UnknownKeyError; values that cannot be
    represented as float raise InvalidArgumentError.
    """
    missing_cols = [c for c in columns if c not in frame.columns]
    if missing_cols:
        msg = f"Columns not found in observation frame: {missing_cols}."
        raise UnknownKeyError(msg)
    missing_rows = [r for r in rows if r not in frame.index]
    if missing_rows:
        msg = f"Rows not found in observation frame: {missing_rows}."
        raise UnknownKeyError(msg)
    sub = frame.loc[list(rows), list(columns)]
    try:
        return sub.to_numpy(dtype=np.float64).reshape(len(rows), len(columns))
    except (TypeError, ValueError) as exc:
        msg = f"Columns {list(columns)} must be numeric."
        raise InvalidArgumentError(msg) from exc
