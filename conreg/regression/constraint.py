"""Linear equality constraints on regression coefficients.

A ``RegressionConstraint`` represents ``sum_k terms[k] * beta[k] = value``.
``CategoryConstraint.build`` derives the identifying constraint for a group
of category indicator regressors, and ``RegressionConstraintSet`` validates
that a collection of constraints is linearly independent.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from conreg.core import linalg as la
from conreg.core.errors import (
    DuplicateKeyError,
    InvalidArgumentError,
    RankDeficientError,
    UnknownKeyError,
)
from conreg.utils.constraints import parse_linear_equality

LOGGER = logging.getLogger(__name__)

__all__ = ["CategoryConstraint", "RegressionConstraint", "RegressionConstraintSet"]


def _as_terms(terms: Mapping[Hashable, float] | pd.Series) -> pd.Series:
    try:
        s = pd.Series(terms, dtype=np.float64) if not isinstance(terms, pd.Series) else terms.astype(np.float64)
    except (TypeError, ValueError) as exc:
        msg = "Constraint terms must be numeric."
        raise InvalidArgumentError(msg) from exc
    if s.empty:
        msg = "Constraint terms must be non-empty."
        raise InvalidArgumentError(msg)
    if not s.index.is_unique:
        msg = f"Constraint terms contain duplicate regressors: {list(s.index[s.index.duplicated()])}."
        raise DuplicateKeyError(msg)
    if not np.all(np.isfinite(s.to_numpy())):
        msg = "Constraint terms must be finite."
        raise InvalidArgumentError(msg)
    return s.copy()


@dataclass(frozen=True)
class RegressionConstraint:
    """Named linear equality ``sum(terms[k] * beta[k]) = value``."""

    name: str
    value: float
    terms: pd.Series = field(compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", _as_terms(self.terms))
        object.__setattr__(self, "value", float(self.value))
        if not math.isfinite(self.value):
            msg = f"Constraint '{self.name}' has a non-finite value."
            raise InvalidArgumentError(msg)

    @classmethod
    def from_frame(cls, terms_frame: pd.DataFrame | pd.Series, value: float) -> RegressionConstraint:
        """Build a constraint from a one-row table of coefficients.

        The row key names the constraint and the columns are regressors. A
        Series is accepted as well and is named by ``Series.name``.
        """
        if isinstance(terms_frame, pd.Series):
            if terms_frame.name is None:
                msg = "Constraint Series must be named."
                raise InvalidArgumentError(msg)
            return cls(str(terms_frame.name), value, terms_frame)
        if terms_frame.shape[0] != 1:
            msg = f"Constraint frame must have exactly one row; got {terms_frame.shape[0]}."
            raise InvalidArgumentError(msg)
        return cls(str(terms_frame.index[0]), value, terms_frame.iloc[0])

    @classmethod
    def parse(cls, name: str, expression: str, regressor_keys: Sequence[Hashable]) -> RegressionConstraint:
        """Build a constraint from text such as ``"x1 + 2*x2 = 3"``."""
        terms, value = parse_linear_equality(expression, regressor_keys)
        return cls(name, value, pd.Series(terms, dtype=np.float64))

    def list_regressors(self) -> list[Hashable]:
        return list(self.terms.index)

    def get_term(self, regressor: Hashable) -> float:
        """Coefficient of ``regressor`` (0.0 if not referenced)."""
        return float(self.terms.get(regressor, 0.0))

    def evaluate(self, beta: Mapping[Hashable, float] | pd.Series) -> float:
        """Left-hand side ``sum(terms[k] * beta[k])`` at the given coefficients."""
        return float(sum(coef * float(beta[key]) for key, coef in self.terms.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegressionConstraint):
            return NotImplemented
        return (
            self.name == other.name
            and self.value == other.value
            and self.terms.index.equals(other.terms.index)
            and la.equals_matrix(self.terms.to_numpy(), other.terms.to_numpy())
        )

    def __hash__(self) -> int:
        return hash((self.name, self.value, tuple(self.terms.index)))


class CategoryConstraint:
    """Identifying constraint for a set of category indicator regressors.

    For category regressors ``k`` the term is the weighted mean of the
    indicator column, ``terms[k] = sum_i w_i x_ik`` with the observation
    weights normalised to sum to one over the rows of the observation table.
    When the indicators partition the observations the terms are the
    weight shares of the categories and sum to one. The value is zero.
    """

    RHS_VALUE = 0.0

    @staticmethod
    def build(
        name: str,
        category_keys: Iterable[Hashable],
        observations: pd.DataFrame,
        weights: pd.Series | Sequence[float] | None = None,
    ) -> RegressionConstraint:
        keys = list(dict.fromkeys(category_keys))
        if not keys:
            msg = f"Category '{name}' has no regressors."
            raise InvalidArgumentError(msg)
        rows = list(observations.index)
        X = la.copy_frame(observations, rows, keys)
        la.assert_all_finite(X)
        w = CategoryConstraint._weight_vector(weights, observations)
        total = float(np.sum(w))
        if not (math.isfinite(total) and total > 0.0):
            msg = f"Category '{name}' observation weights must have a positive sum."
            raise InvalidArgumentError(msg)
        terms = (w / total) @ X
        LOGGER.debug("category constraint '%s': %s", name, dict(zip(keys, terms)))
        return RegressionConstraint(name, CategoryConstraint.RHS_VALUE, pd.Series(terms, index=keys))

    @staticmethod
    def _weight_vector(
        weights: pd.Series | Sequence[float] | None, observations: pd.DataFrame,
    ) -> np.ndarray:
        n = observations.shape[0]
        if weights is None:
            return np.ones(n, dtype=np.float64)
        if isinstance(weights, pd.Series):
            missing = observations.index.difference(weights.index)
            if len(missing) > 0:
                msg = f"Observation weights missing for rows: {list(missing)}."
                raise UnknownKeyError(msg)
            w = weights.reindex(observations.index).to_numpy(dtype=np.float64)
        else:
            w = la.validate_weights(weights, n)
        if np.any(~np.isfinite(w)) or np.any(w < 0.0):
            msg = "Observation weights must be finite and non-negative."
            raise InvalidArgumentError(msg)
        return w


class RegressionConstraintSet:
    """Ordered, uniquely named, linearly independent constraints."""

    __slots__ = ("_constraints", "_regressors")

    def __init__(self, constraints: Iterable[RegressionConstraint] = ()) -> None:
        self._constraints: dict[str, RegressionConstraint] = {}
        regressors: dict[Hashable, None] = {}
        for con in constraints:
            if con.name in self._constraints:
                msg = f"Duplicate regression constraint: '{con.name}'."
                raise DuplicateKeyError(msg)
            self._constraints[con.name] = con
            regressors.update(dict.fromkeys(con.list_regressors()))
        self._regressors: tuple[Hashable, ...] = tuple(regressors)
        self._validate_rank()

    @classmethod
    def create(cls, constraints: Iterable[RegressionConstraint]) -> RegressionConstraintSet:
        return cls(constraints)

    def _validate_rank(self) -> None:
        if not self._constraints:
            return
        A = self.get_constraint_matrix(self._regressors)
        rank = la.matrix_rank(A)
        required = self.count_constraints()
        if rank != required:
            msg = f"The constraint set is rank-deficient: [{rank} < {required}]."
            raise RankDeficientError(msg)

    def __iter__(self):
        return iter(self._constraints.values())

    def __len__(self) -> int:
        return len(self._constraints)

    def __getitem__(self, name: str) -> RegressionConstraint:
        try:
            return self._constraints[name]
        except KeyError as exc:
            msg = f"No constraint named '{name}'."
            raise UnknownKeyError(msg) from exc

    def contains_constraint(self, name: str) -> bool:
        return name in self._constraints

    def contains_regressor(self, regressor: Hashable) -> bool:
        return regressor in self._regressors

    def count_constraints(self) -> int:
        return len(self._constraints)

    def count_regressors(self) -> int:
        """Number of distinct regressors referenced by any constraint."""
        return len(self._regressors)

    def get_constraint_names(self) -> list[str]:
        return list(self._constraints)

    def list_regressors(self) -> list[Hashable]:
        return list(self._regressors)

    def get_constraint_matrix(self, regressor_keys: Sequence[Hashable]) -> np.ndarray:
        """Constraint coefficients as an (m, len(regressor_keys)) matrix.

        Columns follow the caller's ordering and are zero for regressors no
        constraint references. Every referenced regressor must appear in
        ``regressor_keys``.
        """
        keys = list(regressor_keys)
        missing = [k for k in self._regressors if k not in keys]
        if missing:
            msg = f"Constrained regressors missing from column keys: {missing}."
            raise UnknownKeyError(msg)
        A = la.zeros(self.count_constraints(), len(keys))
        for i, con in enumerate(self._constraints.values()):
            A[i, :] = con.terms.reindex(keys, fill_value=0.0).to_numpy(dtype=np.float64)
        return A

    def get_constraint_values(self) -> np.ndarray:
        return np.array([con.value for con in self._constraints.values()], dtype=np.float64)

    def __repr__(self) -> str:
        return f"RegressionConstraintSet({self.get_constraint_names()!r})"
