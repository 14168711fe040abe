"""Immutable description of a constrained regression problem.

A model names the regressand, the regressors, an optional weight column and
zero or more linear equality constraints. Every ``with_*``/``add_*`` method
validates the change and returns a new model; the receiver is never
modified.

Examples
--------
>>> model = (
...     ConstrainedRegressionModel.build("y", ["x0", "x1", "Ford", "GM"])
...     .with_weight("w")
...     .add_expression("Slope", "x1 = 1")
...     .add_category("AutoMaker", ["Ford", "GM"])
... )
>>> model.get_constraint_keys()
['Slope', 'AutoMaker']
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Sequence
from typing import TYPE_CHECKING

import pandas as pd

from conreg.core.errors import InvalidArgumentError, UnknownKeyError
from conreg.regression.constraint import (
    CategoryConstraint,
    RegressionConstraint,
    RegressionConstraintSet,
)
from conreg.utils.constraints import split_constraint_items
from conreg.utils.worm import WormMap

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from conreg.core.config import SolverConfig
    from conreg.regression.system import ConstrainedRegressionSystem

LOGGER = logging.getLogger(__name__)

__all__ = ["ConstrainedRegressionModel"]


class ConstrainedRegressionModel:
    """Regressand, regressors, optional weight column and named constraints."""

    __slots__ = ("_constraint_set", "_constraints", "regressand", "regressors", "weight")

    def __init__(
        self,
        regressand: Hashable,
        regressors: Sequence[Hashable],
        weight: Hashable | None = None,
        constraints: WormMap[str, RegressionConstraint] | None = None,
    ) -> None:
        regs = tuple(regressors)
        if not regs:
            msg = "A regression model needs at least one regressor."
            raise InvalidArgumentError(msg)
        if len(set(regs)) != len(regs):
            dups = sorted({str(k) for k in regs if regs.count(k) > 1})
            msg = f"Duplicate regressors: {dups}."
            raise InvalidArgumentError(msg)
        if regressand in regs:
            msg = f"Regressand '{regressand}' cannot also be a regressor."
            raise InvalidArgumentError(msg)
        if weight is not None and (weight == regressand or weight in regs):
            msg = f"Weight column '{weight}' cannot be the regressand or a regressor."
            raise InvalidArgumentError(msg)
        cons = constraints if constraints is not None else WormMap()
        for con in cons.values():
            unknown = [k for k in con.list_regressors() if k not in regs]
            if unknown:
                msg = f"Constraint '{con.name}' references unknown regressors: {unknown}."
                raise UnknownKeyError(msg)
        self.regressand = regressand
        self.regressors: tuple[Hashable, ...] = regs
        self.weight = weight
        self._constraints = cons
        self._constraint_set = RegressionConstraintSet(cons.values())

    @classmethod
    def build(cls, regressand: Hashable, regressor_keys: Iterable[Hashable]) -> ConstrainedRegressionModel:
        """Model with no weight and no constraints."""
        return cls(regressand, tuple(regressor_keys))

    def _replace(self, **changes: object) -> ConstrainedRegressionModel:
        kwargs = {
            "regressand": self.regressand,
            "regressors": self.regressors,
            "weight": self.weight,
            "constraints": self._constraints,
        }
        kwargs.update(changes)
        return ConstrainedRegressionModel(**kwargs)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Transformations (each returns a new model)
    # ------------------------------------------------------------------
    def with_weight(self, key: Hashable) -> ConstrainedRegressionModel:
        return self._replace(weight=key)

    def without_weight(self) -> ConstrainedRegressionModel:
        return self._replace(weight=None)

    def with_constraint(self, constraint: RegressionConstraint) -> ConstrainedRegressionModel:
        """Add a prebuilt constraint.

        Raises DuplicateKeyError for a repeated name, UnknownKeyError for a
        term outside the regressors and RankDeficientError if the constraint
        is linearly dependent on the existing ones.
        """
        model = self._replace(constraints=self._constraints.put(constraint.name, constraint))
        LOGGER.debug("model: added constraint '%s' (%d total)", constraint.name, model.count_constraints())
        return model

    def add_constraint(self, terms_frame: pd.DataFrame | pd.Series, value: float) -> ConstrainedRegressionModel:
        """Add a constraint named by the single row key of ``terms_frame``."""
        return self.with_constraint(RegressionConstraint.from_frame(terms_frame, value))

    def add_expression(self, name: str, expression: str) -> ConstrainedRegressionModel:
        """Add a constraint written as text, e.g. ``"x1 + 2*x2 = 3"``."""
        return self.with_constraint(RegressionConstraint.parse(name, expression, self.regressors))

    def add_expressions(self, body: str) -> ConstrainedRegressionModel:
        """Add several ``;``/``,`` separated equalities, each named by its text.

        ``"x1 = 0; x2 + x3 = 1"`` adds constraints named ``"x1 = 0"`` and
        ``"x2 + x3 = 1"``.
        """
        model = self
        for item in split_constraint_items(body):
            model = model.add_expression(" ".join(item.split()), item)
        return model

    def add_category(
        self,
        name: str,
        category_keys: Iterable[Hashable],
        observations: pd.DataFrame | None = None,
        weights: pd.Series | Sequence[float] | None = None,
    ) -> ConstrainedRegressionModel:
        """Add the identifying constraint for a group of category regressors.

        Without ``observations`` the constraint is ``sum_k beta_k = 0`` over
        the category keys. With an observation table the terms are the
        weighted category shares from :class:`CategoryConstraint`; weights
        default to the model's weight column when the table carries it.
        """
        keys = list(dict.fromkeys(category_keys))
        unknown = [k for k in keys if k not in self.regressors]
        if unknown:
            msg = f"Category '{name}' references unknown regressors: {unknown}."
            raise UnknownKeyError(msg)
        if observations is None:
            con = RegressionConstraint(name, CategoryConstraint.RHS_VALUE, pd.Series(1.0, index=keys))
        else:
            if weights is None and self.weight is not None and self.weight in observations.columns:
                weights = observations[self.weight]
            con = CategoryConstraint.build(name, keys, observations, weights)
        return self.with_constraint(con)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def contains_constraint(self, name: str) -> bool:
        return name in self._constraints

    def contains_regressor(self, key: Hashable) -> bool:
        return key in self.regressors

    def count_constraints(self) -> int:
        return len(self._constraints)

    def count_regressors(self) -> int:
        return len(self.regressors)

    def get_constraint_keys(self) -> list[str]:
        return list(self._constraints)

    def get_constraint(self, name: str) -> RegressionConstraint:
        if name not in self._constraints:
            msg = f"No constraint named '{name}'."
            raise UnknownKeyError(msg)
        return self._constraints[name]

    def get_constraint_set(self) -> RegressionConstraintSet:
        return self._constraint_set

    def get_constraint_matrix(self) -> NDArray[np.float64]:
        """(m, p) constraint coefficients in regressor order; (0, p) if none."""
        return self._constraint_set.get_constraint_matrix(self.regressors)

    def get_constraint_values(self) -> NDArray[np.float64]:
        return self._constraint_set.get_constraint_values()

    def build_system(
        self,
        frame: pd.DataFrame,
        rows: Sequence[Hashable] | None = None,
        config: SolverConfig | None = None,
    ) -> ConstrainedRegressionSystem:
        """Assemble the augmented system of this model over ``frame``."""
        from conreg.regression.system import ConstrainedRegressionSystem

        return ConstrainedRegressionSystem.build(self, frame, rows, config)

    def __repr__(self) -> str:
        return (
            f"ConstrainedRegressionModel(regressand={self.regressand!r}, "
            f"regressors={list(self.regressors)!r}, weight={self.weight!r}, "
            f"constraints={self.get_constraint_keys()!r})"
        )
