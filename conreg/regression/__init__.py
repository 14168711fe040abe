"""Constrained regression: constraints, model, system assembly and solver."""
from .constraint import CategoryConstraint, RegressionConstraint, RegressionConstraintSet
from .model import ConstrainedRegressionModel
from .result import ConstrainedRegressionField, ConstrainedRegressionResult
from .solver import ConstrainedRegressionSolver
from .system import ConstrainedRegressionSystem, normalize_weights

__all__ = [
    "CategoryConstraint",
    "ConstrainedRegressionField",
    "ConstrainedRegressionModel",
    "ConstrainedRegressionResult",
    "ConstrainedRegressionSolver",
    "ConstrainedRegressionSystem",
    "RegressionConstraint",
    "RegressionConstraintSet",
    "normalize_weights",
]
