"""conreg: weighted least squares with linear equality constraints.

Build a :class:`ConstrainedRegressionModel`, solve it against a pandas
DataFrame of observations with :class:`ConstrainedRegressionSolver`, and read
coefficients, Lagrange multipliers, fitted values and residuals from the
returned :class:`ConstrainedRegressionResult`.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "SVD",
    "CategoryConstraint",
    "ConstrainedRegressionField",
    "ConstrainedRegressionModel",
    "ConstrainedRegressionResult",
    "ConstrainedRegressionSolver",
    "ConstrainedRegressionSystem",
    "DoubleComparator",
    "DoubleInterval",
    "DoubleIntervalType",
    "FixedDoubleComparator",
    "RegressionConstraint",
    "RegressionConstraintSet",
    "RelativeDoubleComparator",
    "SVDSolver",
    "SolverConfig",
    "WormMap",
    "regression_summary",
    "result_frame",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "CategoryConstraint": ("conreg.regression.constraint", "CategoryConstraint"),
    "RegressionConstraint": ("conreg.regression.constraint", "RegressionConstraint"),
    "RegressionConstraintSet": ("conreg.regression.constraint", "RegressionConstraintSet"),
    "ConstrainedRegressionModel": ("conreg.regression.model", "ConstrainedRegressionModel"),
    "ConstrainedRegressionSystem": ("conreg.regression.system", "ConstrainedRegressionSystem"),
    "ConstrainedRegressionSolver": ("conreg.regression.solver", "ConstrainedRegressionSolver"),
    "ConstrainedRegressionField": ("conreg.regression.result", "ConstrainedRegressionField"),
    "ConstrainedRegressionResult": ("conreg.regression.result", "ConstrainedRegressionResult"),
    "SVD": ("conreg.core.svd", "SVD"),
    "SVDSolver": ("conreg.core.svd", "SVDSolver"),
    "SolverConfig": ("conreg.core.config", "SolverConfig"),
    "DoubleComparator": ("conreg.core.numeric", "DoubleComparator"),
    "FixedDoubleComparator": ("conreg.core.numeric", "FixedDoubleComparator"),
    "RelativeDoubleComparator": ("conreg.core.numeric", "RelativeDoubleComparator"),
    "DoubleInterval": ("conreg.core.numeric", "DoubleInterval"),
    "DoubleIntervalType": ("conreg.core.numeric", "DoubleIntervalType"),
    "WormMap": ("conreg.utils.worm", "WormMap"),
    "regression_summary": ("conreg.output.summary", "regression_summary"),
    "result_frame": ("conreg.output.summary", "result_frame"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public classes and functions on first access."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'conreg' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure dir() exposes lazily imported names."""
    return sorted(set(globals()) | set(__all__))
