"""Solver configuration.

``SolverConfig`` collects the knobs of :class:`ConstrainedRegressionSolver`.
Process-wide defaults can be set through environment variables:

- ``CONREG_SOLVE_METHOD``: ``"direct"`` (default) or ``"svd"``.
- ``CONREG_SINGULAR_VALUE_THRESHOLD``: float threshold for the SVD solver.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from conreg.core.errors import InvalidArgumentError
from conreg.core.numeric import FixedDoubleComparator, epsilon

__all__ = ["SOLVE_METHODS", "SolverConfig"]

SOLVE_METHODS: tuple[str, ...] = ("direct", "svd")


@dataclass(frozen=True)
class SolverConfig:
    """Configuration shared by the regression system and solver.

    Notes
    -----
    - method: "direct" solves the augmented system with an LU factorisation
      and fails on a singular matrix; "svd" returns the minimum-norm solution
      from the thresholded pseudo-inverse instead.
    - singular_value_threshold: None uses the size-scaled default of
      :class:`conreg.core.svd.SVDSolver`.
    - weight_tolerance: absolute tolerance for the sign checks on observation
      weights (a weight of -1e-13 is treated as zero).

    """

    method: str = "direct"
    singular_value_threshold: float | None = None
    weight_tolerance: float = FixedDoubleComparator.DEFAULT_TOLERANCE

    def __post_init__(self) -> None:
        if self.method not in SOLVE_METHODS:
            msg = f"method must be one of {SOLVE_METHODS}; got '{self.method}'."
            raise InvalidArgumentError(msg)
        thr = self.singular_value_threshold
        if thr is not None and not (math.isfinite(thr) and thr >= epsilon()):
            msg = f"Invalid singular value threshold: {thr}."
            raise InvalidArgumentError(msg)
        if not (math.isfinite(self.weight_tolerance) and self.weight_tolerance > 0.0):
            msg = "weight_tolerance must be a positive finite number."
            raise InvalidArgumentError(msg)

    @classmethod
    def from_env(cls) -> SolverConfig:
        """Build a configuration from ``CONREG_*`` environment variables."""
        method = str(os.environ.get("CONREG_SOLVE_METHOD", "direct")).strip().lower() or "direct"
        raw = str(os.environ.get("CONREG_SINGULAR_VALUE_THRESHOLD", "")).strip()
        threshold: float | None = None
        if raw:
            try:
                threshold = float(raw)
            except ValueError as exc:
                msg = f"CONREG_SINGULAR_VALUE_THRESHOLD is not a number: '{raw}'."
                raise InvalidArgumentError(msg) from exc
        return cls(method=method, singular_value_threshold=threshold)
