"""Exception taxonomy for constrained regression.

Every error subclasses the built-in exception a caller would naturally catch
(``ValueError``, ``KeyError`` or ``numpy.linalg.LinAlgError``) so that code
written against plain NumPy/pandas semantics keeps working.
"""

from __future__ import annotations

import numpy as np

__all__ = [
    "ConregError",
    "DimensionMismatchError",
    "DuplicateKeyError",
    "InvalidArgumentError",
    "RankDeficientError",
    "SingularSystemError",
    "UnknownKeyError",
]


class ConregError(Exception):
    """Base class for all errors raised by conreg."""


class InvalidArgumentError(ConregError, ValueError):
    """Malformed threshold, non-finite input or otherwise invalid argument."""


class DimensionMismatchError(ConregError, ValueError):
    """Operands whose shapes disagree for the requested operation."""


class UnknownKeyError(ConregError, KeyError):
    """Reference to a regressor, column or row key that does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


class DuplicateKeyError(ConregError, KeyError):
    """Registration of a key (e.g. a constraint name) that already exists."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class RankDeficientError(ConregError, ValueError):
    """Constraint coefficient matrix without full row rank."""


class SingularSystemError(ConregError, np.linalg.LinAlgError):
    """Augmented system that cannot be solved directly."""
