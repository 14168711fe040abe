"""Floating-point comparison and interval primitives.

``DoubleComparator`` implementations decide equality and ordering of floats
within a tolerance: an absolute tolerance (``FixedDoubleComparator``) or one
that scales with the operands (``RelativeDoubleComparator``). Array and
matrix equality, sign tests and the weight checks of the regression system
all route through a comparator so that tolerance semantics are consistent.

``DoubleInterval`` is a bounded range of floats with open/closed ends whose
membership test uses ``DoubleComparator.DEFAULT``.
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import numpy as np

from conreg.core.errors import InvalidArgumentError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

__all__ = [
    "DoubleComparator",
    "DoubleInterval",
    "DoubleIntervalType",
    "FixedDoubleComparator",
    "RelativeDoubleComparator",
    "epsilon",
]


def epsilon() -> float:
    """Machine epsilon for float64 (~2.22e-16)."""
    return float(np.finfo(np.float64).eps)


class DoubleComparator(ABC):
    """Tolerance-aware three-way comparison of floats.

    Subclasses implement :meth:`compare_finite`; :meth:`compare` handles
    infinities and NaN with exact ordering (NaN equals NaN and sorts last,
    matching ``sorted`` with a total order).
    """

    DEFAULT: ClassVar[DoubleComparator]

    @staticmethod
    def fixed(tolerance: float) -> FixedDoubleComparator:
        return FixedDoubleComparator(tolerance)

    @staticmethod
    def relative(tolerance_factor: float) -> RelativeDoubleComparator:
        return RelativeDoubleComparator(tolerance_factor)

    @abstractmethod
    def compare_finite(self, x: float, y: float) -> int:
        """Three-way comparison of two finite floats."""

    def compare(self, x: float, y: float) -> int:
        x = float(x)
        y = float(y)
        if math.isfinite(x) and math.isfinite(y):
            return self.compare_finite(x, y)
        if math.isnan(x) or math.isnan(y):
            return (not math.isnan(y)) - (not math.isnan(x))
        return (x > y) - (x < y)

    def equals(self, x: ArrayLike, y: ArrayLike) -> bool:
        """Equality of scalars, vectors or matrices within tolerance.

        Arrays of different shapes are never equal.
        """
        xa = np.asarray(x, dtype=np.float64)
        ya = np.asarray(y, dtype=np.float64)
        if xa.shape != ya.shape:
            return False
        return all(self.compare(a, b) == 0 for a, b in zip(xa.ravel(), ya.ravel()))

    def is_negative(self, x: float) -> bool:
        return self.compare(x, 0.0) < 0

    def is_positive(self, x: float) -> bool:
        return self.compare(x, 0.0) > 0

    def is_zero(self, x: float) -> bool:
        return self.compare(x, 0.0) == 0

    def is_non_zero(self, x: float) -> bool:
        return self.compare(x, 0.0) != 0

    def is_non_negative(self, x: float) -> bool:
        return self.compare(x, 0.0) >= 0

    def is_non_positive(self, x: float) -> bool:
        return self.compare(x, 0.0) <= 0

    def sign(self, x: float) -> int:
        if self.is_negative(x):
            return -1
        if self.is_positive(x):
            return 1
        return 0

    def next_down(self, x: float) -> float:
        """Largest float strictly below ``x`` under this comparator."""
        return float(np.nextafter(x, -np.inf))

    def next_up(self, x: float) -> float:
        """Smallest float strictly above ``x`` under this comparator."""
        return float(np.nextafter(x, np.inf))


class FixedDoubleComparator(DoubleComparator):
    """Absolute tolerance: ``x == y`` iff ``|x - y| <= tolerance``."""

    DEFAULT_TOLERANCE: ClassVar[float] = 1.0e-12

    def __init__(self, tolerance: float = DEFAULT_TOLERANCE) -> None:
        if not tolerance > 0.0:
            msg = "Tolerance must be strictly positive."
            raise InvalidArgumentError(msg)
        self.tolerance = float(tolerance)

    def __repr__(self) -> str:
        return f"FixedDoubleComparator(tolerance={self.tolerance!r})"

    @staticmethod
    def compare_with_tolerance(x: float, y: float, tolerance: float) -> int:
        diff = x - y
        if diff < -tolerance:
            return -1
        if diff > tolerance:
            return 1
        return 0

    def compare_finite(self, x: float, y: float) -> int:
        return self.compare_with_tolerance(x, y, self.tolerance)

    def next_down(self, x: float) -> float:
        return float(np.nextafter(x - self.tolerance, -np.inf))

    def next_up(self, x: float) -> float:
        return float(np.nextafter(x + self.tolerance, np.inf))


class RelativeDoubleComparator(DoubleComparator):
    """Tolerance ``max(f, f * (|x| + |y|))`` for tolerance factor ``f``."""

    DEFAULT_TOLERANCE_FACTOR: ClassVar[float] = 1.0e-12

    def __init__(self, tolerance_factor: float = DEFAULT_TOLERANCE_FACTOR) -> None:
        if not tolerance_factor > 0.0:
            msg = "Tolerance factor must be strictly positive."
            raise InvalidArgumentError(msg)
        self.tolerance_factor = float(tolerance_factor)

    def __repr__(self) -> str:
        return f"RelativeDoubleComparator(tolerance_factor={self.tolerance_factor!r})"

    @staticmethod
    def compute_tolerance(x: float, y: float, factor: float) -> float:
        return max(factor, factor * (abs(x) + abs(y)))

    def compare_finite(self, x: float, y: float) -> int:
        tol = self.compute_tolerance(x, y, self.tolerance_factor)
        return FixedDoubleComparator.compare_with_tolerance(x, y, tol)


DoubleComparator.DEFAULT = FixedDoubleComparator()


class DoubleIntervalType(Enum):
    """End-point inclusion of an interval, keyed by its delimiters."""

    CLOSED = ("[", "]")
    LEFT_CLOSED = ("[", ")")
    LEFT_OPEN = ("(", "]")
    OPEN = ("(", ")")

    @property
    def lower_delim(self) -> str:
        return self.value[0]

    @property
    def upper_delim(self) -> str:
        return self.value[1]

    @property
    def includes_lower(self) -> bool:
        return self.lower_delim == "["

    @property
    def includes_upper(self) -> bool:
        return self.upper_delim == "]"

    @classmethod
    def from_delims(cls, lower: str, upper: str) -> DoubleIntervalType:
        for kind in cls:
            if kind.value == (lower, upper):
                return kind
        msg = f"No matching interval type for delimiters '{lower}' and '{upper}'."
        raise InvalidArgumentError(msg)

    def contains(self, value: float, lower: float, upper: float) -> bool:
        cmp = DoubleComparator.DEFAULT
        lo = cmp.compare(value, lower)
        hi = cmp.compare(value, upper)
        ok_lo = lo >= 0 if self.includes_lower else lo > 0
        ok_hi = hi <= 0 if self.includes_upper else hi < 0
        return ok_lo and ok_hi

    def get_min(self, lower: float) -> float:
        return lower if self.includes_lower else DoubleComparator.DEFAULT.next_up(lower)

    def get_max(self, upper: float) -> float:
        return upper if self.includes_upper else DoubleComparator.DEFAULT.next_down(upper)

    def bound(self, value: float, lower: float, upper: float) -> float:
        value = max(value, self.get_min(lower))
        return min(value, self.get_max(upper))


_INTERVAL_PAT = re.compile(r"^\s*([\[(])\s*([^,]+?)\s*,\s*([^,]+?)\s*([\])])\s*$")


class DoubleInterval:
    """Range of floats with open or closed end points, e.g. ``[0.0, 1.0)``."""

    EMPTY: ClassVar[DoubleInterval]
    FRACTIONAL: ClassVar[DoubleInterval]
    PERCENTILE: ClassVar[DoubleInterval]
    INFINITE: ClassVar[DoubleInterval]
    NEGATIVE: ClassVar[DoubleInterval]
    NON_NEGATIVE: ClassVar[DoubleInterval]
    NON_POSITIVE: ClassVar[DoubleInterval]
    POSITIVE: ClassVar[DoubleInterval]

    __slots__ = ("lower", "type", "upper")

    def __init__(self, type: DoubleIntervalType, lower: float, upper: float) -> None:  # noqa: A002
        self.type = type
        self.lower = float(lower)
        self.upper = float(upper)
        self.validate()

    @classmethod
    def open(cls, lower: float, upper: float) -> DoubleInterval:
        return cls(DoubleIntervalType.OPEN, lower, upper)

    @classmethod
    def left_open(cls, lower: float, upper: float) -> DoubleInterval:
        return cls(DoubleIntervalType.LEFT_OPEN, lower, upper)

    @classmethod
    def left_closed(cls, lower: float, upper: float) -> DoubleInterval:
        return cls(DoubleIntervalType.LEFT_CLOSED, lower, upper)

    @classmethod
    def closed(cls, lower: float, upper: float) -> DoubleInterval:
        return cls(DoubleIntervalType.CLOSED, lower, upper)

    @classmethod
    def parse(cls, text: str) -> DoubleInterval:
        """Parse the ``format()`` representation, e.g. ``"(0.0, 1.0]"``."""
        m = _INTERVAL_PAT.match(text)
        if m is None:
            msg = f"Invalid double interval: '{text}'"
            raise InvalidArgumentError(msg)
        kind = DoubleIntervalType.from_delims(m.group(1), m.group(4))
        try:
            lower = float(m.group(2))
            upper = float(m.group(3))
        except ValueError as exc:
            msg = f"Invalid double interval: '{text}'"
            raise InvalidArgumentError(msg) from exc
        return cls(kind, lower, upper)

    def validate(self) -> DoubleInterval:
        if math.isnan(self.lower) or math.isnan(self.upper) or self.lower > self.upper:
            msg = f"Invalid interval: [{self.lower}, {self.upper}]."
            raise InvalidArgumentError(msg)
        return self

    def validate_value(self, value: float, description: str) -> None:
        """Raise ``InvalidArgumentError`` unless ``value`` lies in the interval."""
        if not self.contains(value):
            msg = f"Invalid {description} [{value}]."
            raise InvalidArgumentError(msg)

    def bound(self, value: float) -> float:
        return self.type.bound(value, self.lower, self.upper)

    def contains(self, value: float | DoubleInterval) -> bool:
        if isinstance(value, DoubleInterval):
            # open end points are not members, so compare the bounds directly
            lower_ok = self.contains(value.lower) or self._equals_lower(value)
            upper_ok = self.contains(value.upper) or self._equals_upper(value)
            return lower_ok and upper_ok
        return self.type.contains(value, self.lower, self.upper)

    __contains__ = contains

    def __call__(self, value: float) -> bool:
        return self.contains(value)

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.lower + self.upper)

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def is_finite(self) -> bool:
        return math.isfinite(self.lower) and math.isfinite(self.upper)

    def format(self) -> str:
        return (
            f"{self.type.lower_delim}{_format_bound(self.lower)}, "
            f"{_format_bound(self.upper)}{self.type.upper_delim}"
        )

    def _equals_lower(self, other: DoubleInterval) -> bool:
        return self.type is other.type and DoubleComparator.DEFAULT.equals(self.lower, other.lower)

    def _equals_upper(self, other: DoubleInterval) -> bool:
        return self.type is other.type and DoubleComparator.DEFAULT.equals(self.upper, other.upper)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DoubleInterval):
            return NotImplemented
        return self._equals_lower(other) and self._equals_upper(other)

    def __hash__(self) -> int:
        return hash((self.type, round(self.lower, 9), round(self.upper, 9)))

    def __repr__(self) -> str:
        return f"DoubleInterval({self.format()})"

    __str__ = format


def _format_bound(x: float) -> str:
    if math.isinf(x):
        return "-Infinity" if x < 0 else "Infinity"
    text = f"{x:.8f}".rstrip("0")
    return text + "0" if text.endswith(".") else text


DoubleInterval.EMPTY = DoubleInterval.open(0.0, 0.0)
DoubleInterval.FRACTIONAL = DoubleInterval.closed(0.0, 1.0)
DoubleInterval.PERCENTILE = DoubleInterval.closed(0.0, 100.0)
DoubleInterval.INFINITE = DoubleInterval.closed(-math.inf, math.inf)
DoubleInterval.NEGATIVE = DoubleInterval.left_closed(-math.inf, 0.0)
DoubleInterval.NON_NEGATIVE = DoubleInterval.closed(0.0, math.inf)
DoubleInterval.NON_POSITIVE = DoubleInterval.closed(-math.inf, 0.0)
DoubleInterval.POSITIVE = DoubleInterval.left_open(0.0, math.inf)
