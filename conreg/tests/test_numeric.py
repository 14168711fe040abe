import math

import numpy as np
import pytest

from conreg.core.errors import InvalidArgumentError
from conreg.core.numeric import (
    DoubleComparator,
    DoubleInterval,
    DoubleIntervalType,
    FixedDoubleComparator,
    RelativeDoubleComparator,
    epsilon,
)

# ---------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------


def test_epsilon_is_float64_machine_epsilon():
    assert epsilon() == pytest.approx(2.220446049250313e-16)


def test_comparator_base_is_abstract():
    with pytest.raises(TypeError):
        DoubleComparator()

    class Partial(DoubleComparator):
        pass

    with pytest.raises(TypeError):
        Partial()


def test_fixed_comparator_default_tolerance():
    cmp = DoubleComparator.DEFAULT
    assert isinstance(cmp, FixedDoubleComparator)
    assert cmp.tolerance == 1.0e-12
    assert cmp.equals(1.0, 1.0 + 5.0e-13)
    assert not cmp.equals(1.0, 1.0 + 5.0e-12)
    assert cmp.compare(1.0, 2.0) == -1
    assert cmp.compare(2.0, 1.0) == 1


def test_fixed_comparator_sign_helpers():
    cmp = FixedDoubleComparator(0.01)
    assert cmp.is_zero(0.005)
    assert cmp.is_non_negative(-0.005)
    assert cmp.is_negative(-0.02)
    assert cmp.is_positive(0.02)
    assert cmp.is_non_zero(0.02)
    assert cmp.is_non_positive(0.0)
    assert [cmp.sign(x) for x in (-1.0, -0.001, 0.0, 0.001, 1.0)] == [-1, 0, 0, 0, 1]


def test_comparator_handles_non_finite_values():
    cmp = DoubleComparator.DEFAULT
    assert cmp.equals(math.inf, math.inf)
    assert cmp.compare(-math.inf, 0.0) == -1
    assert cmp.equals(math.nan, math.nan)
    assert cmp.compare(1.0, math.nan) == -1


def test_relative_comparator_scales_with_magnitude():
    cmp = DoubleComparator.relative(1.0e-6)
    assert isinstance(cmp, RelativeDoubleComparator)
    assert cmp.equals(1.0e6, 1.0e6 + 1.0)
    assert not cmp.equals(1.0, 1.0 + 1.0e-5)
    # absolute floor near zero
    assert cmp.equals(0.0, 5.0e-7)
    assert RelativeDoubleComparator.compute_tolerance(100.0, -100.0, 0.01) == pytest.approx(2.0)


def test_comparator_equality_for_arrays():
    cmp = FixedDoubleComparator(1.0e-8)
    A = np.array([[1.0, 2.0], [3.0, 4.0]])
    assert cmp.equals(A, A + 1.0e-9)
    assert not cmp.equals(A, A + 1.0e-6)
    assert not cmp.equals(A, A[:, :1])
    assert cmp.equals([1.0, 2.0], np.array([1.0, 2.0]))


@pytest.mark.parametrize("bad", [0.0, -1.0e-12])
def test_comparator_rejects_non_positive_tolerance(bad):
    with pytest.raises(InvalidArgumentError):
        FixedDoubleComparator(bad)
    with pytest.raises(ValueError):
        RelativeDoubleComparator(bad)


def test_next_up_and_down_step_past_tolerance():
    cmp = FixedDoubleComparator(1.0e-6)
    up = cmp.next_up(1.0)
    down = cmp.next_down(1.0)
    assert cmp.compare(up, 1.0) == 1
    assert cmp.compare(down, 1.0) == -1


# ---------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------


def test_interval_membership_by_type():
    assert DoubleInterval.closed(0.0, 1.0).contains(1.0)
    assert not DoubleInterval.open(0.0, 1.0).contains(1.0)
    assert DoubleInterval.left_closed(0.0, 1.0).contains(0.0)
    assert not DoubleInterval.left_closed(0.0, 1.0).contains(1.0)
    assert DoubleInterval.left_open(0.0, 1.0).contains(1.0)
    assert not DoubleInterval.left_open(0.0, 1.0).contains(0.0)
    # membership uses the default comparator tolerance
    assert DoubleInterval.closed(0.0, 1.0).contains(1.0 + 1.0e-13)
    assert 0.5 in DoubleInterval.FRACTIONAL


def test_interval_constants():
    assert DoubleInterval.POSITIVE.contains(1.0e-6)
    assert not DoubleInterval.POSITIVE.contains(0.0)
    assert DoubleInterval.NON_NEGATIVE.contains(0.0)
    assert DoubleInterval.NEGATIVE.contains(-1.0)
    assert not DoubleInterval.NEGATIVE.contains(0.0)
    assert DoubleInterval.NON_POSITIVE.contains(0.0)
    assert DoubleInterval.INFINITE.contains(-1.0e300)
    assert not DoubleInterval.EMPTY.contains(0.0)
    assert DoubleInterval.PERCENTILE.contains(100.0)
    assert not DoubleInterval.INFINITE.is_finite()
    assert DoubleInterval.FRACTIONAL.is_finite()


def test_interval_contains_interval():
    outer = DoubleInterval.open(0.0, 10.0)
    assert outer.contains(DoubleInterval.open(0.0, 10.0))
    assert outer.contains(DoubleInterval.closed(1.0, 9.0))
    assert not outer.contains(DoubleInterval.closed(0.0, 9.0))


def test_interval_bound_and_geometry():
    iv = DoubleInterval.closed(2.0, 6.0)
    assert iv.bound(10.0) == 6.0
    assert iv.bound(-1.0) == 2.0
    assert iv.bound(3.0) == 3.0
    assert iv.midpoint == 4.0
    assert iv.width == 4.0
    opened = DoubleInterval.open(2.0, 6.0)
    assert opened.bound(10.0) < 6.0
    assert opened.contains(opened.bound(10.0))


def test_interval_format_parse_round_trip():
    iv = DoubleInterval.left_open(-1.5, 2.25)
    text = iv.format()
    assert text == "(-1.5, 2.25]"
    assert DoubleInterval.parse(text) == iv
    assert DoubleInterval.parse(" [0, 1) ").type is DoubleIntervalType.LEFT_CLOSED
    assert DoubleInterval.parse(DoubleInterval.INFINITE.format()) == DoubleInterval.INFINITE


@pytest.mark.parametrize("text", ["", "[1.0]", "{0, 1}", "[a, b]", "[2, 1]"])
def test_interval_parse_rejects_malformed_text(text):
    with pytest.raises(InvalidArgumentError):
        DoubleInterval.parse(text)


def test_interval_validation():
    with pytest.raises(InvalidArgumentError):
        DoubleInterval.closed(1.0, 0.0)
    with pytest.raises(InvalidArgumentError):
        DoubleInterval.closed(math.nan, 0.0)
    with pytest.raises(InvalidArgumentError, match="Invalid weight"):
        DoubleInterval.NON_NEGATIVE.validate_value(-1.0, "weight")
