import numpy as np
import pandas as pd
import pytest

from conreg.core.errors import (
    DuplicateKeyError,
    InvalidArgumentError,
    RankDeficientError,
    UnknownKeyError,
)
from conreg.regression.constraint import (
    CategoryConstraint,
    RegressionConstraint,
    RegressionConstraintSet,
)
from conreg.utils.constraints import parse_linear_equality, split_constraint_items

COLUMNS = ["Col1", "Col2", "Col3", "Col4", "Col5"]

# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------


@pytest.fixture
def con1():
    return RegressionConstraint("Con1", 1.0, {"Col1": 1.0, "Col2": 2.0, "Col3": 3.0})


@pytest.fixture
def con2():
    return RegressionConstraint("Con2", 2.0, {"Col3": 3.0, "Col4": 4.0, "Col5": 5.0})


@pytest.fixture
def loadings():
    # partial category loadings: each row sums to one
    return pd.DataFrame(
        [
            [1.0, 0.0, 0.0],
            [0.8, 0.2, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.5, 0.5],
            [0.0, 0.1, 0.9],
            [0.0, 0.0, 1.0],
        ],
        index=[f"Obs{i}" for i in range(1, 7)],
        columns=["Cat1", "Cat2", "Cat3"],
    )


# ---------------------------------------------------------------------
# RegressionConstraint
# ---------------------------------------------------------------------


def test_constraint_terms_and_evaluation(con1):
    assert con1.list_regressors() == ["Col1", "Col2", "Col3"]
    assert con1.get_term("Col2") == 2.0
    assert con1.get_term("Col9") == 0.0
    assert con1.evaluate({"Col1": 1.0, "Col2": 0.0, "Col3": 0.0}) == pytest.approx(1.0)


def test_constraint_rejects_bad_terms():
    with pytest.raises(InvalidArgumentError):
        RegressionConstraint("Empty", 0.0, {})
    with pytest.raises(InvalidArgumentError):
        RegressionConstraint("NaN", 0.0, {"a": np.nan})
    with pytest.raises(InvalidArgumentError):
        RegressionConstraint("Inf", np.inf, {"a": 1.0})
    with pytest.raises(InvalidArgumentError, match="numeric"):
        RegressionConstraint("Text", 0.0, pd.Series({"a": "x"}))
    with pytest.raises(InvalidArgumentError, match="numeric"):
        RegressionConstraint("TextMap", 0.0, {"a": "x", "b": 1.0})


def test_constraint_from_one_row_frame():
    frame = pd.DataFrame([[0.0, 1.0, 2.0]], index=["Descriptor"], columns=["x0", "x1", "x2"])
    con = RegressionConstraint.from_frame(frame, 3.0)
    assert con.name == "Descriptor"
    assert con.value == 3.0
    assert con.terms.to_dict() == {"x0": 0.0, "x1": 1.0, "x2": 2.0}
    with pytest.raises(InvalidArgumentError):
        RegressionConstraint.from_frame(pd.concat([frame, frame.rename(index={"Descriptor": "B"})]), 3.0)


def test_constraint_equality_compares_terms(con1):
    same = RegressionConstraint("Con1", 1.0, pd.Series({"Col1": 1.0, "Col2": 2.0, "Col3": 3.0}))
    other = RegressionConstraint("Con1", 1.0, {"Col1": 1.0, "Col2": 2.0, "Col3": 3.5})
    assert con1 == same
    assert con1 != other


# ---------------------------------------------------------------------
# RegressionConstraintSet
# ---------------------------------------------------------------------


def test_constraint_set_matrix_and_values(con1, con2):
    cset = RegressionConstraintSet.create([con1, con2])
    assert cset.count_constraints() == 2
    assert cset.count_regressors() == 5
    assert cset.get_constraint_names() == ["Con1", "Con2"]
    assert cset.contains_constraint("Con2")
    assert not cset.contains_constraint("Con3")
    assert cset.contains_regressor("Col4")
    assert not cset.contains_regressor("Col6")

    A = cset.get_constraint_matrix(COLUMNS)
    assert np.array_equal(A, [[1.0, 2.0, 3.0, 0.0, 0.0], [0.0, 0.0, 3.0, 4.0, 5.0]])
    assert np.array_equal(cset.get_constraint_values(), [1.0, 2.0])


def test_constraint_matrix_follows_caller_order(con1, con2):
    cset = RegressionConstraintSet([con1, con2])
    keys = ["Col6", "Col5", "Col4", "Col3", "Col2", "Col1"]
    A = cset.get_constraint_matrix(keys)
    assert A.shape == (2, 6)
    assert np.array_equal(A[0], [0.0, 0.0, 0.0, 3.0, 2.0, 1.0])
    assert np.array_equal(A[1], [0.0, 5.0, 4.0, 3.0, 0.0, 0.0])
    with pytest.raises(UnknownKeyError):
        cset.get_constraint_matrix(["Col1", "Col2"])


def test_empty_constraint_set():
    cset = RegressionConstraintSet([])
    assert cset.count_constraints() == 0
    assert cset.get_constraint_matrix(COLUMNS).shape == (0, 5)
    assert cset.get_constraint_values().shape == (0,)


def test_duplicate_constraint_name(con1):
    with pytest.raises(DuplicateKeyError):
        RegressionConstraintSet([con1, RegressionConstraint("Con1", 5.0, {"Col4": 1.0})])


def test_rank_deficient_constraint_set():
    c1 = RegressionConstraint("C1", 1.0, {"Col1": 1.0, "Col2": 2.0, "Col3": 3.0})
    c2 = RegressionConstraint("C2", 2.0, {"Col1": 2.0, "Col2": 4.0, "Col3": 6.0})
    with pytest.raises(RankDeficientError, match="rank-deficient"):
        RegressionConstraintSet([c1, c2])


def test_rank_deficient_three_way_combination(con1, con2):
    combo = RegressionConstraint(
        "Con3", 3.0, {"Col1": 1.0, "Col2": 2.0, "Col3": 6.0, "Col4": 4.0, "Col5": 5.0},
    )
    with pytest.raises(RankDeficientError):
        RegressionConstraintSet([con1, con2, combo])


# ---------------------------------------------------------------------
# CategoryConstraint
# ---------------------------------------------------------------------


def test_category_constraint_weighted_terms(loadings):
    weights = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], index=loadings.index)
    con = CategoryConstraint.build("Category", ["Cat1", "Cat2", "Cat3"], loadings, weights)
    assert con.name == "Category"
    assert con.value == 0.0
    assert con.get_term("Cat1") == pytest.approx(2.6 / 21.0)
    assert con.get_term("Cat2") == pytest.approx(5.9 / 21.0)
    assert con.get_term("Cat3") == pytest.approx(12.5 / 21.0)
    assert np.allclose(con.terms.to_numpy(), [0.1238, 0.2810, 0.5952], atol=1e-4)
    assert con.terms.sum() == pytest.approx(1.0, abs=1e-9)


def test_category_constraint_partition_sums_to_one(observations):
    con = CategoryConstraint.build(
        "AutoMaker", ["Ford", "GM", "BMW"], observations, observations["Weight"],
    )
    assert con.terms.sum() == pytest.approx(1.0, abs=1e-9)
    assert con.get_term("Ford") == pytest.approx(6.0 / 20.0)
    assert con.get_term("GM") == pytest.approx(11.0 / 20.0)
    assert con.get_term("BMW") == pytest.approx(3.0 / 20.0)


def test_category_constraint_unweighted_shares(observations):
    con = CategoryConstraint.build("AutoMaker", ["Ford", "GM", "BMW"], observations)
    assert np.allclose(con.terms.to_numpy(), [3.0 / 11.0, 6.0 / 11.0, 2.0 / 11.0])


def test_category_constraint_requires_weights_for_every_row(loadings):
    partial = pd.Series([1.0, 1.0], index=["Obs1", "Obs2"])
    with pytest.raises(UnknownKeyError):
        CategoryConstraint.build("Category", ["Cat1", "Cat2"], loadings, partial)
    with pytest.raises(UnknownKeyError):
        CategoryConstraint.build("Category", ["Cat1", "Cat9"], loadings)
    with pytest.raises(InvalidArgumentError):
        CategoryConstraint.build("Category", ["Cat1"], loadings, [0.0] * 6)


# ---------------------------------------------------------------------
# Expression parsing
# ---------------------------------------------------------------------


def test_parse_linear_equality_moves_terms_left():
    terms, value = parse_linear_equality("2*x1 = x3 - 1", ["x1", "x2", "x3"])
    assert terms == {"x1": 2.0, "x3": -1.0}
    assert value == -1.0


def test_parse_bracketed_names_and_constants():
    keys = ["const", "log wage", "x"]
    terms, value = parse_linear_equality("_b[log wage] + 0.5 x - 2 = 1", keys)
    assert terms == {"log wage": 1.0, "x": 0.5}
    assert value == 3.0


def test_parse_matches_non_string_keys_by_name():
    terms, value = parse_linear_equality("_b[1] + _b[2] = 0", [1, 2, 3])
    assert terms == {1: 1.0, 2: 1.0}
    assert value == 0.0


@pytest.mark.parametrize(
    ("expr", "exc"),
    [
        ("x1 + x2", InvalidArgumentError),
        ("x1 = x2 = 0", InvalidArgumentError),
        ("x1 - x1 = 0", InvalidArgumentError),
        ("x1 + $ = 0", InvalidArgumentError),
        ("x9 = 0", UnknownKeyError),
    ],
)
def test_parse_rejects_malformed_expressions(expr, exc):
    with pytest.raises(exc):
        parse_linear_equality(expr, ["x1", "x2"])


def test_split_constraint_items():
    assert split_constraint_items("x1 = 0; _b[a,b] = 1, x2 = x3") == ["x1 = 0", "_b[a,b] = 1", "x2 = x3"]
    with pytest.raises(InvalidArgumentError):
        split_constraint_items("x1 = 0;; x2 = 1")


def test_parse_constraint_builds_regression_constraint():
    con = RegressionConstraint.parse("Slope", "x1 + 2*x2 = 3", ["x0", "x1", "x2"])
    assert con.name == "Slope"
    assert con.value == 3.0
    assert con.terms.to_dict() == {"x1": 1.0, "x2": 2.0}
