from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest


def pytest_configure() -> None:
    """Ensure the repository root is on sys.path.

    Running pytest from inside the package directory would otherwise make
    the top-level ``conreg`` package unimportable.
    """

    repo_root = Path(__file__).resolve().parents[2]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


# Generated as X @ [10, 1, 2, -1, 3, -2, 4] plus noise in [0, 0.01].
REGRESSAND = [
    183.0012181126,
    105.0032366827,
    55.0053812157,
    22.0074937614,
    10.0050000000,
    8.0017131381,
    10.0033407762,
    6.0050872680,
    2.0020002797,
    -13.9976932756,
    -55.9980176488,
]

REGRESSORS = ["x0", "x1", "x2", "x3", "Ford", "GM", "BMW"]
CATEGORIES = ["Ford", "GM", "BMW"]


@pytest.fixture
def observations() -> pd.DataFrame:
    """Eleven observations of a cubic in x1 with three mutually exclusive makers."""
    x1 = np.arange(-5.0, 6.0)
    rows = [f"row{i}" for i in range(1, 12)]
    return pd.DataFrame(
        {
            "x0": 1.0,
            "x1": x1,
            # row8 deliberately carries 2.0 instead of 4.0
            "x2": [25.0, 16.0, 9.0, 4.0, 1.0, 0.0, 1.0, 2.0, 9.0, 16.0, 25.0],
            "x3": x1**3,
            "Ford": [1.0, 1.0, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
            "GM": [0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 0.0, 0.0],
            "BMW": [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0],
            "Regressand": REGRESSAND,
            "Weight": [1.0, 2.0, 3.0, 4.0, 0.0, 1.0, 2.0, 3.0, 1.0, 2.0, 1.0],
        },
        index=pd.Index(rows),
    )


@pytest.fixture
def descriptor_terms() -> pd.DataFrame:
    """One-row coefficient table for x1 + 2 x2 = 3."""
    return pd.DataFrame(
        [[0.0, 1.0, 2.0, 0.0]],
        index=["DescriptorConstraint"],
        columns=["x0", "x1", "x2", "x3"],
    )


@pytest.fixture
def auto_model(descriptor_terms):
    from conreg.regression.model import ConstrainedRegressionModel

    return (
        ConstrainedRegressionModel.build("Regressand", REGRESSORS)
        .with_weight("Weight")
        .add_constraint(descriptor_terms, 3.0)
        .add_category("AutoMaker", CATEGORIES)
    )
