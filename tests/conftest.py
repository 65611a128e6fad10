"""Shared fixtures: small hand-checked frames and a simulated screening dataset."""

import numpy as np
import pandas as pd
import pytest

from tblsummary.cleaning import clean_diabetes
from tblsummary.io import load_dataset


@pytest.fixture
def small_df():
    """Ten rows; 'color' has two missing values (red=5, blue=3)."""
    return load_dataset({
        "group": ["a", "b", "a", "b", "a", "b", "a", "b", "a", "b"],
        "color": ["red", "blue", None, "red", "red", "blue", "blue", None, "red", "red"],
        "score": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0],
        "smoker": [0, 1, 0, 0, 1, 1, 0, 0, 1, 0],
    })


@pytest.fixture
def raw_diabetes():
    """Simulated screening data in the raw layout (zeros encode missing)."""
    rng = np.random.default_rng(20240501)
    n = 240
    age = rng.integers(21, 70, size=n)
    pregnant = rng.integers(0, 11, size=n)
    glucose = rng.normal(120, 30, size=n).round().clip(40, 200)
    mass = rng.normal(32, 7, size=n).round(1).clip(18, 60)
    logit = -8 + 0.04 * glucose + 0.08 * mass + 0.02 * age
    diabetes = (rng.random(n) < 1 / (1 + np.exp(-logit))).astype(int)

    df = pd.DataFrame({
        "Pregnant": pregnant,
        "Glucose": glucose,
        "Pressure": rng.normal(72, 12, size=n).round().clip(30, 120),
        "Triceps": rng.normal(29, 10, size=n).round().clip(5, 60),
        "Insulin": rng.gamma(2.0, 60.0, size=n).round().clip(10, None),
        "Mass": mass,
        "Pedigree": rng.gamma(2.0, 0.25, size=n).round(3),
        "Age": age,
        "Diabetes": diabetes,
    })
    df.loc[:4, "Glucose"] = 0
    df.loc[5:7, "Mass"] = 0
    df.loc[::4, "Insulin"] = 0
    return df


@pytest.fixture
def diabetes_df(raw_diabetes):
    df, _ = clean_diabetes(raw_diabetes)
    return df
