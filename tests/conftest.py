"""Shared fixtures for the loneliness_mi tests."""

import os
import sys

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'analysis'))

from loneliness_mi.synthetic import CohortDGP  # noqa: E402


@pytest.fixture
def five_rows():
    """A/B/C table with patterns FFF, FFF, TFF, FTF, TTT (True = missing)"""
    return pd.DataFrame({
        'A': [1.0, 2.0, np.nan, 4.0, np.nan],
        'B': [1.0, 2.0, 3.0, np.nan, np.nan],
        'C': [1.0, 2.0, 3.0, 4.0, np.nan],
    })


@pytest.fixture
def visits():
    """Visit-level UCLA table for three persons; collection starts 2019-01-01"""
    return pd.DataFrame({
        'visit_id': ['v1', 'v2', 'v3', 'v4', 'v5', 'v6'],
        'person_id': ['p1', 'p1', 'p1', 'p2', 'p2', 'p3'],
        'visit_date': pd.to_datetime([
            '2018-06-01', '2019-02-01', '2019-03-01',
            '2019-05-01', '2019-01-15', '2018-03-01',
        ]),
        'ucla_1': [1, 2, 1, 3, 2, 1],
        'ucla_2': [1, np.nan, 2, 3, 2, 1],
    })


@pytest.fixture
def numeric_table():
    """Correlated numeric predictors with ~15% missing per column plus an id"""
    rng = np.random.RandomState(0)
    n = 120
    x1 = rng.normal(0, 1, n)
    x2 = 0.8 * x1 + rng.normal(0, 0.5, n)
    x3 = -0.5 * x1 + 0.3 * x2 + rng.normal(0, 0.5, n)
    df = pd.DataFrame({'x1': x1, 'x2': x2, 'x3': x3})
    for col in ['x2', 'x3']:
        df.loc[rng.uniform(size=n) < 0.15, col] = np.nan
    df.insert(0, 'visit_id', [f"V{i:04d}" for i in range(n)])
    return df


@pytest.fixture(scope='session')
def synthetic_inputs():
    sources, labels = CohortDGP(n_persons=120, random_state=7).generate()
    return sources, labels
