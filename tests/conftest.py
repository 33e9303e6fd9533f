"""
Shared pytest fixtures for cvstack tests.
"""

import logging

import numpy as np
import pandas as pd
import pytest
from cvstack.utils.random import make_rng
from sklearn.datasets import make_classification


@pytest.fixture
def gaussian_data():
    """Linear signal in x0/x1 plus two noise columns (120 rows)."""
    rng = make_rng(0)
    n = 120
    X = pd.DataFrame(rng.normal(size=(n, 4)), columns=["x0", "x1", "x2", "x3"])
    y = 1.0 + 2.0 * X["x0"].to_numpy() - X["x1"].to_numpy() + rng.normal(0, 0.5, n)
    return X, y


@pytest.fixture
def binomial_data():
    """Toy classification data (150 rows, 5 columns)."""
    X, y = make_classification(
        n_samples=150,
        n_features=5,
        n_informative=3,
        n_redundant=1,
        n_classes=2,
        weights=[0.6, 0.4],
        random_state=42,
    )
    return pd.DataFrame(X, columns=[f"x{i}" for i in range(5)]), y.astype(float)


def simulate_survival(n: int = 200, seed: int = 0, max_censor: int = 8) -> pd.DataFrame:
    """
    Discrete-time survival data with hazard ``expit(-1.5 + 0.8 * x0)`` and
    uniform censoring on 1..max_censor. Columns x0, x1, ftime, ftype.
    """
    rng = make_rng(seed)
    x0 = rng.normal(size=n)
    x1 = rng.normal(size=n)
    hazard = 1.0 / (1.0 + np.exp(-(-1.5 + 0.8 * x0)))

    event_time = np.full(n, 100)
    for t in range(1, 100):
        hit = (event_time == 100) & (rng.uniform(size=n) < hazard)
        event_time[hit] = t
    censor_time = rng.integers(1, max_censor + 1, size=n)

    ftime = np.minimum(event_time, censor_time)
    ftype = (event_time <= censor_time).astype(int)
    return pd.DataFrame({"x0": x0, "x1": x1, "ftime": ftime, "ftype": ftype})


@pytest.fixture
def survival_data():
    """Right-censored discrete-time survival data (200 subjects)."""
    return simulate_survival()


@pytest.fixture
def reset_cvstack_logger():
    """Detach CLI handlers from the package logger after a test."""
    yield
    log = logging.getLogger("cvstack")
    log.handlers.clear()
    log.propagate = True
    log.setLevel(logging.NOTSET)
