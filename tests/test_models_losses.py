"""Tests for models.losses module."""

import numpy as np
import pytest
from cvstack.models.losses import (
    binomial_deviance,
    loss_function,
    risk_standard_error,
    squared_error,
    weighted_risk,
)


def test_squared_error():
    np.testing.assert_allclose(squared_error([1.0, 2.0], [0.0, 4.0]), [1.0, 4.0])


def test_binomial_deviance_at_half():
    np.testing.assert_allclose(binomial_deviance([1.0, 0.0], [0.5, 0.5]), [np.log(2)] * 2)


def test_binomial_deviance_clips_extremes():
    """Should stay finite for predictions of exactly 0 or 1."""
    losses = binomial_deviance([1.0, 0.0], [0.0, 1.0])
    assert np.all(np.isfinite(losses))
    assert np.all(losses > 10)


def test_loss_function_unknown_family():
    with pytest.raises(ValueError, match="Unknown family"):
        loss_function("poisson")


def test_weighted_risk():
    assert weighted_risk([0.0, 1.0], [0.0, 0.0]) == pytest.approx(0.5)
    assert weighted_risk([0.0, 1.0], [0.0, 0.0], sample_weight=[1.0, 3.0]) == pytest.approx(0.75)


def test_weighted_risk_binomial():
    risk = weighted_risk([1.0, 0.0], [0.8, 0.2], family="binomial")
    assert risk == pytest.approx(-np.log(0.8))


def test_standard_error_unweighted():
    """Should equal sd(loss) / sqrt(n) with unit weights."""
    y = np.array([0.0, 1.0, 2.0, 4.0])
    pred = np.zeros(4)
    losses = y**2
    expected = np.std(losses, ddof=1) / np.sqrt(4)
    assert risk_standard_error(y, pred) == pytest.approx(expected)


def test_standard_error_constant_loss():
    y = np.array([1.0, 2.0, 3.0])
    assert risk_standard_error(y, y + 1.0) == pytest.approx(0.0)


def test_standard_error_single_row():
    assert np.isnan(risk_standard_error([1.0], [0.0]))


def test_standard_error_weights_scale_free():
    """Should not change when all weights are multiplied by a constant."""
    rng = np.random.default_rng(0)
    y = rng.normal(size=50)
    pred = rng.normal(size=50)
    w = rng.uniform(0.5, 2.0, size=50)
    assert risk_standard_error(y, pred, w) == pytest.approx(risk_standard_error(y, pred, 10 * w))
