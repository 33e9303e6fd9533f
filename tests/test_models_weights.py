"""Tests for models.weights: stacking weight optimizers.

Tests cover:
- Weights non-negative and summing to 1 for every method
- Recovery of an exact candidate
- Duplicate and single-column matrices
- Optimizer errors and method/family checks
"""

import numpy as np
import pytest
from cvstack.config.validation import ConfigurationError
from cvstack.models.weights import (
    ConvexRiskOptimizer,
    NNLogLikOptimizer,
    NNLSOptimizer,
    OptimizerError,
    get_optimizer,
)
from scipy.special import expit


# ----------------------------
# Fixtures
# ----------------------------
@pytest.fixture
def gaussian_z():
    """Three candidates: truth + small noise, truth + large noise, pure noise."""
    rng = np.random.default_rng(0)
    n = 300
    y = rng.normal(size=n)
    Z = np.column_stack(
        [y + rng.normal(0, 0.1, n), y + rng.normal(0, 1.0, n), rng.normal(size=n)]
    )
    return Z, y


@pytest.fixture
def binomial_z():
    """Three probability candidates of varying quality for a 0/1 outcome."""
    rng = np.random.default_rng(1)
    n = 400
    x = rng.normal(size=n)
    y = (rng.uniform(size=n) < expit(1.5 * x)).astype(float)
    Z = np.column_stack(
        [
            expit(1.5 * x + rng.normal(0, 0.2, n)),
            expit(0.5 * x + rng.normal(0, 1.0, n)),
            np.full(n, y.mean()),
        ]
    )
    return Z, y


# ----------------------------
# Weight vector properties
# ----------------------------
@pytest.mark.parametrize(
    "method,family,data",
    [
        ("nnls", "gaussian", "gaussian_z"),
        ("convex", "gaussian", "gaussian_z"),
        ("nnloglik", "binomial", "binomial_z"),
        ("convex", "binomial", "binomial_z"),
    ],
)
def test_weights_on_simplex(method, family, data, request):
    """Should return non-negative weights summing to 1."""
    Z, y = request.getfixturevalue(data)
    weights = get_optimizer(method, family).solve(Z, y)

    assert weights.shape == (3,)
    assert np.all(weights >= 0)
    assert weights.sum() == pytest.approx(1.0, abs=1e-6)
    assert np.argmax(weights) == 0


def test_nnls_recovers_exact_candidate():
    rng = np.random.default_rng(2)
    y = rng.normal(size=100)
    Z = np.column_stack([y, rng.normal(size=100)])

    weights = NNLSOptimizer().solve(Z, y)
    np.testing.assert_allclose(weights, [1.0, 0.0], atol=1e-8)


def test_sample_weight_changes_solution(gaussian_z):
    """Should weight rows by sample_weight."""
    Z, y = gaussian_z
    w = np.where(np.arange(len(y)) < 150, 1.0, 0.0)

    full = NNLSOptimizer().solve(Z[:150], y[:150])
    weighted = NNLSOptimizer().solve(Z, y, sample_weight=w)
    np.testing.assert_allclose(weighted, full, atol=1e-6)


# ----------------------------
# Degenerate matrices
# ----------------------------
def test_duplicate_columns_share_weight():
    rng = np.random.default_rng(3)
    y = rng.normal(size=80)
    noise = rng.normal(size=80)
    Z = np.column_stack([y, y, noise])

    weights = NNLSOptimizer().solve(Z, y)
    np.testing.assert_allclose(weights, [0.5, 0.5, 0.0], atol=1e-8)


def test_single_distinct_column_uniform():
    y = np.linspace(0, 1, 20)
    Z = np.column_stack([y * 0.5] * 3)

    for optimizer in (NNLSOptimizer(), ConvexRiskOptimizer()):
        np.testing.assert_allclose(optimizer.solve(Z, y), [1 / 3] * 3)


def test_all_zero_solution_raises():
    """Should raise when every coefficient is zero."""
    rng = np.random.default_rng(4)
    Z = rng.uniform(1.0, 2.0, size=(30, 2))
    y = -np.ones(30)

    with pytest.raises(OptimizerError, match="all weights are zero"):
        NNLSOptimizer().solve(Z, y)


def test_non_finite_predictions_raise():
    Z = np.array([[0.1, np.nan], [0.2, 0.3]])
    with pytest.raises(OptimizerError, match="non-finite"):
        NNLSOptimizer().solve(Z, np.array([0.0, 1.0]))


# ----------------------------
# Combination
# ----------------------------
def test_nnloglik_combines_on_logit_scale():
    Z = np.array([[0.2, 0.8], [0.6, 0.4]])
    combined = NNLogLikOptimizer(family="binomial").combine(Z, [0.5, 0.5])
    np.testing.assert_allclose(combined, [0.5, 0.5])


def test_linear_combination():
    Z = np.array([[0.2, 0.8], [0.6, 0.4]])
    combined = NNLSOptimizer().combine(Z, [0.25, 0.75])
    np.testing.assert_allclose(combined, [0.65, 0.45])


# ----------------------------
# get_optimizer
# ----------------------------
def test_default_method_by_family():
    assert isinstance(get_optimizer(None, "gaussian"), NNLSOptimizer)
    assert isinstance(get_optimizer(None, "binomial"), NNLogLikOptimizer)


def test_nnloglik_requires_binomial():
    with pytest.raises(ConfigurationError, match="binomial"):
        get_optimizer("nnloglik", "gaussian")


def test_unknown_method():
    with pytest.raises(ConfigurationError, match="Unknown weight method"):
        get_optimizer("ridge", "gaussian")


def test_unknown_family():
    with pytest.raises(ConfigurationError, match="Unknown family"):
        get_optimizer("nnls", "poisson")
