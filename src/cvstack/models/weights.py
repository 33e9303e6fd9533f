"""Stacking weight optimizers.

Each optimizer turns an out-of-fold prediction matrix ``Z`` (n x k) into a
weight vector that is non-negative and sums to 1, and knows how to combine
candidate predictions with those weights:

- ``nnls``: weighted non-negative least squares, response-scale combination
- ``nnloglik``: non-negative Bernoulli log-likelihood on the logit scale
- ``convex``: family risk of ``Z @ a`` minimized over the simplex

Identical columns are collapsed before solving and share the weight of their
group equally; a matrix with one distinct column returns the uniform vector.
"""

import logging

import numpy as np
from scipy.optimize import minimize, nnls
from scipy.special import expit, logit

from cvstack.config.defaults import DEFAULT_METHOD_BY_FAMILY
from cvstack.config.validation import ConfigurationError
from cvstack.models.losses import EPS

logger = logging.getLogger(__name__)

WEIGHT_TOL = 1e-6


class OptimizerError(RuntimeError):
    """Raised when the weight solver fails to produce a usable weight vector."""

    pass


def _collapse_duplicates(Z: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Representative column per group of identical columns, and column -> group map."""
    _, first, inverse = np.unique(Z, axis=1, return_index=True, return_inverse=True)
    inverse = np.asarray(inverse).ravel()
    return first, inverse


class WeightOptimizer:
    """Base class: duplicate handling, validation and normalization around ``_solve``."""

    method = "base"

    def __init__(self, family: str = "gaussian", max_iter: int = 1000):
        self.family = family
        self.max_iter = max_iter

    def solve(self, Z, y, sample_weight=None) -> np.ndarray:
        """
        Compute combination weights.

        Args:
            Z: Out-of-fold predictions (n x k)
            y: Outcome (n,)
            sample_weight: Observation weights (n,), default all ones

        Returns:
            Weights (k,), non-negative, summing to 1

        Raises:
            OptimizerError: Non-convergence or an all-zero solution
        """
        Z = np.asarray(Z, dtype=float)
        y = np.asarray(y, dtype=float)
        w = np.ones(len(y)) if sample_weight is None else np.asarray(sample_weight, dtype=float)
        if Z.ndim != 2 or Z.shape[0] != len(y):
            raise ValueError(f"Z has shape {Z.shape}, expected ({len(y)}, k)")
        k = Z.shape[1]
        if k == 0:
            raise OptimizerError("No columns to combine.")
        if not np.all(np.isfinite(Z)):
            raise OptimizerError("Z contains non-finite predictions.")

        first, inverse = _collapse_duplicates(Z)
        if len(first) == 1:
            return np.full(k, 1.0 / k)

        a = self._solve(Z[:, first], y, w)
        a = np.clip(np.nan_to_num(a, nan=0.0), 0.0, None)
        total = a.sum()
        if not np.isfinite(total) or total <= 0:
            raise OptimizerError(f"{self.method}: all weights are zero.")
        a = a / total

        counts = np.bincount(inverse, minlength=len(first))
        weights = a[inverse] / counts[inverse]
        if abs(weights.sum() - 1.0) > WEIGHT_TOL:
            raise OptimizerError(f"{self.method}: weights sum to {weights.sum():.8f}")
        return weights

    def _solve(self, Z: np.ndarray, y: np.ndarray, w: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def combine(self, Z, weights) -> np.ndarray:
        """Ensemble prediction from candidate predictions ``Z`` (n x k)."""
        return np.asarray(Z, dtype=float) @ np.asarray(weights, dtype=float)


class NNLSOptimizer(WeightOptimizer):
    """Weighted non-negative least squares on ``sqrt(w)``-scaled rows."""

    method = "nnls"

    def _solve(self, Z, y, w):
        sw = np.sqrt(w)
        try:
            coef, _ = nnls(Z * sw[:, None], y * sw, maxiter=self.max_iter * Z.shape[1])
        except RuntimeError as e:
            raise OptimizerError(f"nnls did not converge: {e}") from e
        return coef


class NNLogLikOptimizer(WeightOptimizer):
    """
    Non-negative weights maximizing the weighted Bernoulli log-likelihood of
    ``expit(logit(Z) @ a)``. Solved with L-BFGS-B (bounds ``a >= 0``) and an
    analytic gradient; the solution is renormalised to sum to 1.
    """

    method = "nnloglik"

    def _solve(self, Z, y, w):
        L = logit(np.clip(Z, EPS, 1 - EPS))
        wn = w / w.sum()

        def objective(a):
            eta = L @ a
            # log(1 + exp(eta)) - y * eta, written stably
            nll = np.logaddexp(0.0, eta) - y * eta
            grad = L.T @ (wn * (expit(eta) - y))
            return float(np.dot(wn, nll)), grad

        k = Z.shape[1]
        res = minimize(
            objective,
            x0=np.full(k, 1.0 / k),
            jac=True,
            method="L-BFGS-B",
            bounds=[(0.0, None)] * k,
            options={"maxiter": self.max_iter},
        )
        if not res.success:
            raise OptimizerError(f"nnloglik did not converge: {res.message}")
        return res.x

    def combine(self, Z, weights):
        L = logit(np.clip(np.asarray(Z, dtype=float), EPS, 1 - EPS))
        return expit(L @ np.asarray(weights, dtype=float))


class ConvexRiskOptimizer(WeightOptimizer):
    """Family risk of ``Z @ a`` minimized over the simplex (SLSQP)."""

    method = "convex"

    def _solve(self, Z, y, w):
        wn = w / w.sum()
        binomial = self.family == "binomial"

        def objective(a):
            p = Z @ a
            if binomial:
                p = np.clip(p, EPS, 1 - EPS)
                loss = -(y * np.log(p) + (1 - y) * np.log1p(-p))
                dp = -(y / p - (1 - y) / (1 - p))
            else:
                loss = (y - p) ** 2
                dp = -2.0 * (y - p)
            return float(np.dot(wn, loss)), Z.T @ (wn * dp)

        k = Z.shape[1]
        res = minimize(
            objective,
            x0=np.full(k, 1.0 / k),
            jac=True,
            method="SLSQP",
            bounds=[(0.0, 1.0)] * k,
            constraints=[{"type": "eq", "fun": lambda a: np.sum(a) - 1.0}],
            options={"maxiter": self.max_iter, "ftol": 1e-10},
        )
        if not res.success:
            raise OptimizerError(f"convex did not converge: {res.message}")
        return res.x


OPTIMIZERS = {
    "nnls": NNLSOptimizer,
    "nnloglik": NNLogLikOptimizer,
    "convex": ConvexRiskOptimizer,
}


def get_optimizer(method: str | None, family: str) -> WeightOptimizer:
    """
    Weight optimizer for ``method`` (default chosen by family).

    Raises:
        ConfigurationError: Unknown method, or nnloglik with a gaussian family
    """
    if family not in DEFAULT_METHOD_BY_FAMILY:
        raise ConfigurationError(f"Unknown family: {family}")
    method = method or DEFAULT_METHOD_BY_FAMILY[family]
    if method not in OPTIMIZERS:
        raise ConfigurationError(
            f"Unknown weight method '{method}'. Available: {sorted(OPTIMIZERS)}"
        )
    if method == "nnloglik" and family != "binomial":
        raise ConfigurationError("method='nnloglik' requires family='binomial'.")
    return OPTIMIZERS[method](family=family)
