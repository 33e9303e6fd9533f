"""
Loss functions for cross-validated risk.

Per-observation losses are returned so callers can form weighted means and
influence-curve standard errors from the same vector.
"""

import numpy as np

# Predictions are clipped to [EPS, 1 - EPS] before taking logs
EPS = 1e-6


def squared_error(y: np.ndarray, pred: np.ndarray) -> np.ndarray:
    """Per-observation squared error."""
    return (np.asarray(y, dtype=float) - np.asarray(pred, dtype=float)) ** 2


def binomial_deviance(y: np.ndarray, pred: np.ndarray) -> np.ndarray:
    """Per-observation negative Bernoulli log-likelihood, ``-[y log p + (1-y) log(1-p)]``."""
    y = np.asarray(y, dtype=float)
    p = np.clip(np.asarray(pred, dtype=float), EPS, 1 - EPS)
    return -(y * np.log(p) + (1 - y) * np.log1p(-p))


LOSSES = {
    "gaussian": squared_error,
    "binomial": binomial_deviance,
}


def loss_function(family: str):
    """Per-observation loss for a family."""
    if family not in LOSSES:
        raise ValueError(f"Unknown family: {family}. Expected one of {sorted(LOSSES)}")
    return LOSSES[family]


def weighted_risk(
    y: np.ndarray,
    pred: np.ndarray,
    sample_weight: np.ndarray | None = None,
    family: str = "gaussian",
) -> float:
    """Weighted mean loss of ``pred`` against ``y``."""
    losses = loss_function(family)(y, pred)
    if sample_weight is None:
        return float(np.mean(losses))
    return float(np.average(losses, weights=np.asarray(sample_weight, dtype=float)))


def risk_standard_error(
    y: np.ndarray,
    pred: np.ndarray,
    sample_weight: np.ndarray | None = None,
    family: str = "gaussian",
) -> float:
    """
    Influence-curve standard error of the weighted risk.

    With normalized weights ``v_i = w_i / mean(w)``, the influence curve of
    the weighted mean loss is ``v_i * (L_i - R)``; its standard deviation over
    ``sqrt(n)`` is returned.
    """
    losses = loss_function(family)(y, pred)
    n = len(losses)
    if n < 2:
        return float("nan")
    w = np.ones(n) if sample_weight is None else np.asarray(sample_weight, dtype=float)
    v = w / w.mean()
    risk = np.average(losses, weights=w)
    ic = v * (losses - risk)
    return float(np.std(ic, ddof=1) / np.sqrt(n))
