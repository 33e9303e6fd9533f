"""
Learner contract and the adapters that implement it.

A learner is anything with ``fit(X, y, sample_weight=None) -> model`` and
``predict(model, X) -> ndarray``. Hyperparameters are bound when the learner
is constructed; ``fit`` never mutates the learner, so the same object can be
fitted concurrently on different folds.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np
import pandas as pd
from sklearn.base import clone, is_classifier
from sklearn.pipeline import Pipeline
from sklearn.utils.validation import has_fit_parameter

logger = logging.getLogger(__name__)


class Learner(Protocol):
    """Contract for prediction algorithms."""

    name: str

    def fit(self, X: pd.DataFrame, y: np.ndarray, sample_weight: np.ndarray | None = None) -> Any:
        ...

    def predict(self, model: Any, X: pd.DataFrame) -> np.ndarray:
        ...


@dataclass(frozen=True)
class MeanLearner:
    """Predicts the (weighted) training mean for every row."""

    name: str = "mean"

    def fit(self, X, y, sample_weight=None) -> float:
        y = np.asarray(y, dtype=float)
        if sample_weight is None:
            return float(np.mean(y))
        return float(np.average(y, weights=np.asarray(sample_weight, dtype=float)))

    def predict(self, model: float, X) -> np.ndarray:
        return np.full(len(X), float(model))


def _final_estimator(estimator):
    if isinstance(estimator, Pipeline):
        return estimator.steps[-1][0], estimator.steps[-1][1]
    return None, estimator


def _supports_sample_weight(estimator) -> bool:
    _, final = _final_estimator(estimator)
    return has_fit_parameter(final, "sample_weight")


@dataclass(frozen=True)
class SklearnLearner:
    """
    Adapter for any scikit-learn compatible estimator.

    Args:
        name: Learner name used in candidate names
        estimator: Unfitted template; cloned on every fit
        family: 'binomial' uses predict_proba of class 1, 'gaussian' uses predict

    Observation weights are routed to the final step of a Pipeline. For an
    estimator that does not accept ``sample_weight`` the zero-weight rows are
    dropped and the remaining rows are fitted unweighted.
    """

    name: str
    estimator: Any
    family: str = "gaussian"

    def fit(self, X, y, sample_weight=None):
        model = clone(self.estimator)
        Xv = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if self.family == "binomial" and is_classifier(model):
            y = y.astype(int)

        if sample_weight is None:
            return model.fit(Xv, y)

        w = np.asarray(sample_weight, dtype=float)
        if _supports_sample_weight(model):
            step, _ = _final_estimator(model)
            key = f"{step}__sample_weight" if step else "sample_weight"
            return model.fit(Xv, y, **{key: w})

        keep = w > 0
        if keep.any() and not np.allclose(w[keep], w[keep][0]):
            logger.warning(
                f"Learner '{self.name}' does not accept sample_weight; "
                "fitting unweighted on rows with positive weight"
            )
        return model.fit(Xv[keep], y[keep])

    def predict(self, model, X) -> np.ndarray:
        Xv = np.asarray(X, dtype=float)
        if self.family == "binomial" and hasattr(model, "predict_proba"):
            proba = model.predict_proba(Xv)
            classes = list(model.classes_)
            if 1 not in classes:
                return np.zeros(len(Xv))
            return np.asarray(proba[:, classes.index(1)], dtype=float)
        return np.asarray(model.predict(Xv), dtype=float).ravel()
