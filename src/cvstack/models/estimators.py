"""Estimator builders for the built-in learners.

This module provides:
- scikit-learn estimator construction per family (binomial / gaussian)
- Optional XGBoost support (raises at build time if not installed)

References:
- scikit-learn 1.8+ deprecates penalty= in LogisticRegression (see utils.compat)
- XGBoost tree_method controls CPU vs GPU acceleration
"""

from typing import Optional

from sklearn.ensemble import (
    HistGradientBoostingClassifier,
    HistGradientBoostingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import ElasticNetCV, LinearRegression, LogisticRegression
from sklearn.neighbors import KNeighborsClassifier, KNeighborsRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from cvstack.utils.compat import logistic_penalty_kwargs

try:
    from xgboost import XGBClassifier, XGBRegressor

    XGBOOST_AVAILABLE = True
except (ImportError, Exception):
    XGBOOST_AVAILABLE = False
    XGBClassifier = None  # type: ignore
    XGBRegressor = None  # type: ignore


def build_glm(family: str, max_iter: int = 5000):
    """Unpenalized GLM: logistic regression (binomial) or OLS (gaussian)."""
    if family == "binomial":
        return LogisticRegression(
            solver="lbfgs", max_iter=int(max_iter), **logistic_penalty_kwargs(None)
        )
    return LinearRegression()


def build_glmnet(
    family: str,
    C: float = 1.0,
    l1_ratio: float = 0.5,
    max_iter: int = 5000,
    cv: int = 5,
    random_state: int = 0,
) -> Pipeline:
    """Build an elastic-net GLM on standardized covariates.

    Args:
        family: 'binomial' or 'gaussian'
        C: Inverse regularization strength (binomial only)
        l1_ratio: ElasticNet mixing (0=L2, 1=L1)
        max_iter: Maximum solver iterations
        cv: Internal folds for ElasticNetCV penalty selection (gaussian only)
        random_state: Random seed

    Returns:
        Pipeline(StandardScaler, estimator)
    """
    if family == "binomial":
        est = LogisticRegression(
            solver="saga",
            max_iter=int(max_iter),
            random_state=int(random_state),
            **logistic_penalty_kwargs("elasticnet", C=float(C), l1_ratio=float(l1_ratio)),
        )
    else:
        est = ElasticNetCV(
            l1_ratio=float(l1_ratio),
            cv=int(cv),
            max_iter=int(max_iter),
            random_state=int(random_state),
        )
    return Pipeline([("scaler", StandardScaler()), ("model", est)])


def build_random_forest(
    family: str,
    n_estimators: int = 500,
    max_depth: Optional[int] = None,
    min_samples_leaf: int = 5,
    max_features: str | float = "sqrt",
    random_state: int = 0,
    n_jobs: int = 1,
):
    """Build a random forest classifier or regressor.

    Args:
        family: 'binomial' or 'gaussian'
        n_estimators: Number of trees
        max_depth: Maximum tree depth (None = unlimited)
        min_samples_leaf: Minimum samples per leaf
        max_features: Features per split ('sqrt', int, or float)
        random_state: Random seed
        n_jobs: Parallel jobs

    Returns:
        Configured forest estimator
    """
    rf_kwargs = {
        "n_estimators": int(n_estimators),
        "max_depth": max_depth,
        "min_samples_leaf": int(min_samples_leaf),
        "max_features": max_features,
        "random_state": int(random_state),
        "n_jobs": int(max(1, n_jobs)),
    }
    if family == "binomial":
        return RandomForestClassifier(**rf_kwargs)
    return RandomForestRegressor(**rf_kwargs)


def build_knn(family: str, n_neighbors: int = 10, weights: str = "uniform") -> Pipeline:
    """k-nearest-neighbour smoother on standardized covariates."""
    if family == "binomial":
        est = KNeighborsClassifier(n_neighbors=int(n_neighbors), weights=weights)
    else:
        est = KNeighborsRegressor(n_neighbors=int(n_neighbors), weights=weights)
    return Pipeline([("scaler", StandardScaler()), ("model", est)])


def build_gbm(
    family: str,
    max_iter: int = 200,
    learning_rate: float = 0.05,
    max_depth: Optional[int] = 3,
    min_samples_leaf: int = 20,
    random_state: int = 0,
):
    """Histogram gradient boosting (classifier or regressor)."""
    kwargs = {
        "max_iter": int(max_iter),
        "learning_rate": float(learning_rate),
        "max_depth": max_depth,
        "min_samples_leaf": int(min_samples_leaf),
        "random_state": int(random_state),
    }
    if family == "binomial":
        return HistGradientBoostingClassifier(**kwargs)
    return HistGradientBoostingRegressor(**kwargs)


def build_xgboost(
    family: str,
    n_estimators: int = 300,
    max_depth: int = 3,
    learning_rate: float = 0.05,
    subsample: float = 0.8,
    colsample_bytree: float = 0.8,
    reg_alpha: float = 0.0,
    reg_lambda: float = 1.0,
    min_child_weight: int = 1,
    tree_method: str = "hist",
    random_state: int = 0,
    n_jobs: int = 1,
):
    """Build an XGBoost classifier or regressor.

    Args:
        family: 'binomial' or 'gaussian'
        n_estimators: Number of boosting rounds
        max_depth: Maximum tree depth
        learning_rate: Step size shrinkage
        subsample: Row sampling fraction
        colsample_bytree: Column sampling fraction
        reg_alpha: L1 regularization
        reg_lambda: L2 regularization
        min_child_weight: Minimum sum of instance weight
        tree_method: 'hist', 'gpu_hist', etc.
        random_state: Random seed
        n_jobs: Parallel jobs (1 for GPU)

    Returns:
        Configured XGBClassifier / XGBRegressor

    Raises:
        ImportError: If XGBoost not installed
    """
    if not XGBOOST_AVAILABLE:
        raise ImportError("XGBoost not available. Install with: pip install xgboost")

    kwargs = {
        "n_estimators": int(n_estimators),
        "max_depth": int(max_depth),
        "learning_rate": float(learning_rate),
        "subsample": float(subsample),
        "colsample_bytree": float(colsample_bytree),
        "reg_alpha": float(reg_alpha),
        "reg_lambda": float(reg_lambda),
        "min_child_weight": int(min_child_weight),
        "tree_method": tree_method,
        "random_state": int(random_state),
        "n_jobs": int(max(1, n_jobs)) if tree_method != "gpu_hist" else 1,
    }
    if family == "binomial":
        return XGBClassifier(objective="binary:logistic", eval_metric="logloss", **kwargs)
    return XGBRegressor(objective="reg:squarederror", **kwargs)
