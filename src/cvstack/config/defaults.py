"""
Default configuration values.

Single source of truth for defaults that the loader starts from before YAML
files and CLI overrides are merged on top.
"""

from typing import Any

VALID_FAMILIES = ["binomial", "gaussian"]

VALID_LEARNERS = [
    "mean",
    "glm",
    "glmnet",
    "random_forest",
    "knn",
    "gbm",
    "xgboost",
]

VALID_SCREENS = [
    "all",
    "columns",
    "univariate",
    "correlation",
    "random_forest",
    "lasso",
]

# Weight optimizer used when config.method is None
DEFAULT_METHOD_BY_FAMILY = {
    "gaussian": "nnls",
    "binomial": "nnloglik",
}

DEFAULT_LIBRARY: list[dict[str, Any]] = [
    {"name": "mean"},
    {"name": "glm"},
]

DEFAULT_SCREENS: list[dict[str, Any]] = [
    {"name": "all"},
]

DEFAULT_ENSEMBLE_CONFIG: dict[str, Any] = {
    "outdir": "results",
    "outcome_col": "Y",
    "family": "gaussian",
    "folds": 10,
    "method": None,
    "seed": 0,
    "n_jobs": 1,
    "library": DEFAULT_LIBRARY,
    "screens": DEFAULT_SCREENS,
    "nested": {"outer_folds": 10},
}

DEFAULT_SURVIVAL_CONFIG: dict[str, Any] = {
    "ftime_col": "ftime",
    "ftype_col": "ftype",
    "cause": None,
    "mode": "hazard",
    "pool_across_time": True,
    "variant": "B",
    "strata_col": None,
    "censoring_fit": "in_sample",
}
