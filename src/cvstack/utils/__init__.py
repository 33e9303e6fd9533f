"""Utility functions for cvstack."""

from cvstack.utils.logging import level_from_verbosity, log_section, setup_logger
from cvstack.utils.random import get_cv_seed, make_rng
from cvstack.utils.serialization import (
    library_versions,
    load_joblib,
    load_json,
    save_joblib,
    save_json,
)

__all__ = [
    "setup_logger",
    "level_from_verbosity",
    "log_section",
    "get_cv_seed",
    "make_rng",
    "library_versions",
    "save_joblib",
    "load_joblib",
    "save_json",
    "load_json",
]
