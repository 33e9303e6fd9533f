"""Configuration management for cvstack."""

from cvstack.config.defaults import (
    DEFAULT_ENSEMBLE_CONFIG,
    DEFAULT_METHOD_BY_FAMILY,
    VALID_FAMILIES,
    VALID_LEARNERS,
    VALID_SCREENS,
)
from cvstack.config.loader import (
    apply_overrides,
    load_ensemble_config,
    load_yaml,
    log_config_summary,
    save_config,
)
from cvstack.config.schema import (
    EnsembleConfig,
    LearnerSpec,
    NestedCVConfig,
    ScreenSpec,
    SurvivalConfig,
)
from cvstack.config.validation import (
    ConfigurationError,
    ConfigValidationWarning,
    check_n_folds,
    check_outcome,
    check_sample_weight,
    validate_config,
)

__all__ = [
    "DEFAULT_ENSEMBLE_CONFIG",
    "DEFAULT_METHOD_BY_FAMILY",
    "VALID_FAMILIES",
    "VALID_LEARNERS",
    "VALID_SCREENS",
    "apply_overrides",
    "load_ensemble_config",
    "load_yaml",
    "log_config_summary",
    "save_config",
    "EnsembleConfig",
    "LearnerSpec",
    "NestedCVConfig",
    "ScreenSpec",
    "SurvivalConfig",
    "ConfigurationError",
    "ConfigValidationWarning",
    "check_n_folds",
    "check_outcome",
    "check_sample_weight",
    "validate_config",
]
