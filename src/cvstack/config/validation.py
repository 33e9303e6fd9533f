"""
Configuration validation and precondition checks.

Everything here runs before any model is fitted: a violated precondition
aborts the whole pipeline with a description of what was wrong.
"""

import warnings
from collections.abc import Iterable

import numpy as np

from cvstack.config.schema import EnsembleConfig


class ConfigurationError(ValueError):
    """Raised when a configuration or input makes fitting impossible."""

    pass


class ConfigValidationWarning(UserWarning):
    """Warning for potential configuration issues."""

    pass


def check_n_folds(n_folds: int, n_units: int, unit: str = "observations") -> None:
    """Fail if ``n_folds`` cannot be honoured with ``n_units`` distinct units."""
    if n_folds < 2:
        raise ConfigurationError(f"Number of folds must be >= 2, got {n_folds}.")
    if n_folds > n_units:
        raise ConfigurationError(
            f"Number of folds ({n_folds}) exceeds the number of distinct {unit} ({n_units})."
        )


def check_outcome(y: np.ndarray, family: str) -> np.ndarray:
    """Validate the outcome vector for the loss family and return it as float."""
    y = np.asarray(y, dtype=float)
    if y.ndim != 1:
        raise ConfigurationError(f"Outcome must be one-dimensional, got shape {y.shape}.")
    if len(y) == 0:
        raise ConfigurationError("Outcome is empty.")
    if not np.all(np.isfinite(y)):
        n_bad = int((~np.isfinite(y)).sum())
        raise ConfigurationError(f"Outcome contains {n_bad} missing or non-finite values.")

    if family == "binomial":
        values = np.unique(y)
        if not np.isin(values, [0.0, 1.0]).all():
            raise ConfigurationError(
                f"family='binomial' requires a 0/1 outcome, found values {values[:10].tolist()}."
            )
    elif family != "gaussian":
        raise ConfigurationError(f"Unknown family: {family}")
    return y


def check_sample_weight(sample_weight: Iterable[float] | None, n: int) -> np.ndarray:
    """Validate per-observation weights; ``None`` becomes all ones."""
    if sample_weight is None:
        return np.ones(n, dtype=float)

    w = np.asarray(sample_weight, dtype=float)
    if w.shape != (n,):
        raise ConfigurationError(f"sample_weight has shape {w.shape}, expected ({n},).")
    if not np.all(np.isfinite(w)):
        raise ConfigurationError("sample_weight contains missing or non-finite values.")
    if (w < 0).any():
        raise ConfigurationError("sample_weight must be non-negative.")
    if w.sum() <= 0:
        raise ConfigurationError("sample_weight sums to zero.")
    return w


def validate_config(
    config: EnsembleConfig,
    columns: Iterable[str] | None = None,
    strictness: str = "error",
):
    """
    Cross-field checks that the schema alone cannot express.

    Args:
        config: EnsembleConfig instance
        columns: Column names of the input table, when available
        strictness: "off", "warn", or "error"
    """
    issues = []

    if config.method == "nnloglik" and config.family != "binomial" and config.survival is None:
        issues.append("method='nnloglik' requires family='binomial'.")

    if config.survival is not None:
        surv = config.survival
        if surv.mode == "ipcw" and surv.variant == "A" and config.method == "nnloglik":
            issues.append(
                "survival.variant='A' regresses a continuous IPCW pseudo-outcome; "
                "method='nnloglik' cannot be used."
            )
        if surv.censoring_fit == "cross_fit" and surv.mode != "ipcw":
            issues.append("survival.censoring_fit only applies to survival.mode='ipcw'.")

    if columns is not None:
        available = set(columns)
        required = []
        if config.survival is None:
            required.append(config.outcome_col)
        else:
            required.extend([config.survival.ftime_col, config.survival.ftype_col])
            if config.survival.strata_col:
                required.append(config.survival.strata_col)
        for col in (config.id_col, config.weights_col):
            if col:
                required.append(col)
        required.extend(config.covariates or [])
        missing = [c for c in required if c not in available]
        if missing:
            issues.append(f"Columns not found in input: {missing}")

    _handle_issues(issues, strictness, "Ensemble configuration")


def _handle_issues(issues: list[str], strictness: str, context: str):
    """Handle validation issues based on strictness level."""
    if not issues:
        return

    message = f"{context} issues:\n" + "\n".join(f"  - {issue}" for issue in issues)

    if strictness == "error":
        raise ConfigurationError(message)
    elif strictness == "warn":
        warnings.warn(message, ConfigValidationWarning, stacklevel=3)
    # strictness == "off": do nothing
