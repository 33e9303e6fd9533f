"""
Data I/O utilities.

Reads CSV/Parquet tables and splits them into the arrays the ensemble
consumes (covariates, outcome, observation weights, cluster ids, survival
columns). Categorical covariates are one-hot encoded here so every learner
receives a numeric design matrix.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from cvstack.config.schema import EnsembleConfig
from cvstack.config.validation import ConfigurationError
from cvstack.data.schema import CENSORED

logger = logging.getLogger(__name__)


@dataclass
class DesignData:
    """Arrays extracted from an input table.

    Attributes:
        X: Numeric covariate matrix (one-hot encoded)
        y: Outcome (None in survival mode)
        sample_weight: Observation weights (None if not configured)
        groups: Cluster ids (None if not configured)
        ftime: Follow-up times (survival mode only)
        ftype: Event types (survival mode only)
        strata: Censoring strata (survival mode only, optional)
    """

    X: pd.DataFrame
    y: np.ndarray | None = None
    sample_weight: np.ndarray | None = None
    groups: np.ndarray | None = None
    ftime: np.ndarray | None = None
    ftype: np.ndarray | None = None
    strata: np.ndarray | None = None


def read_table(filepath: str | Path) -> pd.DataFrame:
    """
    Read a CSV or Parquet file.

    Args:
        filepath: Path to .csv or .parquet file

    Returns:
        DataFrame

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file format is not supported
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(filepath)
    elif suffix == ".parquet":
        df = pd.read_parquet(filepath, engine="pyarrow")
    else:
        raise ValueError(
            f"Unsupported file format: {suffix}. Expected .csv or .parquet. File: {filepath}"
        )

    logger.info(f"Loaded {len(df):,} rows × {len(df.columns):,} columns from {filepath.name}")
    return df


def encode_covariates(df: pd.DataFrame, drop_first: bool = True) -> pd.DataFrame:
    """One-hot encode non-numeric columns and cast to float."""
    categorical = [
        c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c]) or df[c].dtype == bool
    ]
    if categorical:
        logger.debug(f"One-hot encoding categorical covariates: {categorical}")
        df = pd.get_dummies(df, columns=categorical, drop_first=drop_first, dtype=float)
    return df.astype(float)


def align_covariates(X: pd.DataFrame, feature_names: list[str]) -> pd.DataFrame:
    """
    Align a new covariate frame to the columns seen at fit time.

    Columns absent from ``X`` (typically dummy levels not present in the new
    data) are filled with 0; extra columns are dropped. Every level is encoded
    so the reference level maps to all-zero dummies as it did at fit time.
    """
    X = encode_covariates(X, drop_first=False)
    missing = [c for c in feature_names if c not in X.columns]
    if len(missing) == len(feature_names):
        raise ConfigurationError(
            f"None of the fitted covariates are present at prediction time: {feature_names}"
        )
    if missing:
        logger.warning(f"Covariates missing at prediction time, filled with 0: {missing}")
    return X.reindex(columns=feature_names, fill_value=0.0)


def resolve_covariates(df: pd.DataFrame, config: EnsembleConfig) -> list[str]:
    """Covariate columns: explicit list, or every non-reserved column."""
    if config.covariates:
        return list(config.covariates)

    reserved = {config.outcome_col, config.id_col, config.weights_col}
    if config.survival is not None:
        reserved |= {
            config.survival.ftime_col,
            config.survival.ftype_col,
            config.survival.strata_col,
        }
    return [c for c in df.columns if c not in reserved]


def extract_design(df: pd.DataFrame, config: EnsembleConfig) -> DesignData:
    """
    Split an input table into the arrays used for fitting.

    Rows with missing covariates or outcome are dropped with a warning.

    Args:
        df: Input table
        config: Validated EnsembleConfig

    Returns:
        DesignData
    """
    covariates = resolve_covariates(df, config)
    if not covariates:
        raise ConfigurationError("No covariate columns available.")

    needed = list(covariates)
    if config.survival is None:
        needed.append(config.outcome_col)
    else:
        needed.extend([config.survival.ftime_col, config.survival.ftype_col])

    n_in = len(df)
    df = df.dropna(subset=needed)
    if len(df) < n_in:
        logger.warning(f"Dropped {n_in - len(df)} rows with missing covariates or outcome")

    data = DesignData(X=encode_covariates(df[covariates]).reset_index(drop=True))

    if config.weights_col:
        data.sample_weight = df[config.weights_col].to_numpy(dtype=float)
    if config.id_col:
        data.groups = df[config.id_col].to_numpy()

    if config.survival is None:
        data.y = df[config.outcome_col].to_numpy(dtype=float)
        return data

    surv = config.survival
    data.ftime, data.ftype = check_survival_columns(df[surv.ftime_col], df[surv.ftype_col])
    if surv.strata_col:
        data.strata = df[surv.strata_col].to_numpy()
    return data


def check_survival_columns(ftime, ftype) -> tuple[np.ndarray, np.ndarray]:
    """Validate integer ``ftime >= 1`` and integer ``ftype >= 0``."""
    ftime = np.asarray(ftime, dtype=float)
    ftype = np.asarray(ftype, dtype=float)

    if ftime.shape != ftype.shape:
        raise ConfigurationError(
            f"ftime and ftype lengths differ: {ftime.shape} vs {ftype.shape}"
        )
    if not np.all(np.isfinite(ftime)) or not np.all(np.isfinite(ftype)):
        raise ConfigurationError("ftime/ftype contain missing values.")
    if not np.all(ftime == np.round(ftime)) or (ftime < 1).any():
        raise ConfigurationError("ftime must be integers >= 1.")
    if not np.all(ftype == np.round(ftype)) or (ftype < CENSORED).any():
        raise ConfigurationError("ftype must be integers >= 0 (0 = censored).")

    return ftime.astype(int), ftype.astype(int)


def as_covariate_frame(X, feature_names: list[str] | None = None) -> pd.DataFrame:
    """DataFrame view of covariates; arrays get ``feature_names`` (default x0, x1, ...)."""
    if isinstance(X, pd.DataFrame):
        return X.reset_index(drop=True)
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ConfigurationError(f"X must be two-dimensional, got shape {X.shape}.")
    if feature_names is None:
        feature_names = [f"x{i}" for i in range(X.shape[1])]
    return pd.DataFrame(X, columns=list(feature_names))
