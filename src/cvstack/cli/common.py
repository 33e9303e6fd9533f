"""Shared setup for CLI commands: logging, configuration and input data."""

import logging
from pathlib import Path

import pandas as pd

from cvstack.config import (
    ConfigurationError,
    EnsembleConfig,
    load_ensemble_config,
    log_config_summary,
    save_config,
    validate_config,
)
from cvstack.data.io import DesignData, extract_design, read_table
from cvstack.utils.logging import level_from_verbosity, log_section, setup_logger

logger = logging.getLogger(__name__)


def start_run(
    title: str,
    config_file: str | Path | None,
    overrides: list[str] | None,
    infile: str | Path | None = None,
    outdir: str | Path | None = None,
    verbose: int = 0,
) -> tuple[EnsembleConfig, logging.Logger]:
    """
    Configure logging and load the run configuration.

    ``--infile`` / ``--outdir`` take precedence over the configuration file.
    The resolved configuration is written to ``<outdir>/config_resolved.yaml``.
    """
    log = setup_logger("cvstack", level_from_verbosity(verbose))
    log_section(log, title)

    overrides = list(overrides or [])
    if infile is not None:
        overrides.append(f"infile={infile}")
    if outdir is not None:
        overrides.append(f"outdir={outdir}")

    config = load_ensemble_config(config_file, overrides)
    log_config_summary(config, log)

    Path(config.outdir).mkdir(parents=True, exist_ok=True)
    save_config(config, Path(config.outdir) / "config_resolved.yaml")
    return config, log


def load_design(config: EnsembleConfig) -> tuple[pd.DataFrame, DesignData]:
    """Read the input table, check the configured columns and extract arrays."""
    if config.infile is None:
        raise ConfigurationError("No input file: pass --infile or set 'infile' in the config.")
    df = read_table(config.infile)
    validate_config(config, columns=df.columns)
    return df, extract_design(df, config)
