"""CLI for nested cross-validation of the ensemble.

Usage:
    cvstack nested-cv --config configs/ensemble.yaml --infile data.csv
    cvstack nested-cv --infile data.csv --override nested.outer_folds=5
"""

import logging
from pathlib import Path

from cvstack.cli.common import load_design, start_run
from cvstack.evaluation.nested_cv import NestedCVResult, nested_cv, save_nested_cv_results
from cvstack.models.registry import build_library
from cvstack.utils.logging import log_section

logger = logging.getLogger(__name__)


def run_nested_cv(
    config_file: str | None = None,
    infile: str | None = None,
    outdir: str | None = None,
    overrides: list[str] | None = None,
    verbose: int = 0,
) -> NestedCVResult:
    """Run nested CV (outer: nested.outer_folds, inner: folds) and save the tables."""
    config, log = start_run(
        "Cross-validated ensemble: nested CV", config_file, overrides, infile, outdir, verbose
    )

    _, data = load_design(config)
    library = build_library(config)

    log_section(log, "Nested cross-validation")
    result = nested_cv(
        data.X,
        data.y,
        library,
        family=config.family,
        outer_folds=config.nested.outer_folds,
        inner_folds=config.folds,
        method=config.method,
        seed=config.seed,
        sample_weight=data.sample_weight,
        groups=data.groups,
        n_jobs=config.n_jobs,
    )

    log_section(log, "Results")
    log.info("\n" + result.risk_table.to_string())
    log.info(f"Discrete winner counts:\n{result.winner_counts.to_string()}")

    save_nested_cv_results(result, Path(config.outdir))
    return result
