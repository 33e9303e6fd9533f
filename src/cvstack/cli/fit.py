"""CLI for fitting a cross-validated ensemble.

Usage:
    cvstack fit --config configs/ensemble.yaml --infile data.csv --outdir results/
    cvstack fit --infile data.csv --override family=binomial --override folds=5
"""

import logging
from pathlib import Path

import pandas as pd

from cvstack.cli.common import load_design, start_run
from cvstack.data.schema import BLEND_NAME
from cvstack.models.ensemble import EnsembleModel, SuperLearner, ensemble_weights_dict
from cvstack.models.registry import build_library
from cvstack.utils.logging import log_section
from cvstack.utils.serialization import save_json

logger = logging.getLogger(__name__)


def save_fit_outputs(model: EnsembleModel, y, outdir: Path) -> None:
    """Write model.joblib, cv_risk.csv, weights.json and oof_predictions.csv."""
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    model.save(outdir / "model.joblib")

    summary = model.summary()
    ensemble_row = pd.DataFrame(
        [
            {
                "candidate": BLEND_NAME,
                "risk": model.ensemble_cv_risk,
                "weight": float(model.weights.sum()),
                "n_failed_folds": 0,
                "excluded": False,
                "discrete_winner": False,
            }
        ]
    )
    pd.concat([summary, ensemble_row], ignore_index=True).to_csv(
        outdir / "cv_risk.csv", index=False
    )
    save_json(ensemble_weights_dict(model), outdir / "weights.json")

    oof = model.Z.copy()
    oof.insert(0, "fold", model.folds.folds)
    oof.insert(1, "y", y)
    oof.to_csv(outdir / "oof_predictions.csv", index_label="row")

    logger.info(f"Saved cv_risk.csv, weights.json, oof_predictions.csv to {outdir}")


def run_fit(
    config_file: str | None = None,
    infile: str | None = None,
    outdir: str | None = None,
    overrides: list[str] | None = None,
    verbose: int = 0,
) -> EnsembleModel:
    """Fit the ensemble described by the configuration and save its outputs."""
    config, log = start_run(
        "Cross-validated ensemble: fit", config_file, overrides, infile, outdir, verbose
    )

    _, data = load_design(config)
    library = build_library(config)
    log.info(f"Library: {[c.name for c in library]}")

    log_section(log, "Fitting")
    model = SuperLearner(
        library,
        family=config.family,
        n_folds=config.folds,
        method=config.method,
        seed=config.seed,
        n_jobs=config.n_jobs,
    ).fit(data.X, data.y, sample_weight=data.sample_weight, groups=data.groups)

    log_section(log, "Results")
    log.info("\n" + model.summary().to_string(index=False))
    if model.degraded:
        log.warning("Weight optimizer failed; predictions use the discrete winner only.")

    save_fit_outputs(model, data.y, Path(config.outdir))
    return model
