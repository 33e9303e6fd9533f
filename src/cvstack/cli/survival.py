"""CLI for survival ensembles (discrete hazard or IPCW horizon risk).

Usage:
    cvstack survival --config configs/survival.yaml --infile cohort.csv
    cvstack survival --infile cohort.csv --override survival.horizon=5 \
        --override survival.mode=ipcw --override survival.variant=A
"""

import logging
from pathlib import Path

import pandas as pd

from cvstack.cli.common import load_design, start_run
from cvstack.config import ConfigurationError
from cvstack.models.ensemble import ensemble_weights_dict
from cvstack.models.registry import build_library
from cvstack.survival.hazard import PooledHazardEnsemble, fit_hazard_ensemble
from cvstack.survival.ipcw import fit_ipcw_ensemble, ipcw_family
from cvstack.utils.logging import log_section
from cvstack.utils.serialization import library_versions, save_joblib, save_json

logger = logging.getLogger(__name__)


def _save_bundle(obj, kind: str, outdir: Path) -> Path:
    path = outdir / "model.joblib"
    save_joblib({"model": obj, "kind": kind, "versions": library_versions()}, path)
    logger.info(f"Model saved to: {path}")
    return path


def _save_hazard_outputs(model, X: pd.DataFrame, ids, outdir: Path) -> None:
    _save_bundle(model, "hazard", outdir)

    if isinstance(model, PooledHazardEnsemble):
        model.model_.summary().to_csv(outdir / "cv_risk.csv", index=False)
        save_json(ensemble_weights_dict(model.model_), outdir / "weights.json")
    else:
        summaries, weights = [], {}
        for t, sub in model.models_.items():
            if isinstance(sub, float):
                weights[str(t)] = {"marginal_hazard": sub}
                continue
            summaries.append(sub.summary().assign(t=t))
            weights[str(t)] = ensemble_weights_dict(sub)
        if summaries:
            pd.concat(summaries, ignore_index=True).to_csv(outdir / "cv_risk.csv", index=False)
        save_json(weights, outdir / "weights.json")

    surv = model.predict_survival(X)
    surv.columns = [f"S_{t}" for t in surv.columns]
    if ids is not None:
        surv.insert(0, "id", ids)
    surv.to_csv(outdir / "survival_predictions.csv", index=False)


def _save_ipcw_outputs(result, X: pd.DataFrame, ids, outdir: Path) -> None:
    _save_bundle(result, "ipcw", outdir)
    result.model.summary().to_csv(outdir / "cv_risk.csv", index=False)
    save_json(
        {
            **ensemble_weights_dict(result.model),
            "variant": result.variant,
            "horizon": result.horizon,
            "censoring_fit": result.censoring_fit,
        },
        outdir / "weights.json",
    )
    result.table.to_frame().to_csv(outdir / "censoring_table.csv", index=False)

    preds = pd.DataFrame({"risk": result.predict(X), "ipcw_weight": result.weights})
    if ids is not None:
        preds.insert(0, "id", ids)
    preds.to_csv(outdir / "risk_predictions.csv", index=False)


def run_survival(
    config_file: str | None = None,
    infile: str | None = None,
    outdir: str | None = None,
    overrides: list[str] | None = None,
    verbose: int = 0,
):
    """Fit the survival ensemble selected by ``survival.mode`` and save its outputs."""
    config, log = start_run(
        "Cross-validated ensemble: survival", config_file, overrides, infile, outdir, verbose
    )
    if config.survival is None:
        raise ConfigurationError(
            "No 'survival' section: set survival.horizon (e.g. --override survival.horizon=5)."
        )
    surv = config.survival

    _, data = load_design(config)
    outdir = Path(config.outdir)

    if surv.mode == "hazard":
        library = build_library(config, family="binomial")
        log_section(log, f"Discrete hazard ensemble (pool_across_time={surv.pool_across_time})")
        model = fit_hazard_ensemble(
            data.X,
            data.ftime,
            data.ftype,
            library,
            horizon=surv.horizon,
            pool_across_time=surv.pool_across_time,
            n_folds=config.folds,
            method=config.method,
            seed=config.seed,
            cause=surv.cause,
            ids=data.groups,
            sample_weight=data.sample_weight,
            n_jobs=config.n_jobs,
        )
        _save_hazard_outputs(model, data.X, data.groups, outdir)
        return model

    library = build_library(config, family=ipcw_family(surv.variant))
    log_section(log, f"IPCW ensemble (variant {surv.variant}, {surv.censoring_fit})")
    if data.sample_weight is not None:
        log.warning("weights_col is ignored in IPCW mode; censoring weights are used instead.")
    result = fit_ipcw_ensemble(
        data.X,
        data.ftime,
        data.ftype,
        horizon=surv.horizon,
        library=library,
        variant=surv.variant,
        strata=data.strata,
        censoring_fit=surv.censoring_fit,
        n_folds=config.folds,
        method=config.method,
        seed=config.seed,
        cause=surv.cause,
        groups=data.groups,
        n_jobs=config.n_jobs,
    )
    _save_ipcw_outputs(result, data.X, data.groups, outdir)
    return result
