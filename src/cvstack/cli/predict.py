"""CLI for predicting with a saved ensemble.

Usage:
    cvstack predict --model results/model.joblib --infile new.csv --outfile preds.csv
"""

import logging
from pathlib import Path

import pandas as pd

from cvstack.data.io import align_covariates, read_table
from cvstack.models.ensemble import EnsembleModel
from cvstack.survival.hazard import PerTimeHazardEnsemble, PooledHazardEnsemble
from cvstack.survival.ipcw import IPCWEnsemble
from cvstack.utils.logging import level_from_verbosity, log_section, setup_logger
from cvstack.utils.serialization import load_joblib

logger = logging.getLogger(__name__)


def _feature_names(model) -> list[str]:
    if isinstance(model, EnsembleModel):
        return model.feature_names
    if isinstance(model, IPCWEnsemble):
        return model.model.feature_names
    return model.feature_names_


def predict_frame(model, df: pd.DataFrame, discrete: bool = False) -> pd.DataFrame:
    """
    Predictions of any saved model kind for the rows of ``df``.

    Returns:
        ``pred`` for ensembles, ``risk`` for IPCW ensembles, ``S_<t>`` columns
        for hazard ensembles
    """
    X = align_covariates(df, _feature_names(model))
    if isinstance(model, EnsembleModel):
        return pd.DataFrame({"pred": model.predict(X, discrete=discrete)})
    if isinstance(model, IPCWEnsemble):
        return pd.DataFrame({"risk": model.predict(X, discrete=discrete)})
    if isinstance(model, PooledHazardEnsemble | PerTimeHazardEnsemble):
        hazard = model.predict_hazard(X, discrete=discrete)
        surv = (1.0 - hazard).cumprod(axis=1)
        surv.columns = [f"S_{t}" for t in surv.columns]
        return surv
    raise TypeError(f"Unsupported model type: {type(model).__name__}")


def run_predict(
    model_path: str,
    infile: str,
    outfile: str | None = None,
    id_col: str | None = None,
    discrete: bool = False,
    verbose: int = 0,
) -> pd.DataFrame:
    """Load a saved model, predict ``infile`` and write the predictions CSV."""
    log = setup_logger("cvstack", level_from_verbosity(verbose))
    log_section(log, "Cross-validated ensemble: predict")

    bundle = load_joblib(model_path)
    model = bundle["model"] if isinstance(bundle, dict) else bundle
    log.info(f"Loaded {type(model).__name__} from {model_path}")

    df = read_table(infile)
    preds = predict_frame(model, df, discrete=discrete)
    if id_col:
        preds.insert(0, id_col, df[id_col].to_numpy())

    outfile = Path(outfile) if outfile else Path(infile).with_name(Path(infile).stem + "_preds.csv")
    outfile.parent.mkdir(parents=True, exist_ok=True)
    preds.to_csv(outfile, index=False)
    log.info(f"Predictions saved: {outfile} ({len(preds):,} rows)")
    return preds
