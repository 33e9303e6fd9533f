"""
Nested cross-validation of the ensemble.

The whole fitting pipeline (inner folds, weights, refits) runs inside each
outer training set; the outer held-out fold is predicted by every candidate,
the blend and the discrete winner, so their risks are honestly comparable.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from cvstack.config.validation import (
    ConfigurationError,
    check_outcome,
    check_sample_weight,
)
from cvstack.data.folds import FoldAssignment, make_folds
from cvstack.data.io import as_covariate_frame
from cvstack.data.schema import BLEND_NAME, DISCRETE_NAME
from cvstack.models.candidate import Candidate
from cvstack.models.ensemble import SuperLearner
from cvstack.models.losses import risk_standard_error, weighted_risk
from cvstack.models.weights import get_optimizer
from cvstack.utils.random import get_cv_seed
from cvstack.utils.serialization import save_json

logger = logging.getLogger(__name__)


@dataclass
class NestedCVResult:
    """Held-out performance of every candidate, the blend and the discrete winner.

    Attributes:
        risk_table: Indexed by name; columns risk, se, min, max
        winner_counts: Times each candidate was the discrete winner
        fold_risks: Long table (outer_fold, name, risk)
        fold_weights: Blend weights, outer folds x candidates
        predictions: Held-out predictions, rows x names
        folds: Outer fold assignment
        family: Loss family
    """

    risk_table: pd.DataFrame
    winner_counts: pd.Series
    fold_risks: pd.DataFrame
    fold_weights: pd.DataFrame
    predictions: pd.DataFrame
    folds: FoldAssignment
    family: str

    @property
    def best(self) -> str:
        """Name with the lowest pooled held-out risk."""
        return str(self.risk_table["risk"].idxmin())


def _outer_fold(
    fold: int,
    train_idx: np.ndarray,
    valid_idx: np.ndarray,
    X: pd.DataFrame,
    y: np.ndarray,
    w: np.ndarray,
    pass_weights: bool,
    groups,
    library: list[Candidate],
    family: str,
    inner_folds: int,
    method,
    seed: int,
) -> dict:
    model = SuperLearner(
        library,
        family=family,
        n_folds=inner_folds,
        method=method,
        seed=get_cv_seed(seed, fold),
        n_jobs=1,
    ).fit(
        X.iloc[train_idx],
        y[train_idx],
        sample_weight=w[train_idx] if pass_weights else None,
        groups=None if groups is None else groups[train_idx],
    )

    X_valid = X.iloc[valid_idx]
    preds = model.predict_candidates(X_valid)
    fallback = float(np.average(y[train_idx], weights=w[train_idx]))
    for name in model.excluded:
        preds[name] = fallback
    preds = preds[model.candidate_names]
    preds[BLEND_NAME] = model.predict(X_valid)
    preds[DISCRETE_NAME] = model.predict(X_valid, discrete=True)

    return {
        "fold": fold,
        "valid_idx": valid_idx,
        "preds": preds,
        "weights": model.weights,
        "winner": model.discrete_winner,
    }


def nested_cv(
    X,
    y,
    library: Sequence[Candidate],
    family: str = "gaussian",
    outer_folds: int = 10,
    inner_folds: int = 10,
    method: str | None = None,
    seed: int = 0,
    sample_weight=None,
    groups=None,
    n_jobs: int = 1,
) -> NestedCVResult:
    """
    Evaluate the ensemble with nested cross-validation.

    Outer folds run as independent joblib jobs; each inner ensemble runs
    single-threaded with a seed derived from the outer fold index.

    Args:
        X: Covariates
        y: Outcome
        library: Candidates
        family: 'binomial' or 'gaussian'
        outer_folds: Number of outer folds
        inner_folds: Number of inner folds (ensemble CV)
        method: Weight optimizer (family default if None)
        seed: Base seed (outer folds use ``seed``; inner folds derive theirs)
        sample_weight: Observation weights (used for fitting and risks)
        groups: Cluster ids, honoured in outer and inner folds
        n_jobs: Parallel outer folds

    Returns:
        NestedCVResult
    """
    library = list(library)
    if not library:
        raise ConfigurationError("Candidate library is empty.")
    get_optimizer(method, family)
    X = as_covariate_frame(X)
    y = check_outcome(y, family)
    if len(X) != len(y):
        raise ConfigurationError(f"X has {len(X)} rows but y has {len(y)}.")
    w = check_sample_weight(sample_weight, len(y))
    groups = None if groups is None else np.asarray(groups)

    folds = make_folds(groups if groups is not None else len(y), outer_folds, seed=seed)
    logger.info(
        f"Nested CV: {outer_folds} outer x {inner_folds} inner folds, "
        f"{len(library)} candidates, n_jobs={n_jobs}"
    )

    outputs = Parallel(n_jobs=n_jobs)(
        delayed(_outer_fold)(
            v,
            tr,
            va,
            X,
            y,
            w,
            sample_weight is not None,
            groups,
            library,
            family,
            inner_folds,
            method,
            seed,
        )
        for v, (tr, va) in enumerate(folds.split())
    )

    names = [c.name for c in library] + [BLEND_NAME, DISCRETE_NAME]
    predictions = pd.DataFrame(np.nan, index=range(len(y)), columns=names)
    fold_risk_rows = []
    winners = []
    fold_weights = {}
    for out in sorted(outputs, key=lambda o: o["fold"]):
        va = out["valid_idx"]
        predictions.iloc[va] = out["preds"][names].to_numpy()
        risks = {
            name: weighted_risk(y[va], out["preds"][name].to_numpy(), w[va], family)
            for name in names
        }
        fold_risk_rows.extend(
            {"outer_fold": out["fold"], "name": name, "risk": risk} for name, risk in risks.items()
        )
        winners.append(out["winner"])
        fold_weights[out["fold"]] = out["weights"]
        logger.info(
            f"Outer fold {out['fold']}: winner={out['winner']}, "
            f"{BLEND_NAME} risk={risks[BLEND_NAME]:.6g}"
        )

    fold_risks = pd.DataFrame(fold_risk_rows)
    by_name = fold_risks.groupby("name")["risk"]
    risk_table = pd.DataFrame(
        {
            "risk": [weighted_risk(y, predictions[n].to_numpy(), w, family) for n in names],
            "se": [risk_standard_error(y, predictions[n].to_numpy(), w, family) for n in names],
            "min": by_name.min().reindex(names).to_numpy(),
            "max": by_name.max().reindex(names).to_numpy(),
        },
        index=pd.Index(names, name="name"),
    )

    winner_counts = (
        pd.Series(winners, dtype=object)
        .value_counts()
        .reindex([c.name for c in library], fill_value=0)
        .astype(int)
    )
    winner_counts.index.name = "candidate"
    winner_counts.name = "count"

    fold_weights = pd.DataFrame(fold_weights).T
    fold_weights.index.name = "outer_fold"

    return NestedCVResult(
        risk_table=risk_table,
        winner_counts=winner_counts,
        fold_risks=fold_risks,
        fold_weights=fold_weights,
        predictions=predictions,
        folds=folds,
        family=family,
    )


def save_nested_cv_results(result: NestedCVResult, outdir: str | Path) -> dict[str, Path]:
    """
    Write nested-CV tables to ``outdir``.

    Returns:
        Mapping of artifact name to written path
    """
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    paths = {
        "risk_table": outdir / "risk_table.csv",
        "winner_counts": outdir / "winner_counts.csv",
        "fold_risks": outdir / "fold_risks.csv",
        "fold_weights": outdir / "fold_weights.csv",
        "predictions": outdir / "nested_cv_predictions.csv",
        "summary": outdir / "nested_cv_summary.json",
    }
    result.risk_table.to_csv(paths["risk_table"])
    result.winner_counts.to_csv(paths["winner_counts"])
    result.fold_risks.to_csv(paths["fold_risks"], index=False)
    result.fold_weights.to_csv(paths["fold_weights"])
    predictions = result.predictions.copy()
    predictions.insert(0, "outer_fold", result.folds.folds)
    predictions.to_csv(paths["predictions"], index_label="row")
    save_json(
        {
            "family": result.family,
            "outer_folds": result.folds.n_folds,
            "best": result.best,
            "risk": result.risk_table["risk"].to_dict(),
        },
        paths["summary"],
    )
    for name, path in paths.items():
        logger.info(f"Saved {name}: {path}")
    return paths
