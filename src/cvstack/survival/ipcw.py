"""
Horizon-risk ensemble with inverse-probability-of-censoring weights.

Estimates ``P(T <= horizon, cause | X)`` from right-censored data:

- Variant A: gaussian ensemble on the pseudo-outcome ``1(event, T <= h) / G(T)``
- Variant B: binomial ensemble on ``1(event, T <= h)`` weighted by ``w_B``;
  units censored before the horizon (weight 0) are dropped

Censoring weights come either from one curve fitted on all rows
(``censoring_fit="in_sample"``) or, per fold, from the other folds only
(``censoring_fit="cross_fit"``).
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from cvstack.config.validation import ConfigurationError
from cvstack.data.folds import FoldAssignment, make_folds
from cvstack.data.io import as_covariate_frame, check_survival_columns
from cvstack.data.schema import CENSORED
from cvstack.models.candidate import Candidate
from cvstack.models.ensemble import EnsembleModel, SuperLearner
from cvstack.survival.censoring import (
    CensoringTable,
    cross_fit_ipcw_weights,
    event_indicator,
    fit_censoring_survival,
    ipcw_weights,
)
from cvstack.utils.random import make_rng

logger = logging.getLogger(__name__)

IPCW_FAMILY = {"A": "gaussian", "B": "binomial"}


def ipcw_family(variant: str) -> str:
    """Outcome family the candidate library must be built for."""
    if variant not in IPCW_FAMILY:
        raise ConfigurationError(f"Unknown IPCW variant: {variant!r} (expected 'A' or 'B')")
    return IPCW_FAMILY[variant]


@dataclass
class IPCWEnsemble:
    """Fitted horizon-risk ensemble.

    Attributes:
        model: Ensemble fitted on the IPCW outcome
        table: Censoring curve fitted on all rows (reporting / in-sample weights)
        weights: IPCW weight of every input row
        rows: Positions of the input rows used for fitting
        horizon: Risk horizon
        variant: 'A' or 'B'
        censoring_fit: 'in_sample' or 'cross_fit'
        cause: Event type of interest (None = any)
    """

    model: EnsembleModel
    table: CensoringTable
    weights: np.ndarray
    rows: np.ndarray
    horizon: int
    variant: str
    censoring_fit: str
    cause: int | None = None

    def predict(self, X, discrete: bool = False) -> np.ndarray:
        """Predicted risk by the horizon, clipped to [0, 1]."""
        return np.clip(self.model.predict(X, discrete=discrete), 0.0, 1.0)


def _variant_b_folds(
    kept: np.ndarray, n_folds: int, seed: int, groups
) -> tuple[FoldAssignment, FoldAssignment]:
    """
    Folds for variant B, balanced over the rows that keep a positive weight.

    The kept rows (or their clusters) are dealt with ``make_folds``. Dropped
    rows only feed the cross-fitted censoring curves: they join their
    cluster's fold when the cluster has kept rows, otherwise they are dealt
    round-robin in a seeded order.

    Returns:
        (assignment of all rows, assignment of the kept rows)
    """
    kept_rows = np.flatnonzero(kept)
    dropped_rows = np.flatnonzero(~kept)
    kept_folds = make_folds(
        groups[kept_rows] if groups is not None else len(kept_rows), n_folds, seed=seed
    )

    folds = np.empty(len(kept), dtype=int)
    folds[kept_rows] = kept_folds.folds
    if len(dropped_rows):
        if groups is not None:
            cluster_fold = dict(zip(groups[kept_rows], kept_folds.folds, strict=True))
            units, inverse = np.unique(groups[dropped_rows], return_inverse=True)
        else:
            cluster_fold = {}
            units, inverse = dropped_rows, np.arange(len(dropped_rows))
        order = make_rng(seed).permutation(len(units))
        unit_folds = np.empty(len(units), dtype=int)
        unit_folds[order] = np.arange(len(units)) % n_folds
        for i, unit in enumerate(units):
            unit_folds[i] = cluster_fold.get(unit, unit_folds[i])
        folds[dropped_rows] = unit_folds[np.asarray(inverse).reshape(-1)]

    return FoldAssignment(folds=folds, n_folds=n_folds), kept_folds


def fit_ipcw_ensemble(
    X,
    ftime,
    ftype,
    horizon: int,
    library: Sequence[Candidate],
    variant: str = "B",
    strata=None,
    censoring_fit: str = "in_sample",
    n_folds: int = 10,
    method: str | None = None,
    seed: int = 0,
    cause: int | None = None,
    groups=None,
    n_jobs: int = 1,
) -> IPCWEnsemble:
    """
    Fit an ensemble for the risk of ``cause`` by ``horizon``.

    Args:
        X: Covariates, one row per subject
        ftime: Integer follow-up times (>= 1)
        ftype: Event types (0 = censored)
        horizon: Risk horizon
        library: Candidates built for ``ipcw_family(variant)``
        variant: 'A' (pseudo-outcome regression) or 'B' (weighted classification)
        strata: Optional censoring strata
        censoring_fit: 'in_sample' or 'cross_fit'
        n_folds: Number of folds (ensemble and cross-fitted weights)
        method: Weight optimizer (family default if None)
        seed: Fold seed
        cause: Event type of interest (default: any event)
        groups: Cluster ids
        n_jobs: Parallel jobs

    Returns:
        IPCWEnsemble
    """
    family = ipcw_family(variant)
    if censoring_fit not in ("in_sample", "cross_fit"):
        raise ConfigurationError(
            f"censoring_fit must be 'in_sample' or 'cross_fit', got {censoring_fit!r}"
        )
    if int(horizon) != horizon or horizon < 1:
        raise ConfigurationError(f"horizon must be an integer >= 1, got {horizon}.")

    X = as_covariate_frame(X)
    ftime, ftype = check_survival_columns(ftime, ftype)
    if len(X) != len(ftime):
        raise ConfigurationError(f"X has {len(X)} rows but ftime has {len(ftime)}.")
    groups = None if groups is None else np.asarray(groups)

    # Variant B drops units censored before the horizon; folds are dealt over the rest
    if variant == "A":
        kept = np.ones(len(ftime), dtype=bool)
        folds = make_folds(groups if groups is not None else len(ftime), n_folds, seed=seed)
        fold_assignment = folds
    else:
        kept = ~((ftype == CENSORED) & (ftime <= horizon))
        folds, fold_assignment = _variant_b_folds(kept, n_folds, seed, groups)

    table = fit_censoring_survival(ftime, ftype, strata)
    if censoring_fit == "cross_fit":
        weights = cross_fit_ipcw_weights(
            ftime, ftype, horizon, folds, strata=strata, variant=variant, cause=cause
        )
    else:
        weights = ipcw_weights(
            ftime, ftype, horizon, table, strata=strata, variant=variant, cause=cause
        )

    rows = np.flatnonzero(kept)
    if variant == "A":
        y = weights
        sample_weight = None
    else:
        y = (event_indicator(ftype, cause) & (ftime <= horizon)).astype(float)[rows]
        sample_weight = weights[rows]
        logger.info(
            f"IPCW variant B: dropped {len(ftime) - len(rows)} rows censored before t={horizon}"
        )

    logger.info(
        f"IPCW ensemble (variant {variant}, {censoring_fit} censoring weights): "
        f"{len(rows)} rows, horizon={horizon}"
    )
    model = SuperLearner(
        library, family=family, n_folds=n_folds, method=method, seed=seed, n_jobs=n_jobs
    ).fit(X.iloc[rows], y, sample_weight=sample_weight, folds=fold_assignment)

    return IPCWEnsemble(
        model=model,
        table=table,
        weights=weights,
        rows=rows,
        horizon=int(horizon),
        variant=variant,
        censoring_fit=censoring_fit,
        cause=cause,
    )
