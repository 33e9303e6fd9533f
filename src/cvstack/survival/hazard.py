"""
Discrete-time hazard ensembles.

Two ways of estimating ``h(t | X) = P(T = t | T >= t, X)`` with the
cross-validated ensemble:

- PooledHazardEnsemble: one binomial ensemble on all person-period records,
  with the time ``t`` as an extra covariate. Folds are clustered by subject so
  a subject's records never straddle training and validation.
- PerTimeHazardEnsemble: an independent binomial ensemble per time, fitted on
  the subjects still at risk at that time (no time covariate).

Both turn hazards into survival curves ``S(t) = prod_{s <= t} (1 - h(s))``.
"""

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd

from cvstack.config.validation import ConfigurationError, check_sample_weight
from cvstack.data.io import as_covariate_frame, check_survival_columns
from cvstack.data.schema import EVENT_COL, FTIME_COL, FTYPE_COL, ID_COL, TIME_COL
from cvstack.models.candidate import Candidate
from cvstack.models.ensemble import EnsembleModel, SuperLearner
from cvstack.survival.censoring import event_indicator
from cvstack.survival.person_period import (
    expand_person_period,
    hazard_frame,
    prediction_grid,
)
from cvstack.utils.random import get_cv_seed

logger = logging.getLogger(__name__)


class _HazardEnsembleBase:
    """Shared constructor, input checks and survival conversion."""

    def __init__(
        self,
        library: Sequence[Candidate],
        horizon: int,
        n_folds: int = 10,
        method: str | None = None,
        seed: int = 0,
        cause: int | None = None,
        n_jobs: int = 1,
    ):
        if int(horizon) != horizon or horizon < 1:
            raise ConfigurationError(f"horizon must be an integer >= 1, got {horizon}.")
        self.library = list(library)
        self.horizon = int(horizon)
        self.n_folds = n_folds
        self.method = method
        self.seed = seed
        self.cause = cause
        self.n_jobs = n_jobs
        self.feature_names_: list[str] | None = None

    def _check_inputs(self, X, ftime, ftype, ids, sample_weight):
        X = as_covariate_frame(X)
        ftime, ftype = check_survival_columns(ftime, ftype)
        if len(X) != len(ftime):
            raise ConfigurationError(f"X has {len(X)} rows but ftime has {len(ftime)}.")
        clash = [c for c in X.columns if c in (ID_COL, TIME_COL, EVENT_COL, FTIME_COL, FTYPE_COL)]
        if clash:
            raise ConfigurationError(f"Covariate names are reserved: {clash}")
        if ids is not None:
            ids = np.asarray(ids)
            if len(ids) != len(X):
                raise ConfigurationError(f"ids has {len(ids)} entries, expected {len(X)}.")
        w = None if sample_weight is None else check_sample_weight(sample_weight, len(X))
        self.feature_names_ = list(X.columns)
        return X, ftime, ftype, ids, w

    def _check_fitted(self, X) -> pd.DataFrame:
        if self.feature_names_ is None:
            raise RuntimeError(f"{type(self).__name__} is not fitted.")
        X = as_covariate_frame(X)
        missing = [c for c in self.feature_names_ if c not in X.columns]
        if missing:
            raise ConfigurationError(f"Covariates missing at prediction time: {missing}")
        return X[self.feature_names_]

    def predict_hazard(self, X) -> pd.DataFrame:
        raise NotImplementedError

    def predict_survival(self, X) -> pd.DataFrame:
        """Survival curves, rows = subjects of ``X``, columns t = 1..horizon."""
        return (1.0 - self.predict_hazard(X)).cumprod(axis=1)

    def predict_risk(self, X, time: int | None = None) -> np.ndarray:
        """Cumulative risk ``1 - S(time)`` (default: at the horizon)."""
        time = self.horizon if time is None else int(time)
        if not 1 <= time <= self.horizon:
            raise ValueError(f"time must be in [1, {self.horizon}], got {time}")
        return 1.0 - self.predict_survival(X)[time].to_numpy()


class PooledHazardEnsemble(_HazardEnsembleBase):
    """Single ensemble over all person-period records with ``t`` as a covariate.

    Example:
        >>> library = build_candidates(["mean", "glm"], family="binomial")
        >>> model = PooledHazardEnsemble(library, horizon=5, n_folds=5).fit(X, ftime, ftype)
        >>> S = model.predict_survival(X_new)
    """

    def fit(self, X, ftime, ftype, ids=None, sample_weight=None):
        """
        Fit the pooled hazard ensemble.

        Args:
            X: Covariates, one row per subject
            ftime: Integer follow-up times (>= 1)
            ftype: Event types (0 = censored)
            ids: Cluster ids (subjects sharing an id share a fold)
            sample_weight: Per-subject weights, repeated on every record

        Returns:
            self
        """
        X, ftime, ftype, ids, w = self._check_inputs(X, ftime, ftype, ids, sample_weight)

        data = X.assign(**{FTIME_COL: ftime, FTYPE_COL: ftype})
        pp = expand_person_period(data, self.horizon, FTIME_COL, FTYPE_COL, cause=self.cause)
        subject = pp[ID_COL].to_numpy()
        groups = subject if ids is None else ids[subject]

        covariates = self.feature_names_ + [TIME_COL]
        logger.info(
            f"Pooled hazard ensemble: {len(X)} subjects -> {len(pp)} records, "
            f"{int(pp[EVENT_COL].sum())} events, horizon={self.horizon}"
        )
        self.model_: EnsembleModel = SuperLearner(
            self.library,
            family="binomial",
            n_folds=self.n_folds,
            method=self.method,
            seed=self.seed,
            n_jobs=self.n_jobs,
        ).fit(
            pp[covariates],
            pp[EVENT_COL].to_numpy(dtype=float),
            sample_weight=None if w is None else w[subject],
            groups=groups,
        )
        return self

    def predict_hazard(self, X, discrete: bool = False) -> pd.DataFrame:
        """Hazards, rows = subjects of ``X``, columns t = 1..horizon."""
        X = self._check_fitted(X)
        grid = prediction_grid(X, self.horizon)
        h = self.model_.predict(grid[self.feature_names_ + [TIME_COL]], discrete=discrete)
        wide = hazard_frame(h, grid[ID_COL], grid[TIME_COL], self.horizon)
        return wide.reset_index(drop=True)


class PerTimeHazardEnsemble(_HazardEnsembleBase):
    """
    One ensemble per time, fitted on the subjects at risk at that time.

    A time whose outcome is constant among those at risk, or with fewer
    at-risk units than folds, uses the weighted marginal event rate.
    """

    def fit(self, X, ftime, ftype, ids=None, sample_weight=None):
        """Fit an ensemble (or marginal rate) for every t = 1..horizon; returns self."""
        X, ftime, ftype, ids, w = self._check_inputs(X, ftime, ftype, ids, sample_weight)
        w_all = np.ones(len(X)) if w is None else w
        is_event = event_indicator(ftype, self.cause)

        self.models_: dict[int, EnsembleModel | float] = {}
        for t in range(1, self.horizon + 1):
            at_risk = ftime >= t
            y_t = ((ftime == t) & is_event)[at_risk].astype(float)
            w_t = w_all[at_risk]
            units = len(np.unique(ids[at_risk])) if ids is not None else int(at_risk.sum())

            if units == 0:
                self.models_[t] = 0.0
                logger.info(f"t={t}: nobody at risk; hazard set to 0")
                continue

            rate = float(np.average(y_t, weights=w_t)) if w_t.sum() > 0 else float(y_t.mean())
            if units < self.n_folds or np.all(y_t == y_t[0]):
                self.models_[t] = rate
                logger.info(
                    f"t={t}: {units} units at risk, {int(y_t.sum())} events; "
                    f"using marginal hazard {rate:.4f}"
                )
                continue

            logger.info(f"t={t}: fitting ensemble on {units} units at risk")
            self.models_[t] = SuperLearner(
                self.library,
                family="binomial",
                n_folds=self.n_folds,
                method=self.method,
                seed=get_cv_seed(self.seed, t - 1),
                n_jobs=self.n_jobs,
            ).fit(
                X.loc[at_risk].reset_index(drop=True),
                y_t,
                sample_weight=None if w is None else w_t,
                groups=None if ids is None else ids[at_risk],
            )
        return self

    def predict_hazard(self, X, discrete: bool = False) -> pd.DataFrame:
        """Hazards, rows = subjects of ``X``, columns t = 1..horizon."""
        X = self._check_fitted(X)
        columns = {}
        for t in range(1, self.horizon + 1):
            model = self.models_[t]
            if isinstance(model, EnsembleModel):
                columns[t] = model.predict(X, discrete=discrete)
            else:
                columns[t] = np.full(len(X), model)
        wide = pd.DataFrame(columns).clip(0.0, 1.0)
        wide.columns.name = TIME_COL
        return wide


def fit_hazard_ensemble(
    X,
    ftime,
    ftype,
    library: Sequence[Candidate],
    horizon: int,
    pool_across_time: bool = True,
    n_folds: int = 10,
    method: str | None = None,
    seed: int = 0,
    cause: int | None = None,
    ids=None,
    sample_weight=None,
    n_jobs: int = 1,
) -> PooledHazardEnsemble | PerTimeHazardEnsemble:
    """Fit the pooled (default) or per-time hazard ensemble."""
    cls = PooledHazardEnsemble if pool_across_time else PerTimeHazardEnsemble
    return cls(
        library,
        horizon,
        n_folds=n_folds,
        method=method,
        seed=seed,
        cause=cause,
        n_jobs=n_jobs,
    ).fit(X, ftime, ftype, ids=ids, sample_weight=sample_weight)
