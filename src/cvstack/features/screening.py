"""
Feature screening applied before a learner is fitted.

Every screen satisfies the same contract, ``select(X, y, sample_weight) ->
list of column names``, and is fitted inside each training fold together with
its learner so screening never sees held-out rows. A screen that keeps zero
columns raises ScreeningError, which the ensemble treats as a failure of that
candidate on that fold.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.feature_selection import f_classif, f_regression
from sklearn.linear_model import LassoCV, LogisticRegression
from sklearn.preprocessing import StandardScaler

from cvstack.utils.compat import logistic_penalty_kwargs

logger = logging.getLogger(__name__)


class ScreeningError(RuntimeError):
    """Raised when a screen selects no columns."""

    pass


class Screen(Protocol):
    """Contract for screening functions."""

    name: str

    def select(
        self, X: pd.DataFrame, y: np.ndarray, sample_weight: np.ndarray | None = None
    ) -> list[str]: ...


def _informative_rows(
    X: pd.DataFrame, y: np.ndarray, sample_weight: np.ndarray | None
) -> tuple[pd.DataFrame, np.ndarray, np.ndarray | None]:
    """Drop zero-weight rows; they carry no information for ranking columns."""
    if sample_weight is None:
        return X, np.asarray(y), None
    keep = np.asarray(sample_weight) > 0
    return X.loc[keep], np.asarray(y)[keep], np.asarray(sample_weight)[keep]


def _require_columns(selected: list[str], screen_name: str) -> list[str]:
    if not selected:
        raise ScreeningError(f"Screen '{screen_name}' selected zero columns")
    return selected


def _top_by_score(columns: list[str], scores: np.ndarray, n: int) -> list[str]:
    """Top ``n`` columns by descending score (NaN last), original order on ties."""
    scores = np.where(np.isfinite(scores), scores, -np.inf)
    order = np.argsort(-scores, kind="stable")
    return [columns[i] for i in order[: max(0, min(n, len(columns)))]]


@dataclass(frozen=True)
class AllScreen:
    """Keep every column."""

    name: str = "all"

    def select(self, X, y, sample_weight=None) -> list[str]:
        return _require_columns(list(X.columns), self.name)


@dataclass(frozen=True)
class ColumnScreen:
    """Keep an explicit list of columns (e.g. treatment plus a few covariates)."""

    columns: tuple[str, ...]
    name: str = "columns"

    def select(self, X, y, sample_weight=None) -> list[str]:
        missing = [c for c in self.columns if c not in X.columns]
        if missing:
            logger.debug(f"Screen '{self.name}': columns not in design matrix: {missing}")
        return _require_columns([c for c in self.columns if c in X.columns], self.name)


@dataclass(frozen=True)
class UnivariateScreen:
    """
    Keep columns whose univariate F-test p-value is below ``p_threshold``.

    Uses f_classif for binomial outcomes and f_regression for gaussian ones.
    Missing values are median-imputed before testing; zero-variance columns
    and columns with a non-finite statistic are never selected. When fewer
    than ``min_features`` columns pass, the ``min_features`` smallest p-values
    are kept; ``top_n`` caps the result.
    """

    family: str = "gaussian"
    p_threshold: float = 0.1
    min_features: int = 2
    top_n: int | None = None
    name: str = "univariate"

    def select(self, X, y, sample_weight=None) -> list[str]:
        X, y, _ = _informative_rows(X, y, sample_weight)
        columns = list(X.columns)

        Xn = X.apply(pd.to_numeric, errors="coerce")
        Ximp = Xn.fillna(Xn.median(axis=0, skipna=True))

        score_fn = f_classif if self.family == "binomial" else f_regression
        with np.errstate(divide="ignore", invalid="ignore"):
            F, pvals = score_fn(Ximp.to_numpy(dtype=float), np.asarray(y))

        # scikit-learn scores constant columns as F=0, p=1
        varying = (Ximp.nunique() > 1).to_numpy()
        F = np.asarray(F, dtype=float)
        pvals = np.where(np.isfinite(F) & varying, np.asarray(pvals, dtype=float), np.nan)

        ranked = _top_by_score(columns, -np.nan_to_num(pvals, nan=np.inf), len(columns))
        ranked = [c for c in ranked if np.isfinite(pvals[columns.index(c)])]

        selected = [c for c in ranked if pvals[columns.index(c)] < self.p_threshold]
        if len(selected) < self.min_features:
            selected = ranked[: self.min_features]
        if self.top_n is not None:
            selected = selected[: self.top_n]

        logger.debug(f"Screen '{self.name}': kept {len(selected)}/{len(columns)} columns")
        return _require_columns(selected, self.name)


@dataclass(frozen=True)
class CorrelationScreen:
    """Keep the ``top_n`` columns with the largest absolute Pearson correlation with y."""

    top_n: int = 10
    name: str = "correlation"

    def select(self, X, y, sample_weight=None) -> list[str]:
        X, y, _ = _informative_rows(X, y, sample_weight)
        columns = list(X.columns)
        Xv = X.to_numpy(dtype=float)
        yc = np.asarray(y, dtype=float) - np.mean(y)
        Xc = Xv - np.nanmean(Xv, axis=0)

        with np.errstate(divide="ignore", invalid="ignore"):
            denom = np.sqrt(np.nansum(Xc**2, axis=0) * np.sum(yc**2))
            corr = np.abs(np.nansum(Xc * yc[:, None], axis=0) / denom)

        selected = [c for c in _top_by_score(columns, corr, self.top_n)]
        selected = [c for c in selected if np.isfinite(corr[columns.index(c)])]
        return _require_columns(selected, self.name)


@dataclass(frozen=True)
class RandomForestScreen:
    """Keep the ``top_n`` columns by random forest impurity importance."""

    family: str = "gaussian"
    top_n: int = 10
    n_estimators: int = 200
    seed: int = 0
    name: str = "random_forest"

    def select(self, X, y, sample_weight=None) -> list[str]:
        X, y, w = _informative_rows(X, y, sample_weight)
        if self.family == "binomial":
            forest = RandomForestClassifier(
                n_estimators=self.n_estimators, min_samples_leaf=5, random_state=self.seed
            )
            y = np.asarray(y).astype(int)
        else:
            forest = RandomForestRegressor(
                n_estimators=self.n_estimators, min_samples_leaf=5, random_state=self.seed
            )
        forest.fit(X.to_numpy(dtype=float), y, sample_weight=w)
        selected = _top_by_score(list(X.columns), forest.feature_importances_, self.top_n)
        return _require_columns(selected, self.name)


@dataclass(frozen=True)
class LassoScreen:
    """
    Keep columns with a non-zero L1-penalised coefficient.

    Gaussian outcomes use LassoCV (penalty chosen by internal CV); binomial
    outcomes use an L1 logistic regression with inverse penalty ``C``. When
    fewer than ``min_features`` coefficients survive, the largest absolute
    coefficients are kept.
    """

    family: str = "gaussian"
    C: float = 1.0
    min_features: int = 2
    seed: int = 0
    name: str = "lasso"
    cv: int = field(default=5)

    def select(self, X, y, sample_weight=None) -> list[str]:
        X, y, w = _informative_rows(X, y, sample_weight)
        columns = list(X.columns)
        Xs = StandardScaler().fit_transform(X.to_numpy(dtype=float))

        if self.family == "binomial":
            model = LogisticRegression(
                solver="saga",
                max_iter=5000,
                random_state=self.seed,
                **logistic_penalty_kwargs("l1", C=self.C),
            )
            model.fit(Xs, np.asarray(y).astype(int), sample_weight=w)
            coef = np.abs(model.coef_[0])
        else:
            n_cv = max(2, min(self.cv, len(y)))
            model = LassoCV(cv=n_cv, random_state=self.seed)
            model.fit(Xs, np.asarray(y, dtype=float), sample_weight=w)
            coef = np.abs(model.coef_)

        selected = [c for c, b in zip(columns, coef, strict=True) if b > 0]
        if len(selected) < self.min_features:
            selected = _top_by_score(columns, coef, self.min_features)
        return _require_columns(selected, self.name)
