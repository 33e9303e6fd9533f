"""Cross-validated stacking ensemble (super learner).

Architecture:
    1. Rows are split into V folds (clustered on ``groups`` when given)
    2. Every (fold, candidate) task fits screen + learner on the training rows
       and predicts the held-out fold; results fill the out-of-fold matrix Z
    3. A weight optimizer turns Z into non-negative weights summing to 1
    4. Every retained candidate is refit on all rows
    5. The discrete winner (lowest CV risk) is kept alongside the blend

Failure policy:
    - A task whose screen or learner raises predicts the weighted outcome mean
      of its training rows and is counted as a failure
    - A candidate failing on a strict majority of folds is excluded (weight 0)
    - A candidate whose full-data refit fails is excluded before weights are solved
    - Optimizer failure falls back to the discrete winner (``degraded=True``)
    - If every candidate is excluded, EnsembleFitError is raised
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

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
from cvstack.models.candidate import Candidate, FittedCandidate
from cvstack.models.losses import weighted_risk
from cvstack.models.weights import OptimizerError, get_optimizer
from cvstack.utils.serialization import library_versions, load_joblib, save_joblib

logger = logging.getLogger(__name__)


class EnsembleFitError(RuntimeError):
    """Raised when every candidate of the library has been excluded."""

    pass


@dataclass
class TaskResult:
    """Outcome of one (fold, candidate) task."""

    fold: int
    column: int
    pred: np.ndarray
    failed: bool = False
    error: str | None = None


def _fallback_mean(y: np.ndarray, w: np.ndarray) -> float:
    if w.sum() > 0:
        return float(np.average(y, weights=w))
    return float(np.mean(y))


def _run_fold_task(
    candidate: Candidate,
    X: pd.DataFrame,
    y: np.ndarray,
    w: np.ndarray,
    pass_weights: bool,
    train_idx: np.ndarray,
    valid_idx: np.ndarray,
    fold: int,
    column: int,
) -> TaskResult:
    """Fit ``candidate`` on the training rows and predict the held-out rows."""
    y_tr, w_tr = y[train_idx], w[train_idx]
    try:
        fitted = candidate.fit(X.iloc[train_idx], y_tr, w_tr if pass_weights else None)
        pred = candidate.predict(fitted, X.iloc[valid_idx])
        if pred.shape != (len(valid_idx),) or not np.all(np.isfinite(pred)):
            raise ValueError(f"invalid predictions (shape {pred.shape})")
        return TaskResult(fold=fold, column=column, pred=pred)
    except Exception as e:
        fallback = np.full(len(valid_idx), _fallback_mean(y_tr, w_tr))
        return TaskResult(
            fold=fold, column=column, pred=fallback, failed=True, error=f"{type(e).__name__}: {e}"
        )


def _refit(
    candidate: Candidate, X: pd.DataFrame, y: np.ndarray, w: np.ndarray | None
) -> FittedCandidate | str:
    try:
        return candidate.fit(X, y, w)
    except Exception as e:
        return f"{type(e).__name__}: {e}"


@dataclass
class EnsembleModel:
    """
    Fitted cross-validated ensemble.

    Attributes:
        candidates: Candidate objects by name, in library order
        family: 'binomial' or 'gaussian'
        method: Weight optimizer method used
        weights: Blend weight per candidate (0 for excluded candidates)
        cv_risk: Cross-validated risk per candidate
        Z: Out-of-fold predictions (rows x candidates)
        folds: Fold assignment used for Z
        fitted: Full-data refits of the retained candidates
        discrete_winner: Retained candidate with the lowest CV risk
        n_failed: Number of failed folds per candidate
        excluded: Candidates removed from the blend
        degraded: True when the optimizer failed and the discrete winner is used
        ensemble_cv_risk: Risk of the blended out-of-fold predictions
        feature_names: Covariate columns seen at fit time
        errors: First error message per failed candidate
    """

    candidates: dict[str, Candidate]
    family: str
    method: str
    weights: pd.Series
    cv_risk: pd.Series
    Z: pd.DataFrame
    folds: FoldAssignment
    fitted: dict[str, FittedCandidate]
    discrete_winner: str
    n_failed: pd.Series
    excluded: list[str] = field(default_factory=list)
    degraded: bool = False
    ensemble_cv_risk: float = float("nan")
    feature_names: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def candidate_names(self) -> list[str]:
        return list(self.candidates)

    @property
    def retained(self) -> list[str]:
        return [name for name in self.candidates if name not in self.excluded]

    def _prepare(self, X) -> pd.DataFrame:
        X = as_covariate_frame(X, self.feature_names)
        missing = [c for c in self.feature_names if c not in X.columns]
        if missing:
            raise ConfigurationError(f"Covariates missing at prediction time: {missing}")
        return X

    def predict_candidates(self, X) -> pd.DataFrame:
        """Predictions of every retained candidate's full-data refit."""
        X = self._prepare(X)
        return pd.DataFrame(
            {
                name: self.candidates[name].predict(self.fitted[name], X)
                for name in self.retained
            },
            index=X.index,
        )

    def predict(self, X, discrete: bool = False) -> np.ndarray:
        """
        Ensemble prediction.

        Args:
            X: Covariates with the fitted columns
            discrete: Return the discrete winner's prediction instead of the blend

        Returns:
            Predictions (n,)
        """
        preds = self.predict_candidates(X)
        if discrete:
            return preds[self.discrete_winner].to_numpy()
        optimizer = get_optimizer(self.method, self.family)
        return optimizer.combine(
            preds[self.retained].to_numpy(), self.weights[self.retained].to_numpy()
        )

    def summary(self) -> pd.DataFrame:
        """One row per candidate: risk, weight, failures, exclusion, winner flag."""
        return pd.DataFrame(
            {
                "candidate": self.candidate_names,
                "risk": self.cv_risk.reindex(self.candidate_names).to_numpy(),
                "weight": self.weights.reindex(self.candidate_names).to_numpy(),
                "n_failed_folds": self.n_failed.reindex(self.candidate_names).to_numpy(),
                "excluded": [name in self.excluded for name in self.candidate_names],
                "discrete_winner": [name == self.discrete_winner for name in self.candidate_names],
            }
        )

    def save(self, path: Path | str) -> None:
        """Save the fitted ensemble with the library versions it was built with.

        Args:
            path: Output path for joblib file
        """
        path = Path(path)
        bundle = {
            "model": self,
            "candidates": self.candidate_names,
            "family": self.family,
            "method": self.method,
            "versions": library_versions(),
        }
        save_joblib(bundle, path)
        logger.info(f"Ensemble saved to: {path}")

    @classmethod
    def load(cls, path: Path | str) -> EnsembleModel:
        """Load an ensemble saved with ``save`` (warns on library version mismatch)."""
        path = Path(path)
        bundle = load_joblib(path)
        model = bundle["model"] if isinstance(bundle, dict) else bundle
        if not isinstance(model, cls):
            raise TypeError(f"{path} does not contain an EnsembleModel")
        logger.info(f"Ensemble loaded from: {path}")
        return model


class SuperLearner:
    """Cross-validated stacking of a candidate library.

    Example:
        >>> library = build_candidates(["mean", "glm", "random_forest"], family="binomial")
        >>> sl = SuperLearner(library, family="binomial", n_folds=10, seed=1)
        >>> model = sl.fit(X, y)
        >>> p = model.predict(X_new)
    """

    def __init__(
        self,
        library: Sequence[Candidate],
        family: str = "gaussian",
        n_folds: int = 10,
        method: str | None = None,
        seed: int = 0,
        n_jobs: int = 1,
    ):
        """Initialize the orchestrator.

        Args:
            library: Candidates (names must be unique)
            family: 'binomial' (0/1 outcome, deviance loss) or 'gaussian' (squared error)
            n_folds: Number of cross-validation folds (V)
            method: Weight optimizer ('nnls', 'nnloglik', 'convex'); family default if None
            seed: Seed for the fold shuffle
            n_jobs: Parallel jobs for (fold, candidate) tasks
        """
        self.library = list(library)
        self.family = family
        self.n_folds = n_folds
        self.method = method
        self.seed = seed
        self.n_jobs = n_jobs

    def _validate(self, X, y, sample_weight, groups):
        if not self.library:
            raise ConfigurationError("Candidate library is empty.")
        names = [c.name for c in self.library]
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise ConfigurationError(f"Duplicate candidate names: {duplicated}")

        optimizer = get_optimizer(self.method, self.family)
        X = as_covariate_frame(X)
        y = check_outcome(y, self.family)
        if len(X) != len(y):
            raise ConfigurationError(f"X has {len(X)} rows but y has {len(y)}.")
        w = check_sample_weight(sample_weight, len(y))
        if groups is not None and len(groups) != len(y):
            raise ConfigurationError(f"groups has {len(groups)} entries, expected {len(y)}.")
        return X, y, w, optimizer

    def fit(
        self,
        X,
        y,
        sample_weight=None,
        groups=None,
        folds: FoldAssignment | None = None,
    ) -> EnsembleModel:
        """
        Fit the ensemble.

        Args:
            X: Covariates (DataFrame or 2-D array)
            y: Outcome (0/1 for binomial)
            sample_weight: Non-negative observation weights
            groups: Cluster ids; rows sharing an id share a fold
            folds: Precomputed fold assignment (overrides n_folds/seed/groups)

        Returns:
            EnsembleModel

        Raises:
            ConfigurationError: Invalid inputs (raised before any fitting)
            EnsembleFitError: Every candidate excluded
        """
        X, y, w, optimizer = self._validate(X, y, sample_weight, groups)
        pass_weights = sample_weight is not None

        if folds is None:
            folds = make_folds(
                np.asarray(groups) if groups is not None else len(y), self.n_folds, seed=self.seed
            )
        elif folds.n_samples != len(y):
            raise ConfigurationError(
                f"Fold assignment covers {folds.n_samples} rows, expected {len(y)}."
            )

        names = [c.name for c in self.library]
        k = len(names)
        logger.info(
            f"Fitting {k} candidates x {folds.n_folds} folds on {len(y):,} rows "
            f"(family={self.family}, method={optimizer.method}, n_jobs={self.n_jobs})"
        )

        # Step 1: out-of-fold predictions
        splits = list(folds.split())
        results = Parallel(n_jobs=self.n_jobs)(
            delayed(_run_fold_task)(cand, X, y, w, pass_weights, tr, va, v, j)
            for v, (tr, va) in enumerate(splits)
            for j, cand in enumerate(self.library)
        )

        Z = np.empty((len(y), k), dtype=float)
        n_failed = np.zeros(k, dtype=int)
        errors: dict[str, str] = {}
        for res in results:
            Z[splits[res.fold][1], res.column] = res.pred
            if res.failed:
                n_failed[res.column] += 1
                errors.setdefault(names[res.column], res.error)
                logger.warning(
                    f"Candidate '{names[res.column]}' failed on fold {res.fold}: {res.error}"
                )

        cv_risk = pd.Series(
            [weighted_risk(y, Z[:, j], w, self.family) for j in range(k)], index=names, dtype=float
        )

        excluded = [names[j] for j in range(k) if n_failed[j] > folds.n_folds / 2]
        for name in excluded:
            logger.warning(
                f"Excluding '{name}': failed on {n_failed[names.index(name)]}/{folds.n_folds} folds"
            )

        # Step 2: full-data refits
        retained = [j for j in range(k) if names[j] not in excluded]
        refits = Parallel(n_jobs=self.n_jobs)(
            delayed(_refit)(self.library[j], X, y, w if pass_weights else None) for j in retained
        )
        fitted: dict[str, FittedCandidate] = {}
        for j, out in zip(retained, refits, strict=True):
            if isinstance(out, str):
                logger.warning(f"Excluding '{names[j]}': full-data refit failed: {out}")
                excluded.append(names[j])
                errors.setdefault(names[j], out)
            else:
                fitted[names[j]] = out

        retained = [j for j in range(k) if names[j] not in excluded]
        if not retained:
            raise EnsembleFitError(
                f"All {k} candidates were excluded. First errors: {dict(list(errors.items())[:3])}"
            )
        retained_names = [names[j] for j in retained]

        # Step 3: weights and discrete winner
        discrete_winner = cv_risk[retained_names].idxmin()
        weights = pd.Series(0.0, index=names)
        degraded = False
        try:
            a = optimizer.solve(Z[:, retained], y, w)
            weights[retained_names] = a
        except OptimizerError as e:
            logger.warning(
                f"Weight optimizer failed ({e}); using discrete winner '{discrete_winner}'"
            )
            weights[discrete_winner] = 1.0
            degraded = True

        blended = optimizer.combine(Z[:, retained], weights[retained_names].to_numpy())
        ensemble_cv_risk = weighted_risk(y, blended, w, self.family)

        logger.info(
            f"Discrete winner: {discrete_winner} (risk={cv_risk[discrete_winner]:.6g}); "
            f"ensemble CV risk={ensemble_cv_risk:.6g}"
        )
        for name in retained_names:
            logger.debug(f"  {name}: risk={cv_risk[name]:.6g} weight={weights[name]:.4f}")

        return EnsembleModel(
            candidates={c.name: c for c in self.library},
            family=self.family,
            method=optimizer.method,
            weights=weights,
            cv_risk=cv_risk,
            Z=pd.DataFrame(Z, columns=names),
            folds=folds,
            fitted=fitted,
            discrete_winner=discrete_winner,
            n_failed=pd.Series(n_failed, index=names),
            excluded=excluded,
            degraded=degraded,
            ensemble_cv_risk=ensemble_cv_risk,
            feature_names=list(X.columns),
            errors=errors,
        )


def fit_super_learner(
    X,
    y,
    library: Sequence[Candidate],
    family: str = "gaussian",
    n_folds: int = 10,
    method: str | None = None,
    seed: int = 0,
    sample_weight=None,
    groups=None,
    n_jobs: int = 1,
) -> EnsembleModel:
    """Functional form of ``SuperLearner(...).fit(...)``."""
    return SuperLearner(
        library, family=family, n_folds=n_folds, method=method, seed=seed, n_jobs=n_jobs
    ).fit(X, y, sample_weight=sample_weight, groups=groups)


def predict_ensemble(model: EnsembleModel, X, discrete: bool = False) -> np.ndarray:
    """Functional form of ``EnsembleModel.predict``."""
    return model.predict(X, discrete=discrete)


def ensemble_weights_dict(model: EnsembleModel) -> dict[str, Any]:
    """JSON-ready description of the blend (written to weights.json)."""
    return {
        "family": model.family,
        "method": model.method,
        "weights": model.weights.to_dict(),
        "discrete_winner": model.discrete_winner,
        "excluded": list(model.excluded),
        "degraded": model.degraded,
        "ensemble_cv_risk": model.ensemble_cv_risk,
        "n_folds": model.folds.n_folds,
    }
