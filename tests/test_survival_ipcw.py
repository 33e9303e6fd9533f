"""Tests for survival.ipcw: horizon-risk ensembles with censoring weights."""

import numpy as np
import pandas as pd
import pytest
from cvstack.config.validation import ConfigurationError
from cvstack.models.registry import build_candidates
from cvstack.survival.censoring import fit_censoring_survival, ipcw_weights
from cvstack.survival.ipcw import IPCWEnsemble, fit_ipcw_ensemble, ipcw_family

HORIZON = 4


@pytest.fixture
def split(survival_data):
    X = survival_data[["x0", "x1"]]
    return X, survival_data["ftime"].to_numpy(), survival_data["ftype"].to_numpy()


def _library(variant):
    return build_candidates(["mean", "glm"], family=ipcw_family(variant))


def test_ipcw_family():
    assert ipcw_family("A") == "gaussian"
    assert ipcw_family("B") == "binomial"
    with pytest.raises(ConfigurationError, match="Unknown IPCW variant"):
        ipcw_family("C")


class TestVariantB:
    """Weighted binary regression on subjects observed through the horizon."""

    @pytest.fixture
    def result(self, split):
        X, ftime, ftype = split
        return fit_ipcw_ensemble(
            X, ftime, ftype, HORIZON, _library("B"), variant="B", n_folds=3, seed=0
        )

    def test_drops_censored_before_horizon(self, result, split):
        _, ftime, ftype = split
        censored_early = (ftype == 0) & (ftime <= HORIZON)

        assert isinstance(result, IPCWEnsemble)
        np.testing.assert_array_equal(result.rows, np.flatnonzero(~censored_early))
        assert result.model.Z.shape[0] == len(result.rows)
        assert result.model.family == "binomial"

    def test_weights_match_in_sample_table(self, result, split):
        _, ftime, ftype = split
        table = fit_censoring_survival(ftime, ftype)
        expected = ipcw_weights(ftime, ftype, HORIZON, table, variant="B")
        np.testing.assert_allclose(result.weights, expected)

    def test_predictions_are_probabilities(self, result, split):
        X, _, _ = split
        risk = result.predict(X)
        assert risk.shape == (len(X),)
        assert np.all((risk >= 0) & (risk <= 1))

    def test_folds_balanced_over_kept_rows(self, result):
        sizes = result.model.folds.sizes()
        assert sizes.sum() == len(result.rows)
        assert sizes.max() - sizes.min() <= 1

    def test_risk_increases_with_x0(self, result, split):
        X, _, _ = split
        new = X.iloc[:2].copy()
        new["x0"] = [-2.0, 2.0]
        new["x1"] = [0.0, 0.0]
        risk = result.predict(new)
        assert risk[1] > risk[0]


class TestVariantBFolds:
    """Fold balance after dropping units censored before the horizon."""

    @pytest.fixture
    def heavy_censoring(self):
        rng = np.random.default_rng(0)
        n = 60
        X = pd.DataFrame({"x0": rng.normal(size=n), "x1": rng.normal(size=n)})
        return X, rng.integers(1, 8, size=n), rng.integers(0, 2, size=n)

    @pytest.mark.parametrize("censoring_fit", ["in_sample", "cross_fit"])
    def test_fold_sizes_differ_by_at_most_one(self, heavy_censoring, censoring_fit):
        X, ftime, ftype = heavy_censoring
        result = fit_ipcw_ensemble(
            X,
            ftime,
            ftype,
            HORIZON,
            _library("B"),
            n_folds=5,
            seed=0,
            censoring_fit=censoring_fit,
        )

        sizes = result.model.folds.sizes()
        assert len(sizes) == 5
        assert sizes.sum() == len(result.rows)
        assert sizes.max() - sizes.min() <= 1

    def test_clusters_share_a_fold(self, heavy_censoring):
        X, ftime, ftype = heavy_censoring
        groups = np.repeat(np.arange(30), 2)
        result = fit_ipcw_ensemble(
            X,
            ftime,
            ftype,
            HORIZON,
            _library("B"),
            n_folds=5,
            censoring_fit="cross_fit",
            groups=groups,
        )

        kept_groups = groups[result.rows]
        folds = result.model.folds.folds
        for g in np.unique(kept_groups):
            assert len(np.unique(folds[kept_groups == g])) == 1

    def test_too_few_kept_rows(self):
        X = pd.DataFrame({"x": np.arange(6, dtype=float)})
        ftime = np.array([1, 2, 1, 2, 6, 6])
        ftype = np.array([0, 0, 0, 0, 1, 0])
        with pytest.raises(ConfigurationError, match="exceeds"):
            fit_ipcw_ensemble(X, ftime, ftype, HORIZON, _library("B"), n_folds=3)


class TestVariantA:
    """Pseudo-outcome regression with a gaussian library."""

    def test_fit(self, split):
        X, ftime, ftype = split
        result = fit_ipcw_ensemble(
            X, ftime, ftype, HORIZON, _library("A"), variant="A", n_folds=3, seed=0
        )

        assert result.model.family == "gaussian"
        assert result.model.method == "nnls"
        assert len(result.rows) == len(X)
        risk = result.predict(X)
        assert np.all((risk >= 0) & (risk <= 1))

    def test_nnloglik_rejected(self, split):
        X, ftime, ftype = split
        with pytest.raises(ConfigurationError, match="nnloglik"):
            fit_ipcw_ensemble(
                X, ftime, ftype, HORIZON, _library("A"), variant="A", method="nnloglik"
            )


class TestCensoringOptions:
    """Cross-fitted weights, strata and competing risks."""

    def test_cross_fit(self, split):
        X, ftime, ftype = split
        result = fit_ipcw_ensemble(
            X,
            ftime,
            ftype,
            HORIZON,
            _library("B"),
            censoring_fit="cross_fit",
            n_folds=3,
            seed=0,
        )

        censored_early = (ftype == 0) & (ftime <= HORIZON)
        assert result.censoring_fit == "cross_fit"
        assert np.all(result.weights[censored_early] == 0)
        assert np.all(result.weights[~censored_early] > 0)

    def test_stratified_censoring(self, split):
        X, ftime, ftype = split
        strata = (X["x1"].to_numpy() > 0).astype(int)
        result = fit_ipcw_ensemble(
            X, ftime, ftype, HORIZON, _library("B"), strata=strata, n_folds=3
        )
        assert result.table.stratified

    def test_competing_cause(self, split):
        X, ftime, ftype = split
        ftype = ftype.copy()
        ftype[::5] = np.where(ftype[::5] == 1, 2, ftype[::5])

        result = fit_ipcw_ensemble(X, ftime, ftype, HORIZON, _library("B"), cause=1, n_folds=3)

        competing = ftype == 2
        assert result.cause == 1
        assert np.all(result.weights[competing] > 0)

    def test_invalid_censoring_fit(self, split):
        X, ftime, ftype = split
        with pytest.raises(ConfigurationError, match="censoring_fit"):
            fit_ipcw_ensemble(X, ftime, ftype, HORIZON, _library("B"), censoring_fit="bootstrap")

    def test_invalid_horizon(self, split):
        X, ftime, ftype = split
        with pytest.raises(ConfigurationError, match="horizon"):
            fit_ipcw_ensemble(X, ftime, ftype, 0, _library("B"))
