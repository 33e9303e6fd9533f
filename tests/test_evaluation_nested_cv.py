"""Tests for evaluation.nested_cv module."""

import numpy as np
import pandas as pd
import pytest
from cvstack.config.validation import ConfigurationError
from cvstack.evaluation.nested_cv import NestedCVResult, nested_cv, save_nested_cv_results
from cvstack.models.registry import build_candidates
from cvstack.utils.serialization import load_json


@pytest.fixture
def result(gaussian_data):
    X, y = gaussian_data
    library = build_candidates(["mean", "glm"], family="gaussian")
    return nested_cv(X, y, library, family="gaussian", outer_folds=3, inner_folds=3, seed=2)


class TestNestedCV:
    """Tests for nested_cv."""

    def test_risk_table_layout(self, result):
        assert isinstance(result, NestedCVResult)
        assert result.risk_table.index.tolist() == [
            "mean_all",
            "glm_all",
            "SuperLearner",
            "DiscreteSL",
        ]
        assert list(result.risk_table.columns) == ["risk", "se", "min", "max"]
        assert result.risk_table.index.name == "name"

    def test_pooled_risk_between_fold_extremes(self, result):
        table = result.risk_table
        assert np.all(table["min"] <= table["risk"] + 1e-12)
        assert np.all(table["risk"] <= table["max"] + 1e-12)
        assert np.all(table["se"] > 0)

    def test_every_row_predicted_once(self, result, gaussian_data):
        _, y = gaussian_data
        assert result.predictions.shape == (len(y), 4)
        assert not result.predictions.isna().any().any()
        assert sorted(np.unique(result.folds.folds).tolist()) == [0, 1, 2]

    def test_winner_counts(self, result):
        assert result.winner_counts.sum() == 3
        assert result.winner_counts.index.tolist() == ["mean_all", "glm_all"]
        assert result.winner_counts["glm_all"] == 3

    def test_fold_weights(self, result):
        assert result.fold_weights.shape == (3, 2)
        np.testing.assert_allclose(result.fold_weights.sum(axis=1), 1.0)

    def test_fold_risks_long_format(self, result):
        assert list(result.fold_risks.columns) == ["outer_fold", "name", "risk"]
        assert len(result.fold_risks) == 3 * 4

    def test_glm_beats_mean(self, result):
        table = result.risk_table
        assert table.loc["glm_all", "risk"] < table.loc["mean_all", "risk"]
        assert result.best != "mean_all"

    def test_reproducible(self, gaussian_data, result):
        X, y = gaussian_data
        library = build_candidates(["mean", "glm"], family="gaussian")
        again = nested_cv(X, y, library, outer_folds=3, inner_folds=3, seed=2)
        pd.testing.assert_frame_equal(again.risk_table, result.risk_table)

    def test_binomial_with_weights_and_groups(self, binomial_data):
        X, y = binomial_data
        library = build_candidates(["mean", "glm"], family="binomial")
        w = np.linspace(0.5, 1.5, len(y))
        groups = np.repeat(np.arange(50), 3)

        out = nested_cv(
            X,
            y,
            library,
            family="binomial",
            outer_folds=3,
            inner_folds=3,
            sample_weight=w,
            groups=groups,
        )

        for g in np.unique(groups):
            assert len(np.unique(out.folds.folds[groups == g])) == 1
        assert np.all((out.predictions.to_numpy() >= 0) & (out.predictions.to_numpy() <= 1))

    def test_empty_library(self, gaussian_data):
        X, y = gaussian_data
        with pytest.raises(ConfigurationError, match="empty"):
            nested_cv(X, y, [], outer_folds=3, inner_folds=3)

    def test_invalid_method(self, gaussian_data):
        X, y = gaussian_data
        with pytest.raises(ConfigurationError, match="nnloglik"):
            nested_cv(X, y, build_candidates(["mean"]), method="nnloglik")


def test_save_nested_cv_results(tmp_path, result):
    paths = save_nested_cv_results(result, tmp_path / "nested")

    for path in paths.values():
        assert path.exists()

    risk_table = pd.read_csv(paths["risk_table"], index_col="name")
    assert risk_table.index.tolist() == result.risk_table.index.tolist()

    summary = load_json(paths["summary"])
    assert summary["outer_folds"] == 3
    assert summary["best"] == result.best
