"""Tests for models.registry: learner/screen builders and library construction."""

import pytest
from cvstack.config import ConfigurationError, EnsembleConfig, LearnerSpec, ScreenSpec
from cvstack.features.screening import AllScreen, LassoScreen, UnivariateScreen
from cvstack.models.learners import MeanLearner, SklearnLearner
from cvstack.models.registry import (
    LEARNER_BUILDERS,
    SCREEN_BUILDERS,
    build_candidates,
    build_learner,
    build_library,
    build_screen,
)
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.pipeline import Pipeline


class TestBuilders:
    """Tests for build_learner / build_screen."""

    def test_registered_names(self):
        assert set(LEARNER_BUILDERS) == {
            "mean",
            "glm",
            "glmnet",
            "random_forest",
            "knn",
            "gbm",
            "xgboost",
        }
        assert set(SCREEN_BUILDERS) == {
            "all",
            "columns",
            "univariate",
            "correlation",
            "random_forest",
            "lasso",
        }

    def test_mean_learner(self):
        learner = build_learner(LearnerSpec(name="mean"), "gaussian")
        assert isinstance(learner, MeanLearner)
        assert learner.name == "mean"

    def test_glm_per_family(self):
        gaussian = build_learner(LearnerSpec(name="glm"), "gaussian")
        binomial = build_learner(LearnerSpec(name="glm"), "binomial")

        assert isinstance(gaussian, SklearnLearner)
        assert isinstance(gaussian.estimator, LinearRegression)
        assert isinstance(binomial.estimator, LogisticRegression)
        assert binomial.family == "binomial"

    def test_seed_bound_into_learner(self):
        learner = build_learner(LearnerSpec(name="random_forest"), "gaussian", seed=7)
        assert isinstance(learner.estimator, RandomForestRegressor)
        assert learner.estimator.random_state == 7

    def test_params_bound_into_learner(self):
        spec = LearnerSpec(name="random_forest", params={"n_estimators": 25})
        learner = build_learner(spec, "binomial")
        assert isinstance(learner.estimator, RandomForestClassifier)
        assert learner.estimator.n_estimators == 25

    def test_label_becomes_name(self):
        spec = LearnerSpec(name="knn", label="knn5", params={"n_neighbors": 5})
        learner = build_learner(spec, "gaussian")
        assert learner.name == "knn5"
        assert isinstance(learner.estimator, Pipeline)

    def test_invalid_params(self):
        with pytest.raises(ConfigurationError, match="Invalid parameters"):
            build_learner(LearnerSpec(name="knn", params={"bogus": 1}), "gaussian")

    def test_screens_get_family_and_seed(self):
        uni = build_screen(ScreenSpec(name="univariate"), "binomial")
        lasso = build_screen(ScreenSpec(name="lasso"), "gaussian", seed=3)

        assert isinstance(uni, UnivariateScreen)
        assert uni.family == "binomial"
        assert isinstance(lasso, LassoScreen)
        assert lasso.seed == 3

    def test_columns_screen_requires_columns(self):
        with pytest.raises(ConfigurationError, match="columns"):
            build_screen(ScreenSpec(name="columns"), "gaussian")


class TestBuildCandidates:
    """Tests for build_candidates / build_library."""

    def test_names_from_strings(self):
        candidates = build_candidates(["mean", "glm"])
        assert [c.name for c in candidates] == ["mean_all", "glm_all"]
        assert isinstance(candidates[0].screen, AllScreen)

    def test_learner_major_order(self):
        candidates = build_candidates(["mean", "glm"], ["all", {"name": "univariate"}])
        assert [c.name for c in candidates] == [
            "mean_all",
            "mean_univariate",
            "glm_all",
            "glm_univariate",
        ]

    def test_restricted_screens(self):
        library = [{"name": "mean", "screens": ["all"]}, {"name": "glm", "screens": ["top"]}]
        screens = ["all", {"name": "correlation", "label": "top", "params": {"top_n": 2}}]

        candidates = build_candidates(library, screens)

        assert [c.name for c in candidates] == ["mean_all", "glm_top"]
        assert candidates[1].screen.top_n == 2

    def test_empty_library(self):
        with pytest.raises(ConfigurationError, match="empty"):
            build_candidates([])

    def test_unknown_learner(self):
        with pytest.raises(ConfigurationError, match="Invalid LearnerSpec"):
            build_candidates(["svm"])

    def test_unknown_screen_reference(self):
        with pytest.raises(ConfigurationError, match="unknown screen"):
            build_candidates([{"name": "glm", "screens": ["lasso"]}])

    def test_duplicate_names(self):
        with pytest.raises(ConfigurationError, match="Duplicate candidate names"):
            build_candidates(["mean", "mean"])

    def test_build_library_from_config(self):
        config = EnsembleConfig(
            family="binomial",
            library=[{"name": "mean"}, {"name": "glmnet", "params": {"C": 0.5}}],
            seed=4,
        )
        candidates = build_library(config)

        assert [c.name for c in candidates] == ["mean_all", "glmnet_all"]
        assert candidates[1].learner.family == "binomial"

    def test_build_library_family_override(self):
        config = EnsembleConfig(family="binomial")
        candidates = build_library(config, family="gaussian")
        assert isinstance(candidates[1].learner.estimator, LinearRegression)
