"""
Tests for configuration loading, overrides and validation.
"""

from pathlib import Path

import numpy as np
import pytest
import yaml
from cvstack.config import (
    ConfigurationError,
    ConfigValidationWarning,
    EnsembleConfig,
    apply_overrides,
    check_n_folds,
    check_outcome,
    check_sample_weight,
    load_ensemble_config,
    load_yaml,
    save_config,
    validate_config,
)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"


# ==================== Loading ====================


class TestLoadEnsembleConfig:
    """Tests for load_ensemble_config."""

    def test_defaults(self):
        """Should build a valid config without any file."""
        config = load_ensemble_config()

        assert config.family == "gaussian"
        assert config.folds == 10
        assert config.method is None
        assert [spec.name for spec in config.library] == ["mean", "glm"]
        assert [spec.name for spec in config.screens] == ["all"]
        assert config.survival is None
        assert config.nested.outer_folds == 10

    def test_overrides(self):
        """Should apply dot-notation overrides with type parsing."""
        config = load_ensemble_config(
            overrides=["family=binomial", "folds=5", "nested.outer_folds=3"]
        )

        assert config.family == "binomial"
        assert config.folds == 5
        assert config.nested.outer_folds == 3

    def test_survival_override_fills_defaults(self):
        """Should create the survival section with its defaults."""
        config = load_ensemble_config(overrides=["survival.horizon=4"])

        assert config.survival.horizon == 4
        assert config.survival.mode == "hazard"
        assert config.survival.variant == "B"
        assert config.survival.censoring_fit == "in_sample"

    def test_invalid_value(self):
        """Should wrap pydantic errors in ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Invalid ensemble configuration"):
            load_ensemble_config(overrides=["family=poisson"])

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            load_ensemble_config(overrides=["not_a_key=1"])

    def test_yaml_with_base(self, tmp_path):
        """Should deep-merge a child file over its _base."""
        base = {"family": "binomial", "folds": 5, "nested": {"outer_folds": 4}}
        child = {"_base": "base.yaml", "folds": 3, "library": [{"name": "mean"}]}
        (tmp_path / "base.yaml").write_text(yaml.dump(base))
        (tmp_path / "child.yaml").write_text(yaml.dump(child))

        config = load_ensemble_config(tmp_path / "child.yaml")

        assert config.family == "binomial"
        assert config.folds == 3
        assert config.nested.outer_folds == 4
        assert [spec.name for spec in config.library] == ["mean"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_shipped_configs(self):
        """Should load the example configuration files."""
        ensemble = load_ensemble_config(CONFIG_DIR / "ensemble.yaml")
        survival = load_ensemble_config(CONFIG_DIR / "survival.yaml")

        assert len(ensemble.library) > 2
        assert survival.survival.horizon == 5
        assert [s.name for s in survival.library] == [s.name for s in ensemble.library]

    def test_save_round_trip(self, tmp_path):
        config = load_ensemble_config(overrides=["folds=4", "survival.horizon=3"])
        save_config(config, tmp_path / "config.yaml")

        reloaded = load_ensemble_config(tmp_path / "config.yaml")
        assert reloaded.folds == 4
        assert reloaded.survival.horizon == 3


class TestApplyOverrides:
    """Tests for override parsing."""

    def test_scalar_types(self):
        out = apply_overrides({}, ["a=1", "b=0.5", "c=true", "d=none", "e=text"])
        assert out == {"a": 1, "b": 0.5, "c": True, "d": None, "e": "text"}

    def test_string_keys_not_parsed(self):
        out = apply_overrides({}, ["outcome_col=123"])
        assert out["outcome_col"] == "123"

    def test_list_keys(self):
        out = apply_overrides({}, ["covariates=x1", "nested.values=1,2"])
        assert out["covariates"] == ["x1"]
        assert out["nested"]["values"] == [1, 2]

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid override format"):
            apply_overrides({}, ["folds"])


# ==================== Schema ====================


class TestSchema:
    """Tests for EnsembleConfig cross-field validation."""

    def test_duplicate_learner_labels(self):
        with pytest.raises(ValueError, match="Duplicate learner labels"):
            EnsembleConfig(library=[{"name": "glm"}, {"name": "glm"}])

    def test_labels_make_learners_distinct(self):
        config = EnsembleConfig(
            library=[
                {"name": "knn", "params": {"n_neighbors": 5}},
                {"name": "knn", "label": "knn20"},
            ]
        )
        assert [spec.key for spec in config.library] == ["knn", "knn20"]

    def test_unknown_screen_reference(self):
        with pytest.raises(ValueError, match="unknown screens"):
            EnsembleConfig(library=[{"name": "glm", "screens": ["lasso"]}])

    def test_unknown_learner_name(self):
        with pytest.raises(ValueError):
            EnsembleConfig(library=[{"name": "svm"}])

    def test_folds_lower_bound(self):
        with pytest.raises(ValueError):
            EnsembleConfig(folds=1)


# ==================== Validation ====================


class TestValidateConfig:
    """Tests for validate_config and precondition checks."""

    def test_nnloglik_requires_binomial(self):
        config = EnsembleConfig(method="nnloglik")
        with pytest.raises(ConfigurationError, match="nnloglik"):
            validate_config(config)

    def test_warn_mode(self):
        config = EnsembleConfig(method="nnloglik")
        with pytest.warns(ConfigValidationWarning):
            validate_config(config, strictness="warn")

    def test_missing_columns(self):
        config = EnsembleConfig(id_col="subject")
        with pytest.raises(ConfigurationError, match="Columns not found"):
            validate_config(config, columns=["Y", "x"])

    def test_variant_a_rejects_nnloglik(self):
        config = EnsembleConfig(
            family="binomial",
            method="nnloglik",
            survival={"horizon": 3, "mode": "ipcw", "variant": "A"},
        )
        with pytest.raises(ConfigurationError, match="variant='A'"):
            validate_config(config)

    def test_valid_survival(self):
        config = EnsembleConfig(survival={"horizon": 3})
        validate_config(config, columns=["x", "ftime", "ftype"])

    def test_check_n_folds(self):
        check_n_folds(5, 5)
        with pytest.raises(ConfigurationError):
            check_n_folds(6, 5)

    def test_check_outcome_binomial(self):
        np.testing.assert_array_equal(check_outcome([0, 1, 1], "binomial"), [0.0, 1.0, 1.0])
        with pytest.raises(ConfigurationError, match="0/1 outcome"):
            check_outcome([0, 1, 2], "binomial")

    def test_check_outcome_missing(self):
        with pytest.raises(ConfigurationError, match="non-finite"):
            check_outcome([0.1, np.nan], "gaussian")

    def test_check_sample_weight(self):
        np.testing.assert_array_equal(check_sample_weight(None, 3), [1.0, 1.0, 1.0])
        with pytest.raises(ConfigurationError, match="non-negative"):
            check_sample_weight([1.0, -1.0], 2)
        with pytest.raises(ConfigurationError, match="sums to zero"):
            check_sample_weight([0.0, 0.0], 2)
        with pytest.raises(ConfigurationError, match="shape"):
            check_sample_weight([1.0], 2)
