"""
Configuration schema for cvstack.

Defines Pydantic models for the ensemble, survival and nested-CV options.
Learner and screen names are closed ``Literal`` sets so an unknown algorithm
is rejected when the configuration is built, not when it is first called.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Family = Literal["binomial", "gaussian"]

LearnerName = Literal[
    "mean",
    "glm",
    "glmnet",
    "random_forest",
    "knn",
    "gbm",
    "xgboost",
]

ScreenName = Literal[
    "all",
    "columns",
    "univariate",
    "correlation",
    "random_forest",
    "lasso",
]

OptimizerMethod = Literal["nnls", "nnloglik", "convex"]


# ============================================================================
# Library Configuration
# ============================================================================


class ScreenSpec(BaseModel):
    """One screening function in the screen library.

    ``label`` must be unique within the library when the same screen type is
    used twice with different parameters (e.g. two ``columns`` screens).
    """

    model_config = ConfigDict(extra="forbid")

    name: ScreenName = "all"
    label: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.label or self.name


class LearnerSpec(BaseModel):
    """One learner in the candidate library.

    ``params`` are the learner's hyperparameters, bound at build time.
    ``screens`` restricts the screens this learner is paired with (screen
    keys); ``None`` pairs it with every screen in the library.
    """

    model_config = ConfigDict(extra="forbid")

    name: LearnerName
    label: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    screens: list[str] | None = None

    @property
    def key(self) -> str:
        return self.label or self.name


# ============================================================================
# Survival Configuration
# ============================================================================


class SurvivalConfig(BaseModel):
    """Options for right-censored time-to-event outcomes.

    mode="hazard" fits a discrete hazard ensemble (pooled or one per time);
    mode="ipcw" fits a horizon-risk ensemble with censoring weights.
    """

    model_config = ConfigDict(extra="forbid")

    horizon: int = Field(ge=1)
    ftime_col: str = "ftime"
    ftype_col: str = "ftype"
    cause: int | None = Field(default=None, ge=1)
    mode: Literal["hazard", "ipcw"] = "hazard"
    pool_across_time: bool = True
    variant: Literal["A", "B"] = "B"
    strata_col: str | None = None
    censoring_fit: Literal["in_sample", "cross_fit"] = "in_sample"


# ============================================================================
# Nested Cross-Validation Configuration
# ============================================================================


class NestedCVConfig(BaseModel):
    """Outer loop of the nested cross-validation evaluator."""

    model_config = ConfigDict(extra="forbid")

    outer_folds: int = Field(default=10, ge=2)


# ============================================================================
# Root Ensemble Configuration
# ============================================================================


class EnsembleConfig(BaseModel):
    """Configuration for fitting and evaluating a cross-validated ensemble."""

    model_config = ConfigDict(extra="forbid")

    # I/O
    infile: Path | None = None
    outdir: Path = Field(default=Path("results"))

    # Columns
    outcome_col: str = "Y"
    covariates: list[str] | None = None
    id_col: str | None = None
    weights_col: str | None = None

    # Ensemble
    family: Family = "gaussian"
    folds: int = Field(default=10, ge=2)
    method: OptimizerMethod | None = None
    seed: int = 0
    n_jobs: int = 1

    library: list[LearnerSpec] = Field(
        default_factory=lambda: [LearnerSpec(name="mean"), LearnerSpec(name="glm")],
        min_length=1,
    )
    screens: list[ScreenSpec] = Field(
        default_factory=lambda: [ScreenSpec(name="all")],
        min_length=1,
    )

    survival: SurvivalConfig | None = None
    nested: NestedCVConfig = Field(default_factory=NestedCVConfig)

    @model_validator(mode="after")
    def validate_library(self):
        """Validate that library labels are unique and screen references resolve."""
        learner_keys = [spec.key for spec in self.library]
        duplicated = sorted({k for k in learner_keys if learner_keys.count(k) > 1})
        if duplicated:
            raise ValueError(
                f"Duplicate learner labels in library: {duplicated}. "
                "Give repeated learners a distinct 'label'."
            )

        screen_keys = [spec.key for spec in self.screens]
        duplicated = sorted({k for k in screen_keys if screen_keys.count(k) > 1})
        if duplicated:
            raise ValueError(
                f"Duplicate screen labels: {duplicated}. "
                "Give repeated screens a distinct 'label'."
            )

        known = set(screen_keys)
        for spec in self.library:
            if spec.screens is None:
                continue
            if not spec.screens:
                raise ValueError(f"Learner '{spec.key}' has an empty screens list.")
            missing = [s for s in spec.screens if s not in known]
            if missing:
                raise ValueError(
                    f"Learner '{spec.key}' references unknown screens {missing}. "
                    f"Available: {screen_keys}"
                )
        return self
