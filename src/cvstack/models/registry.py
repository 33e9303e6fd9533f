"""Candidate registry.

This module provides:
- Learner builders keyed by name ('mean', 'glm', 'glmnet', ...)
- Screen builders keyed by name ('all', 'univariate', 'lasso', ...)
- Library construction: every learner paired with every screen it allows

Names are resolved here, once, when the library is built from configuration.
An unknown name or an invalid hyperparameter raises ConfigurationError before
any fitting starts.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from cvstack.config.schema import EnsembleConfig, LearnerSpec, ScreenSpec
from cvstack.config.validation import ConfigurationError
from cvstack.features.screening import (
    AllScreen,
    ColumnScreen,
    CorrelationScreen,
    LassoScreen,
    RandomForestScreen,
    UnivariateScreen,
)
from cvstack.models.candidate import Candidate
from cvstack.models.estimators import (
    build_gbm,
    build_glm,
    build_glmnet,
    build_knn,
    build_random_forest,
    build_xgboost,
)
from cvstack.models.learners import MeanLearner, SklearnLearner

logger = logging.getLogger(__name__)


# ----------------------------
# Learners
# ----------------------------
def _mean(name, family, seed, **params):
    return MeanLearner(name=name)


def _sklearn(builder: Callable, seeded: bool = True) -> Callable:
    def make(name, family, seed, **params):
        if seeded:
            params.setdefault("random_state", seed)
        return SklearnLearner(name=name, estimator=builder(family, **params), family=family)

    return make


LEARNER_BUILDERS: dict[str, Callable] = {
    "mean": _mean,
    "glm": _sklearn(build_glm, seeded=False),
    "glmnet": _sklearn(build_glmnet),
    "random_forest": _sklearn(build_random_forest),
    "knn": _sklearn(build_knn, seeded=False),
    "gbm": _sklearn(build_gbm),
    "xgboost": _sklearn(build_xgboost),
}


# ----------------------------
# Screens
# ----------------------------
def _columns_screen(name, family, seed, columns=(), **params):
    if not columns:
        raise ConfigurationError(f"Screen '{name}' requires a non-empty 'columns' list.")
    return ColumnScreen(columns=tuple(columns), name=name, **params)


SCREEN_BUILDERS: dict[str, Callable] = {
    "all": lambda name, family, seed, **p: AllScreen(name=name, **p),
    "columns": _columns_screen,
    "univariate": lambda name, family, seed, **p: UnivariateScreen(family=family, name=name, **p),
    "correlation": lambda name, family, seed, **p: CorrelationScreen(name=name, **p),
    "random_forest": lambda name, family, seed, **p: RandomForestScreen(
        family=family, seed=p.pop("seed", seed), name=name, **p
    ),
    "lasso": lambda name, family, seed, **p: LassoScreen(
        family=family, seed=p.pop("seed", seed), name=name, **p
    ),
}


def _build(kind: str, builders: dict[str, Callable], spec, family: str, seed: int):
    if spec.name not in builders:
        raise ConfigurationError(
            f"Unknown {kind} '{spec.name}'. Available: {sorted(builders)}"
        )
    try:
        return builders[spec.name](spec.key, family, seed, **dict(spec.params))
    except TypeError as e:
        raise ConfigurationError(f"Invalid parameters for {kind} '{spec.key}': {e}") from e


def build_learner(spec: LearnerSpec, family: str, seed: int = 0):
    """Instantiate the learner described by ``spec`` for ``family``."""
    return _build("learner", LEARNER_BUILDERS, spec, family, seed)


def build_screen(spec: ScreenSpec, family: str, seed: int = 0):
    """Instantiate the screen described by ``spec`` for ``family``."""
    return _build("screen", SCREEN_BUILDERS, spec, family, seed)


def build_candidates(
    library: Sequence[LearnerSpec | dict[str, Any] | str],
    screens: Sequence[ScreenSpec | dict[str, Any] | str] | None = None,
    family: str = "gaussian",
    seed: int = 0,
) -> list[Candidate]:
    """
    Build the candidate list from learner and screen specifications.

    Specs may be LearnerSpec/ScreenSpec objects, dicts, or bare names. Every
    learner is paired with each screen it allows (all screens unless the
    learner restricts them), in library order then screen order.

    Args:
        library: Learner specifications
        screens: Screen specifications (default: a single 'all' screen)
        family: 'binomial' or 'gaussian'
        seed: Seed bound into every randomized learner and screen

    Returns:
        List of Candidate, names unique

    Raises:
        ConfigurationError: Empty library, unknown names, bad parameters
    """
    learner_specs = [_as_spec(LearnerSpec, s) for s in library]
    screen_specs = [_as_spec(ScreenSpec, s) for s in (screens or ["all"])]
    if not learner_specs:
        raise ConfigurationError("Candidate library is empty.")

    screen_objs = {spec.key: build_screen(spec, family, seed) for spec in screen_specs}

    candidates: list[Candidate] = []
    for lspec in learner_specs:
        learner = build_learner(lspec, family, seed)
        allowed = lspec.screens if lspec.screens is not None else list(screen_objs)
        for skey in allowed:
            if skey not in screen_objs:
                raise ConfigurationError(
                    f"Learner '{lspec.key}' references unknown screen '{skey}'."
                )
            candidates.append(Candidate(learner=learner, screen=screen_objs[skey]))

    names = [c.name for c in candidates]
    duplicated = sorted({n for n in names if names.count(n) > 1})
    if duplicated:
        raise ConfigurationError(f"Duplicate candidate names: {duplicated}")

    logger.debug(f"Built {len(candidates)} candidates: {names}")
    return candidates


def build_library(config: EnsembleConfig, family: str | None = None) -> list[Candidate]:
    """Candidate list for a validated EnsembleConfig (``family`` overrides config.family)."""
    return build_candidates(
        config.library,
        config.screens,
        family=family or config.family,
        seed=config.seed,
    )


def _as_spec(model_cls, spec):
    if isinstance(spec, model_cls):
        return spec
    try:
        if isinstance(spec, str):
            return model_cls(name=spec)
        return model_cls(**spec)
    except Exception as e:
        raise ConfigurationError(f"Invalid {model_cls.__name__}: {spec!r} ({e})") from e
