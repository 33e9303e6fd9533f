"""Candidate library, weight optimizers and the stacking ensemble."""

from cvstack.models.candidate import Candidate, FittedCandidate
from cvstack.models.ensemble import (
    EnsembleFitError,
    EnsembleModel,
    SuperLearner,
    ensemble_weights_dict,
    fit_super_learner,
    predict_ensemble,
)
from cvstack.models.learners import Learner, MeanLearner, SklearnLearner
from cvstack.models.losses import (
    binomial_deviance,
    loss_function,
    risk_standard_error,
    squared_error,
    weighted_risk,
)
from cvstack.models.registry import (
    LEARNER_BUILDERS,
    SCREEN_BUILDERS,
    build_candidates,
    build_learner,
    build_library,
    build_screen,
)
from cvstack.models.weights import (
    ConvexRiskOptimizer,
    NNLogLikOptimizer,
    NNLSOptimizer,
    OptimizerError,
    WeightOptimizer,
    get_optimizer,
)

__all__ = [
    "Candidate",
    "FittedCandidate",
    "EnsembleFitError",
    "EnsembleModel",
    "SuperLearner",
    "ensemble_weights_dict",
    "fit_super_learner",
    "predict_ensemble",
    "Learner",
    "MeanLearner",
    "SklearnLearner",
    "binomial_deviance",
    "loss_function",
    "risk_standard_error",
    "squared_error",
    "weighted_risk",
    "LEARNER_BUILDERS",
    "SCREEN_BUILDERS",
    "build_candidates",
    "build_learner",
    "build_library",
    "build_screen",
    "ConvexRiskOptimizer",
    "NNLogLikOptimizer",
    "NNLSOptimizer",
    "OptimizerError",
    "WeightOptimizer",
    "get_optimizer",
]
