"""
cvstack: cross-validated stacking ensembles (super learner)

Combines a library of (screen, learner) candidates with non-negative weights
chosen by V-fold cross-validation, with extensions for right-censored
time-to-event outcomes (IPCW and discrete-time hazard pooling).
"""

__version__ = "0.1.0"

from cvstack import (  # noqa: E402
    config,
    data,
    evaluation,
    features,
    models,
    survival,
    utils,
)
from cvstack.models import (  # noqa: E402
    EnsembleModel,
    SuperLearner,
    build_candidates,
    fit_super_learner,
    predict_ensemble,
)

__all__ = [
    "__version__",
    "config",
    "data",
    "evaluation",
    "features",
    "models",
    "survival",
    "utils",
    "EnsembleModel",
    "SuperLearner",
    "build_candidates",
    "fit_super_learner",
    "predict_ensemble",
]
