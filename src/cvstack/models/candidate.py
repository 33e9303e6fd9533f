"""A candidate is one (learner, screen) pair of the ensemble library."""

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from cvstack.features.screening import Screen
from cvstack.models.learners import Learner


@dataclass
class FittedCandidate:
    """Result of fitting a candidate: the screened columns and the learner's model."""

    name: str
    columns: list[str]
    model: Any


@dataclass(frozen=True)
class Candidate:
    """Screen followed by learner, fitted on the screened columns only.

    Attributes:
        learner: Object satisfying the Learner contract
        screen: Object satisfying the Screen contract
        label: Optional explicit name (defaults to ``<learner>_<screen>``)
    """

    learner: Learner
    screen: Screen
    label: str | None = None

    @property
    def name(self) -> str:
        return self.label or f"{self.learner.name}_{self.screen.name}"

    def fit(
        self, X: pd.DataFrame, y: np.ndarray, sample_weight: np.ndarray | None = None
    ) -> FittedCandidate:
        columns = self.screen.select(X, y, sample_weight)
        model = self.learner.fit(X[columns], y, sample_weight)
        return FittedCandidate(name=self.name, columns=list(columns), model=model)

    def predict(self, fitted: FittedCandidate, X: pd.DataFrame) -> np.ndarray:
        return np.asarray(self.learner.predict(fitted.model, X[fitted.columns]), dtype=float)
