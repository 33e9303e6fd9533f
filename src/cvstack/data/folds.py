"""
Fold assignment for V-fold cross-validation.

Units (observations, or clusters when ids are given) are shuffled with an
explicit seed and dealt into V folds, so:
- every row belongs to exactly one fold
- unit counts per fold differ by at most one
- all rows that share an id share a fold (no leakage across a subject's rows)
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
from sklearn.model_selection import KFold

from cvstack.config.validation import ConfigurationError, check_n_folds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FoldAssignment:
    """Per-row fold indices.

    Attributes:
        folds: Fold index (0..n_folds-1) of every row
        n_folds: Number of folds
    """

    folds: np.ndarray
    n_folds: int

    @property
    def n_samples(self) -> int:
        return len(self.folds)

    def valid_index(self, fold: int) -> np.ndarray:
        """Row positions held out in ``fold``."""
        return np.flatnonzero(self.folds == fold)

    def train_index(self, fold: int) -> np.ndarray:
        """Row positions used for training when ``fold`` is held out."""
        return np.flatnonzero(self.folds != fold)

    def split(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """Yield ``(train_idx, valid_idx)`` for every fold, in fold order."""
        for fold in range(self.n_folds):
            yield self.train_index(fold), self.valid_index(fold)

    def sizes(self) -> np.ndarray:
        """Number of rows in each fold."""
        return np.bincount(self.folds, minlength=self.n_folds)


def make_folds(
    n_or_ids: int | np.ndarray,
    n_folds: int,
    seed: int = 0,
) -> FoldAssignment:
    """
    Partition rows into ``n_folds`` folds, keeping clusters together.

    Args:
        n_or_ids: Number of rows, or one cluster id per row
        n_folds: Number of folds (V)
        seed: Random seed controlling the shuffle

    Returns:
        FoldAssignment

    Raises:
        ConfigurationError: If n_folds < 2 or exceeds the number of distinct units
    """
    if isinstance(n_or_ids, int | np.integer):
        n = int(n_or_ids)
        if n < 1:
            raise ConfigurationError(f"Cannot build folds for {n} observations.")
        ids = np.arange(n)
        unit = "observations"
    else:
        ids = np.asarray(n_or_ids)
        if ids.ndim != 1:
            raise ConfigurationError(f"Cluster ids must be one-dimensional, got {ids.shape}.")
        if ids.dtype.kind == "f" and np.isnan(ids).any():
            raise ConfigurationError("Cluster ids contain missing values.")
        unit = "clusters"

    unique_ids, inverse = np.unique(ids, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    check_n_folds(n_folds, len(unique_ids), unit=unit)

    unit_folds = np.empty(len(unique_ids), dtype=int)
    kfold = KFold(n_splits=n_folds, shuffle=True, random_state=seed)
    for fold, (_, valid_units) in enumerate(kfold.split(unique_ids)):
        unit_folds[valid_units] = fold

    folds = unit_folds[inverse]
    logger.debug(
        f"Assigned {len(unique_ids)} {unit} ({len(ids)} rows) to {n_folds} folds "
        f"(seed={seed}, rows per fold={np.bincount(folds, minlength=n_folds).tolist()})"
    )
    return FoldAssignment(folds=folds, n_folds=n_folds)
