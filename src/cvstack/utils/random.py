"""
Seed derivation for reproducible cross-validation.

No global RNG is ever seeded here: every randomized component receives an
explicit integer seed derived from the run seed.
"""

import numpy as np


def get_cv_seed(base_seed: int, fold_idx: int, repeat_idx: int = 0) -> int:
    """
    Generate deterministic seed for CV fold.

    Args:
        base_seed: Base random seed
        fold_idx: Fold index (0-based)
        repeat_idx: Repeat index (0-based)

    Returns:
        Deterministic seed for this fold/repeat combination
    """
    return base_seed + (repeat_idx * 1000) + fold_idx


def make_rng(seed: int | None) -> np.random.Generator:
    """Build an independent generator; ``None`` gives fresh OS entropy."""
    return np.random.default_rng(seed)
