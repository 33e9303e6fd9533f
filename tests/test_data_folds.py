"""Tests for data.folds module.

Tests cover:
- Every row assigned to exactly one fold
- Balanced fold sizes
- Cluster ids kept within a single fold
- Seed reproducibility
- Precondition errors
"""

import numpy as np
import pytest
from cvstack.config.validation import ConfigurationError
from cvstack.data.folds import FoldAssignment, make_folds


class TestMakeFolds:
    """Tests for make_folds."""

    def test_every_row_in_one_fold(self):
        """Should assign each row a fold in 0..V-1."""
        folds = make_folds(23, 5, seed=1)

        assert isinstance(folds, FoldAssignment)
        assert folds.n_samples == 23
        assert set(np.unique(folds.folds)) == set(range(5))

    def test_fold_sizes_differ_by_at_most_one(self):
        """Should deal rows evenly across folds."""
        folds = make_folds(23, 5, seed=1)
        sizes = folds.sizes()

        assert sizes.sum() == 23
        assert sizes.max() - sizes.min() <= 1

    def test_split_partitions_rows(self):
        """Should yield disjoint train/valid sets covering every row."""
        folds = make_folds(30, 3, seed=0)

        seen = []
        for train_idx, valid_idx in folds.split():
            assert len(np.intersect1d(train_idx, valid_idx)) == 0
            assert len(train_idx) + len(valid_idx) == 30
            seen.extend(valid_idx.tolist())

        assert sorted(seen) == list(range(30))

    def test_same_seed_same_assignment(self):
        """Should be reproducible for a given seed."""
        a = make_folds(50, 5, seed=7)
        b = make_folds(50, 5, seed=7)
        np.testing.assert_array_equal(a.folds, b.folds)

    def test_different_seed_different_assignment(self):
        """Should shuffle differently for a different seed."""
        a = make_folds(50, 5, seed=7)
        b = make_folds(50, 5, seed=8)
        assert not np.array_equal(a.folds, b.folds)

    def test_leave_one_out(self):
        """Should allow V equal to the number of rows."""
        folds = make_folds(6, 6, seed=0)
        assert sorted(folds.folds.tolist()) == list(range(6))


class TestClusteredFolds:
    """Tests for cluster-aware fold assignment."""

    def test_cluster_rows_share_a_fold(self):
        """Should never split a cluster across folds."""
        ids = np.repeat(np.arange(12), 3)
        folds = make_folds(ids, 4, seed=3)

        for cluster in np.unique(ids):
            assert len(np.unique(folds.folds[ids == cluster])) == 1

    def test_clusters_balanced(self):
        """Should balance clusters, not rows, across folds."""
        ids = np.repeat(np.arange(12), 3)
        folds = make_folds(ids, 4, seed=3)

        clusters_per_fold = [len(np.unique(ids[folds.folds == v])) for v in range(4)]
        assert clusters_per_fold == [3, 3, 3, 3]

    def test_string_ids(self):
        """Should accept non-numeric cluster ids."""
        ids = np.array(["a", "a", "b", "b", "c", "c"])
        folds = make_folds(ids, 3, seed=0)

        assert folds.folds[0] == folds.folds[1]
        assert folds.folds[2] == folds.folds[3]


class TestFoldErrors:
    """Tests for precondition checks."""

    def test_too_few_folds(self):
        """Should reject V < 2."""
        with pytest.raises(ConfigurationError, match="must be >= 2"):
            make_folds(10, 1)

    def test_more_folds_than_rows(self):
        """Should reject V greater than the number of rows."""
        with pytest.raises(ConfigurationError, match="exceeds"):
            make_folds(4, 5)

    def test_more_folds_than_clusters(self):
        """Should count distinct clusters, not rows."""
        ids = np.repeat(np.arange(3), 10)
        with pytest.raises(ConfigurationError, match="clusters"):
            make_folds(ids, 4)

    def test_missing_cluster_ids(self):
        """Should reject NaN cluster ids."""
        with pytest.raises(ConfigurationError, match="missing"):
            make_folds(np.array([1.0, np.nan, 2.0]), 2)
