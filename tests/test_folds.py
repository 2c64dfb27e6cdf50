"""Tests for fold assignment."""
import numpy as np
import pytest

from ihw.errors import InvalidInputError
from ihw.folds import assign_folds
from ihw.stratify import groups_by_filter


def test_labels_and_balance():
    folds = assign_folds(103, 5, seed=1)
    assert folds.min() == 1 and folds.max() == 5
    counts = np.bincount(folds)[1:]
    assert counts.max() - counts.min() <= 1
    assert counts.sum() == 103


def test_deterministic_given_seed():
    assert np.array_equal(assign_folds(1000, 5, seed=9), assign_folds(1000, 5, seed=9))
    assert not np.array_equal(assign_folds(1000, 5, seed=9), assign_folds(1000, 5, seed=10))


def test_single_fold():
    assert assign_folds(10, 1, seed=0).tolist() == [1] * 10


def test_empty():
    assert len(assign_folds(0, 5, seed=0)) == 0


def test_invalid_k():
    with pytest.raises(InvalidInputError):
        assign_folds(10, 0)
    with pytest.raises(InvalidInputError):
        assign_folds(-1, 2)


def test_independent_of_stratum():
    rng = np.random.default_rng(4)
    strata = groups_by_filter(rng.uniform(size=20_000), 4, seed=1)
    folds = assign_folds(20_000, 5, seed=2)
    table = np.zeros((4, 5))
    np.add.at(table, (strata - 1, folds - 1), 1)
    # every cell should hold about 20000 / 20 = 1000 hypotheses
    assert np.all(np.abs(table - 1000) < 150)


def test_global_state_untouched():
    np.random.seed(3)
    before = np.random.get_state()[1].copy()
    assign_folds(100, 4, seed=1)
    assert np.array_equal(np.random.get_state()[1], before)
