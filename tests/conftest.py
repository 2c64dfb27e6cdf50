"""Shared fixtures for ihw tests."""
from __future__ import annotations

import numpy as np
import pytest

from ihw.simulation import simulate_pvalues


@pytest.fixture(scope="session")
def simulated():
    """The reference scenario: 100000 hypotheses, X ~ U(0, 2.5), 10% alternatives."""
    return simulate_pvalues(100_000, alternative_fraction=0.1, covariate_max=2.5, seed=1)


@pytest.fixture
def small_sim():
    return simulate_pvalues(5_000, alternative_fraction=0.2, covariate_max=3.0, seed=7)


@pytest.fixture
def mixed_pvalues():
    """Uniform nulls plus a block of small p-values."""
    rng = np.random.default_rng(42)
    return np.concatenate([rng.uniform(size=900), rng.beta(0.2, 8.0, size=100)])
