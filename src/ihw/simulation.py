"""Synthetic p-values with an informative covariate.

Covariate ``X ~ Uniform(0, covariate_max)``, alternative indicator
``H ~ Bernoulli(alternative_fraction)``, ``Z ~ Normal(H * X, 1)`` and the
one-sided p-value ``1 - Phi(Z)``. Power grows with ``X`` while null p-values
stay uniform whatever ``X`` is.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import stats

from .rng import SeedLike, as_generator


@dataclass
class SimulatedData:
    pvalues: np.ndarray
    covariate: np.ndarray
    is_alternative: np.ndarray

    def filtered(self, threshold: float) -> np.ndarray:
        """Mask of hypotheses whose p-value survives a ``p <= threshold`` filter."""
        return self.pvalues <= threshold


def simulate_pvalues(
    n: int,
    alternative_fraction: float = 0.1,
    covariate_max: float = 2.5,
    seed: SeedLike = None,
) -> SimulatedData:
    rng = as_generator(seed)
    x = rng.uniform(0.0, covariate_max, n)
    h = rng.binomial(1, alternative_fraction, n)
    z = rng.normal(h * x, 1.0)
    return SimulatedData(
        pvalues=stats.norm.sf(z),
        covariate=x,
        is_alternative=h.astype(bool),
    )
