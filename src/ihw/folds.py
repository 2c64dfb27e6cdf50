"""Random fold assignment for cross-fitting."""
from __future__ import annotations

import numpy as np

from .errors import InvalidInputError
from .rng import SeedLike, as_generator


def assign_folds(m: int, k: int, seed: SeedLike = None) -> np.ndarray:
    """Split ``m`` hypotheses into ``k`` folds labelled ``1..k``.

    Folds are balanced (sizes differ by at most one) and drawn as a random
    permutation, so the assignment carries no information about stratum or
    covariate.
    """
    if int(k) != k or k < 1:
        raise InvalidInputError(f"Number of folds must be a positive integer, got {k!r}")
    if m < 0:
        raise InvalidInputError(f"Number of hypotheses must be non-negative, got {m}")
    rng = as_generator(seed)
    return rng.permutation(np.arange(m) % int(k)) + 1
