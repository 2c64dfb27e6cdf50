"""Stratification of hypotheses by covariate.

Numeric covariates are cut into ``nbins`` groups of approximately equal size
by rank; categorical covariates are taken as given, one stratum per level.
"""
from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .errors import InvalidInputError
from .rng import SeedLike, as_generator

TIES_METHODS = ("random", "first", "average", "min", "max")


@dataclass(frozen=True)
class NumericCovariate:
    values: np.ndarray

    def __post_init__(self):
        try:
            arr = np.asarray(self.values, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Numeric covariate is not numeric: {e}") from e
        if arr.ndim != 1:
            raise InvalidInputError(f"Covariate must be one-dimensional, got shape {arr.shape}")
        object.__setattr__(self, "values", arr)

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class CategoricalCovariate:
    labels: Sequence
    levels: Sequence | None = None

    def __post_init__(self):
        if isinstance(self.labels, pd.Series):
            labels = self.labels.array
        else:
            labels = self.labels
        if self.levels is not None:
            cat = pd.Categorical(labels, categories=list(self.levels))
        else:
            cat = pd.Categorical(labels)
        object.__setattr__(self, "labels", cat)

    def __len__(self) -> int:
        return len(self.labels)


Covariate = NumericCovariate | CategoricalCovariate


@dataclass(frozen=True)
class Strata:
    """Stratum assignment: ``codes[i]`` indexes into ``levels``."""

    codes: np.ndarray
    levels: np.ndarray

    @property
    def n_strata(self) -> int:
        return len(self.levels)

    def labels(self) -> np.ndarray:
        return self.levels[self.codes]

    def counts(self, mask: np.ndarray | None = None) -> np.ndarray:
        codes = self.codes if mask is None else self.codes[mask]
        return np.bincount(codes, minlength=self.n_strata)


def as_covariate(covariate) -> Covariate:
    """Wrap a raw sequence as a covariate.

    Plain sequences are numeric. Pandas categoricals are the only raw input
    taken as categorical; anything else categorical must be wrapped in
    ``CategoricalCovariate`` by the caller.
    """
    if isinstance(covariate, (NumericCovariate, CategoricalCovariate)):
        return covariate
    if isinstance(covariate, pd.Categorical):
        return CategoricalCovariate(covariate)
    if isinstance(covariate, pd.Series) and isinstance(covariate.dtype, pd.CategoricalDtype):
        return CategoricalCovariate(covariate)
    return NumericCovariate(covariate)


def _rank(values: np.ndarray, ties_method: str, seed: SeedLike) -> np.ndarray:
    if ties_method == "random":
        rng = as_generator(seed)
        # primary key: value, secondary key: a random draw
        order = np.lexsort((rng.random(len(values)), values))
        ranks = np.empty(len(values), dtype=float)
        ranks[order] = np.arange(1, len(values) + 1)
        return ranks
    if ties_method == "first":
        return stats.rankdata(values, method="ordinal").astype(float)
    return stats.rankdata(values, method=ties_method).astype(float)


def groups_by_filter(
    covariate: Sequence[float] | np.ndarray,
    nbins: int,
    ties_method: str = "random",
    seed: SeedLike = None,
) -> np.ndarray:
    """Assign hypotheses to ``nbins`` strata of increasing covariate value.

    Parameters
    ----------
    covariate : numeric covariate per hypothesis
    nbins : number of strata
    ties_method : one of ``random``, ``first``, ``average``, ``min``, ``max``
    seed : seed for the tie-breaking stream (``random`` only); the stream is
        local to this call

    Returns
    -------
    Integer labels in ``[1, nbins]``, one per hypothesis.
    """
    if int(nbins) != nbins or nbins < 1:
        raise InvalidInputError(f"nbins must be a positive integer, got {nbins!r}")
    if ties_method not in TIES_METHODS:
        raise InvalidInputError(
            f"Unknown ties_method {ties_method!r}; expected one of {TIES_METHODS}"
        )
    values = NumericCovariate(covariate).values
    n = len(values)
    if n == 0:
        return np.empty(0, dtype=int)
    if np.isnan(values).any():
        raise InvalidInputError("Numeric covariate contains missing values")

    ranks = _rank(values, ties_method, seed)
    labels = np.ceil(ranks / n * nbins).astype(int)
    return np.clip(labels, 1, int(nbins))


def stratify(
    covariate,
    nbins: int,
    ties_method: str = "random",
    seed: SeedLike = None,
    m: int | None = None,
) -> Strata:
    """Stratify hypotheses; ``m`` (if given) is the expected hypothesis count."""
    cov = as_covariate(covariate)
    if m is not None and len(cov) != m:
        raise InvalidInputError(
            f"Covariate has length {len(cov)} but there are {m} hypotheses"
        )

    if isinstance(cov, NumericCovariate):
        labels = groups_by_filter(cov.values, nbins, ties_method=ties_method, seed=seed)
        return Strata(codes=labels - 1, levels=np.arange(1, int(nbins) + 1))

    cat = cov.labels
    codes = np.asarray(cat.codes, dtype=int)
    if (codes < 0).any():
        raise InvalidInputError(
            "Categorical covariate has missing labels or labels outside the declared levels"
        )
    return Strata(codes=codes, levels=np.asarray(cat.categories, dtype=object))
