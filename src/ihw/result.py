"""Immutable result of an IHW run."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import numpy as np
import pandas as pd

from .thresholds import AdjustmentType


@dataclass(frozen=True)
class IHWResult:
    """Per-hypothesis outputs of :func:`ihw.ihw`, in input order.

    Hypotheses with a missing p-value keep their position: their weight,
    weighted and adjusted p-values are NaN, their stratum is missing and
    their fold is 0. They are never rejected.
    """

    pvalues_: np.ndarray
    covariate_: np.ndarray
    group_labels_: np.ndarray
    folds_: np.ndarray
    weights_: np.ndarray
    weighted_pvalues_: np.ndarray
    adj_pvalues_: np.ndarray
    weight_matrix: np.ndarray
    levels: np.ndarray
    alpha: float
    nbins: int
    nfolds: int
    adjustment_type: AdjustmentType
    threshold: float
    total_tests: int
    n_rejections: int
    m_groups: Mapping | None = None
    null_proportion: float = 1.0
    degenerate_folds: tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name in (
            "pvalues_", "covariate_", "group_labels_", "folds_", "weights_",
            "weighted_pvalues_", "adj_pvalues_", "weight_matrix", "levels",
        ):
            getattr(self, name).setflags(write=False)
        if self.m_groups is not None:
            object.__setattr__(self, "m_groups", MappingProxyType(dict(self.m_groups)))

    def __len__(self) -> int:
        return len(self.pvalues_)

    def rejections(self) -> int:
        return self.n_rejections

    def rejected_hypotheses(self) -> np.ndarray:
        return self.adj_pvalues_ <= self.alpha

    def pvalues(self) -> np.ndarray:
        return self.pvalues_

    def adj_pvalues(self) -> np.ndarray:
        return self.adj_pvalues_

    def weighted_pvalues(self) -> np.ndarray:
        return self.weighted_pvalues_

    def weights(self, levels_only: bool = False) -> np.ndarray:
        """Per-hypothesis weights, or the ``nbins x nfolds`` matrix if ``levels_only``."""
        if levels_only:
            return self.weight_matrix
        return self.weights_

    def covariates(self) -> np.ndarray:
        return self.covariate_

    def groups(self) -> pd.Categorical:
        return pd.Categorical(self.group_labels_, categories=list(self.levels))

    def folds(self) -> np.ndarray:
        return self.folds_

    def as_table(self) -> pd.DataFrame:
        folds = pd.array(self.folds_, dtype="Int64")
        folds[self.folds_ == 0] = pd.NA
        return pd.DataFrame(
            {
                "pvalue": self.pvalues_,
                "covariate": self.covariate_,
                "stratum": self.groups(),
                "fold": folds,
                "weight": self.weights_,
                "weighted_pvalue": self.weighted_pvalues_,
                "adj_pvalue": self.adj_pvalues_,
            }
        )
