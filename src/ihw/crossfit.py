"""Cross-fitted weights: every fold is weighted by the other folds.

The weight applied to a hypothesis depends only on its (stratum, fold) cell,
and the cell weight is learned without the p-values of that fold. With a
single fold there is nothing to hold out and the weights are learned on the
full data, which is the plain single-split optimizer.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np

from .errors import NumericDegeneracyWarning
from .thresholds import AdjustmentType
from .weights import normalize_weights, optimize_weights

logger = logging.getLogger(__name__)


@dataclass
class CrossFitResult:
    weight_matrix: np.ndarray
    holdout_totals: np.ndarray
    fold_rejections: list[int] = field(default_factory=list)
    degenerate_folds: list[int] = field(default_factory=list)

    def expand(self, strata: np.ndarray, folds: np.ndarray) -> np.ndarray:
        """Per-hypothesis weights from 0-based strata and 1-based folds."""
        return self.weight_matrix[strata, folds - 1]


def declared_totals(
    strata: np.ndarray,
    n_strata: int,
    mask: np.ndarray,
    unobserved: np.ndarray,
    share: float,
) -> np.ndarray:
    """Observed count per stratum under ``mask`` plus a share of the unobserved."""
    return np.bincount(strata[mask], minlength=n_strata) + share * unobserved


def cross_fit_weights(
    pvals,
    strata,
    folds,
    n_strata: int,
    nfolds: int,
    alpha: float,
    adjustment_type: str | AdjustmentType = AdjustmentType.BH,
    unobserved=None,
    refine_iterations: int = 10,
    null_proportion: float = 1.0,
) -> CrossFitResult:
    """Learn the ``n_strata x nfolds`` weight matrix.

    Parameters
    ----------
    pvals : observed p-values
    strata : 0-based stratum code per p-value
    folds : 1-based fold label per p-value
    unobserved : per-stratum count of hypotheses filtered out before the
        call (censored input), spread evenly over the folds
    null_proportion : estimated share of true nulls, passed to BH

    Warnings point at the caller of :func:`ihw.ihw`.
    """
    p = np.asarray(pvals, dtype=float)
    strata = np.asarray(strata, dtype=int)
    folds = np.asarray(folds, dtype=int)
    if unobserved is None:
        unobserved = np.zeros(n_strata)
    unobserved = np.asarray(unobserved, dtype=float)

    matrix = np.ones((n_strata, nfolds))
    holdout_totals = np.zeros((n_strata, nfolds))
    fold_rejections: list[int] = []
    degenerate: list[int] = []

    for fold in range(1, nfolds + 1):
        holdout = folds == fold
        train = ~holdout if nfolds > 1 else holdout
        train_share = (nfolds - 1) / nfolds if nfolds > 1 else 1.0
        train_totals = declared_totals(strata, n_strata, train, unobserved, train_share)
        holdout_totals[:, fold - 1] = declared_totals(
            strata, n_strata, holdout, unobserved, 1.0 / nfolds
        )

        fit = optimize_weights(
            p[train],
            strata[train],
            n_strata,
            alpha,
            stratum_totals=train_totals,
            adjustment_type=adjustment_type,
            refine_iterations=refine_iterations,
            null_proportion=null_proportion,
        )
        fold_rejections.append(fit.n_rejections)

        if fit.degenerate:
            warnings.warn(
                f"Fold {fold}: no training rejections at alpha={alpha}; using uniform weights",
                NumericDegeneracyWarning,
                stacklevel=3,
            )
        if nfolds == 1 or holdout_totals[:, fold - 1].sum() == 0:
            # a single fold is already normalised; an empty hold-out has nothing to weight
            weights, rescale_failed = fit.weights, False
        else:
            # spend exactly the hold-out fold's share of the budget
            weights, rescale_failed = normalize_weights(fit.weights, holdout_totals[:, fold - 1])
        if rescale_failed:
            msg = f"Fold {fold}: learned weights vanish on the hold-out strata; using uniform weights"
            logger.warning(msg)
            warnings.warn(msg, NumericDegeneracyWarning, stacklevel=3)
        if fit.degenerate or rescale_failed:
            degenerate.append(fold)

        matrix[:, fold - 1] = weights
        logger.debug(
            "fold %d: %d training p-values, %d training rejections, weights in [%.3g, %.3g]",
            fold, int(train.sum()), fit.n_rejections, weights.min(), weights.max(),
        )

    return CrossFitResult(
        weight_matrix=matrix,
        holdout_totals=holdout_totals,
        fold_rejections=fold_rejections,
        degenerate_folds=degenerate,
    )
