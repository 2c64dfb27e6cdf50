"""Per-stratum weight learning.

All hypotheses in a stratum share one weight. The starting point is a
closed-form allocation: run the unweighted procedure on the pooled p-values,
take the largest rejected p-value inside every stratum as that stratum's
local rejection boundary ``t_s``, and scale the boundaries so that the
size-weighted mean weight is one::

    w_s = t_s * sum(m_s) / sum(t_s * m_s)

A stratum without local rejections gets weight 0. The allocation can then be
refined by repeating the same update against the weighted procedure; the
candidate (uniform weights included) that rejects most on the training data
is kept.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .thresholds import AdjustmentType, multiple_testing

logger = logging.getLogger(__name__)


@dataclass
class WeightFit:
    weights: np.ndarray
    threshold: float
    n_rejections: int
    n_iterations: int
    degenerate: bool


def weighted_pvalues(pvals, weights) -> np.ndarray:
    """``p / w`` with ``+inf`` for zero weight and ``0`` for a zero p-value."""
    p = np.asarray(pvals, dtype=float)
    w = np.asarray(weights, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        out = p / w
    out[w == 0] = np.inf
    out[p == 0] = 0.0
    out[np.isnan(p) | np.isnan(w)] = np.nan
    return out


def normalize_weights(boundaries, stratum_totals) -> tuple[np.ndarray, bool]:
    """Scale boundaries so that ``sum(w_s * m_s) == sum(m_s)``.

    Returns the weights and a flag set when the denominator vanished and
    uniform weights were substituted.
    """
    t = np.asarray(boundaries, dtype=float)
    m = np.asarray(stratum_totals, dtype=float)
    denom = float(np.sum(t * m))
    if not np.isfinite(denom) or denom <= 0.0:
        return np.ones(len(t)), True
    return t * m.sum() / denom, False


def stratum_boundaries(pvals, strata: np.ndarray, n_strata: int, rejected: np.ndarray) -> np.ndarray:
    """Largest rejected raw p-value per stratum, 0 where nothing was rejected."""
    p = np.asarray(pvals, dtype=float)
    bounds = np.zeros(n_strata)
    np.maximum.at(bounds, strata[rejected], p[rejected])
    return bounds


def _evaluate(pvals, strata, weights, alpha, total, method, null_proportion):
    wp = weighted_pvalues(pvals, weights[strata])
    res = multiple_testing(wp, alpha, total, method, null_proportion)
    return res, res.adjusted_pvalues <= alpha


def optimize_weights(
    pvals,
    strata,
    n_strata: int,
    alpha: float,
    stratum_totals=None,
    adjustment_type: str | AdjustmentType = AdjustmentType.BH,
    refine_iterations: int = 10,
    null_proportion: float = 1.0,
) -> WeightFit:
    """Learn one weight per stratum from a set of training p-values.

    Parameters
    ----------
    pvals : training p-values (no missing values)
    strata : 0-based stratum code per p-value
    n_strata : number of strata
    alpha : nominal level of the procedure
    stratum_totals : declared hypothesis count per stratum; defaults to the
        observed counts, larger for censored input
    adjustment_type : ``BH`` or ``Bonferroni``
    refine_iterations : extra weighted update rounds; 0 returns the closed
        form allocation as is
    null_proportion : estimated share of true nulls, passed to BH

    Returns
    -------
    WeightFit with weights normalised against ``stratum_totals``. When no
    training hypothesis is rejected the fit is flagged ``degenerate`` and
    carries uniform weights; callers decide whether to warn.
    """
    method = AdjustmentType.parse(adjustment_type)
    p = np.asarray(pvals, dtype=float)
    codes = np.asarray(strata, dtype=int)
    if stratum_totals is None:
        stratum_totals = np.bincount(codes, minlength=n_strata)
    totals = np.asarray(stratum_totals, dtype=float)
    total = float(totals.sum())

    uniform = np.ones(n_strata)
    res, rejected = _evaluate(p, codes, uniform, alpha, total, method, null_proportion)
    weights, degenerate = normalize_weights(
        stratum_boundaries(p, codes, n_strata, rejected), totals
    )
    if degenerate:
        logger.warning(
            "No rejections among %d training p-values at alpha=%g; falling back to uniform weights",
            len(p), alpha,
        )
        return WeightFit(uniform, res.threshold, res.n_rejected, 0, True)

    if refine_iterations <= 0:
        res, _ = _evaluate(p, codes, weights, alpha, total, method, null_proportion)
        return WeightFit(weights, res.threshold, res.n_rejected, 1, False)

    best = WeightFit(uniform, res.threshold, res.n_rejected, 0, False)
    for iteration in range(1, refine_iterations + 2):
        res, rejected = _evaluate(p, codes, weights, alpha, total, method, null_proportion)
        logger.debug(
            "iteration %d: %d rejections (best %d)", iteration, res.n_rejected, best.n_rejections
        )
        if res.n_rejected > best.n_rejections:
            best = WeightFit(weights, res.threshold, res.n_rejected, iteration, False)
        updated, stalled = normalize_weights(
            stratum_boundaries(p, codes, n_strata, rejected), totals
        )
        if stalled or np.array_equal(updated, weights):
            break
        weights = updated
    return best
