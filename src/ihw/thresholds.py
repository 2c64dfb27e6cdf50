"""Rejection thresholds for Benjamini-Hochberg and Bonferroni.

Both procedures accept a ``total_tests`` count larger than the number of
p-values supplied, which is how censored (filtered) p-value lists are
adjusted: the missing p-values are known to be large and never rejected,
but they still count towards multiplicity.

The BH threshold and the BH adjusted p-values are computed from the same
floating-point expression ``p_(j) * total / j``, so ``p <= threshold`` and
``adjusted <= alpha`` select exactly the same hypotheses.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from .errors import InvalidInputError


class AdjustmentType(str, Enum):
    BH = "BH"
    BONFERRONI = "Bonferroni"

    @classmethod
    def parse(cls, value: str | AdjustmentType) -> AdjustmentType:
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).lower() == member.value.lower():
                return member
        raise InvalidInputError(
            f"Unknown adjustment type {value!r}; expected one of {[m.value for m in cls]}"
        )


@dataclass
class MultipleTestingResult:
    n_tested: int
    total_tests: float
    n_rejected: int
    threshold: float
    rejected_indices: np.ndarray
    adjusted_pvalues: np.ndarray


def _check_alpha(alpha: float) -> None:
    if not 0.0 < alpha < 1.0:
        raise InvalidInputError(f"alpha must lie in (0, 1), got {alpha}")


def _observed(pvals, total_tests: float | None) -> tuple[np.ndarray, np.ndarray, float]:
    arr = np.asarray(pvals, dtype=float).ravel()
    observed = ~np.isnan(arr)
    n_obs = int(observed.sum())
    if total_tests is None:
        total_tests = n_obs
    if total_tests < n_obs:
        raise InvalidInputError(
            f"total_tests ({total_tests}) is smaller than the number of p-values ({n_obs})"
        )
    return arr, observed, total_tests


def _bh_scaled(sorted_pvals: np.ndarray, total_tests: float) -> np.ndarray:
    ranks = np.arange(1, len(sorted_pvals) + 1)
    return sorted_pvals * total_tests / ranks


def bh_threshold(
    pvals,
    alpha: float,
    total_tests: float | None = None,
    null_proportion: float = 1.0,
) -> float:
    """Data-driven threshold of the Benjamini-Hochberg procedure.

    Returns ``t`` such that a hypothesis is rejected iff its p-value is at
    most ``t``; ``0.0`` when nothing is rejected. A ``null_proportion``
    below one runs the adaptive procedure at level ``alpha / null_proportion``.
    """
    _check_alpha(alpha)
    arr, observed, total = _observed(pvals, total_tests)
    s = np.sort(arr[observed])
    if len(s) == 0:
        return 0.0
    passing = np.flatnonzero(_bh_scaled(s, total * null_proportion) <= alpha)
    if len(passing) == 0:
        return 0.0
    return float(s[passing[-1]])


def bh_adjust(
    pvals,
    total_tests: float | None = None,
    null_proportion: float = 1.0,
) -> np.ndarray:
    """BH adjusted p-values, ``p.adjust(p, "BH", n=total_tests)``; NaN stays NaN."""
    arr, observed, total = _observed(pvals, total_tests)
    out = np.full(len(arr), np.nan)
    idx = np.flatnonzero(observed)
    if len(idx) == 0:
        return out
    order = np.argsort(arr[idx], kind="stable")
    scaled = _bh_scaled(arr[idx][order], total * null_proportion)
    # step-up: running minimum from the largest p-value downwards
    adjusted = np.minimum.accumulate(scaled[::-1])[::-1]
    out[idx[order]] = np.minimum(adjusted, 1.0)
    return out


def bonferroni_threshold(alpha: float, total_tests: float, weights=None):
    """``alpha / total_tests``, or per-hypothesis ``alpha * w_i / total_tests``."""
    _check_alpha(alpha)
    if total_tests < 1:
        return 0.0 if weights is None else np.zeros(len(weights))
    if weights is None:
        return alpha / total_tests
    return alpha * np.asarray(weights, dtype=float) / total_tests


def bonferroni_adjust(pvals, total_tests: float | None = None) -> np.ndarray:
    arr, _, total = _observed(pvals, total_tests)
    return np.minimum(arr * total, 1.0)


def padj_to_threshold(padj, pvals, alpha: float) -> float:
    """Largest p-value whose adjusted p-value is at most ``alpha``."""
    padj = np.asarray(padj, dtype=float)
    pvals = np.asarray(pvals, dtype=float)
    rejected = pvals[padj <= alpha]
    if len(rejected) == 0:
        return 0.0
    return float(rejected.max())


def benjamini_hochberg(
    p_values,
    alpha: float = 0.05,
    total_tests: float | None = None,
    null_proportion: float = 1.0,
) -> MultipleTestingResult:
    """Apply Benjamini-Hochberg FDR correction.

    Parameters
    ----------
    p_values : raw (or weighted) p-values; NaN entries are ignored
    alpha : desired FDR level
    total_tests : number of hypotheses tested, at least the number of
        non-missing p-values
    null_proportion : estimated share of true nulls in (0, 1]; values
        below one give the adaptive procedure, see :func:`lsl_pi0_est`

    Returns
    -------
    MultipleTestingResult with the indices of rejected hypotheses.
    """
    adjusted = bh_adjust(p_values, total_tests, null_proportion)
    _, observed, total = _observed(p_values, total_tests)
    rejected = np.flatnonzero(adjusted <= alpha)
    return MultipleTestingResult(
        n_tested=int(observed.sum()),
        total_tests=total,
        n_rejected=len(rejected),
        threshold=bh_threshold(p_values, alpha, total, null_proportion),
        rejected_indices=rejected,
        adjusted_pvalues=adjusted,
    )


def bonferroni(
    p_values,
    alpha: float = 0.05,
    total_tests: float | None = None,
) -> MultipleTestingResult:
    """Apply Bonferroni FWER correction."""
    _check_alpha(alpha)
    adjusted = bonferroni_adjust(p_values, total_tests)
    _, observed, total = _observed(p_values, total_tests)
    rejected = np.flatnonzero(adjusted <= alpha)
    return MultipleTestingResult(
        n_tested=int(observed.sum()),
        total_tests=total,
        n_rejected=len(rejected),
        threshold=padj_to_threshold(adjusted, p_values, alpha),
        rejected_indices=rejected,
        adjusted_pvalues=adjusted,
    )


def multiple_testing(
    p_values,
    alpha: float,
    total_tests: float | None = None,
    method: str | AdjustmentType = AdjustmentType.BH,
    null_proportion: float = 1.0,
) -> MultipleTestingResult:
    if AdjustmentType.parse(method) is AdjustmentType.BH:
        return benjamini_hochberg(p_values, alpha, total_tests, null_proportion)
    if null_proportion != 1.0:
        raise InvalidInputError("A null proportion can only be used with BH")
    return bonferroni(p_values, alpha, total_tests)


def lsl_pi0_est(pvals) -> float:
    """Least-slope estimate of the proportion of true null hypotheses.

    With sorted p-values ``p_(1) <= ... <= p_(n)`` the slopes
    ``l_i = (n - i + 1) / (1 - p_(i))`` are scanned from the second one on;
    at the first slope that increases, ``pi0 = min(1, (1 + floor(l_i)) / n)``.
    Returns 1.0 when the slopes never increase or fewer than three p-values
    are given. NaN entries are ignored.
    """
    arr = np.asarray(pvals, dtype=float).ravel()
    s = np.sort(arr[~np.isnan(arr)])
    n = len(s)
    if n < 3:
        return 1.0
    with np.errstate(divide="ignore", invalid="ignore"):
        slopes = np.arange(n, 0, -1) / (1.0 - s)
        increasing = np.flatnonzero(slopes[2:] - slopes[1:-1] > 0)
    if len(increasing) == 0:
        return 1.0
    first = increasing[0] + 2
    return float(min(1.0, (1.0 + np.floor(slopes[first])) / n))
