"""Independent Hypothesis Weighting entry point.

Pipeline: stratify by covariate, split into folds, learn cross-fitted
stratum weights, then run the weighted procedure once on all hypotheses.
"""
from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping

import numpy as np

from .crossfit import CrossFitResult, cross_fit_weights
from .errors import FilteredInputWarning, InvalidInputError
from .folds import assign_folds
from .result import IHWResult
from .rng import SeedLike, spawn_generators
from .stratify import (
    CategoricalCovariate,
    NumericCovariate,
    Strata,
    TIES_METHODS,
    as_covariate,
    stratify,
)
from .thresholds import AdjustmentType, lsl_pi0_est, multiple_testing, padj_to_threshold
from .weights import weighted_pvalues

logger = logging.getLogger(__name__)

MAX_AUTO_BINS = 40
# below this size the filtered-input check is too noisy to be useful
FILTER_CHECK_MIN_TESTS = 100
FILTER_CHECK_MAX_PVALUE = 0.5


def default_nbins(m: int) -> int:
    """Number of strata used when none is given: grows like sqrt(m)."""
    return max(1, min(MAX_AUTO_BINS, int(np.sqrt(m) // 10)))


def _validate_pvalues(pvalues) -> np.ndarray:
    try:
        p = np.asarray(pvalues, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"p-values must be numeric: {e}") from e
    if p.ndim != 1:
        raise InvalidInputError(f"p-values must be one-dimensional, got shape {p.shape}")
    observed = p[~np.isnan(p)]
    if ((observed < 0) | (observed > 1)).any():
        raise InvalidInputError("p-values must lie in [0, 1]")
    return p


def _validate_config(alpha: float, nbins: int | None, nfolds: int, ties_method: str) -> None:
    if not 0.0 < alpha < 1.0:
        raise InvalidInputError(f"alpha must lie in (0, 1), got {alpha}")
    if nbins is not None and (int(nbins) != nbins or nbins < 1):
        raise InvalidInputError(f"nbins must be a positive integer, got {nbins!r}")
    if int(nfolds) != nfolds or nfolds < 1:
        raise InvalidInputError(f"nfolds must be a positive integer, got {nfolds!r}")
    if ties_method not in TIES_METHODS:
        raise InvalidInputError(
            f"Unknown ties_method {ties_method!r}; expected one of {TIES_METHODS}"
        )


def _stratum_totals(m_groups: Mapping, strata: Strata) -> np.ndarray:
    counts = strata.counts()
    totals = np.zeros(strata.n_strata)
    for i, level in enumerate(strata.levels):
        if level not in m_groups:
            raise InvalidInputError(f"m_groups has no total for stratum {level!r}")
        totals[i] = m_groups[level]
        if totals[i] < counts[i]:
            raise InvalidInputError(
                f"m_groups[{level!r}] = {m_groups[level]} is smaller than the "
                f"{counts[i]} p-values observed in that stratum"
            )
    return totals


def _check_filtered(p: np.ndarray) -> None:
    if len(p) >= FILTER_CHECK_MIN_TESTS and p.max() < FILTER_CHECK_MAX_PVALUE:
        msg = (
            f"Largest of {len(p)} p-values is {p.max():.3g}; the input looks filtered. "
            "Pass m_groups with the true number of hypotheses per stratum."
        )
        logger.warning(msg)
        warnings.warn(msg, FilteredInputWarning, stacklevel=3)


def assemble(
    pvalues: np.ndarray,
    covariate: np.ndarray,
    observed: np.ndarray,
    strata: Strata,
    folds: np.ndarray,
    crossfit: CrossFitResult,
    alpha: float,
    adjustment_type: AdjustmentType,
    total_tests: int,
    nbins: int,
    nfolds: int,
    m_groups: Mapping | None = None,
    null_proportion: float = 1.0,
) -> IHWResult:
    """Apply the learned weights and run the weighted procedure once.

    ``strata`` and ``folds`` describe the observed hypotheses only; the
    outputs are expanded back to the full input length.
    """
    m = len(pvalues)
    w_obs = crossfit.expand(strata.codes, folds)
    wp_obs = weighted_pvalues(pvalues[observed], w_obs)
    res = multiple_testing(wp_obs, alpha, total_tests, adjustment_type, null_proportion)

    weights = np.full(m, np.nan)
    weights[observed] = w_obs
    wpvals = np.full(m, np.nan)
    wpvals[observed] = wp_obs
    adj = np.full(m, np.nan)
    adj[observed] = res.adjusted_pvalues
    labels = np.full(m, None, dtype=object)
    labels[observed] = strata.labels()
    fold_labels = np.zeros(m, dtype=int)
    fold_labels[observed] = folds

    return IHWResult(
        pvalues_=pvalues.copy(),
        covariate_=np.array(covariate, copy=True),
        group_labels_=labels,
        folds_=fold_labels,
        weights_=weights,
        weighted_pvalues_=wpvals,
        adj_pvalues_=adj,
        weight_matrix=crossfit.weight_matrix.copy(),
        levels=np.array(strata.levels, copy=True),
        alpha=alpha,
        nbins=nbins,
        nfolds=nfolds,
        adjustment_type=adjustment_type,
        threshold=padj_to_threshold(res.adjusted_pvalues, wp_obs, alpha),
        total_tests=total_tests,
        n_rejections=int(np.sum(adj <= alpha)),
        m_groups=m_groups,
        null_proportion=null_proportion,
        degenerate_folds=tuple(crossfit.degenerate_folds),
    )


def ihw(
    pvalues,
    covariates,
    alpha: float,
    nbins: int | None = None,
    nfolds: int = 5,
    adjustment_type: str | AdjustmentType = AdjustmentType.BH,
    m_groups: Mapping | None = None,
    seed: SeedLike = None,
    ties_method: str = "random",
    refine_iterations: int = 10,
    null_proportion: bool = False,
) -> IHWResult:
    """Independent Hypothesis Weighting.

    Parameters
    ----------
    pvalues : p-values in [0, 1]; NaN marks an unmeasured hypothesis
    covariates : covariate per hypothesis, a raw numeric sequence, a
        ``NumericCovariate``, a ``CategoricalCovariate`` (or pandas
        categorical), or None for a single stratum
    alpha : nominal FDR (BH) or FWER (Bonferroni) level in (0, 1)
    nbins : number of strata for a numeric covariate; defaults to
        :func:`default_nbins`. Ignored for categorical covariates.
    nfolds : number of cross-fitting folds
    adjustment_type : ``BH`` or ``Bonferroni``
    m_groups : true number of hypotheses per stratum label when the
        p-values were filtered; requires a categorical covariate
    seed : seed (or generator) for tie-breaking and fold assignment
    ties_method : how tied covariate values are ranked
    refine_iterations : weight refinement rounds, 0 for the closed form
    null_proportion : estimate the share of true nulls with
        :func:`~ihw.thresholds.lsl_pi0_est` and run BH at level
        ``alpha / pi0``. BH only; not available with ``m_groups``, whose
        filtered-out p-values would bias the estimate.

    Returns
    -------
    IHWResult

    Notes
    -----
    Weights are learned at the requested ``alpha``. For a fixed weight
    matrix the number of rejections never decreases with alpha, but two
    calls at different alphas learn different weights, so a larger alpha
    can occasionally reject a few hypotheses less. Refinement can move the
    weights further between alphas than the closed form does. It stays on
    by default because it never leaves a fold with fewer training
    rejections than unweighted BH. Pass ``refine_iterations=0`` for the
    closed form alone.
    """
    p = _validate_pvalues(pvalues)
    _validate_config(alpha, nbins, nfolds, ties_method)
    method = AdjustmentType.parse(adjustment_type)
    if null_proportion and method is not AdjustmentType.BH:
        raise InvalidInputError("null_proportion is only supported with BH")
    if null_proportion and m_groups is not None:
        raise InvalidInputError("null_proportion cannot be combined with m_groups")
    m = len(p)

    if covariates is None:
        cov = CategoricalCovariate(np.ones(m, dtype=int), levels=[1])
    else:
        cov = as_covariate(covariates)
    if len(cov) != m:
        raise InvalidInputError(
            f"Covariate has length {len(cov)} but there are {m} p-values"
        )
    if m_groups is not None and not isinstance(cov, CategoricalCovariate):
        raise InvalidInputError(
            "m_groups requires a categorical covariate, e.g. labels from groups_by_filter"
        )

    observed = ~np.isnan(p)
    n_obs = int(observed.sum())
    tie_rng, fold_rng = spawn_generators(seed, 2)

    if isinstance(cov, NumericCovariate):
        nbins = default_nbins(n_obs) if nbins is None else int(nbins)
        strata = stratify(cov.values[observed], nbins, ties_method=ties_method, seed=tie_rng)
        covariate_values = cov.values
    else:
        levels = list(cov.labels.categories)
        if m_groups is not None:
            m_groups = dict(m_groups)
            levels += [k for k in m_groups if k not in levels]
        strata = stratify(CategoricalCovariate(cov.labels[observed], levels=levels), len(levels))
        nbins = strata.n_strata
        covariate_values = np.asarray(cov.labels, dtype=object)

    if m_groups is not None:
        totals = _stratum_totals(m_groups, strata)
        unobserved = totals - strata.counts()
        total_tests = int(round(totals.sum()))
    else:
        unobserved = np.zeros(strata.n_strata)
        total_tests = n_obs
        _check_filtered(p[observed])

    pi0 = lsl_pi0_est(p[observed]) if null_proportion else 1.0
    if null_proportion:
        logger.info("Estimated null proportion %.3f; BH runs at level %.3g", pi0, alpha / pi0)

    folds = assign_folds(n_obs, nfolds, seed=fold_rng)
    if n_obs == 0:
        logger.info("No observed p-values; returning an empty result")
        crossfit = CrossFitResult(
            weight_matrix=np.ones((strata.n_strata, nfolds)),
            holdout_totals=np.zeros((strata.n_strata, nfolds)),
        )
    else:
        crossfit = cross_fit_weights(
            p[observed],
            strata.codes,
            folds,
            strata.n_strata,
            nfolds,
            alpha,
            adjustment_type=method,
            unobserved=unobserved,
            refine_iterations=refine_iterations,
            null_proportion=pi0,
        )

    result = assemble(
        p,
        covariate_values,
        observed,
        strata,
        folds,
        crossfit,
        alpha,
        method,
        total_tests,
        nbins,
        nfolds,
        m_groups=m_groups,
        null_proportion=pi0,
    )
    logger.info(
        "IHW (%s): %d of %d hypotheses rejected at alpha=%g with %d strata x %d folds",
        method.value, result.rejections(), total_tests, alpha, nbins, nfolds,
    )
    return result
