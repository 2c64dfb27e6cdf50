"""Tests for the BH / Bonferroni threshold engine."""
import numpy as np
import pytest

from ihw.errors import InvalidInputError
from ihw.thresholds import (
    AdjustmentType,
    MultipleTestingResult,
    benjamini_hochberg,
    bh_adjust,
    bh_threshold,
    bonferroni,
    bonferroni_adjust,
    bonferroni_threshold,
    lsl_pi0_est,
    multiple_testing,
    padj_to_threshold,
)


# ---------------------------------------------------------------------------
# Benjamini-Hochberg
# ---------------------------------------------------------------------------

class TestBenjaminiHochberg:
    def test_empty(self):
        result = benjamini_hochberg([])
        assert result.n_tested == 0
        assert result.n_rejected == 0
        assert result.threshold == 0.0

    def test_all_missing(self):
        result = benjamini_hochberg([np.nan, np.nan], alpha=0.1)
        assert result.n_rejected == 0
        assert result.threshold == 0.0
        assert np.isnan(result.adjusted_pvalues).all()

    def test_all_significant(self):
        pvals = [0.001, 0.002, 0.003, 0.004, 0.005]
        result = benjamini_hochberg(pvals, alpha=0.05)
        assert result.n_rejected == 5
        assert result.rejected_indices.tolist() == [0, 1, 2, 3, 4]

    def test_none_significant(self):
        pvals = [0.5, 0.6, 0.7, 0.8, 0.9]
        result = benjamini_hochberg(pvals, alpha=0.05)
        assert result.n_rejected == 0
        assert result.threshold == 0.0

    def test_known_threshold(self):
        pvals = [0.5, 0.01, 0.03, 0.02]
        assert bh_threshold(pvals, 0.05) == 0.03
        adj = bh_adjust(pvals)
        assert adj == pytest.approx([0.5, 0.04, 0.04, 0.04])

    def test_step_up_rescues_earlier_ranks(self):
        # p_(1) alone fails 1/4 * alpha but p_(2) passes 2/4 * alpha
        pvals = [0.015, 0.02, 0.9, 0.95]
        result = benjamini_hochberg(pvals, alpha=0.05)
        assert result.n_rejected == 2
        assert result.threshold == 0.02

    def test_adjusted_pvalues_monotone(self):
        pvals = [0.01, 0.04, 0.05, 0.2, 0.5]
        result = benjamini_hochberg(pvals, alpha=0.10)
        adj = result.adjusted_pvalues
        sorted_adj = [adj[i] for i in np.argsort(pvals)]
        for i in range(len(sorted_adj) - 1):
            assert sorted_adj[i] <= sorted_adj[i + 1] + 1e-10

    def test_threshold_matches_adjusted(self, mixed_pvalues):
        for alpha in (0.01, 0.05, 0.1, 0.2, 0.5):
            t = bh_threshold(mixed_pvalues, alpha)
            adj = bh_adjust(mixed_pvalues)
            assert np.array_equal(mixed_pvalues <= t, adj <= alpha)

    def test_threshold_matches_adjusted_with_ties(self):
        pvals = np.array([0.01, 0.01, 0.01, 0.02, 0.02, 0.3, 0.3, 0.9])
        for alpha in (0.02, 0.05, 0.08, 0.1):
            t = bh_threshold(pvals, alpha)
            assert np.array_equal(pvals <= t, bh_adjust(pvals) <= alpha)

    def test_missing_values_ignored(self):
        pvals = [0.001, np.nan, 0.002, 0.9]
        result = benjamini_hochberg(pvals, alpha=0.05)
        assert result.n_tested == 3
        assert result.rejected_indices.tolist() == [0, 2]
        assert np.isnan(result.adjusted_pvalues[1])

    def test_infinite_values_never_rejected(self):
        pvals = [0.001, np.inf, 0.002]
        result = benjamini_hochberg(pvals, alpha=0.05)
        assert result.rejected_indices.tolist() == [0, 2]
        assert result.adjusted_pvalues[1] == 1.0

    def test_numpy_input(self):
        pvals = np.array([0.01, 0.02, 0.5])
        result = benjamini_hochberg(pvals, alpha=0.05)
        assert isinstance(result, MultipleTestingResult)

    def test_stricter_alpha(self):
        pvals = [0.01, 0.03, 0.05]
        r_loose = benjamini_hochberg(pvals, alpha=0.10)
        r_strict = benjamini_hochberg(pvals, alpha=0.01)
        assert r_strict.n_rejected <= r_loose.n_rejected

    def test_invalid_alpha(self):
        with pytest.raises(InvalidInputError):
            bh_threshold([0.1], 0.0)
        with pytest.raises(InvalidInputError):
            bh_threshold([0.1], 1.5)


# ---------------------------------------------------------------------------
# Censored input (total_tests > number of p-values)
# ---------------------------------------------------------------------------

class TestCensoredTotals:
    def test_total_reduces_rejections(self):
        pvals = [0.001, 0.01, 0.02]
        assert benjamini_hochberg(pvals, 0.05).n_rejected == 3
        assert benjamini_hochberg(pvals, 0.05, total_tests=20).n_rejected == 1

    def test_filtered_subset_matches_full(self, mixed_pvalues):
        keep = mixed_pvalues <= 0.2
        for alpha in (0.05, 0.1, 0.2):
            full = benjamini_hochberg(mixed_pvalues, alpha)
            sub = benjamini_hochberg(mixed_pvalues[keep], alpha, total_tests=len(mixed_pvalues))
            assert full.n_rejected == sub.n_rejected
            assert full.threshold == sub.threshold
            assert np.array_equal(
                np.flatnonzero(keep)[sub.rejected_indices], full.rejected_indices
            )

    def test_total_smaller_than_observed(self):
        with pytest.raises(InvalidInputError):
            bh_threshold([0.1, 0.2, 0.3], 0.05, total_tests=2)

    def test_fractional_total(self):
        t = bh_threshold([0.001, 0.5], 0.05, total_tests=2.5)
        assert t == 0.001


# ---------------------------------------------------------------------------
# Bonferroni
# ---------------------------------------------------------------------------

class TestBonferroni:
    def test_threshold(self):
        assert bonferroni_threshold(0.05, 10) == pytest.approx(0.005)

    def test_weighted_threshold(self):
        t = bonferroni_threshold(0.05, 10, weights=[2.0, 0.5, 0.0])
        assert t == pytest.approx([0.01, 0.0025, 0.0])

    def test_adjust_caps_at_one(self):
        adj = bonferroni_adjust([0.01, 0.02, 0.5])
        assert adj == pytest.approx([0.03, 0.06, 1.0])

    def test_rejections(self):
        result = bonferroni([0.01, 0.02, 0.5], alpha=0.05)
        assert result.n_rejected == 1
        assert result.threshold == 0.01
        assert result.rejected_indices.tolist() == [0]

    def test_total_tests(self):
        result = bonferroni([0.001, 0.004], alpha=0.05, total_tests=20)
        assert result.n_rejected == 1

    def test_empty(self):
        result = bonferroni([], alpha=0.05)
        assert result.n_rejected == 0
        assert result.threshold == 0.0


class TestDispatch:
    def test_parse(self):
        assert AdjustmentType.parse("bh") is AdjustmentType.BH
        assert AdjustmentType.parse("BONFERRONI") is AdjustmentType.BONFERRONI
        assert AdjustmentType.parse(AdjustmentType.BH) is AdjustmentType.BH

    def test_parse_unknown(self):
        with pytest.raises(InvalidInputError):
            AdjustmentType.parse("holm")

    def test_multiple_testing(self):
        pvals = [0.01, 0.02, 0.03]
        assert multiple_testing(pvals, 0.05, method="BH").n_rejected == 3
        assert multiple_testing(pvals, 0.05, method="Bonferroni").n_rejected == 1

    def test_padj_to_threshold(self):
        padj = np.array([0.01, 0.2, np.nan, 0.04])
        pvals = np.array([0.001, 0.1, 0.5, 0.004])
        assert padj_to_threshold(padj, pvals, 0.05) == 0.004
        assert padj_to_threshold(padj, pvals, 0.005) == 0.0


# ---------------------------------------------------------------------------
# Null proportion (adaptive BH)
# ---------------------------------------------------------------------------

# five near-zero p-values, then the slopes (n - i + 1) / (1 - p_(i)) first
# increase at p = 0.2: 5 / 0.8 = 6.25, so pi0 = (1 + 6) / 10
PI0_EXAMPLE = [0.9, 0.001, 0.6, 0.002, 0.003, 0.2, 0.004, 0.8, 0.005, 0.4]


class TestNullProportion:
    def test_hand_computed(self):
        assert lsl_pi0_est(PI0_EXAMPLE) == pytest.approx(0.7)

    def test_missing_values_ignored(self):
        assert lsl_pi0_est(PI0_EXAMPLE + [np.nan, np.nan]) == pytest.approx(0.7)

    def test_slopes_never_increase(self):
        assert lsl_pi0_est([0.1, 0.2, 0.3, 0.4, 0.5]) == 1.0

    def test_too_few_pvalues(self):
        assert lsl_pi0_est([]) == 1.0
        assert lsl_pi0_est([0.01, 0.5]) == 1.0

    def test_pvalues_equal_to_one(self):
        assert lsl_pi0_est([0.001, 0.002, 0.003, 1.0, 1.0]) == 1.0

    def test_mostly_null_estimate_near_one(self, mixed_pvalues):
        pi0 = lsl_pi0_est(mixed_pvalues)
        assert 0.8 <= pi0 <= 1.0

    def test_scales_level(self, mixed_pvalues):
        adaptive = benjamini_hochberg(mixed_pvalues, 0.05, null_proportion=0.5)
        plain = benjamini_hochberg(mixed_pvalues, 0.1)
        assert adaptive.n_rejected == plain.n_rejected
        assert adaptive.threshold == plain.threshold
        assert np.array_equal(
            bh_adjust(mixed_pvalues, null_proportion=0.5) <= 0.05,
            bh_adjust(mixed_pvalues) <= 0.1,
        )

    def test_bonferroni_rejects_null_proportion(self):
        with pytest.raises(InvalidInputError):
            multiple_testing([0.01, 0.2], 0.1, method="Bonferroni", null_proportion=0.5)
