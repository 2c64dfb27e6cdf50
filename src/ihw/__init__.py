"""Independent Hypothesis Weighting: covariate-weighted BH and Bonferroni."""

from .core import default_nbins, ihw
from .errors import (
    FilteredInputWarning,
    IHWError,
    InvalidInputError,
    NumericDegeneracyWarning,
)
from .folds import assign_folds
from .result import IHWResult
from .stratify import (
    CategoricalCovariate,
    NumericCovariate,
    Strata,
    as_covariate,
    groups_by_filter,
    stratify,
)
from .thresholds import (
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

__all__ = [
    "ihw",
    "default_nbins",
    "IHWResult",
    "IHWError",
    "InvalidInputError",
    "NumericDegeneracyWarning",
    "FilteredInputWarning",
    "assign_folds",
    "CategoricalCovariate",
    "NumericCovariate",
    "Strata",
    "as_covariate",
    "groups_by_filter",
    "stratify",
    "AdjustmentType",
    "MultipleTestingResult",
    "benjamini_hochberg",
    "bh_adjust",
    "bh_threshold",
    "bonferroni",
    "bonferroni_adjust",
    "bonferroni_threshold",
    "lsl_pi0_est",
    "multiple_testing",
    "padj_to_threshold",
]
