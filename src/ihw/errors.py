"""Error and warning types raised by the IHW pipeline."""
from __future__ import annotations


class IHWError(Exception):
    """Base class for IHW failures."""


class InvalidInputError(IHWError, ValueError):
    """Inputs or configuration are malformed; raised before any computation."""


class NumericDegeneracyWarning(UserWarning):
    """Weight normalisation hit a zero denominator and fell back to uniform weights."""


class FilteredInputWarning(UserWarning):
    """The p-values look filtered but no per-stratum totals were supplied."""
