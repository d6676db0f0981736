# File: gcadjust/adjust/normalize.py
# Location: gcadjust/gcadjust/adjust/normalize.py
"""
Validity filter and statistic normalizer.

Selects the tests that carry a usable statistic and completes each test's
(chi-square, p-value) pair with the 1-df relation. A negative (or NaN) entry
on the supplied array marks a missing statistic; such tests are dropped and
do not count towards the number of tests. Supplied p-values on the remaining
tests must lie in [0, 1].
"""

from __future__ import annotations

import logging

import numpy as np

from gcadjust.adjust.base import TestRecords
from gcadjust.adjust.stats import chisq_to_p, p_to_chisq
from gcadjust.errors import InconsistentInputError
from gcadjust.memory.arena import WorkingArena

logger = logging.getLogger("gcadjust")


def included_indices(variant_include: np.ndarray | None, n_tests: int) -> np.ndarray:
    """
    Variant indices of the included variants, in ascending order.

    Parameters
    ----------
    variant_include : np.ndarray | None
        Boolean inclusion mask over the variant universe. None = the first
        ``n_tests`` variants are all included.
    n_tests : int
        Length of the statistic arrays, which must equal the included count.
    """
    if variant_include is None:
        return np.arange(n_tests, dtype=np.int64)

    mask = np.asarray(variant_include, dtype=bool)
    indices = np.flatnonzero(mask).astype(np.int64)
    if len(indices) != n_tests:
        raise InconsistentInputError(
            f"Statistic arrays have {n_tests} entries but the inclusion set "
            f"selects {len(indices)} variants"
        )
    return indices


def build_valid_set(
    arena: WorkingArena,
    chisqs: np.ndarray | None = None,
    pvals: np.ndarray | None = None,
    variant_include: np.ndarray | None = None,
) -> TestRecords:
    """
    Filter tests with a usable statistic and derive the missing half of each pair.

    Parameters
    ----------
    arena : WorkingArena
        Arena that owns the returned buffers.
    chisqs : np.ndarray | None
        1-df chi-square statistics aligned to the included variants.
        When given, it decides validity.
    pvals : np.ndarray | None
        p-values aligned to the included variants. Decides validity only
        when ``chisqs`` is None.
    variant_include : np.ndarray | None
        Boolean inclusion mask over the variant universe.

    Returns
    -------
    TestRecords
        Valid tests in input order. May be empty.

    Raises
    ------
    InconsistentInputError
        If both arrays are missing, lengths disagree, or a supplied p-value
        of a valid test is NaN or outside [0, 1].
    OutOfMemoryError
        If the arena cannot hold the valid set.
    """
    if chisqs is None and pvals is None:
        raise InconsistentInputError("Either chi-square statistics or p-values are required")

    chisq_arr = None if chisqs is None else np.asarray(chisqs, dtype=np.float64)
    pval_arr = None if pvals is None else np.asarray(pvals, dtype=np.float64)
    if chisq_arr is not None and pval_arr is not None and len(chisq_arr) != len(pval_arr):
        raise InconsistentInputError(
            f"chi-square array has {len(chisq_arr)} entries, p-value array has {len(pval_arr)}"
        )

    key = chisq_arr if chisq_arr is not None else pval_arr
    n_total = len(key)
    variant_idx = included_indices(variant_include, n_total)

    # NaN compares False, so it is treated like the negative sentinel.
    valid = arena.alloc(n_total, np.bool_)
    np.greater_equal(key, 0.0, out=valid)
    n_valid = int(np.count_nonzero(valid))
    n_missing = n_total - n_valid
    if n_missing:
        logger.debug(f"{n_missing} test(s) without a usable statistic excluded")

    out_chisq = arena.alloc(n_valid)
    out_pval = arena.alloc(n_valid)
    out_idx = arena.alloc(n_valid, np.int64)
    # inclusion-mask index vector plus the chi2 sf / isf results and saturation pass
    arena.check_scratch(2 * n_total + 3 * n_valid)

    np.compress(valid, variant_idx, out=out_idx)
    if pval_arr is not None:
        np.compress(valid, pval_arr, out=out_pval)
        _check_pvalue_range(out_pval)
    if chisq_arr is not None:
        np.compress(valid, chisq_arr, out=out_chisq)
        if pval_arr is None:
            out_pval[:] = chisq_to_p(out_chisq)
    else:
        out_chisq[:] = p_to_chisq(out_pval)

    return TestRecords(chisq=out_chisq, pval=out_pval, variant_idx=out_idx)


def _check_pvalue_range(pvals: np.ndarray) -> None:
    """Raise InconsistentInputError unless every supplied p-value lies in [0, 1]."""
    if len(pvals) == 0:
        return
    # min and max propagate NaN, which then fails both comparisons
    lo, hi = float(pvals.min()), float(pvals.max())
    if lo >= 0.0 and hi <= 1.0:
        return
    n_bad = int(np.count_nonzero(~((pvals >= 0.0) & (pvals <= 1.0))))
    raise InconsistentInputError(
        f"{n_bad} p-value(s) on tests with a usable statistic lie outside [0, 1] "
        f"(min {lo}, max {hi})"
    )
