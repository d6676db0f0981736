# File: gcadjust/adjust/stats.py
# Location: gcadjust/gcadjust/adjust/stats.py
"""
Chi-square (1 df) survival function and its inverse.

Thin vectorized wrappers around ``scipy.stats.chi2`` with the saturation
rule used when deriving a statistic from a p-value of exactly zero.
"""

from __future__ import annotations

import numpy as np
from scipy.stats import chi2 as chi2_dist

# Largest statistic produced by the inverse: the value at the smallest normal
# double. p == 0 (and subnormal p) map here instead of to infinity.
MAX_INVERSE_CHIPROB_1DF: float = float(chi2_dist.isf(np.finfo(np.float64).tiny, df=1))


def chisq_to_p(chisq: np.ndarray | float) -> np.ndarray:
    """Upper-tail probability of a 1-df chi-square statistic."""
    return np.asarray(chi2_dist.sf(chisq, df=1), dtype=np.float64)


def p_to_chisq(pvals: np.ndarray | float) -> np.ndarray:
    """
    1-df chi-square statistic whose upper-tail probability is ``pvals``.

    Zero (and subnormal) p-values saturate at ``MAX_INVERSE_CHIPROB_1DF``.
    """
    p = np.asarray(pvals, dtype=np.float64)
    with np.errstate(divide="ignore", over="ignore"):
        chisq = np.asarray(chi2_dist.isf(p, df=1), dtype=np.float64)
    chisq = np.where(p == 0.0, MAX_INVERSE_CHIPROB_1DF, chisq)
    return np.minimum(chisq, MAX_INVERSE_CHIPROB_1DF)
