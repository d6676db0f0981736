# File: gcadjust/adjust/genomic_control.py
# Location: gcadjust/gcadjust/adjust/genomic_control.py
"""
Genomic control (GC) estimator.

Provides:
- estimate_lambda(): inflation factor from the median 1-df chi-square
- resolve_lambda(): configured override, estimate, or None when GC is skipped
- gc_pvalues(): p-values of the deflated statistics

Lambda is the observed median chi-square divided by 0.456, the rounded median
of the chi-square(1) distribution (exact value 0.45494). Values below 1 mean
deflation and are clamped to 1, which leaves every statistic unchanged.
"""

from __future__ import annotations

import logging

import numpy as np

from gcadjust.adjust.base import AdjustConfig
from gcadjust.adjust.stats import chisq_to_p

logger = logging.getLogger("gcadjust")

EXPECTED_CHI2_MEDIAN: float = 0.456


def estimate_lambda(chisq: np.ndarray) -> float:
    """
    Genomic inflation factor of a set of 1-df chi-square statistics.

    Parameters
    ----------
    chisq : np.ndarray
        Chi-square statistics of all valid tests (any order, non-empty).

    Returns
    -------
    float
        ``max(1, median(chisq) / 0.456)``.
    """
    n = len(chisq)
    if n == 0:
        raise ValueError("Cannot estimate lambda from zero tests")
    if n < 100:
        logger.warning(f"lambda computed on {n} tests; unreliable for n < 100")

    lam = float(np.median(chisq)) / EXPECTED_CHI2_MEDIAN
    if lam < 1.0:
        lam = 1.0
    return lam


def resolve_lambda(config: AdjustConfig, chisq: np.ndarray) -> float | None:
    """
    Lambda applied by this run.

    Returns None when genomic control is skipped, the configured override
    when it is positive, and the median-based estimate otherwise.
    """
    if config.skip_gc:
        return None
    if config.lambda_ > 0:
        return config.lambda_
    lam = estimate_lambda(chisq)
    logger.info(f"Genomic inflation est. lambda (based on median chisq) = {lam:g}.")
    return lam


def gc_pvalues(chisq: np.ndarray, lambda_gc: float | None, out: np.ndarray) -> np.ndarray:
    """
    Write the p-values of ``chisq / lambda_gc`` into ``out``.

    With ``lambda_gc`` None the statistics are used unchanged.
    """
    lambda_recip = 1.0 if lambda_gc is None else 1.0 / lambda_gc
    out[:] = chisq_to_p(chisq * lambda_recip)
    return out
