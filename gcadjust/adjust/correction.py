# File: gcadjust/adjust/correction.py
# Location: gcadjust/gcadjust/adjust/correction.py
"""
Multiple testing correction of rank-ordered p-values.

Every function takes the primary p-values already sorted from most to least
significant (``p[0]`` is rank 1) and returns adjusted values aligned to the
same ranks. ``n = len(p)`` is the number of tests.

Provides:
- bonferroni()  : min(n * p_i, 1)
- holm()        : step-down, running max of (n - i + 1) * p_i from rank 1
- sidak_ss()    : single-step, 1 - (1 - p_i)^n
- sidak_sd()    : step-down, running max of 1 - (1 - p_i)^(n - i + 1) from rank 1
- fdr_bh()      : step-up, running min of (n / i) * p_i from rank n
- fdr_by()      : step-up, running min of H(n) * (n / i) * p_i from rank n
- qq_expected() : (i - 0.5) / n, expected null p-value at rank i
- compute_corrections() : the selected families for one run

The step-down families only grow and the step-up families only shrink along
their traversal, so every adjusted sequence is non-decreasing from rank 1 to
rank n. All outputs are capped at 1.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from gcadjust.adjust.base import CorrectionVectors
from gcadjust.memory.arena import WorkingArena

logger = logging.getLogger("gcadjust")

# Below this p, 1 - (1 - p)^c loses most of its digits to cancellation and is
# computed as -expm1(c * log1p(-p)) instead.
SIDAK_CANCELLATION_THRESHOLD: float = 2.0**-7


def _ranks(n: int) -> np.ndarray:
    return np.arange(1, n + 1, dtype=np.float64)


def _output(p: np.ndarray, out: np.ndarray | None) -> np.ndarray:
    if out is None:
        return np.empty(len(p), dtype=np.float64)
    if len(out) != len(p):
        raise ValueError(f"Output buffer has {len(out)} entries, expected {len(p)}")
    return out


def _sidak(p: np.ndarray, exponent: np.ndarray | float, out: np.ndarray) -> np.ndarray:
    """Write 1 - (1 - p)^exponent into ``out``, using the log1p form for small p."""
    with np.errstate(divide="ignore", invalid="ignore"):
        np.subtract(1.0, p, out=out)
        np.power(out, exponent, out=out)
        np.subtract(1.0, out, out=out)
        small = np.flatnonzero(p < SIDAK_CANCELLATION_THRESHOLD)
        if len(small):
            c = exponent if np.isscalar(exponent) else exponent[small]
            out[small] = 0.0 - np.expm1(c * np.log1p(-p[small]))
    return out


def bonferroni(p: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """Bonferroni adjusted p-values: ``min(n * p_i, 1)``."""
    out = _output(p, out)
    np.multiply(p, float(len(p)), out=out)
    np.minimum(out, 1.0, out=out)
    return out


def holm(p: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """
    Holm step-down adjusted p-values.

    The multiplier at rank i is n - i + 1, so the least significant test is
    multiplied by 1. The running maximum is carried from rank 1 towards rank
    n, and once it reaches 1 it stays there.
    """
    out = _output(p, out)
    n = len(p)
    np.multiply(p, n + 1.0 - _ranks(n), out=out)
    np.maximum.accumulate(out, out=out)
    np.minimum(out, 1.0, out=out)
    return out


def sidak_ss(p: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """Sidak single-step adjusted p-values: ``1 - (1 - p_i)^n``."""
    out = _output(p, out)
    _sidak(p, float(len(p)), out)
    np.minimum(out, 1.0, out=out)
    return out


def sidak_sd(p: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """
    Sidak step-down adjusted p-values.

    Exponent n - i + 1 at rank i; running maximum from rank 1 towards rank n.
    """
    out = _output(p, out)
    n = len(p)
    _sidak(p, n + 1.0 - _ranks(n), out)
    np.maximum.accumulate(out, out=out)
    np.minimum(out, 1.0, out=out)
    return out


def _step_up(values: np.ndarray) -> np.ndarray:
    """Running minimum from the last rank towards rank 1, in place."""
    reversed_view = values[::-1]
    np.minimum.accumulate(reversed_view, out=reversed_view)
    return values


def fdr_bh(p: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """
    Benjamini-Hochberg step-up adjusted p-values (FDR).

    ``(n / i) * p_i`` with a running minimum from rank n towards rank 1.
    """
    out = _output(p, out)
    n = len(p)
    np.multiply(p, n / _ranks(n), out=out)
    _step_up(out)
    np.minimum(out, 1.0, out=out)
    return out


def harmonic_number(n: int) -> float:
    """``H(n) = sum(1/k for k in 1..n)``, summed from the smallest term."""
    return float(np.sum(1.0 / np.arange(n, 0, -1, dtype=np.float64)))


def fdr_by(p: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """
    Benjamini-Yekutieli step-up adjusted p-values (FDR under dependence).

    ``H(n) * (n / i) * p_i`` with a running minimum from rank n towards
    rank 1, capped at 1.
    """
    out = _output(p, out)
    n = len(p)
    np.multiply(p, harmonic_number(n) * n / _ranks(n), out=out)
    _step_up(out)
    np.minimum(out, 1.0, out=out)
    return out


def qq_expected(n: int, out: np.ndarray | None = None) -> np.ndarray:
    """Expected null p-value at each rank: ``(i - 0.5) / n``."""
    if out is None:
        out = np.empty(n, dtype=np.float64)
    out[:] = np.arange(n, dtype=np.float64)
    out += 0.5
    out /= n
    return out


CORRECTIONS: dict[str, Callable[..., np.ndarray]] = {
    "bonf": bonferroni,
    "holm": holm,
    "sidak_ss": sidak_ss,
    "sidak_sd": sidak_sd,
    "fdr_bh": fdr_bh,
    "fdr_by": fdr_by,
}

# Full-length float64 temporaries each family creates besides its output: the
# rank and multiplier vectors, and for Sidak the small-p gather and its log1p chain.
SCRATCH_VECTORS: dict[str, int] = {
    "bonf": 0,
    "holm": 2,
    "sidak_ss": 4,
    "sidak_sd": 6,
    "fdr_bh": 2,
    "fdr_by": 2,
}


def compute_corrections(
    vectors: CorrectionVectors,
    methods: list[str],
    arena: WorkingArena,
) -> CorrectionVectors:
    """
    Fill the selected correction families of ``vectors``.

    Parameters
    ----------
    vectors : CorrectionVectors
        Vectors with ``primary`` set to the rank-ordered p-values.
    methods : list[str]
        Family keys to compute; others stay None.
    arena : WorkingArena
        Arena that owns the output buffers. Each family's temporaries are
        checked against its budget before the family runs.

    Returns
    -------
    CorrectionVectors
        The same object, updated in place.
    """
    if vectors.primary is None:
        raise ValueError("Primary p-values must be set before computing corrections")
    p = vectors.primary
    for method in methods:
        func = CORRECTIONS[method]
        out = arena.alloc(len(p))
        arena.check_scratch(SCRATCH_VECTORS[method] * len(p))
        setattr(vectors, method, func(p, out=out))
        logger.debug(f"Computed {method} for {len(p)} tests")
    return vectors
