# File: gcadjust/adjust/ordering.py
# Location: gcadjust/gcadjust/adjust/ordering.py
"""
Order builder: ranks tests from most to least significant.

Tests are sorted by descending chi-square rather than ascending p-value so
that p-values which underflowed to the same tiny value (or to zero) keep the
order of their statistics. Ties on chi-square are broken by ascending
p-value, then by ascending variant index, so the order never depends on how
the input happened to be arranged.
"""

from __future__ import annotations

import numpy as np

from gcadjust.adjust.base import TestRecords
from gcadjust.memory.arena import WorkingArena


def rank_order(records: TestRecords) -> np.ndarray:
    """Permutation that puts ``records`` in rank order (rank 1 first)."""
    # lexsort uses the last key as the primary key
    return np.lexsort((records.variant_idx, records.pval, -records.chisq))


def sort_records(records: TestRecords, arena: WorkingArena) -> TestRecords:
    """Return a copy of ``records`` in rank order, held by ``arena``."""
    n = len(records)
    order = arena.alloc(n, np.int64)
    # negated chi-square key, lexsort's own index workspace and its result
    arena.check_scratch(3 * n, np.int64)
    order[:] = rank_order(records)

    chisq = arena.alloc(n)
    pval = arena.alloc(n)
    variant_idx = arena.alloc(n, np.int64)
    np.take(records.chisq, order, out=chisq)
    np.take(records.pval, order, out=pval)
    np.take(records.variant_idx, order, out=variant_idx)
    return TestRecords(chisq=chisq, pval=pval, variant_idx=variant_idx)
