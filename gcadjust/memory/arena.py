"""
Scoped working-buffer arena.

Every buffer an adjustment run needs is requested from one ``WorkingArena``
that lives exactly as long as the run. Leaving the ``with`` block, normally or
through an exception, drops all buffers at once; nothing is freed per call.
"""

from __future__ import annotations

import logging

import numpy as np

from gcadjust.errors import OutOfMemoryError

logger = logging.getLogger(__name__)


class WorkingArena:
    """
    Linear allocator of numpy buffers with a byte budget and bulk release.

    Parameters
    ----------
    budget_bytes : int | None
        Maximum number of bytes that may be held at once. None = unlimited.
    label : str
        Name used in log messages.

    Usage
    -----
    >>> with WorkingArena(budget_bytes=1 << 20) as arena:
    ...     buf = arena.alloc(1000)
    """

    def __init__(self, budget_bytes: int | None = None, label: str = "adjust") -> None:
        self.budget_bytes = budget_bytes
        self.label = label
        self._buffers: list[np.ndarray] = []
        self._used = 0
        self._open = False

    @property
    def used_bytes(self) -> int:
        """Bytes currently held by the arena."""
        return self._used

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self) -> WorkingArena:
        self._open = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.reset()
        self._open = False

    def _check_budget(self, nbytes: int, what: str) -> None:
        if self.budget_bytes is not None and self._used + nbytes > self.budget_bytes:
            raise OutOfMemoryError(
                f"Working memory exhausted: {self._used + nbytes:,} bytes requested "
                f"({what}), budget is {self.budget_bytes:,} bytes"
            )

    def alloc(self, count: int, dtype: np.dtype | type = np.float64) -> np.ndarray:
        """
        Allocate an uninitialized buffer of ``count`` elements.

        Raises
        ------
        OutOfMemoryError
            If the request would exceed the budget or numpy cannot satisfy it.
        RuntimeError
            If called outside the arena's ``with`` block.
        """
        if not self._open:
            raise RuntimeError(f"Arena '{self.label}' is not open")
        nbytes = int(count) * np.dtype(dtype).itemsize
        self._check_budget(nbytes, "buffer")
        try:
            buf = np.empty(int(count), dtype=dtype)
        except MemoryError as e:
            raise OutOfMemoryError(f"Could not allocate {nbytes:,} bytes: {e}") from e
        self._buffers.append(buf)
        self._used += nbytes
        return buf

    def check_scratch(self, count: int, dtype: np.dtype | type = np.float64) -> None:
        """
        Check that ``count`` elements of short-lived scratch fit next to the held buffers.

        numpy expressions that cannot write into an arena buffer (sorting,
        scipy distribution calls, fancy indexing) return fresh arrays. Callers
        declare those here before evaluating them so that the peak stays within
        the budget. Nothing is held afterwards.

        Raises
        ------
        OutOfMemoryError
            If the scratch would exceed the budget.
        """
        if not self._open:
            raise RuntimeError(f"Arena '{self.label}' is not open")
        self._check_budget(int(count) * np.dtype(dtype).itemsize, "scratch")

    def reset(self) -> None:
        """Release every buffer held by the arena."""
        if self._buffers:
            logger.debug(f"Arena '{self.label}': releasing {self._used:,} bytes")
        self._buffers.clear()
        self._used = 0
