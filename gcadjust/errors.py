# File: gcadjust/errors.py
# Location: gcadjust/gcadjust/errors.py
"""
Status codes and exceptions for adjustment runs.

Each stage raises an ``AdjustError`` subclass; the engine entry points catch
it after every scoped resource has been released and report its ``status``
in the returned ``AdjustResult``.
"""

from __future__ import annotations

from enum import Enum


class AdjustStatus(Enum):
    """Outcome of one adjustment run."""

    SUCCESS = "success"
    OUT_OF_MEMORY = "out_of_memory"
    WRITE_FAIL = "write_fail"
    MALFORMED_INPUT = "malformed_input"
    INCONSISTENT_INPUT = "inconsistent_input"
    NOT_YET_SUPPORTED = "not_yet_supported"


class AdjustError(Exception):
    """Base class for errors that abort an adjustment run."""

    status: AdjustStatus | None = None


class OutOfMemoryError(AdjustError):
    """A working buffer could not be allocated."""

    status = AdjustStatus.OUT_OF_MEMORY


class WriteFailureError(AdjustError):
    """The output stream could not be written or closed."""

    status = AdjustStatus.WRITE_FAIL


class MalformedInputError(AdjustError):
    """An input file could not be parsed."""

    status = AdjustStatus.MALFORMED_INPUT


class InconsistentInputError(AdjustError):
    """Inputs disagree with each other (missing columns, length mismatch)."""

    status = AdjustStatus.INCONSISTENT_INPUT


class NotYetSupportedError(AdjustError):
    """The requested input path is not implemented."""

    status = AdjustStatus.NOT_YET_SUPPORTED
