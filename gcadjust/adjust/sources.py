# File: gcadjust/adjust/sources.py
# Location: gcadjust/gcadjust/adjust/sources.py
"""
Inputs of the adjustment engine.

A ``StatisticSource`` produces the valid per-test table and the variant
metadata the report needs. ``ArraySource`` wraps in-memory arrays aligned to
an inclusion mask. ``AdjustFileSource`` is the delimited-file input; it is
not implemented yet and refuses to load before touching the file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from gcadjust.adjust.base import AdjustFileConfig, TestRecords
from gcadjust.adjust.normalize import build_valid_set
from gcadjust.adjust.variants import VariantStore
from gcadjust.errors import NotYetSupportedError
from gcadjust.memory.arena import WorkingArena


class StatisticSource(ABC):
    """
    Abstract producer of per-test statistics.

    Methods
    -------
    load(arena) -> TestRecords
        Valid tests in input order, buffers held by ``arena``.
    variants -> VariantStore (property)
        Metadata keyed by the ``variant_idx`` values of the loaded records.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in log messages."""
        ...

    @abstractmethod
    def load(self, arena: WorkingArena) -> TestRecords:
        ...

    @property
    @abstractmethod
    def variants(self) -> VariantStore:
        ...


class ArraySource(StatisticSource):
    """
    Statistics held in memory.

    Parameters
    ----------
    variants : VariantStore
        Metadata for the whole variant universe.
    chisqs, pvals : np.ndarray | None
        Statistics aligned to the included variants; negative = missing.
        At least one is required.
    variant_include : np.ndarray | None
        Boolean inclusion mask over the universe. None = all variants.
    """

    def __init__(
        self,
        variants: VariantStore,
        chisqs: np.ndarray | None = None,
        pvals: np.ndarray | None = None,
        variant_include: np.ndarray | None = None,
    ) -> None:
        self._variants = variants
        self.chisqs = chisqs
        self.pvals = pvals
        self.variant_include = variant_include

    @property
    def name(self) -> str:
        return "arrays"

    @property
    def variants(self) -> VariantStore:
        return self._variants

    def load(self, arena: WorkingArena) -> TestRecords:
        return build_valid_set(
            arena,
            chisqs=self.chisqs,
            pvals=self.pvals,
            variant_include=self.variant_include,
        )


class AdjustFileSource(StatisticSource):
    """
    Statistics read from a delimited association-results file.

    Intended contract: the header (optionally prefixed by ``#``; ``##`` lines
    skipped) names chromosome, position, identifier, reference, alternate,
    test-name and p-value columns as resolved by
    ``AdjustFileConfig.field_candidates``. Identifier and p-value are
    mandatory. Not implemented yet: ``load`` raises ``NotYetSupportedError``
    without opening the file.
    """

    def __init__(self, file_config: AdjustFileConfig) -> None:
        self.file_config = file_config

    @property
    def name(self) -> str:
        return "adjust-file"

    @property
    def variants(self) -> VariantStore:
        raise NotYetSupportedError("Adjust-file input is currently under development.")

    def load(self, arena: WorkingArena) -> TestRecords:
        raise NotYetSupportedError("Adjust-file input is currently under development.")
