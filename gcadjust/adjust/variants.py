# File: gcadjust/adjust/variants.py
# Location: gcadjust/gcadjust/adjust/variants.py
"""
Variant metadata lookup used by the report streamer.

A ``VariantStore`` holds, for a universe of variants indexed 0..N-1, the
identifier, optional chromosome and position, and the alleles. Alleles live
in one flat list; ``allele_offsets[i]:allele_offsets[i + 1]`` is the slice of
variant ``i`` (reference first). Without offsets every variant is biallelic
and owns ``allele_storage[2 * i]`` and ``allele_storage[2 * i + 1]``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

logger = logging.getLogger("gcadjust")


@dataclass
class VariantStore:
    """
    Per-variant metadata keyed by variant index.

    Fields
    ------
    variant_ids : list[str]
        Identifier of every variant in the universe.
    chrom_ids : list[str] | None
        Chromosome name of every variant.
    positions : np.ndarray | None
        Base-pair position of every variant.
    allele_storage : list[str] | None
        Flat allele list (see module docstring).
    allele_offsets : np.ndarray | None
        Per-variant start offsets into allele_storage, length N + 1.
    """

    variant_ids: list[str]
    chrom_ids: list[str] | None = None
    positions: np.ndarray | None = None
    allele_storage: list[str] | None = None
    allele_offsets: np.ndarray | None = None

    def __post_init__(self) -> None:
        n = len(self.variant_ids)
        if self.chrom_ids is not None and len(self.chrom_ids) != n:
            raise ValueError(f"chrom_ids has {len(self.chrom_ids)} entries, expected {n}")
        if self.positions is not None:
            self.positions = np.asarray(self.positions, dtype=np.int64)
            if len(self.positions) != n:
                raise ValueError(f"positions has {len(self.positions)} entries, expected {n}")
        if self.allele_offsets is not None:
            self.allele_offsets = np.asarray(self.allele_offsets, dtype=np.int64)
            if len(self.allele_offsets) != n + 1:
                raise ValueError(
                    f"allele_offsets has {len(self.allele_offsets)} entries, expected {n + 1}"
                )
        elif self.allele_storage is not None and len(self.allele_storage) < 2 * n:
            raise ValueError(
                f"allele_storage has {len(self.allele_storage)} entries; "
                f"{2 * n} needed for {n} biallelic variants"
            )

    def __len__(self) -> int:
        return len(self.variant_ids)

    @property
    def has_alleles(self) -> bool:
        return self.allele_storage is not None

    def chrom(self, idx: int) -> str:
        if self.chrom_ids is None:
            raise ValueError("Variant store has no chromosome information")
        return self.chrom_ids[idx]

    def position(self, idx: int) -> int:
        if self.positions is None:
            raise ValueError("Variant store has no position information")
        return int(self.positions[idx])

    def alleles(self, idx: int) -> list[str]:
        """Alleles of variant ``idx``, reference first."""
        if self.allele_storage is None:
            raise ValueError("Variant store has no allele information")
        if self.allele_offsets is None:
            start, stop = 2 * idx, 2 * idx + 2
        else:
            start, stop = int(self.allele_offsets[idx]), int(self.allele_offsets[idx + 1])
        return self.allele_storage[start:stop]

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> VariantStore:
        """
        Build a store from a variant table.

        Recognized columns: ID (required), CHROM, POS, REF, ALT. ALT may hold
        several comma-separated alternate alleles. Row order defines the
        variant index.
        """
        if "ID" not in df.columns:
            raise ValueError(f"Variant table needs an 'ID' column. Found: {list(df.columns)}")

        variant_ids = df["ID"].astype(str).tolist()
        chrom_ids = df["CHROM"].astype(str).tolist() if "CHROM" in df.columns else None
        positions = df["POS"].to_numpy(dtype=np.int64) if "POS" in df.columns else None

        allele_storage = None
        allele_offsets = None
        if "REF" in df.columns and "ALT" in df.columns:
            allele_storage = []
            offsets = [0]
            for ref, alt in zip(df["REF"].astype(str), df["ALT"].astype(str)):
                allele_storage.append(ref)
                allele_storage.extend(alt.split(","))
                offsets.append(len(allele_storage))
            allele_offsets = np.asarray(offsets, dtype=np.int64)

        logger.debug(f"Variant store built from table with {len(variant_ids)} variants")
        return cls(
            variant_ids=variant_ids,
            chrom_ids=chrom_ids,
            positions=positions,
            allele_storage=allele_storage,
            allele_offsets=allele_offsets,
        )
