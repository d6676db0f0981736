"""Shared pytest fixtures for all test modules."""

from typing import Callable, List

import numpy as np
import pandas as pd
import pytest

from gcadjust.adjust.base import AdjustConfig
from gcadjust.adjust.variants import VariantStore


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single module")
    config.addinivalue_line("markers", "integration: end-to-end tests writing report files")


@pytest.fixture
def worked_example_pvals() -> np.ndarray:
    """Four p-values already in rank order."""
    return np.array([0.01, 0.02, 0.03, 0.20])


@pytest.fixture
def make_variant_store() -> Callable[[int], VariantStore]:
    """Factory for a biallelic store of ``n`` variants on chromosome 1."""

    def _make(n: int) -> VariantStore:
        alleles: List[str] = []
        for i in range(n):
            alleles.extend(["ACGT"[i % 4], "ACGT"[(i + 1) % 4]])
        return VariantStore(
            variant_ids=[f"rs{i + 1}" for i in range(n)],
            chrom_ids=["1"] * n,
            positions=np.arange(1, n + 1, dtype=np.int64) * 100,
            allele_storage=alleles,
        )

    return _make


@pytest.fixture
def variant_table() -> pd.DataFrame:
    """Small variant table with one multi-allelic site."""
    return pd.DataFrame(
        {
            "CHROM": ["1", "1", "2", "X"],
            "POS": [1000, 2000, 1500, 300],
            "ID": ["rs1", "rs2", "rs3", "rs4"],
            "REF": ["A", "C", "G", "T"],
            "ALT": ["G", "T", "A,C", "C"],
        }
    )


@pytest.fixture
def minimal_config() -> AdjustConfig:
    """ID and UNADJ plus the three families of the worked example, no GC."""
    return AdjustConfig(
        columns=["unadj"],
        methods=["bonf", "holm", "fdr_bh"],
        skip_gc=True,
    )

