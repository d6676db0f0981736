# File: gcadjust/adjust/report.py
# Location: gcadjust/gcadjust/adjust/report.py
"""
Report streamer: writes the ``.adjusted`` table.

One header line (``#`` followed by the selected column names in canonical
order) and one row per test in rank order. Rows stop at the first test whose
primary p-value exceeds ``pfilter``: tests are sorted by significance, so
every later test exceeds it too. Rows are formatted in blocks so that memory
use does not grow with the number of tests.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from gcadjust.adjust.base import METHOD_KEYS, AdjustConfig, CorrectionVectors, TestRecords
from gcadjust.adjust.variants import VariantStore
from gcadjust.adjust.writer import ReportWriter

logger = logging.getLogger("gcadjust")

ROW_BLOCK = 4096
INFINITY_TOKEN = "inf"
MISSING_ALLELE = "."


def format_number(value: float) -> str:
    """Shortest ``%g`` rendering (6 significant digits)."""
    return f"{value:g}"


class PValueFormatter:
    """
    Formats p-value cells.

    Values at or below ``output_min_p`` are written as a token computed once
    per run; in log10 mode the remaining values are written as -log10(p).
    """

    def __init__(self, output_min_p: float = 0.0, log10: bool = False) -> None:
        self.output_min_p = output_min_p
        self.log10 = log10
        self.floor_token = self._floor_token()

    def _floor_token(self) -> str:
        if not self.log10:
            return format_number(self.output_min_p)
        if self.output_min_p > 0.0:
            return format_number(0.0 - math.log10(self.output_min_p))
        return INFINITY_TOKEN

    def __call__(self, pval: float) -> str:
        if pval <= self.output_min_p:
            return self.floor_token
        if self.log10:
            if pval == 0.0:
                return INFINITY_TOKEN
            # 0.0 - x keeps p == 1 from printing as "-0"
            return format_number(0.0 - math.log10(pval))
        return format_number(pval)

    def format_many(self, values: np.ndarray) -> list[str]:
        return [self(float(v)) for v in values]


def header_line(config: AdjustConfig) -> str:
    """Header line for the selected columns, newline-terminated."""
    return "#" + "\t".join(name for _, name in config.header_columns()) + "\n"


def _alt_alleles(alleles: list[str]) -> str:
    return ",".join(alleles[1:]) if len(alleles) > 1 else MISSING_ALLELE


def _column_cells(
    key: str,
    start: int,
    stop: int,
    records: TestRecords,
    vectors: CorrectionVectors,
    variants: VariantStore,
    formatter: PValueFormatter,
) -> list[str]:
    """Cells of column ``key`` for ranks ``start`` to ``stop - 1``."""
    idx = records.variant_idx[start:stop]
    if key == "chrom":
        return [variants.chrom(int(v)) for v in idx]
    if key == "pos":
        return [str(variants.position(int(v))) for v in idx]
    if key == "id":
        return [variants.variant_ids[int(v)] for v in idx]
    if key == "ref":
        return [variants.alleles(int(v))[0] for v in idx]
    if key == "alt1":
        cells = []
        for v in idx:
            alleles = variants.alleles(int(v))
            cells.append(alleles[1] if len(alleles) > 1 else MISSING_ALLELE)
        return cells
    if key == "alt":
        return [_alt_alleles(variants.alleles(int(v))) for v in idx]
    if key == "unadj":
        return formatter.format_many(vectors.unadj[start:stop])
    if key == "gc":
        return formatter.format_many(vectors.gc[start:stop])
    if key == "qq":
        return [format_number(float(q)) for q in vectors.qq[start:stop]]
    if key in METHOD_KEYS:
        return formatter.format_many(vectors.method(key)[start:stop])
    raise KeyError(f"Unknown report column '{key}'")


def stream_report(
    writer: ReportWriter,
    records: TestRecords,
    vectors: CorrectionVectors,
    variants: VariantStore,
    config: AdjustConfig,
) -> int:
    """
    Write the header and the rows passing the p-value filter.

    Parameters
    ----------
    writer : ReportWriter
        Open writer.
    records : TestRecords
        Tests in rank order.
    vectors : CorrectionVectors
        Adjusted values aligned to ``records``, with every selected column set.
    variants : VariantStore
        Metadata for the identifier columns.
    config : AdjustConfig
        Column selection, filter, floor and log10 options.

    Returns
    -------
    int
        Number of data rows written.
    """
    keys = [key for key, _ in config.header_columns()]
    formatter = PValueFormatter(config.output_min_p, config.log10)
    primary = vectors.primary
    n = len(primary)

    writer.write(header_line(config))

    rows_written = 0
    for start in range(0, n, ROW_BLOCK):
        stop = min(start + ROW_BLOCK, n)
        over = np.flatnonzero(primary[start:stop] > config.pfilter)
        if len(over):
            stop = start + int(over[0])

        if stop > start:
            columns = [
                _column_cells(key, start, stop, records, vectors, variants, formatter)
                for key in keys
            ]
            for row in zip(*columns):
                writer.write("\t".join(row) + "\n")
            rows_written += stop - start

        if len(over):
            logger.debug(f"p-value filter {config.pfilter:g} reached at rank {stop + 1}")
            break

    return rows_written
