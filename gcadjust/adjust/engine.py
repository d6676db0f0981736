# File: gcadjust/adjust/engine.py
# Location: gcadjust/gcadjust/adjust/engine.py
"""
Adjustment engine: orchestrates one correction run.

Pipeline (strictly sequential, one invocation owns all of its buffers):

1. load the valid tests from a StatisticSource (validity filter)
2. sort them by descending chi-square (rank 1 = most significant)
3. resolve the genomic-control lambda and compute GC p-values
4. pick the primary p-values (raw, or GC in substitute mode)
5. compute the selected correction families
6. stream the report

All buffers come from one WorkingArena and the output from one ReportWriter;
both are released on every exit path. The first AdjustError aborts the run
and is returned as the status of the AdjustResult. Zero valid tests is not an
error: nothing is written and the run succeeds.
"""

from __future__ import annotations

import logging

import numpy as np

from gcadjust.adjust.base import AdjustConfig, AdjustFileConfig, AdjustResult, CorrectionVectors
from gcadjust.adjust.correction import compute_corrections, qq_expected
from gcadjust.adjust.genomic_control import gc_pvalues, resolve_lambda
from gcadjust.adjust.ordering import sort_records
from gcadjust.adjust.report import stream_report
from gcadjust.adjust.sources import AdjustFileSource, ArraySource, StatisticSource
from gcadjust.adjust.variants import VariantStore
from gcadjust.adjust.writer import ReportWriter, output_path
from gcadjust.errors import AdjustError, AdjustStatus, InconsistentInputError
from gcadjust.memory import ResourceManager, WorkingArena

logger = logging.getLogger("gcadjust")


def _check_variant_columns(variants: VariantStore, config: AdjustConfig) -> None:
    """Raise InconsistentInputError if a selected column has no metadata."""
    missing = []
    if config.wants("chrom") and variants.chrom_ids is None:
        missing.append("chrom")
    if config.wants("pos") and variants.positions is None:
        missing.append("pos")
    for key in ("ref", "alt1", "alt"):
        if config.wants(key) and not variants.has_alleles:
            missing.append(key)
    if missing:
        raise InconsistentInputError(
            f"Column(s) {missing} requested but the variant store has no such information"
        )


def _adjust(
    source: StatisticSource,
    config: AdjustConfig,
    out_prefix: str,
    threads: int,
    arena: WorkingArena,
) -> AdjustResult:
    records = source.load(arena)
    n = len(records)
    if n == 0:
        logger.info("Zero valid tests; adjustment skipped.")
        return AdjustResult(status=AdjustStatus.SUCCESS)

    variants = source.variants
    _check_variant_columns(variants, config)

    ranked = sort_records(records, arena)
    # np.median partitions a copy of the statistics
    arena.check_scratch(n)
    lambda_gc = resolve_lambda(config, ranked.chisq)

    vectors = CorrectionVectors(unadj=ranked.pval, lambda_gc=lambda_gc)
    if config.wants("gc") or config.gc_substitute:
        gc = arena.alloc(n)
        # rescaled statistics and their survival values
        arena.check_scratch(2 * n)
        vectors.gc = gc_pvalues(ranked.chisq, lambda_gc, gc)
    vectors.primary = vectors.gc if config.gc_substitute else vectors.unadj
    if config.wants("qq"):
        qq = arena.alloc(n)
        arena.check_scratch(n)
        vectors.qq = qq_expected(n, qq)
    compute_corrections(vectors, config.selected_methods(), arena)

    path = output_path(out_prefix, config.compress)
    with ReportWriter(
        path,
        compress=config.compress,
        threads=threads,
        chunk_size=config.chunk_size,
    ) as writer:
        rows_written = stream_report(writer, ranked, vectors, variants, config)

    logger.info(
        f"Adjusted values ({rows_written} variant{'' if rows_written == 1 else 's'}) "
        f"written to {path} ."
    )
    return AdjustResult(
        status=AdjustStatus.SUCCESS,
        rows_written=rows_written,
        n_valid=n,
        output_path=path,
        lambda_gc=lambda_gc,
    )


def run_adjust(
    source: StatisticSource,
    config: AdjustConfig,
    out_prefix: str,
    max_threads: int = 1,
) -> AdjustResult:
    """
    Run one adjustment over ``source``.

    Parameters
    ----------
    source : StatisticSource
        Producer of the per-test statistics and variant metadata.
    config : AdjustConfig
        Run options.
    out_prefix : str
        Output path prefix; ``.adjusted`` (or ``.adjusted.gz``) is appended.
    max_threads : int
        Budget of concurrent compression workers.

    Returns
    -------
    AdjustResult
        SUCCESS with the row count, or the status of the first error.
    """
    resources = ResourceManager(config={"max_memory_gb": config.max_memory_gb})
    threads = resources.auto_workers(max_threads) if config.compress else 1
    try:
        with WorkingArena(resources.working_memory_budget(), label=source.name) as arena:
            return _adjust(source, config, out_prefix, threads, arena)
    except AdjustError as e:
        logger.error(f"Adjustment ({source.name}) failed: {e}")
        return AdjustResult(status=e.status, message=str(e))


def multcomp(
    variants: VariantStore,
    config: AdjustConfig,
    out_prefix: str,
    *,
    chisqs: np.ndarray | None = None,
    pvals: np.ndarray | None = None,
    variant_include: np.ndarray | None = None,
    max_threads: int = 1,
) -> AdjustResult:
    """
    Adjust in-memory association results and write the report.

    Parameters
    ----------
    variants : VariantStore
        Metadata for the variant universe.
    config : AdjustConfig
        Run options.
    out_prefix : str
        Output path prefix.
    chisqs, pvals : np.ndarray | None
        1-df chi-square statistics and/or p-values aligned to the included
        variants; negative entries mark a missing statistic.
    variant_include : np.ndarray | None
        Boolean inclusion mask over the variant universe. None = all.
    max_threads : int
        Budget of concurrent compression workers.

    Example
    -------
    >>> store = VariantStore(variant_ids=["rs1", "rs2"], chrom_ids=["1", "1"])
    >>> result = multcomp(store, AdjustConfig(), "run", pvals=np.array([0.01, 0.5]))
    >>> result.rows_written
    2
    """
    source = ArraySource(variants, chisqs=chisqs, pvals=pvals, variant_include=variant_include)
    return run_adjust(source, config, out_prefix, max_threads=max_threads)


def adjust_file(
    file_config: AdjustFileConfig,
    out_prefix: str,
    max_threads: int = 1,
) -> AdjustResult:
    """
    Adjust the results in a delimited file.

    Not implemented yet: returns ``AdjustStatus.NOT_YET_SUPPORTED`` without
    reading the input or creating any output.
    """
    source = AdjustFileSource(file_config)
    return run_adjust(source, file_config.base, out_prefix, max_threads=max_threads)
