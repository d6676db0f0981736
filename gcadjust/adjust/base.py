# File: gcadjust/adjust/base.py
# Location: gcadjust/gcadjust/adjust/base.py
"""
Core data structures for the adjustment engine.

Defines AdjustConfig (run options), AdjustFileConfig (options of the
alternate tabular input), TestRecords (the per-test chi-square / p-value
table), CorrectionVectors (adjusted p-values aligned to the sorted tests),
and AdjustResult (what an engine entry point returns).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from gcadjust.errors import AdjustStatus

logger = logging.getLogger("gcadjust")

# Output columns in canonical order: (config key, header name).
# ID is always written and has no config key.
ID_COLUMNS: tuple[tuple[str, str], ...] = (
    ("chrom", "CHROM"),
    ("pos", "POS"),
    ("id", "ID"),
    ("ref", "REF"),
    ("alt1", "ALT1"),
    ("alt", "ALT"),
)
STAT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("unadj", "UNADJ"),
    ("gc", "GC"),
    ("qq", "QQ"),
)
METHOD_COLUMNS: tuple[tuple[str, str], ...] = (
    ("bonf", "BONF"),
    ("holm", "HOLM"),
    ("sidak_ss", "SIDAK_SS"),
    ("sidak_sd", "SIDAK_SD"),
    ("fdr_bh", "FDR_BH"),
    ("fdr_by", "FDR_BY"),
)

COLUMN_KEYS = tuple(key for key, _ in ID_COLUMNS + STAT_COLUMNS if key != "id")
METHOD_KEYS = tuple(key for key, _ in METHOD_COLUMNS)
GC_MODES = ("annotate", "substitute")

DEFAULT_COLUMNS = ["chrom", "unadj", "gc"]
DEFAULT_METHODS = list(METHOD_KEYS)


def _as_list(value: Any) -> list[str]:
    """Accept a list or a comma-separated string of option names."""
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip().lower() for v in value.split(",") if v.strip()]
    return [str(v).strip().lower() for v in value]


@dataclass
class AdjustConfig:
    """
    Options of one adjustment run.

    Fields
    ------
    columns : list[str]
        Identifier and statistic columns to write, any of
        chrom, pos, ref, alt1, alt, unadj, gc, qq. ID is always written.
    methods : list[str]
        Correction families to compute and write, any of
        bonf, holm, sidak_ss, sidak_sd, fdr_bh, fdr_by. Unselected families
        are not computed.
    lambda_ : float
        Genomic-control lambda override. 0 = estimate from the median
        chi-square. Values in (0, 1) are clamped to 1.
    gc_mode : str
        "annotate" (raw p-values drive every family; GC p-values are only
        reported) or "substitute" (GC p-values replace the raw ones as the
        primary statistic for every family and for the p-value filter).
    log10 : bool
        Write -log10(p) instead of p for every p-value column except QQ.
    output_min_p : float
        p-values at or below this floor are written as a fixed token.
    pfilter : float
        Rows whose primary p-value exceeds this threshold are not written.
        They still count towards the number of tests.
    skip_gc : bool
        Bypass genomic control entirely (no lambda, no GC column).
    compress : bool
        Write ``<prefix>.adjusted.gz`` instead of ``<prefix>.adjusted``.
    chunk_size : int
        Output buffer size in bytes before a write is issued.
    max_memory_gb : float | None
        Working-memory limit. None = detect from the environment.
    """

    columns: list[str] = field(default_factory=lambda: list(DEFAULT_COLUMNS))
    methods: list[str] = field(default_factory=lambda: list(DEFAULT_METHODS))
    lambda_: float = 0.0
    gc_mode: str = "annotate"
    log10: bool = False
    output_min_p: float = 0.0
    pfilter: float = 1.0
    skip_gc: bool = False
    compress: bool = False
    chunk_size: int = 1 << 20
    max_memory_gb: float | None = None

    def __post_init__(self) -> None:
        self.columns = _as_list(self.columns)
        self.methods = _as_list(self.methods)

        unknown = [c for c in self.columns if c not in COLUMN_KEYS]
        if unknown:
            raise ValueError(f"Unknown output column(s) {unknown}. Valid: {list(COLUMN_KEYS)}")
        unknown = [m for m in self.methods if m not in METHOD_KEYS]
        if unknown:
            raise ValueError(f"Unknown correction method(s) {unknown}. Valid: {list(METHOD_KEYS)}")
        if self.gc_mode not in GC_MODES:
            raise ValueError(f"gc_mode must be one of {GC_MODES}, got '{self.gc_mode}'")

        if self.lambda_ < 0:
            raise ValueError(f"lambda must be >= 0, got {self.lambda_}")
        if 0 < self.lambda_ < 1:
            logger.warning(f"lambda override {self.lambda_:g} is less than 1; setting to 1.")
            self.lambda_ = 1.0

        if not 0.0 <= self.output_min_p < 1.0:
            raise ValueError(f"output_min_p must be in [0, 1), got {self.output_min_p}")
        if self.pfilter < 0:
            raise ValueError(f"pfilter must be >= 0, got {self.pfilter}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> AdjustConfig:
        """
        Build an AdjustConfig from a configuration dictionary.

        Reads the "adjust" section when present, otherwise the dictionary
        itself. The JSON key "lambda" maps to the ``lambda_`` field; keys not
        named here are ignored.
        """
        section = cfg.get("adjust", cfg)
        kwargs: dict[str, Any] = {}
        for key in (
            "columns",
            "methods",
            "gc_mode",
            "log10",
            "output_min_p",
            "pfilter",
            "skip_gc",
            "compress",
            "chunk_size",
        ):
            if key in section and section[key] is not None:
                kwargs[key] = section[key]
        if "max_memory_gb" in section:
            kwargs["max_memory_gb"] = section["max_memory_gb"]
        lam = section.get("lambda", section.get("lambda_"))
        if lam is not None:
            kwargs["lambda_"] = float(lam)
        return cls(**kwargs)

    @property
    def gc_substitute(self) -> bool:
        """True when GC p-values are the primary statistic."""
        return self.gc_mode == "substitute" and not self.skip_gc

    def wants(self, key: str) -> bool:
        """True when the column or method ``key`` is selected."""
        if key == "id":
            return True
        if key == "gc":
            return "gc" in self.columns and not self.skip_gc
        return key in self.columns or key in self.methods

    def selected_methods(self) -> list[str]:
        """Selected correction families in canonical order."""
        return [key for key in METHOD_KEYS if key in self.methods]

    def header_columns(self) -> list[tuple[str, str]]:
        """Selected (key, header) pairs in canonical output order."""
        return [
            (key, name)
            for key, name in ID_COLUMNS + STAT_COLUMNS + METHOD_COLUMNS
            if self.wants(key)
        ]


@dataclass
class AdjustFileConfig:
    """
    Options of the alternate tabular input (``adjust_file``).

    The file is a delimited table whose header names at least an identifier
    and a p-value column. Field names left as None fall back to the aliases
    in ``DEFAULT_FIELD_ALIASES``, tried in order.
    """

    fname: str
    base: AdjustConfig = field(default_factory=AdjustConfig)
    test_name: str | None = None
    chr_field: str | None = None
    pos_field: str | None = None
    id_field: str | None = None
    ref_field: str | None = None
    alt_field: str | None = None
    test_field: str | None = None
    p_field: str | None = None

    DEFAULT_FIELD_ALIASES = {
        "chr": ("CHROM", "CHR"),
        "pos": ("POS", "BP"),
        "id": ("ID", "SNP"),
        "ref": ("REF", "A2"),
        "alt": ("ALT", "ALT1", "A1"),
        "test": ("TEST",),
        "p": ("P",),
    }
    REQUIRED_FIELDS = ("id", "p")

    def field_candidates(self, role: str) -> tuple[str, ...]:
        """Header names accepted for ``role`` (explicit name or the aliases)."""
        explicit = getattr(self, f"{role}_field")
        if explicit:
            return (explicit,)
        return self.DEFAULT_FIELD_ALIASES[role]


@dataclass
class TestRecords:
    """
    Column-wise table of per-test statistics.

    Fields
    ------
    chisq : np.ndarray
        1-df chi-square statistics (float64, >= 0).
    pval : np.ndarray
        p-values (float64, in [0, 1]).
    variant_idx : np.ndarray
        Index of each test's variant in the variant universe (int64).
    """

    __test__ = False

    chisq: np.ndarray
    pval: np.ndarray
    variant_idx: np.ndarray

    def __len__(self) -> int:
        return len(self.chisq)


@dataclass
class CorrectionVectors:
    """
    Adjusted p-values aligned to the sorted tests (index 0 = rank 1).

    ``primary`` is the sequence every family was computed from: ``unadj`` in
    annotate mode, ``gc`` in substitute mode. Unselected families are None.
    """

    unadj: np.ndarray
    gc: np.ndarray | None = None
    primary: np.ndarray | None = None
    lambda_gc: float | None = None
    qq: np.ndarray | None = None
    bonf: np.ndarray | None = None
    holm: np.ndarray | None = None
    sidak_ss: np.ndarray | None = None
    sidak_sd: np.ndarray | None = None
    fdr_bh: np.ndarray | None = None
    fdr_by: np.ndarray | None = None

    def method(self, key: str) -> np.ndarray | None:
        """Return the vector of correction family ``key``."""
        if key not in METHOD_KEYS:
            raise KeyError(key)
        return getattr(self, key)


@dataclass
class AdjustResult:
    """
    Outcome of an engine entry point.

    Fields
    ------
    status : AdjustStatus
        SUCCESS or the status of the first error raised.
    rows_written : int
        Number of data rows written (after the p-value filter).
    n_valid : int
        Number of valid tests, the denominator of every correction.
    output_path : str | None
        Path of the report, None when nothing was written.
    lambda_gc : float | None
        Genomic-control lambda applied, None when skipped.
    message : str | None
        Error message when status is not SUCCESS.
    """

    status: AdjustStatus
    rows_written: int = 0
    n_valid: int = 0
    output_path: str | None = None
    lambda_gc: float | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is AdjustStatus.SUCCESS
