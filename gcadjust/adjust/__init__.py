# File: gcadjust/adjust/__init__.py
# Location: gcadjust/gcadjust/adjust/__init__.py
"""
gcadjust.adjust: genomic control and multiple-testing adjustment.

Public API
----------
AdjustConfig      : Run options (columns, families, lambda, filters)
AdjustFileConfig  : Options of the delimited-file input
AdjustResult      : Status, row count and output path of a run
VariantStore      : Chromosome / position / ID / allele lookup
multcomp          : Adjust in-memory results and write the report
adjust_file       : Adjust a results file (not yet supported)
"""

from gcadjust.adjust.base import AdjustConfig, AdjustFileConfig, AdjustResult
from gcadjust.adjust.engine import adjust_file, multcomp, run_adjust
from gcadjust.adjust.variants import VariantStore

__all__ = [
    "AdjustConfig",
    "AdjustFileConfig",
    "AdjustResult",
    "VariantStore",
    "adjust_file",
    "multcomp",
    "run_adjust",
]
