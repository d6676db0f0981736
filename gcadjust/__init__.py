# File: gcadjust/__init__.py
# Location: gcadjust/gcadjust/__init__.py

"""
gcadjust Package.

This package applies genomic-control correction and multiple-testing
adjustment to genome-wide association results and writes a sorted,
filtered ``.adjusted`` report.
"""

from .version import __version__
