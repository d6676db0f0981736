"""
Memory management utilities for gcadjust.
"""

from .arena import WorkingArena
from .resource_manager import ResourceManager

__all__ = ["ResourceManager", "WorkingArena"]
