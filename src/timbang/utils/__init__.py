"""Utility modules for timbang."""

from .logger import RemapLogger
from .timer import Timer

__all__ = ["RemapLogger", "Timer"]
