"""
Data models for cpdb.

This module contains plain Python values copied out of foreign memory:
- PrinterInfo / PrinterEvent: printer snapshot and discovery events
- OptionInfo: an option and its legal values
- MediaSize / Margins: media geometry
- ThreadCapability: cross-thread contract published by wrapper classes

None of these hold foreign pointers, so they are safe to keep after the
objects that produced them have been released.
"""

from .capability import ThreadCapability
from .media import Margins, MediaSize
from .option import OptionInfo
from .printer import PrinterEvent, PrinterInfo

__all__ = [
    "ThreadCapability",
    "Margins",
    "MediaSize",
    "OptionInfo",
    "PrinterEvent",
    "PrinterInfo",
]
