"""
Work Tracker - keep track of work items from the command line.

Entries live in a single YAML data file as an ordered list; the entry added or
reprioritized last is the one to work on next. Entries can hold sub-entries,
addressed by dotted IDs such as ``2.0``.
"""

from .version import VERSION
from .models import (
    MAX_NAME_LENGTH,
    EntryId,
    EntryStatus,
    FileVersion,
    WorkEntry,
    WorkDataFile,
)
from .data import DataCore

__version__ = VERSION

__all__ = [
    "VERSION",
    "MAX_NAME_LENGTH",
    "EntryId",
    "EntryStatus",
    "FileVersion",
    "WorkEntry",
    "WorkDataFile",
    "DataCore",
]
