"""
Data management submodule: loading, saving, validating and migrating the data file.
"""

from .core import DataCore, WorkContext
from .migrate import MigrationEngine

__all__ = [
    'DataCore',
    'WorkContext',
    'MigrationEngine'
]
