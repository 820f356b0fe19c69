"""
Projects Board

A personal kanban dashboard over GitHub Projects.
"""

import importlib.metadata

__version__ = importlib.metadata.version("projects-board")

from .core import (
    Board,
    BoardView,
    Credentials,
    DataCache,
    MutationOrchestrator,
    SessionProvider,
    project_board,
    reconcile,
)
from .enums import ColumnKind, SortDirection, SortField

__all__ = [
    "Board",
    "BoardView",
    "ColumnKind",
    "Credentials",
    "DataCache",
    "MutationOrchestrator",
    "SessionProvider",
    "SortDirection",
    "SortField",
    "project_board",
    "reconcile",
]
