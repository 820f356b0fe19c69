"""
Reconciliation and optimistic-update engine.
"""

from .board import Board, Credentials, NotAuthenticated, SessionProvider
from .cache import CacheSnapshot, DataCache
from .filter import filter_board
from .mutation import Mutation, MutationState
from .orchestrator import MutationOrchestrator
from .reconciler import (
    EffectFailure,
    ReconcileResult,
    ensure_system_columns,
    reconcile,
    system_column_ids,
)
from .view import BoardView, ColumnView, LabelView, ProjectCard, project_board

__all__ = [
    "Board",
    "BoardView",
    "CacheSnapshot",
    "ColumnView",
    "Credentials",
    "DataCache",
    "EffectFailure",
    "LabelView",
    "Mutation",
    "MutationOrchestrator",
    "MutationState",
    "NotAuthenticated",
    "ProjectCard",
    "ReconcileResult",
    "SessionProvider",
    "ensure_system_columns",
    "filter_board",
    "project_board",
    "reconcile",
    "system_column_ids",
]
