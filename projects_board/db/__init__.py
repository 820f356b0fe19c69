"""
Database package for projects-board.
"""

from .base import Base, create_db_engine, get_engine, get_session_local, init_database
from .memory_store import MemoryProjectStore
from .models import ColumnModel, LabelModel, ProjectLabelModel, ProjectModel
from .sql_store import SqlProjectStore
from .store import ProjectStore, create_project_store

__all__ = [
    "Base",
    "ColumnModel",
    "LabelModel",
    "MemoryProjectStore",
    "ProjectLabelModel",
    "ProjectModel",
    "ProjectStore",
    "SqlProjectStore",
    "create_db_engine",
    "create_project_store",
    "get_engine",
    "get_session_local",
    "init_database",
]
