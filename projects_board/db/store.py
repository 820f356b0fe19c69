"""
Persistent store abstraction for projects-board.

The store owns columns, labels, project records and project-label relations.
Every call is scoped by an owner id and every write touches a single record
(plus cascade rows on delete). Bulk effects such as position shifts are
expressed by the caller as independent single-record updates.

Design principle: pick the store from a URI, not a flag.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List
from urllib.parse import urlparse

from ..enums import SortDirection, SortField, TextColor
from ..schemas import (
    ColumnCreate,
    ColumnRecord,
    LabelCreate,
    LabelRecord,
    ProjectLabelRecord,
    ProjectRecord,
)


class ProjectStore(ABC):
    """Abstract base class for the persistent store.

    Raises:
        NotFound: An operation addressed a missing record.
        Conflict: A uniqueness constraint was violated.
        Unavailable: The store could not be reached.
    """

    # Columns

    @abstractmethod
    async def column_create(self, user_id: str, column: ColumnCreate) -> ColumnRecord:
        """Insert a column at the given position (no shifting)."""

    @abstractmethod
    async def column_read(self, user_id: str) -> List[ColumnRecord]:
        """Return all columns ordered by position."""

    @abstractmethod
    async def column_update_title(self, user_id: str, column_id: str, title: str) -> None:
        """Rename a column."""

    @abstractmethod
    async def column_update_position(
        self, user_id: str, column_id: str, position: int
    ) -> None:
        """Set a single column's position."""

    @abstractmethod
    async def column_update_sort(
        self,
        user_id: str,
        column_id: str,
        sort_field: SortField,
        sort_direction: SortDirection,
    ) -> None:
        """Set a column's sort configuration."""

    @abstractmethod
    async def column_delete(self, user_id: str, column_id: str) -> None:
        """Delete a column (no renumbering)."""

    # Labels

    @abstractmethod
    async def label_create(self, user_id: str, label: LabelCreate) -> LabelRecord:
        """Insert a label."""

    @abstractmethod
    async def label_read(self, user_id: str) -> List[LabelRecord]:
        """Return all labels ordered by title."""

    @abstractmethod
    async def label_update_title(self, user_id: str, label_id: str, title: str) -> None:
        """Rename a label."""

    @abstractmethod
    async def label_update_color(
        self, user_id: str, label_id: str, color: str, text_color: TextColor
    ) -> None:
        """Change a label's colors."""

    @abstractmethod
    async def label_delete(self, user_id: str, label_id: str) -> None:
        """Delete a label and every relation referencing it."""

    # Projects

    @abstractmethod
    async def project_create(
        self, user_id: str, project_id: str, column_id: str
    ) -> ProjectRecord:
        """Insert the local record of a GitHub project."""

    @abstractmethod
    async def project_read(self, user_id: str) -> List[ProjectRecord]:
        """Return all project records ordered by id."""

    @abstractmethod
    async def project_update_column(
        self, user_id: str, project_id: str, column_id: str
    ) -> None:
        """Assign a project to a column."""

    @abstractmethod
    async def project_delete(self, user_id: str, project_id: str) -> None:
        """Delete a project record and every relation referencing it."""

    # Project-label relations

    @abstractmethod
    async def relation_create(
        self, user_id: str, project_id: str, label_id: str
    ) -> ProjectLabelRecord:
        """Attach a label to a project."""

    @abstractmethod
    async def relation_read(self, user_id: str) -> List[ProjectLabelRecord]:
        """Return all relations ordered by project id, then label id."""

    @abstractmethod
    async def relation_delete(self, user_id: str, project_id: str, label_id: str) -> None:
        """Detach a label from a project."""

    async def close(self) -> None:
        """Release any held resources."""


def create_project_store(uri: str) -> ProjectStore:
    """Factory function to create the appropriate ProjectStore from a URI.

    Args:
        uri: ``memory://`` for the in-process store, otherwise any
            SQLAlchemy database URL (``sqlite:///...``, ``postgresql://...``)

    Returns:
        ProjectStore instance for the given URI scheme

    Raises:
        ValueError: If the URI has no scheme
    """
    parsed = urlparse(uri)

    if parsed.scheme == "memory":
        from .memory_store import MemoryProjectStore

        return MemoryProjectStore()

    if not parsed.scheme:
        raise ValueError(
            f"Unsupported store URI: {uri!r}. "
            "Supported: memory://, or a SQLAlchemy database URL"
        )

    from .base import create_db_engine, init_database
    from .sql_store import SqlProjectStore

    engine = create_db_engine(uri)
    init_database(engine)
    return SqlProjectStore(engine)
