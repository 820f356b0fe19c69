"""
In-process persistent store.

Used for mock mode and tests. Mirrors the SQL store's contract, including
per-owner title uniqueness and cascade deletes, and yields to the event loop
on every call so that callers observe real suspension points.
"""

import asyncio
import uuid
from typing import Dict, List, Optional, Tuple

from ..enums import SortDirection, SortField, TextColor
from ..errors import Conflict, NotFound, StoreError
from ..schemas import (
    ColumnCreate,
    ColumnRecord,
    LabelCreate,
    LabelRecord,
    ProjectLabelRecord,
    ProjectRecord,
)
from .store import ProjectStore

_Key = Tuple[str, str]


class MemoryProjectStore(ProjectStore):
    """Dict-backed ProjectStore with one-shot failure injection."""

    def __init__(self) -> None:
        self.columns: Dict[_Key, ColumnRecord] = {}
        self.labels: Dict[_Key, LabelRecord] = {}
        self.projects: Dict[_Key, ProjectRecord] = {}
        self.relations: Dict[Tuple[str, str, str], ProjectLabelRecord] = {}
        # Names of write operations in call order
        self.writes: List[str] = []
        self._failures: Dict[str, StoreError] = {}

    def fail_next(self, operation: str, error: StoreError) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        self._failures[operation] = error

    async def _enter(self, operation: str, write: bool = True) -> None:
        await asyncio.sleep(0)
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error
        if write:
            self.writes.append(operation)

    # =========================================================================
    # Columns
    # =========================================================================

    def _column(self, user_id: str, column_id: str) -> ColumnRecord:
        column = self.columns.get((user_id, column_id))
        if column is None:
            raise NotFound("Column", column_id)
        return column

    def _check_column_title(
        self, user_id: str, title: str, exclude: Optional[str] = None
    ) -> None:
        for (owner, column_id), column in self.columns.items():
            if owner == user_id and column_id != exclude and column.title == title:
                raise Conflict("Column", f"Column title already exists: {title}")

    async def column_create(self, user_id: str, column: ColumnCreate) -> ColumnRecord:
        await self._enter("column_create")
        self._check_column_title(user_id, column.title)
        record = ColumnRecord(
            id=str(uuid.uuid4()), user_id=user_id, **column.model_dump()
        )
        self.columns[(user_id, record.id)] = record
        return record

    async def column_read(self, user_id: str) -> List[ColumnRecord]:
        await self._enter("column_read", write=False)
        rows = [c for (owner, _), c in self.columns.items() if owner == user_id]
        return sorted(rows, key=lambda c: (c.position, c.id))

    async def column_update_title(self, user_id: str, column_id: str, title: str) -> None:
        await self._enter("column_update_title")
        column = self._column(user_id, column_id)
        self._check_column_title(user_id, title, exclude=column_id)
        self.columns[(user_id, column_id)] = column.model_copy(update={"title": title})

    async def column_update_position(
        self, user_id: str, column_id: str, position: int
    ) -> None:
        await self._enter("column_update_position")
        column = self._column(user_id, column_id)
        self.columns[(user_id, column_id)] = column.model_copy(
            update={"position": position}
        )

    async def column_update_sort(
        self,
        user_id: str,
        column_id: str,
        sort_field: SortField,
        sort_direction: SortDirection,
    ) -> None:
        await self._enter("column_update_sort")
        column = self._column(user_id, column_id)
        self.columns[(user_id, column_id)] = column.model_copy(
            update={
                "sort_field": SortField(sort_field),
                "sort_direction": SortDirection(sort_direction),
            }
        )

    async def column_delete(self, user_id: str, column_id: str) -> None:
        await self._enter("column_delete")
        self._column(user_id, column_id)
        del self.columns[(user_id, column_id)]

    # =========================================================================
    # Labels
    # =========================================================================

    def _label(self, user_id: str, label_id: str) -> LabelRecord:
        label = self.labels.get((user_id, label_id))
        if label is None:
            raise NotFound("Label", label_id)
        return label

    def _check_label_title(
        self, user_id: str, title: str, exclude: Optional[str] = None
    ) -> None:
        for (owner, label_id), label in self.labels.items():
            if owner == user_id and label_id != exclude and label.title == title:
                raise Conflict("Label", f"Label title already exists: {title}")

    async def label_create(self, user_id: str, label: LabelCreate) -> LabelRecord:
        await self._enter("label_create")
        self._check_label_title(user_id, label.title)
        record = LabelRecord(id=str(uuid.uuid4()), user_id=user_id, **label.model_dump())
        self.labels[(user_id, record.id)] = record
        return record

    async def label_read(self, user_id: str) -> List[LabelRecord]:
        await self._enter("label_read", write=False)
        rows = [l for (owner, _), l in self.labels.items() if owner == user_id]
        return sorted(rows, key=lambda l: (l.title.lower(), l.id))

    async def label_update_title(self, user_id: str, label_id: str, title: str) -> None:
        await self._enter("label_update_title")
        label = self._label(user_id, label_id)
        self._check_label_title(user_id, title, exclude=label_id)
        self.labels[(user_id, label_id)] = label.model_copy(update={"title": title})

    async def label_update_color(
        self, user_id: str, label_id: str, color: str, text_color: TextColor
    ) -> None:
        await self._enter("label_update_color")
        label = self._label(user_id, label_id)
        self.labels[(user_id, label_id)] = label.model_copy(
            update={"color": color, "text_color": TextColor(text_color)}
        )

    async def label_delete(self, user_id: str, label_id: str) -> None:
        await self._enter("label_delete")
        self._label(user_id, label_id)
        del self.labels[(user_id, label_id)]
        for key in [k for k in self.relations if k[0] == user_id and k[2] == label_id]:
            del self.relations[key]

    # =========================================================================
    # Projects
    # =========================================================================

    def _project(self, user_id: str, project_id: str) -> ProjectRecord:
        project = self.projects.get((user_id, project_id))
        if project is None:
            raise NotFound("Project", project_id)
        return project

    async def project_create(
        self, user_id: str, project_id: str, column_id: str
    ) -> ProjectRecord:
        await self._enter("project_create")
        if (user_id, project_id) in self.projects:
            raise Conflict("Project", f"Project already exists: {project_id}")
        self._column(user_id, column_id)
        record = ProjectRecord(id=project_id, user_id=user_id, column_id=column_id)
        self.projects[(user_id, project_id)] = record
        return record

    async def project_read(self, user_id: str) -> List[ProjectRecord]:
        await self._enter("project_read", write=False)
        rows = [p for (owner, _), p in self.projects.items() if owner == user_id]
        return sorted(rows, key=lambda p: p.id)

    async def project_update_column(
        self, user_id: str, project_id: str, column_id: str
    ) -> None:
        await self._enter("project_update_column")
        project = self._project(user_id, project_id)
        self._column(user_id, column_id)
        self.projects[(user_id, project_id)] = project.model_copy(
            update={"column_id": column_id}
        )

    async def project_delete(self, user_id: str, project_id: str) -> None:
        await self._enter("project_delete")
        self._project(user_id, project_id)
        del self.projects[(user_id, project_id)]
        for key in [k for k in self.relations if k[0] == user_id and k[1] == project_id]:
            del self.relations[key]

    # =========================================================================
    # Project-label relations
    # =========================================================================

    async def relation_create(
        self, user_id: str, project_id: str, label_id: str
    ) -> ProjectLabelRecord:
        await self._enter("relation_create")
        self._project(user_id, project_id)
        self._label(user_id, label_id)
        key = (user_id, project_id, label_id)
        if key in self.relations:
            raise Conflict("ProjectLabel", f"Label {label_id} already on {project_id}")
        record = ProjectLabelRecord(
            project_id=project_id, label_id=label_id, user_id=user_id
        )
        self.relations[key] = record
        return record

    async def relation_read(self, user_id: str) -> List[ProjectLabelRecord]:
        await self._enter("relation_read", write=False)
        rows = [r for (owner, _, _), r in self.relations.items() if owner == user_id]
        return sorted(rows, key=lambda r: (r.project_id, r.label_id))

    async def relation_delete(self, user_id: str, project_id: str, label_id: str) -> None:
        await self._enter("relation_delete")
        key = (user_id, project_id, label_id)
        if key not in self.relations:
            raise NotFound("ProjectLabel", f"{project_id}/{label_id}")
        del self.relations[key]

