"""
Mutation orchestrator.

Entry point for every user-initiated change to the board. Each operation is
run as a :class:`~projects_board.core.mutation.Mutation`: validated against
the cache, applied optimistically, then persisted in the background with a
full reload from the store on failure.

Concurrent mutations are not serialized. Two mutations racing on the same
entity resolve last-write-wins in the cache; a failure in either reloads the
store's truth.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import structlog

from ..colors import normalize_color, optimal_text_color, toggle_text_color
from ..db.store import ProjectStore
from ..enums import (
    DEFAULT_SORT_DIRECTION,
    DEFAULT_SORT_FIELD,
    ColumnKind,
    SortDirection,
    SortField,
    TextColor,
)
from ..errors import BoardValidationError
from ..schemas import (
    TITLE_MAX_LENGTH,
    ColumnCreate,
    ColumnRecord,
    LabelCreate,
    LabelRecord,
    ProjectLabelRecord,
)
from .cache import DataCache
from .mutation import Mutation

logger = structlog.get_logger()

TEMP_ID_PREFIX = "temp-"


def _temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def _clean_title(title: Optional[str], field_name: str = "title") -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise BoardValidationError("Title is required", field=field_name)
    if len(cleaned) > TITLE_MAX_LENGTH:
        raise BoardValidationError(
            f"Title must be at most {TITLE_MAX_LENGTH} characters", field=field_name
        )
    return cleaned


def _sorted_labels(labels: Sequence[LabelRecord]) -> List[LabelRecord]:
    return sorted(labels, key=lambda l: (l.title.casefold(), l.id))


@dataclass
class _Plan:
    """State computed during validation and carried through the mutation."""

    columns: Optional[List[ColumnRecord]] = None
    shifted: List[ColumnRecord] = field(default_factory=list)
    target: Any = None
    extra: Any = None


class MutationOrchestrator:
    """Applies user mutations to the cache and the persistent store."""

    def __init__(self, cache: DataCache, store: ProjectStore, user_id: str):
        self.cache = cache
        self.store = store
        self.user_id = user_id
        self.logger = logger.bind(user_id=user_id)

    # =========================================================================
    # Shared helpers
    # =========================================================================

    async def reload(self) -> None:
        """Replace the store-owned collections with a fresh store read."""
        columns, projects, labels, relations = await asyncio.gather(
            self.store.column_read(self.user_id),
            self.store.project_read(self.user_id),
            self.store.label_read(self.user_id),
            self.store.relation_read(self.user_id),
        )
        self.cache.set_store_state(columns, projects, labels, relations)
        self.logger.info("cache_reloaded", version=self.cache.version)

    def _mutation(self, name: str, validate, apply, persist, commit=None, **context):
        return Mutation(
            name,
            reload=self.reload,
            validate=validate,
            apply=apply,
            persist=persist,
            commit=commit,
            user_id=self.user_id,
            **context,
        )

    def _columns(self) -> List[ColumnRecord]:
        return sorted(self.cache.get_columns(), key=lambda c: c.position)

    def _column(self, column_id: str) -> ColumnRecord:
        if column_id.startswith(TEMP_ID_PREFIX):
            raise BoardValidationError("Column is still being created", field="column_id")
        for column in self.cache.get_columns():
            if column.id == column_id:
                return column
        raise BoardValidationError(f"Column not found: {column_id}", field="column_id")

    def _column_of_kind(self, kind: ColumnKind) -> ColumnRecord:
        for column in self.cache.get_columns():
            if column.kind == kind:
                return column
        raise BoardValidationError(f"System column not found: {kind.value}")

    def _label(self, label_id: str) -> LabelRecord:
        if label_id.startswith(TEMP_ID_PREFIX):
            raise BoardValidationError("Label is still being created", field="label_id")
        for label in self.cache.get_labels():
            if label.id == label_id:
                return label
        raise BoardValidationError(f"Label not found: {label_id}", field="label_id")

    def _require_project(self, project_id: str):
        for project in self.cache.get_projects():
            if project.id == project_id:
                return project
        raise BoardValidationError(
            f"Project not found: {project_id}", field="project_id"
        )

    def _check_column_title(self, title: str, exclude: Optional[str] = None) -> None:
        for column in self.cache.get_columns():
            if column.id != exclude and column.title == title:
                raise BoardValidationError(
                    f"Column title already exists: {title}", field="title"
                )

    def _check_label_title(self, title: str, exclude: Optional[str] = None) -> None:
        folded = title.casefold()
        for label in self.cache.get_labels():
            if label.id != exclude and label.title.casefold() == folded:
                raise BoardValidationError(
                    f"Label title already exists: {title}", field="title"
                )

    def _has_relation(self, project_id: str, label_id: str) -> bool:
        return any(
            r.project_id == project_id and r.label_id == label_id
            for r in self.cache.get_relations()
        )

    # =========================================================================
    # Columns
    # =========================================================================

    async def create_column(self, title: str, after_column_id: str) -> ColumnRecord:
        """Insert a user column directly after ``after_column_id``."""

        def validate() -> _Plan:
            cleaned = _clean_title(title)
            self._check_column_title(cleaned)
            after = self._column(after_column_id)
            if after.kind == ColumnKind.CLOSED:
                raise BoardValidationError(
                    "Cannot add a column after the Closed column",
                    field="after_column_id",
                )
            position = after.position + 1
            shifted = [c for c in self.cache.get_columns() if c.position > after.position]
            placeholder = ColumnRecord(
                id=_temp_id(),
                user_id=self.user_id,
                title=cleaned,
                position=position,
                kind=ColumnKind.USER,
                sort_field=DEFAULT_SORT_FIELD,
                sort_direction=DEFAULT_SORT_DIRECTION,
            )
            columns = [
                c.model_copy(update={"position": c.position + 1})
                if c.position > after.position
                else c
                for c in self.cache.get_columns()
            ]
            columns.append(placeholder)
            return _Plan(
                columns=sorted(columns, key=lambda c: c.position),
                shifted=shifted,
                target=placeholder,
            )

        def apply(plan: _Plan) -> None:
            self.cache.set_columns(plan.columns)

        async def persist(plan: _Plan) -> ColumnRecord:
            # Shift first so the insert never collides
            await asyncio.gather(
                *(
                    self.store.column_update_position(self.user_id, c.id, c.position + 1)
                    for c in plan.shifted
                )
            )
            placeholder = plan.target
            return await self.store.column_create(
                self.user_id,
                ColumnCreate(
                    title=placeholder.title,
                    position=placeholder.position,
                    kind=ColumnKind.USER,
                    sort_field=placeholder.sort_field,
                    sort_direction=placeholder.sort_direction,
                ),
            )

        def commit(plan: _Plan, created: ColumnRecord) -> None:
            self.cache.set_columns(
                created if c.id == plan.target.id else c
                for c in self.cache.get_columns()
            )

        return await self._mutation(
            "create_column", validate, apply, persist, commit, after=after_column_id
        ).run()

    async def delete_column(self, column_id: str) -> None:
        """Delete a user column, moving its projects to the unassigned column."""

        def validate() -> _Plan:
            column = self._column(column_id)
            if column.is_system:
                raise BoardValidationError("Can't delete system columns", field="column_id")
            unassigned = self._column_of_kind(ColumnKind.UNASSIGNED)
            moved = [p.id for p in self.cache.get_projects() if p.column_id == column_id]
            shifted = [
                c for c in self.cache.get_columns() if c.position > column.position
            ]
            columns = [
                c.model_copy(update={"position": c.position - 1})
                if c.position > column.position
                else c
                for c in self.cache.get_columns()
                if c.id != column_id
            ]
            return _Plan(columns=columns, shifted=shifted, target=unassigned, extra=moved)

        def apply(plan: _Plan) -> None:
            unassigned_id = plan.target.id
            self.cache.set_projects(
                p.model_copy(update={"column_id": unassigned_id})
                if p.column_id == column_id
                else p
                for p in self.cache.get_projects()
            )
            self.cache.set_columns(plan.columns)

        async def persist(plan: _Plan) -> None:
            await asyncio.gather(
                *(
                    self.store.project_update_column(self.user_id, pid, plan.target.id)
                    for pid in plan.extra
                )
            )
            await self.store.column_delete(self.user_id, column_id)
            await asyncio.gather(
                *(
                    self.store.column_update_position(self.user_id, c.id, c.position - 1)
                    for c in plan.shifted
                )
            )

        await self._mutation(
            "delete_column", validate, apply, persist, column_id=column_id
        ).run()

    async def rename_column(self, column_id: str, title: str) -> None:
        def validate() -> _Plan:
            column = self._column(column_id)
            cleaned = _clean_title(title)
            self._check_column_title(cleaned, exclude=column_id)
            return _Plan(target=column.model_copy(update={"title": cleaned}))

        def apply(plan: _Plan) -> None:
            self.cache.set_columns(
                plan.target if c.id == column_id else c for c in self.cache.get_columns()
            )

        async def persist(plan: _Plan) -> None:
            await self.store.column_update_title(self.user_id, column_id, plan.target.title)

        await self._mutation(
            "rename_column", validate, apply, persist, column_id=column_id
        ).run()

    def can_move_column(self, column_id: str, offset: int) -> bool:
        """Whether a user column can swap with its neighbour at ``offset``."""
        try:
            self._swap_partner(column_id, offset)
        except BoardValidationError:
            return False
        return True

    def _swap_partner(self, column_id: str, offset: int) -> Tuple[ColumnRecord, ColumnRecord]:
        column = self._column(column_id)
        if column.is_system:
            raise BoardValidationError("Can't move system columns", field="column_id")
        neighbour = next(
            (c for c in self.cache.get_columns() if c.position == column.position + offset),
            None,
        )
        if neighbour is None or neighbour.is_system:
            edge = "No Status" if offset < 0 else "Closed"
            raise BoardValidationError(f"Can't move past {edge}", field="column_id")
        return column, neighbour

    async def _move_column(self, column_id: str, offset: int, name: str) -> None:
        def validate() -> _Plan:
            column, neighbour = self._swap_partner(column_id, offset)
            return _Plan(
                shifted=[
                    column.model_copy(update={"position": neighbour.position}),
                    neighbour.model_copy(update={"position": column.position}),
                ]
            )

        def apply(plan: _Plan) -> None:
            swapped = {c.id: c for c in plan.shifted}
            self.cache.set_columns(
                sorted(
                    (swapped.get(c.id, c) for c in self.cache.get_columns()),
                    key=lambda c: c.position,
                )
            )

        async def persist(plan: _Plan) -> None:
            await asyncio.gather(
                *(
                    self.store.column_update_position(self.user_id, c.id, c.position)
                    for c in plan.shifted
                )
            )

        await self._mutation(name, validate, apply, persist, column_id=column_id).run()

    async def move_column_left(self, column_id: str) -> None:
        await self._move_column(column_id, -1, "move_column_left")

    async def move_column_right(self, column_id: str) -> None:
        await self._move_column(column_id, 1, "move_column_right")

    async def set_column_sort(
        self, column_id: str, sort_field: str, sort_direction: str
    ) -> None:
        def validate() -> _Plan:
            column = self._column(column_id)
            try:
                field_value = SortField(sort_field)
                direction = SortDirection(sort_direction)
            except ValueError as e:
                raise BoardValidationError(str(e), field="sort") from e
            return _Plan(
                target=column.model_copy(
                    update={"sort_field": field_value, "sort_direction": direction}
                )
            )

        def apply(plan: _Plan) -> None:
            self.cache.set_columns(
                plan.target if c.id == column_id else c for c in self.cache.get_columns()
            )

        async def persist(plan: _Plan) -> None:
            await self.store.column_update_sort(
                self.user_id, column_id, plan.target.sort_field, plan.target.sort_direction
            )

        await self._mutation(
            "set_column_sort", validate, apply, persist, column_id=column_id
        ).run()

    # =========================================================================
    # Projects
    # =========================================================================

    async def move_project(self, project_id: str, column_id: str) -> None:
        """Assign a project to any column."""

        def validate() -> _Plan:
            project = self._require_project(project_id)
            self._column(column_id)
            return _Plan(target=project.model_copy(update={"column_id": column_id}))

        def apply(plan: _Plan) -> None:
            self.cache.set_projects(
                plan.target if p.id == project_id else p
                for p in self.cache.get_projects()
            )

        async def persist(plan: _Plan) -> None:
            await self.store.project_update_column(self.user_id, project_id, column_id)

        await self._mutation(
            "move_project",
            validate,
            apply,
            persist,
            project_id=project_id,
            column_id=column_id,
        ).run()

    # =========================================================================
    # Labels
    # =========================================================================

    def _label_input(
        self, title: str, color: str, text_color: Optional[str]
    ) -> Tuple[str, str, TextColor]:
        cleaned = _clean_title(title)
        self._check_label_title(cleaned)
        normalized = normalize_color(color)
        if text_color is None:
            return cleaned, normalized, optimal_text_color(normalized)
        try:
            return cleaned, normalized, TextColor(text_color)
        except ValueError as e:
            raise BoardValidationError(str(e), field="text_color") from e

    async def create_label(
        self, title: str, color: str, text_color: Optional[str] = None
    ) -> LabelRecord:
        """Create a standalone label."""

        def validate() -> _Plan:
            cleaned, normalized, text = self._label_input(title, color, text_color)
            placeholder = LabelRecord(
                id=_temp_id(),
                user_id=self.user_id,
                title=cleaned,
                color=normalized,
                text_color=text,
            )
            return _Plan(target=placeholder)

        def apply(plan: _Plan) -> None:
            self.cache.set_labels(_sorted_labels([*self.cache.get_labels(), plan.target]))

        async def persist(plan: _Plan) -> LabelRecord:
            label = plan.target
            return await self.store.label_create(
                self.user_id,
                LabelCreate(title=label.title, color=label.color, text_color=label.text_color),
            )

        def commit(plan: _Plan, created: LabelRecord) -> None:
            self.cache.set_labels(
                _sorted_labels(
                    [created if l.id == plan.target.id else l for l in self.cache.get_labels()]
                )
            )

        return await self._mutation("create_label", validate, apply, persist, commit).run()

    async def create_label_for_project(
        self,
        project_id: str,
        title: str,
        color: str,
        text_color: Optional[str] = None,
    ) -> LabelRecord:
        """Create a label and attach it to ``project_id`` in one mutation."""

        def validate() -> _Plan:
            self._require_project(project_id)
            cleaned, normalized, text = self._label_input(title, color, text_color)
            placeholder = LabelRecord(
                id=_temp_id(),
                user_id=self.user_id,
                title=cleaned,
                color=normalized,
                text_color=text,
            )
            relation = ProjectLabelRecord(
                project_id=project_id, label_id=placeholder.id, user_id=self.user_id
            )
            return _Plan(target=placeholder, extra=relation)

        def apply(plan: _Plan) -> None:
            self.cache.set_labels(_sorted_labels([*self.cache.get_labels(), plan.target]))
            self.cache.set_relations([*self.cache.get_relations(), plan.extra])

        async def persist(plan: _Plan) -> LabelRecord:
            label = plan.target
            created = await self.store.label_create(
                self.user_id,
                LabelCreate(title=label.title, color=label.color, text_color=label.text_color),
            )
            await self.store.relation_create(self.user_id, project_id, created.id)
            return created

        def commit(plan: _Plan, created: LabelRecord) -> None:
            temp_id = plan.target.id
            self.cache.set_labels(
                _sorted_labels(
                    [created if l.id == temp_id else l for l in self.cache.get_labels()]
                )
            )
            self.cache.set_relations(
                r.model_copy(update={"label_id": created.id}) if r.label_id == temp_id else r
                for r in self.cache.get_relations()
            )

        return await self._mutation(
            "create_label_for_project",
            validate,
            apply,
            persist,
            commit,
            project_id=project_id,
        ).run()

    async def rename_label(self, label_id: str, title: str) -> None:
        def validate() -> _Plan:
            label = self._label(label_id)
            cleaned = _clean_title(title)
            self._check_label_title(cleaned, exclude=label_id)
            return _Plan(target=label.model_copy(update={"title": cleaned}))

        def apply(plan: _Plan) -> None:
            self.cache.set_labels(
                _sorted_labels(
                    [plan.target if l.id == label_id else l for l in self.cache.get_labels()]
                )
            )

        async def persist(plan: _Plan) -> None:
            await self.store.label_update_title(self.user_id, label_id, plan.target.title)

        await self._mutation(
            "rename_label", validate, apply, persist, label_id=label_id
        ).run()

    async def recolor_label(
        self, label_id: str, color: str, text_color: Optional[str] = None
    ) -> None:
        def validate() -> _Plan:
            label = self._label(label_id)
            normalized = normalize_color(color)
            if text_color is None:
                text = optimal_text_color(normalized)
            else:
                try:
                    text = TextColor(text_color)
                except ValueError as e:
                    raise BoardValidationError(str(e), field="text_color") from e
            return _Plan(
                target=label.model_copy(update={"color": normalized, "text_color": text})
            )

        def apply(plan: _Plan) -> None:
            self.cache.set_labels(
                plan.target if l.id == label_id else l for l in self.cache.get_labels()
            )

        async def persist(plan: _Plan) -> None:
            await self.store.label_update_color(
                self.user_id, label_id, plan.target.color, plan.target.text_color
            )

        await self._mutation(
            "recolor_label", validate, apply, persist, label_id=label_id
        ).run()

    async def toggle_label_text_color(self, label_id: str) -> None:
        """Flip a label's text between black and white, keeping its fill."""

        def validate() -> _Plan:
            label = self._label(label_id)
            return _Plan(
                target=label.model_copy(
                    update={"text_color": toggle_text_color(label.text_color)}
                )
            )

        def apply(plan: _Plan) -> None:
            self.cache.set_labels(
                plan.target if l.id == label_id else l for l in self.cache.get_labels()
            )

        async def persist(plan: _Plan) -> None:
            await self.store.label_update_color(
                self.user_id, label_id, plan.target.color, plan.target.text_color
            )

        await self._mutation(
            "toggle_label_text_color", validate, apply, persist, label_id=label_id
        ).run()

    def label_usage(self, label_id: str) -> int:
        """Number of projects referencing a label.

        Callers ask the user for confirmation before deleting a label in use.
        """
        return len(
            {r.project_id for r in self.cache.get_relations() if r.label_id == label_id}
        )

    async def delete_label(self, label_id: str) -> None:
        """Delete a label and every relation referencing it."""

        def validate() -> _Plan:
            self._label(label_id)
            return _Plan()

        def apply(plan: _Plan) -> None:
            self.cache.set_labels(l for l in self.cache.get_labels() if l.id != label_id)
            self.cache.set_relations(
                r for r in self.cache.get_relations() if r.label_id != label_id
            )

        async def persist(plan: _Plan) -> None:
            await self.store.label_delete(self.user_id, label_id)

        await self._mutation(
            "delete_label", validate, apply, persist, label_id=label_id
        ).run()

    async def attach_label(self, project_id: str, label_id: str) -> None:
        def validate() -> _Plan:
            self._require_project(project_id)
            self._label(label_id)
            if self._has_relation(project_id, label_id):
                raise BoardValidationError(
                    "Label already attached to project", field="label_id"
                )
            return _Plan(
                target=ProjectLabelRecord(
                    project_id=project_id, label_id=label_id, user_id=self.user_id
                )
            )

        def apply(plan: _Plan) -> None:
            self.cache.set_relations([*self.cache.get_relations(), plan.target])

        async def persist(plan: _Plan) -> None:
            await self.store.relation_create(self.user_id, project_id, label_id)

        await self._mutation(
            "attach_label",
            validate,
            apply,
            persist,
            project_id=project_id,
            label_id=label_id,
        ).run()

    async def detach_label(self, project_id: str, label_id: str) -> None:
        def validate() -> _Plan:
            if label_id.startswith(TEMP_ID_PREFIX):
                raise BoardValidationError("Label is still being created", field="label_id")
            if not self._has_relation(project_id, label_id):
                raise BoardValidationError(
                    "Label is not attached to project", field="label_id"
                )
            return _Plan()

        def apply(plan: _Plan) -> None:
            self.cache.set_relations(
                r
                for r in self.cache.get_relations()
                if not (r.project_id == project_id and r.label_id == label_id)
            )

        async def persist(plan: _Plan) -> None:
            await self.store.relation_delete(self.user_id, project_id, label_id)

        await self._mutation(
            "detach_label",
            validate,
            apply,
            persist,
            project_id=project_id,
            label_id=label_id,
        ).run()

    def search_labels(self, project_id: str, query: str = "") -> List[LabelRecord]:
        """Labels not yet on ``project_id`` whose title contains ``query``."""
        attached = {
            r.label_id for r in self.cache.get_relations() if r.project_id == project_id
        }
        needle = query.strip().casefold()
        return _sorted_labels(
            [
                l
                for l in self.cache.get_labels()
                if l.id not in attached and needle in l.title.casefold()
            ]
        )
