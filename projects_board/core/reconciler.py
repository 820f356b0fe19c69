"""
Reconciliation of GitHub projects with the persistent store.

A pass makes the store's project records match the external project set:

1. Create records for projects GitHub reports but the store lacks, in the
   closed column if the project is closed, otherwise in unassigned.
2. Delete records for projects GitHub no longer reports.
3. Move records into the closed column when GitHub reports the project
   closed, and out of it (to unassigned) when GitHub reports it open again.
   No other column is touched.

The three effect groups address disjoint project ids, so they are issued as
one concurrent batch. A failing effect does not cancel the others; failures
are collected on the result instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

import structlog

from ..enums import (
    TITLE_CLOSED_COLUMN,
    TITLE_UNASSIGNED_COLUMN,
    ColumnKind,
    SortDirection,
    SortField,
)
from ..errors import MissingSystemColumn, ReconcileError
from ..schemas import ColumnCreate, ColumnRecord, ExternalProject, ProjectRecord
from ..db.store import ProjectStore

logger = structlog.get_logger()


EFFECT_CREATE = "create"
EFFECT_DELETE = "delete"
EFFECT_REASSIGN = "reassign"


@dataclass(frozen=True)
class EffectFailure:
    """A single reconciliation effect that raised."""

    kind: str
    project_id: str
    error: Exception

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "project_id": self.project_id,
            "error": type(self.error).__name__,
            "message": str(self.error),
        }


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    projects: List[ProjectRecord]
    created: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    reassigned: List[str] = field(default_factory=list)
    failures: List[EffectFailure] = field(default_factory=list)

    @property
    def effect_count(self) -> int:
        return len(self.created) + len(self.deleted) + len(self.reassigned)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise ReconcileError(self)


def system_column_ids(columns: Sequence[ColumnRecord]) -> Tuple[str, str]:
    """Return ``(unassigned_id, closed_id)`` or raise MissingSystemColumn."""
    unassigned = next((c for c in columns if c.kind == ColumnKind.UNASSIGNED), None)
    closed = next((c for c in columns if c.kind == ColumnKind.CLOSED), None)
    if unassigned is None:
        raise MissingSystemColumn(ColumnKind.UNASSIGNED.value)
    if closed is None:
        raise MissingSystemColumn(ColumnKind.CLOSED.value)
    return unassigned.id, closed.id


async def ensure_system_columns(
    store: ProjectStore,
    user_id: str,
    columns: Optional[Sequence[ColumnRecord]] = None,
) -> List[ColumnRecord]:
    """Create any missing system column and return the full column list.

    Safe to call on every start: existing system columns are detected by kind
    and never duplicated. With no columns at all, "No Status" lands at
    position 0 and "Closed" at position 1.
    """
    if columns is None:
        columns = await store.column_read(user_id)
    kinds = {c.kind for c in columns}
    if ColumnKind.UNASSIGNED in kinds and ColumnKind.CLOSED in kinds:
        return list(columns)

    log = logger.bind(user_id=user_id)

    if ColumnKind.UNASSIGNED not in kinds:
        # Make room at the front of the sequence
        await asyncio.gather(
            *(
                store.column_update_position(user_id, c.id, c.position + 1)
                for c in columns
            )
        )
        await store.column_create(
            user_id,
            ColumnCreate(
                title=TITLE_UNASSIGNED_COLUMN,
                position=0,
                kind=ColumnKind.UNASSIGNED,
                sort_field=SortField.UPDATED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )
        log.info("system_column_created", kind=ColumnKind.UNASSIGNED.value)

    if ColumnKind.CLOSED not in kinds:
        count = len(columns) + (0 if ColumnKind.UNASSIGNED in kinds else 1)
        await store.column_create(
            user_id,
            ColumnCreate(
                title=TITLE_CLOSED_COLUMN,
                position=count,
                kind=ColumnKind.CLOSED,
                sort_field=SortField.CLOSED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )
        log.info("system_column_created", kind=ColumnKind.CLOSED.value)

    return await store.column_read(user_id)


async def reconcile(
    store: ProjectStore,
    user_id: str,
    external: Sequence[ExternalProject],
    local: Sequence[ProjectRecord],
    columns: Sequence[ColumnRecord],
) -> ReconcileResult:
    """Run one reconciliation pass and return the store's resulting projects.

    Raises:
        MissingSystemColumn: The system columns have not been bootstrapped.
    """
    unassigned_id, closed_id = system_column_ids(columns)
    log = logger.bind(user_id=user_id)

    external_by_id = {p.id: p for p in external}
    local_by_id = {p.id: p for p in local}

    result = ReconcileResult(projects=list(local))
    effects: List[Tuple[str, str, Awaitable[Any]]] = []

    for project_id, project in external_by_id.items():
        if project_id not in local_by_id:
            column_id = closed_id if project.is_closed else unassigned_id
            result.created.append(project_id)
            effects.append(
                (EFFECT_CREATE, project_id, store.project_create(user_id, project_id, column_id))
            )

    for project_id in local_by_id:
        if project_id not in external_by_id:
            result.deleted.append(project_id)
            effects.append(
                (EFFECT_DELETE, project_id, store.project_delete(user_id, project_id))
            )

    for project_id, record in local_by_id.items():
        project = external_by_id.get(project_id)
        if project is None:
            continue
        in_closed = record.column_id == closed_id
        if project.is_closed and not in_closed:
            target = closed_id
        elif not project.is_closed and in_closed:
            target = unassigned_id
        else:
            continue
        result.reassigned.append(project_id)
        effects.append(
            (
                EFFECT_REASSIGN,
                project_id,
                store.project_update_column(user_id, project_id, target),
            )
        )

    if not effects:
        log.debug("reconcile_noop", projects=len(local))
        return result

    outcomes = await asyncio.gather(
        *(awaitable for _, _, awaitable in effects), return_exceptions=True
    )
    for (kind, project_id, _), outcome in zip(effects, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, Exception):
            log.error(
                "reconcile_effect_failed",
                effect=kind,
                project_id=project_id,
                error=str(outcome),
            )
            result.failures.append(EffectFailure(kind, project_id, outcome))

    # The store is authoritative; re-read instead of assembling
    result.projects = await store.project_read(user_id)

    log.info(
        "reconcile_complete",
        created=len(result.created),
        deleted=len(result.deleted),
        reassigned=len(result.reassigned),
        failed=len(result.failures),
    )
    return result
