"""Tests for the reconciler and the system column bootstrap."""

import pytest

from projects_board.core.reconciler import (
    EFFECT_CREATE,
    ensure_system_columns,
    reconcile,
    system_column_ids,
)
from projects_board.enums import ColumnKind, SortDirection, SortField
from projects_board.errors import (
    MissingSystemColumn,
    ReconcileError,
    Unavailable,
)
from projects_board.schemas import ColumnCreate, ProjectRecord


def ids(columns):
    return system_column_ids(columns)


class TestEnsureSystemColumns:
    @pytest.mark.asyncio
    async def test_fresh_store_gets_both_system_columns(self, store, user_id):
        """An empty store gets No Status at 0 and Closed at 1."""
        columns = await ensure_system_columns(store, user_id)

        assert [(c.title, c.position, c.kind) for c in columns] == [
            ("No Status", 0, ColumnKind.UNASSIGNED),
            ("Closed", 1, ColumnKind.CLOSED),
        ]
        assert columns[0].sort_field == SortField.UPDATED_AT
        assert columns[0].sort_direction == SortDirection.DESC
        assert columns[1].sort_field == SortField.CLOSED_AT
        assert columns[1].sort_direction == SortDirection.DESC

    @pytest.mark.asyncio
    async def test_idempotent(self, store, user_id):
        """Running twice never duplicates system columns."""
        await ensure_system_columns(store, user_id)
        store.writes.clear()

        columns = await ensure_system_columns(store, user_id)

        assert store.writes == []
        assert len(columns) == 2

    @pytest.mark.asyncio
    async def test_detects_renamed_system_columns_by_kind(self, columns, store, user_id):
        """A renamed system column still counts as present."""
        unassigned_id, _ = ids(columns)
        await store.column_update_title(user_id, unassigned_id, "Inbox")
        store.writes.clear()

        await ensure_system_columns(store, user_id)

        assert store.writes == []

    @pytest.mark.asyncio
    async def test_repairs_missing_unassigned_column(self, store, user_id):
        """A missing No Status column is inserted at the front."""
        await store.column_create(
            user_id,
            ColumnCreate(
                title="Doing",
                position=0,
                kind=ColumnKind.USER,
                sort_field=SortField.UPDATED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )
        await store.column_create(
            user_id,
            ColumnCreate(
                title="Closed",
                position=1,
                kind=ColumnKind.CLOSED,
                sort_field=SortField.CLOSED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )

        columns = await ensure_system_columns(store, user_id)

        assert [(c.title, c.position) for c in columns] == [
            ("No Status", 0),
            ("Doing", 1),
            ("Closed", 2),
        ]

    @pytest.mark.asyncio
    async def test_repairs_missing_closed_column(self, store, user_id):
        await store.column_create(
            user_id,
            ColumnCreate(
                title="No Status",
                position=0,
                kind=ColumnKind.UNASSIGNED,
                sort_field=SortField.UPDATED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )

        columns = await ensure_system_columns(store, user_id)

        assert [(c.title, c.position, c.kind) for c in columns] == [
            ("No Status", 0, ColumnKind.UNASSIGNED),
            ("Closed", 1, ColumnKind.CLOSED),
        ]


class TestReconcile:
    @pytest.mark.asyncio
    async def test_new_open_project_lands_in_unassigned(
        self, columns, store, user_id, make_external
    ):
        """A project GitHub reports but the store lacks is created once."""
        unassigned_id, _ = ids(columns)

        result = await reconcile(store, user_id, [make_external("p1")], [], columns)

        assert store.writes == ["project_create"]
        assert result.created == ["p1"]
        assert result.projects == [
            ProjectRecord(id="p1", user_id=user_id, column_id=unassigned_id)
        ]

    @pytest.mark.asyncio
    async def test_new_closed_project_lands_in_closed(
        self, columns, store, user_id, make_external
    ):
        _, closed_id = ids(columns)

        result = await reconcile(
            store, user_id, [make_external("p1", closed=True)], [], columns
        )

        assert result.projects[0].column_id == closed_id

    @pytest.mark.asyncio
    async def test_project_closed_upstream_is_reassigned(
        self, columns, store, user_id, make_external
    ):
        """A project closing in a user column is reassigned, not recreated."""
        _, closed_id = ids(columns)
        doing = await store.column_create(
            user_id,
            ColumnCreate(
                title="Doing",
                position=2,
                kind=ColumnKind.USER,
                sort_field=SortField.UPDATED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )
        local = [await store.project_create(user_id, "p1", doing.id)]
        store.writes.clear()

        result = await reconcile(
            store, user_id, [make_external("p1", closed=True)], local, columns
        )

        assert store.writes == ["project_update_column"]
        assert result.reassigned == ["p1"]
        assert result.projects[0].column_id == closed_id

    @pytest.mark.asyncio
    async def test_reopened_project_returns_to_unassigned(
        self, columns, store, user_id, make_external
    ):
        unassigned_id, closed_id = ids(columns)
        local = [await store.project_create(user_id, "p1", closed_id)]

        result = await reconcile(store, user_id, [make_external("p1")], local, columns)

        assert result.projects[0].column_id == unassigned_id

    @pytest.mark.asyncio
    async def test_project_removed_upstream_is_deleted(
        self, columns, store, user_id
    ):
        _, closed_id = ids(columns)
        local = [await store.project_create(user_id, "p1", closed_id)]
        store.writes.clear()

        result = await reconcile(store, user_id, [], local, columns)

        assert store.writes == ["project_delete"]
        assert result.deleted == ["p1"]
        assert result.projects == []

    @pytest.mark.asyncio
    async def test_user_columns_are_left_alone(
        self, columns, store, user_id, make_external
    ):
        """An open project in a user column is not moved."""
        doing = await store.column_create(
            user_id,
            ColumnCreate(
                title="Doing",
                position=1,
                kind=ColumnKind.USER,
                sort_field=SortField.UPDATED_AT,
                sort_direction=SortDirection.DESC,
            ),
        )
        local = [await store.project_create(user_id, "p1", doing.id)]
        store.writes.clear()

        result = await reconcile(store, user_id, [make_external("p1")], local, columns)

        assert store.writes == []
        assert result.effect_count == 0
        assert result.projects[0].column_id == doing.id

    @pytest.mark.asyncio
    async def test_closed_project_moved_out_is_pulled_back(
        self, columns, store, user_id, make_external
    ):
        """A still-closed project moved out of Closed is moved back next pass."""
        unassigned_id, closed_id = ids(columns)
        local = [await store.project_create(user_id, "p1", unassigned_id)]
        closed = [make_external("p1", closed=True)]

        first = await reconcile(store, user_id, closed, local, columns)
        await store.project_update_column(user_id, "p1", unassigned_id)
        second = await reconcile(
            store, user_id, closed, await store.project_read(user_id), columns
        )

        assert first.reassigned == ["p1"]
        assert second.reassigned == ["p1"]
        assert second.projects[0].column_id == closed_id

    @pytest.mark.asyncio
    async def test_second_pass_is_a_noop(self, columns, store, user_id, make_external):
        external = [
            make_external("p1"),
            make_external("p2", number=2, closed=True),
            make_external("p3", number=3),
        ]
        first = await reconcile(store, user_id, external, [], columns)
        store.writes.clear()

        second = await reconcile(store, user_id, external, first.projects, columns)

        assert store.writes == []
        assert second.effect_count == 0
        assert second.projects == first.projects

    @pytest.mark.asyncio
    async def test_coverage_and_closed_state(self, columns, store, user_id, make_external):
        """After a pass every external project has exactly one record."""
        unassigned_id, closed_id = ids(columns)
        local = [
            await store.project_create(user_id, "keep", unassigned_id),
            await store.project_create(user_id, "gone", unassigned_id),
            await store.project_create(user_id, "reopen", closed_id),
        ]
        external = [
            make_external("keep", closed=True),
            make_external("reopen", number=2),
            make_external("new", number=3),
        ]

        result = await reconcile(store, user_id, external, local, columns)

        by_id = {p.id: p for p in result.projects}
        assert set(by_id) == {"keep", "reopen", "new"}
        for project in external:
            in_closed = by_id[project.id].column_id == closed_id
            assert in_closed == project.is_closed

    @pytest.mark.asyncio
    async def test_partial_failure_is_collected(
        self, columns, store, user_id, make_external
    ):
        """A failing effect does not stop the others, and the store is re-read."""
        unassigned_id, _ = ids(columns)
        local = [await store.project_create(user_id, "gone", unassigned_id)]
        store.fail_next("project_create", Unavailable("database offline"))

        result = await reconcile(store, user_id, [make_external("p1")], local, columns)

        assert not result.ok
        assert [(f.kind, f.project_id) for f in result.failures] == [
            (EFFECT_CREATE, "p1")
        ]
        assert isinstance(result.failures[0].error, Unavailable)
        assert result.projects == []
        with pytest.raises(ReconcileError) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.to_dict()["failures"][0]["project_id"] == "p1"

    @pytest.mark.asyncio
    async def test_missing_system_column_raises(self, store, user_id, make_external):
        with pytest.raises(MissingSystemColumn):
            await reconcile(store, user_id, [make_external("p1")], [], [])
        assert store.writes == []
