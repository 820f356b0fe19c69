"""Tests for the in-memory data cache."""

import pytest

from projects_board.enums import ColumnKind, SortDirection, SortField
from projects_board.schemas import ColumnRecord, ProjectRecord


def make_column(column_id="c1", position=0):
    return ColumnRecord(
        id=column_id,
        user_id="u",
        title=f"Column {column_id}",
        position=position,
        kind=ColumnKind.USER,
        sort_field=SortField.UPDATED_AT,
        sort_direction=SortDirection.DESC,
    )


class TestDataCache:
    def test_starts_empty(self, cache):
        assert cache.is_empty
        assert cache.version == 0
        assert cache.get_columns() == ()

    def test_init_replaces_everything(self, cache, make_external):
        cache.init(
            github=[make_external("p1")],
            columns=[make_column()],
            projects=[ProjectRecord(id="p1", user_id="u", column_id="c1")],
            labels=[],
            relations=[],
        )

        assert cache.version == 1
        assert not cache.is_empty
        assert [p.id for p in cache.get_github()] == ["p1"]
        assert [c.id for c in cache.get_columns()] == ["c1"]

    def test_setters_bump_version_and_keep_other_collections(self, cache):
        cache.set_columns([make_column()])
        cache.set_projects([ProjectRecord(id="p1", user_id="u", column_id="c1")])

        assert cache.version == 2
        assert len(cache.get_columns()) == 1
        assert len(cache.get_projects()) == 1

    def test_snapshots_are_immutable(self, cache):
        cache.set_columns([make_column()])
        before = cache.snapshot()

        cache.set_columns([make_column("c2")])

        assert [c.id for c in before.columns] == ["c1"]
        assert [c.id for c in cache.snapshot().columns] == ["c2"]

    def test_clear(self, cache):
        cache.set_columns([make_column()])
        cache.clear()

        assert cache.is_empty
        assert cache.version == 2

    def test_set_store_state_publishes_once(self, cache):
        seen = []
        cache.subscribe(seen.append)

        cache.set_store_state([make_column()], [], [], [])

        assert len(seen) == 1
        assert seen[0].store_state() == ((make_column(),), (), (), ())


class TestSubscriptions:
    def test_listener_receives_each_snapshot(self, cache):
        versions = []
        cache.subscribe(lambda s: versions.append(s.version))

        cache.set_columns([])
        cache.set_labels([])

        assert versions == [1, 2]

    def test_unsubscribe(self, cache):
        seen = []
        unsubscribe = cache.subscribe(seen.append)
        cache.set_columns([])

        unsubscribe()
        unsubscribe()
        cache.set_columns([])

        assert len(seen) == 1

    def test_failing_listener_does_not_block_others(self, cache):
        seen = []

        def broken(snapshot):
            raise RuntimeError("listener bug")

        cache.subscribe(broken)
        cache.subscribe(seen.append)

        cache.set_columns([make_column()])

        assert cache.version == 1
        assert len(seen) == 1


@pytest.mark.parametrize("setter", ["set_github", "set_projects", "set_labels", "set_relations"])
def test_every_setter_publishes(cache, setter):
    getattr(cache, setter)([])
    assert cache.version == 1
