"""
In-memory data cache.

Holds the last-known-good merged state for synchronous reads. It is not a
source of truth: the reconciler replaces it wholesale and the mutation
orchestrator patches it optimistically, falling back to a reload from the
persistent store on failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Tuple

import structlog

from ..schemas import (
    ColumnRecord,
    ExternalProject,
    LabelRecord,
    ProjectLabelRecord,
    ProjectRecord,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable view of every cached collection at one version."""

    version: int = 0
    github: Tuple[ExternalProject, ...] = ()
    columns: Tuple[ColumnRecord, ...] = ()
    projects: Tuple[ProjectRecord, ...] = ()
    labels: Tuple[LabelRecord, ...] = ()
    relations: Tuple[ProjectLabelRecord, ...] = ()

    def store_state(self) -> Tuple[tuple, tuple, tuple, tuple]:
        """The four store-owned collections, for comparison with a reload."""
        return (self.columns, self.projects, self.labels, self.relations)


Listener = Callable[[CacheSnapshot], None]


class DataCache:
    """Single-owner holder of the board's collections.

    All access happens on one event loop; reads and writes between I/O
    suspension points are atomic with respect to each other.
    """

    def __init__(self) -> None:
        self._snapshot = CacheSnapshot()
        self._listeners: List[Listener] = []

    # Reads

    @property
    def version(self) -> int:
        return self._snapshot.version

    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    def get_github(self) -> Tuple[ExternalProject, ...]:
        return self._snapshot.github

    def get_columns(self) -> Tuple[ColumnRecord, ...]:
        return self._snapshot.columns

    def get_projects(self) -> Tuple[ProjectRecord, ...]:
        return self._snapshot.projects

    def get_labels(self) -> Tuple[LabelRecord, ...]:
        return self._snapshot.labels

    def get_relations(self) -> Tuple[ProjectLabelRecord, ...]:
        return self._snapshot.relations

    @property
    def is_empty(self) -> bool:
        s = self._snapshot
        return not (s.github or s.columns or s.projects or s.labels or s.relations)

    # Writes

    def init(
        self,
        github: Iterable[ExternalProject],
        columns: Iterable[ColumnRecord],
        projects: Iterable[ProjectRecord],
        labels: Iterable[LabelRecord],
        relations: Iterable[ProjectLabelRecord],
    ) -> None:
        """Replace every collection at once."""
        self._publish(
            github=tuple(github),
            columns=tuple(columns),
            projects=tuple(projects),
            labels=tuple(labels),
            relations=tuple(relations),
        )

    def clear(self) -> None:
        self._publish(github=(), columns=(), projects=(), labels=(), relations=())

    def set_github(self, github: Iterable[ExternalProject]) -> None:
        self._publish(github=tuple(github))

    def set_columns(self, columns: Iterable[ColumnRecord]) -> None:
        self._publish(columns=tuple(columns))

    def set_projects(self, projects: Iterable[ProjectRecord]) -> None:
        self._publish(projects=tuple(projects))

    def set_labels(self, labels: Iterable[LabelRecord]) -> None:
        self._publish(labels=tuple(labels))

    def set_relations(self, relations: Iterable[ProjectLabelRecord]) -> None:
        self._publish(relations=tuple(relations))

    def set_store_state(
        self,
        columns: Iterable[ColumnRecord],
        projects: Iterable[ProjectRecord],
        labels: Iterable[LabelRecord],
        relations: Iterable[ProjectLabelRecord],
    ) -> None:
        """Replace the four store-owned collections in one publish."""
        self._publish(
            columns=tuple(columns),
            projects=tuple(projects),
            labels=tuple(labels),
            relations=tuple(relations),
        )

    # Subscription

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every write; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, **changes) -> None:
        current = self._snapshot
        self._snapshot = CacheSnapshot(
            version=current.version + 1,
            github=changes.get("github", current.github),
            columns=changes.get("columns", current.columns),
            projects=changes.get("projects", current.projects),
            labels=changes.get("labels", current.labels),
            relations=changes.get("relations", current.relations),
        )
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("cache_listener_failed", version=self._snapshot.version)
