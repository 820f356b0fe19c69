"""
View projection.

Turns a cache snapshot into the board the presentation layer draws: columns
in position order, each holding its projects sorted by the column's sort
configuration, each project carrying its resolved labels. Pure and total over
any well-formed snapshot.
"""

from __future__ import annotations

import locale
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..enums import ColumnKind, SortDirection, SortField
from .cache import CacheSnapshot


@dataclass(frozen=True)
class LabelView:
    id: str
    title: str
    color: str
    text_color: str


@dataclass(frozen=True)
class ProjectCard:
    id: str
    number: int
    title: str
    url: str
    is_public: bool
    is_closed: bool
    created_at: datetime
    updated_at: Optional[datetime]
    closed_at: Optional[datetime]
    items: int
    column_id: str
    labels: Tuple[LabelView, ...] = ()


@dataclass(frozen=True)
class ColumnView:
    id: str
    title: str
    position: int
    kind: ColumnKind
    sort_field: SortField
    sort_direction: SortDirection
    projects: Tuple[ProjectCard, ...] = ()

    @property
    def is_system(self) -> bool:
        return self.kind.is_system


@dataclass(frozen=True)
class BoardView:
    columns: Tuple[ColumnView, ...] = ()

    def column(self, column_id: str) -> Optional[ColumnView]:
        return next((c for c in self.columns if c.id == column_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [
                {
                    "id": c.id,
                    "title": c.title,
                    "position": c.position,
                    "kind": c.kind.value,
                    "sort_field": c.sort_field.value,
                    "sort_direction": c.sort_direction.value,
                    "projects": [
                        {
                            "id": p.id,
                            "number": p.number,
                            "title": p.title,
                            "url": p.url,
                            "items": p.items,
                            "is_closed": p.is_closed,
                            "labels": [l.title for l in p.labels],
                        }
                        for p in c.projects
                    ],
                }
                for c in self.columns
            ]
        }


def _timestamp(value: Optional[datetime]) -> float:
    return value.timestamp() if value is not None else 0.0


def sort_key(card: ProjectCard, sort_field: SortField) -> Any:
    """Comparable value of ``card`` for ``sort_field``."""
    if sort_field == SortField.TITLE:
        return locale.strxfrm(card.title.casefold())
    if sort_field == SortField.NUMBER:
        return card.number
    if sort_field == SortField.ITEMS:
        return card.items
    if sort_field == SortField.UPDATED_AT:
        return _timestamp(card.updated_at)
    if sort_field == SortField.CLOSED_AT:
        return _timestamp(card.closed_at)
    if sort_field == SortField.CREATED_AT:
        return _timestamp(card.created_at)
    return 0


def sort_cards(
    cards: List[ProjectCard], sort_field: SortField, sort_direction: SortDirection
) -> List[ProjectCard]:
    # Ties keep ascending id order in both directions (reverse sorts are stable)
    by_id = sorted(cards, key=lambda c: c.id)
    return sorted(
        by_id,
        key=lambda c: sort_key(c, sort_field),
        reverse=sort_direction == SortDirection.DESC,
    )


def project_board(snapshot: CacheSnapshot) -> BoardView:
    """Project a cache snapshot into a board view."""
    column_of = {p.id: p.column_id for p in snapshot.projects}

    labels = {
        l.id: LabelView(
            id=l.id, title=l.title, color=l.color, text_color=l.text_color.value
        )
        for l in snapshot.labels
    }
    labels_of: Dict[str, List[LabelView]] = {}
    for relation in snapshot.relations:
        label = labels.get(relation.label_id)
        if label is not None:
            labels_of.setdefault(relation.project_id, []).append(label)

    cards_of: Dict[str, List[ProjectCard]] = {}
    for project in snapshot.github:
        column_id = column_of.get(project.id)
        if column_id is None:
            continue
        cards_of.setdefault(column_id, []).append(
            ProjectCard(
                id=project.id,
                number=project.number,
                title=project.title,
                url=project.url,
                is_public=project.is_public,
                is_closed=project.is_closed,
                created_at=project.created_at,
                updated_at=project.updated_at,
                closed_at=project.closed_at,
                items=project.items,
                column_id=column_id,
                labels=tuple(
                    sorted(labels_of.get(project.id, []), key=lambda l: (l.title.casefold(), l.id))
                ),
            )
        )

    columns = []
    for column in sorted(snapshot.columns, key=lambda c: (c.position, c.id)):
        cards = sort_cards(
            cards_of.get(column.id, []), column.sort_field, column.sort_direction
        )
        columns.append(
            ColumnView(
                id=column.id,
                title=column.title,
                position=column.position,
                kind=column.kind,
                sort_field=column.sort_field,
                sort_direction=column.sort_direction,
                projects=tuple(cards),
            )
        )
    return BoardView(columns=tuple(columns))
