"""
Board filter queries.

Supported syntax (terms separated by whitespace, all must match):

- Bare terms: ``react`` matches the card title or any label title
- Field terms: ``title:frontend``, ``label:bug``, ``label:"good first issue"``
- Numeric terms: ``number:12``, ``number:>=100``, ``items:<5``
- State terms: ``closed:true``, ``closed:false``
- Column terms: ``column:todo`` keeps only matching columns

An invalid query shows no projects rather than an unexpected fallback.
"""

from __future__ import annotations

import operator
import re
import shlex
from dataclasses import replace
from typing import Callable, List, Tuple

import structlog

from .view import BoardView, ColumnView, ProjectCard

logger = structlog.get_logger()

CardPredicate = Callable[[ProjectCard], bool]
ColumnPredicate = Callable[[ColumnView], bool]

_COMPARISON = re.compile(r"^(>=|<=|>|<|=)?(-?\d+)$")
_OPERATORS = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "=": operator.eq,
    None: operator.eq,
}


class InvalidQuery(ValueError):
    """The filter query could not be parsed."""


def _numeric(attribute: str, raw: str) -> CardPredicate:
    match = _COMPARISON.match(raw)
    if not match:
        raise InvalidQuery(f"Expected a number for {attribute}: {raw!r}")
    compare = _OPERATORS[match.group(1)]
    value = int(match.group(2))
    return lambda card: compare(getattr(card, attribute), value)


def _contains_label(needle: str) -> CardPredicate:
    return lambda card: any(needle in l.title.casefold() for l in card.labels)


def parse_query(query: str) -> Tuple[List[ColumnPredicate], List[CardPredicate]]:
    """Compile ``query`` into column and card predicates."""
    try:
        tokens = shlex.split(query)
    except ValueError as e:
        raise InvalidQuery(str(e)) from e

    column_predicates: List[ColumnPredicate] = []
    card_predicates: List[CardPredicate] = []

    for token in tokens:
        name, sep, raw = token.partition(":")
        if not sep:
            needle = token.casefold()
            card_predicates.append(
                lambda card, n=needle: n in card.title.casefold()
                or _contains_label(n)(card)
            )
            continue

        name = name.casefold()
        value = raw.casefold()
        if name == "title":
            card_predicates.append(lambda card, n=value: n in card.title.casefold())
        elif name == "label":
            card_predicates.append(_contains_label(value))
        elif name in ("number", "items"):
            card_predicates.append(_numeric(name, raw))
        elif name == "closed":
            if value not in ("true", "false"):
                raise InvalidQuery(f"closed expects true or false: {raw!r}")
            wanted = value == "true"
            card_predicates.append(lambda card, w=wanted: card.is_closed == w)
        elif name == "column":
            column_predicates.append(lambda column, n=value: n in column.title.casefold())
        else:
            raise InvalidQuery(f"Unknown field: {name}")

    return column_predicates, card_predicates


def filter_board(view: BoardView, query: str) -> BoardView:
    """Narrow a projected board to the cards and columns matching ``query``."""
    if not query or not query.strip():
        return view

    try:
        column_predicates, card_predicates = parse_query(query)
    except InvalidQuery as e:
        logger.warning("invalid_filter_query", query=query, error=str(e))
        return BoardView(columns=tuple(replace(c, projects=()) for c in view.columns))

    columns = []
    for column in view.columns:
        if not all(predicate(column) for predicate in column_predicates):
            continue
        cards = tuple(
            card
            for card in column.projects
            if all(predicate(card) for predicate in card_predicates)
        )
        columns.append(replace(column, projects=cards))
    return BoardView(columns=tuple(columns))
