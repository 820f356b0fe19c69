"""Tests for board filter queries."""

from datetime import datetime, timezone

import pytest

from projects_board.core.filter import InvalidQuery, filter_board, parse_query
from projects_board.core.view import BoardView, ColumnView, LabelView, ProjectCard
from projects_board.enums import ColumnKind, SortDirection, SortField

CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


def card(card_id, title, number=1, items=0, closed=False, labels=()):
    return ProjectCard(
        id=card_id,
        number=number,
        title=title,
        url=f"https://github.com/p/{number}",
        is_public=True,
        is_closed=closed,
        created_at=CREATED,
        updated_at=None,
        closed_at=None,
        items=items,
        column_id="todo",
        labels=tuple(
            LabelView(id=l, title=l, color="#000000", text_color="white") for l in labels
        ),
    )


@pytest.fixture
def view():
    todo = ColumnView(
        id="todo",
        title="To do",
        position=0,
        kind=ColumnKind.USER,
        sort_field=SortField.UPDATED_AT,
        sort_direction=SortDirection.DESC,
        projects=(
            card("a", "Frontend rewrite", number=12, items=3, labels=("good first issue",)),
            card("b", "React upgrade", number=100, items=8, labels=("bug",)),
            card("c", "Archive", number=7, items=1, closed=True),
        ),
    )
    done = ColumnView(
        id="closed",
        title="Closed",
        position=1,
        kind=ColumnKind.CLOSED,
        sort_field=SortField.CLOSED_AT,
        sort_direction=SortDirection.DESC,
        projects=(card("d", "Old react app", number=3, closed=True),),
    )
    return BoardView(columns=(todo, done))


def ids(view):
    return {c.id: [p.id for p in c.projects] for c in view.columns}


class TestFilterBoard:
    def test_empty_query_returns_view(self, view):
        assert filter_board(view, "") is view
        assert filter_board(view, "   ") is view

    def test_bare_term_matches_title_case_insensitively(self, view):
        assert ids(filter_board(view, "REACT")) == {"todo": ["b"], "closed": ["d"]}

    def test_bare_term_matches_label(self, view):
        assert ids(filter_board(view, "bug")) == {"todo": ["b"], "closed": []}

    def test_quoted_label(self, view):
        result = filter_board(view, 'label:"good first issue"')
        assert ids(result) == {"todo": ["a"], "closed": []}

    def test_title_field(self, view):
        assert ids(filter_board(view, "title:front"))["todo"] == ["a"]

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("number:12", ["a"]),
            ("number:>=100", ["b"]),
            ("number:<10", ["c"]),
            ("items:>2", ["a", "b"]),
            ("items:<=1", ["c"]),
        ],
    )
    def test_numeric_terms(self, view, query, expected):
        assert ids(filter_board(view, query))["todo"] == expected

    def test_closed_term(self, view):
        assert ids(filter_board(view, "closed:false")) == {"todo": ["a", "b"], "closed": []}

    def test_column_term_hides_other_columns(self, view):
        assert ids(filter_board(view, "column:closed")) == {"closed": ["d"]}

    def test_terms_are_combined(self, view):
        assert ids(filter_board(view, "react closed:true")) == {"todo": [], "closed": ["d"]}

    @pytest.mark.parametrize("query", ["stars:5", "number:many", 'label:"open', "closed:maybe"])
    def test_invalid_query_shows_no_projects(self, view, query):
        result = filter_board(view, query)
        assert ids(result) == {"todo": [], "closed": []}


class TestParseQuery:
    def test_unknown_field_raises(self):
        with pytest.raises(InvalidQuery, match="Unknown field"):
            parse_query("owner:me")

    def test_returns_predicates(self):
        column_predicates, card_predicates = parse_query("column:todo bug items:>1")
        assert len(column_predicates) == 1
        assert len(card_predicates) == 2
