"""
Canonical enums and constants for board records.
"""

from enum import Enum


class ColumnKind(str, Enum):
    """Kind tag of a column."""

    UNASSIGNED = "system_unassigned"
    CLOSED = "system_closed"
    USER = "user"

    @property
    def is_system(self) -> bool:
        return self is not ColumnKind.USER


class SortField(str, Enum):
    """Project attribute a column sorts its cards by."""

    TITLE = "title"
    NUMBER = "number"
    ITEMS = "items"
    UPDATED_AT = "updated_at"
    CLOSED_AT = "closed_at"
    CREATED_AT = "created_at"


class SortDirection(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class TextColor(str, Enum):
    """Label text colors."""

    WHITE = "white"
    BLACK = "black"


# Default sort configuration for new user columns
DEFAULT_SORT_FIELD = SortField.UPDATED_AT
DEFAULT_SORT_DIRECTION = SortDirection.DESC

# System column titles
TITLE_UNASSIGNED_COLUMN = "No Status"
TITLE_CLOSED_COLUMN = "Closed"
