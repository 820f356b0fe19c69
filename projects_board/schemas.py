"""
Board record schemas.

External projects are owned by GitHub and replaced wholesale on every fetch.
Columns, labels, project records and project-label relations are owned by the
persistent store. All records are frozen; changes produce new instances via
``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import ColumnKind, SortDirection, SortField, TextColor

TITLE_MAX_LENGTH = 256


class ExternalProject(BaseModel):
    """A GitHub Projects (v2) project as reported by the GitHub source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: constr(min_length=1) = Field(..., description="GitHub node id")
    number: int = Field(..., description="Sequence number within the owner")
    title: str
    url: str
    is_public: bool = False
    is_closed: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    items: int = Field(default=0, ge=0, description="Item count")


class ProjectRecord(BaseModel):
    """Locally-owned state of a project: its column assignment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: constr(min_length=1) = Field(..., description="GitHub project id")
    user_id: constr(min_length=1)
    column_id: constr(min_length=1)


class ColumnRecord(BaseModel):
    """A board column."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: constr(min_length=1)
    user_id: constr(min_length=1)
    title: constr(min_length=1, max_length=TITLE_MAX_LENGTH)
    position: int = Field(..., ge=0)
    kind: ColumnKind = ColumnKind.USER
    sort_field: SortField = SortField.UPDATED_AT
    sort_direction: SortDirection = SortDirection.DESC

    @property
    def is_system(self) -> bool:
        return self.kind.is_system


class ColumnCreate(BaseModel):
    """Input for creating a column; the store assigns the id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: constr(min_length=1, max_length=TITLE_MAX_LENGTH)
    position: int = Field(..., ge=0)
    kind: ColumnKind = ColumnKind.USER
    sort_field: SortField = SortField.UPDATED_AT
    sort_direction: SortDirection = SortDirection.DESC


class LabelRecord(BaseModel):
    """A user-defined label."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: constr(min_length=1)
    user_id: constr(min_length=1)
    title: constr(min_length=1, max_length=TITLE_MAX_LENGTH)
    color: constr(pattern=r"^#[0-9a-fA-F]{6}$")
    text_color: TextColor = TextColor.WHITE


class LabelCreate(BaseModel):
    """Input for creating a label; the store assigns the id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: constr(min_length=1, max_length=TITLE_MAX_LENGTH)
    color: constr(pattern=r"^#[0-9a-fA-F]{6}$")
    text_color: TextColor = TextColor.WHITE


class ProjectLabelRecord(BaseModel):
    """Many-to-many edge between a project and a label."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    project_id: constr(min_length=1)
    label_id: constr(min_length=1)
    user_id: constr(min_length=1)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
