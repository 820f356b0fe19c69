"""
SQLAlchemy models for projects-board.

Every table is scoped by ``user_id``. Relations reference projects and labels
with ``ON DELETE CASCADE``; the store also deletes them explicitly so the
cascade holds on SQLite connections without foreign key enforcement.
"""

import uuid
from typing import Any, Dict

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .base import Base


def generate_id() -> str:
    return str(uuid.uuid4())


class ColumnModel(Base):
    """SQLAlchemy model for board columns."""

    __tablename__ = "board_columns"

    id = Column(String(64), primary_key=True, default=generate_id)
    user_id = Column(String(128), nullable=False, index=True)
    title = Column(String(256), nullable=False)
    position = Column(Integer, nullable=False)
    kind = Column(String(32), nullable=False, default="user")
    sort_field = Column(String(32), nullable=False, default="updated_at")
    sort_direction = Column(String(8), nullable=False, default="desc")

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "title", name="uq_board_columns_user_title"),
        Index("ix_board_columns_user_position", "user_id", "position"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "position": self.position,
            "kind": self.kind,
            "sort_field": self.sort_field,
            "sort_direction": self.sort_direction,
        }


class LabelModel(Base):
    """SQLAlchemy model for labels."""

    __tablename__ = "board_labels"

    id = Column(String(64), primary_key=True, default=generate_id)
    user_id = Column(String(128), nullable=False, index=True)
    title = Column(String(256), nullable=False)
    color = Column(String(7), nullable=False)
    text_color = Column(String(8), nullable=False, default="white")

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "title", name="uq_board_labels_user_title"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "color": self.color,
            "text_color": self.text_color,
        }


class ProjectModel(Base):
    """SQLAlchemy model for the local half of a GitHub project."""

    __tablename__ = "board_projects"

    # GitHub node ids are only unique per owner on this board
    id = Column(String(128), primary_key=True)
    user_id = Column(String(128), primary_key=True)
    column_id = Column(
        String(64), ForeignKey("board_columns.id"), nullable=False, index=True
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "column_id": self.column_id,
        }


class ProjectLabelModel(Base):
    """Join table between projects and labels."""

    __tablename__ = "board_project_labels"

    project_id = Column(String(128), primary_key=True)
    label_id = Column(
        String(64),
        ForeignKey("board_labels.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(String(128), primary_key=True)

    created_at = Column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        Index("ix_board_project_labels_user_label", "user_id", "label_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "project_id": self.project_id,
            "label_id": self.label_id,
            "user_id": self.user_id,
        }
