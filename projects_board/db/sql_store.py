"""
SQLAlchemy-backed persistent store.

Each operation runs in its own session and commits before returning, so the
individual writes of a bulk effect fail independently.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import Engine, func
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..enums import SortDirection, SortField, TextColor
from ..errors import Conflict, NotFound, Unavailable
from ..schemas import (
    ColumnCreate,
    ColumnRecord,
    LabelCreate,
    LabelRecord,
    ProjectLabelRecord,
    ProjectRecord,
)
from .base import get_session_local
from .models import ColumnModel, LabelModel, ProjectLabelModel, ProjectModel
from .store import ProjectStore


class SqlProjectStore(ProjectStore):
    """Persistent store over a SQLAlchemy engine."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        session_factory: Optional[sessionmaker] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory or get_session_local(engine)

    @contextmanager
    def _session(self, entity: str) -> Iterator[Session]:
        """Open a session, commit on success and map driver errors."""
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise Conflict(entity, f"{entity} violates a uniqueness constraint") from e
        except DBAPIError as e:
            db.rollback()
            raise Unavailable(f"Database unavailable: {e.orig}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # =========================================================================
    # Columns
    # =========================================================================

    def _get_column(self, db: Session, user_id: str, column_id: str) -> ColumnModel:
        column = (
            db.query(ColumnModel)
            .filter(ColumnModel.user_id == user_id, ColumnModel.id == column_id)
            .first()
        )
        if column is None:
            raise NotFound("Column", column_id)
        return column

    async def column_create(self, user_id: str, column: ColumnCreate) -> ColumnRecord:
        with self._session("Column") as db:
            db_column = ColumnModel(
                user_id=user_id,
                title=column.title,
                position=column.position,
                kind=column.kind.value,
                sort_field=column.sort_field.value,
                sort_direction=column.sort_direction.value,
            )
            db.add(db_column)
            db.flush()
            return ColumnRecord(**db_column.to_dict())

    async def column_read(self, user_id: str) -> List[ColumnRecord]:
        with self._session("Column") as db:
            rows = (
                db.query(ColumnModel)
                .filter(ColumnModel.user_id == user_id)
                .order_by(ColumnModel.position, ColumnModel.id)
                .all()
            )
            return [ColumnRecord(**row.to_dict()) for row in rows]

    async def column_update_title(self, user_id: str, column_id: str, title: str) -> None:
        with self._session("Column") as db:
            self._get_column(db, user_id, column_id).title = title

    async def column_update_position(
        self, user_id: str, column_id: str, position: int
    ) -> None:
        with self._session("Column") as db:
            self._get_column(db, user_id, column_id).position = position

    async def column_update_sort(
        self,
        user_id: str,
        column_id: str,
        sort_field: SortField,
        sort_direction: SortDirection,
    ) -> None:
        with self._session("Column") as db:
            column = self._get_column(db, user_id, column_id)
            column.sort_field = SortField(sort_field).value
            column.sort_direction = SortDirection(sort_direction).value

    async def column_delete(self, user_id: str, column_id: str) -> None:
        with self._session("Column") as db:
            db.delete(self._get_column(db, user_id, column_id))

    # =========================================================================
    # Labels
    # =========================================================================

    def _get_label(self, db: Session, user_id: str, label_id: str) -> LabelModel:
        label = (
            db.query(LabelModel)
            .filter(LabelModel.user_id == user_id, LabelModel.id == label_id)
            .first()
        )
        if label is None:
            raise NotFound("Label", label_id)
        return label

    async def label_create(self, user_id: str, label: LabelCreate) -> LabelRecord:
        with self._session("Label") as db:
            db_label = LabelModel(
                user_id=user_id,
                title=label.title,
                color=label.color,
                text_color=label.text_color.value,
            )
            db.add(db_label)
            db.flush()
            return LabelRecord(**db_label.to_dict())

    async def label_read(self, user_id: str) -> List[LabelRecord]:
        with self._session("Label") as db:
            rows = (
                db.query(LabelModel)
                .filter(LabelModel.user_id == user_id)
                .order_by(func.lower(LabelModel.title), LabelModel.id)
                .all()
            )
            return [LabelRecord(**row.to_dict()) for row in rows]

    async def label_update_title(self, user_id: str, label_id: str, title: str) -> None:
        with self._session("Label") as db:
            self._get_label(db, user_id, label_id).title = title

    async def label_update_color(
        self, user_id: str, label_id: str, color: str, text_color: TextColor
    ) -> None:
        with self._session("Label") as db:
            label = self._get_label(db, user_id, label_id)
            label.color = color
            label.text_color = TextColor(text_color).value

    async def label_delete(self, user_id: str, label_id: str) -> None:
        with self._session("Label") as db:
            label = self._get_label(db, user_id, label_id)
            db.query(ProjectLabelModel).filter(
                ProjectLabelModel.user_id == user_id,
                ProjectLabelModel.label_id == label_id,
            ).delete(synchronize_session=False)
            db.delete(label)

    # =========================================================================
    # Projects
    # =========================================================================

    def _get_project(self, db: Session, user_id: str, project_id: str) -> ProjectModel:
        project = (
            db.query(ProjectModel)
            .filter(ProjectModel.user_id == user_id, ProjectModel.id == project_id)
            .first()
        )
        if project is None:
            raise NotFound("Project", project_id)
        return project

    async def project_create(
        self, user_id: str, project_id: str, column_id: str
    ) -> ProjectRecord:
        with self._session("Project") as db:
            self._get_column(db, user_id, column_id)
            db_project = ProjectModel(id=project_id, user_id=user_id, column_id=column_id)
            db.add(db_project)
            db.flush()
            return ProjectRecord(**db_project.to_dict())

    async def project_read(self, user_id: str) -> List[ProjectRecord]:
        with self._session("Project") as db:
            rows = (
                db.query(ProjectModel)
                .filter(ProjectModel.user_id == user_id)
                .order_by(ProjectModel.id)
                .all()
            )
            return [ProjectRecord(**row.to_dict()) for row in rows]

    async def project_update_column(
        self, user_id: str, project_id: str, column_id: str
    ) -> None:
        with self._session("Project") as db:
            project = self._get_project(db, user_id, project_id)
            self._get_column(db, user_id, column_id)
            project.column_id = column_id

    async def project_delete(self, user_id: str, project_id: str) -> None:
        with self._session("Project") as db:
            project = self._get_project(db, user_id, project_id)
            db.query(ProjectLabelModel).filter(
                ProjectLabelModel.user_id == user_id,
                ProjectLabelModel.project_id == project_id,
            ).delete(synchronize_session=False)
            db.delete(project)

    # =========================================================================
    # Project-label relations
    # =========================================================================

    async def relation_create(
        self, user_id: str, project_id: str, label_id: str
    ) -> ProjectLabelRecord:
        with self._session("ProjectLabel") as db:
            self._get_project(db, user_id, project_id)
            self._get_label(db, user_id, label_id)
            db_relation = ProjectLabelModel(
                project_id=project_id, label_id=label_id, user_id=user_id
            )
            db.add(db_relation)
            db.flush()
            return ProjectLabelRecord(**db_relation.to_dict())

    async def relation_read(self, user_id: str) -> List[ProjectLabelRecord]:
        with self._session("ProjectLabel") as db:
            rows = (
                db.query(ProjectLabelModel)
                .filter(ProjectLabelModel.user_id == user_id)
                .order_by(ProjectLabelModel.project_id, ProjectLabelModel.label_id)
                .all()
            )
            return [ProjectLabelRecord(**row.to_dict()) for row in rows]

    async def relation_delete(self, user_id: str, project_id: str, label_id: str) -> None:
        with self._session("ProjectLabel") as db:
            deleted = (
                db.query(ProjectLabelModel)
                .filter(
                    ProjectLabelModel.user_id == user_id,
                    ProjectLabelModel.project_id == project_id,
                    ProjectLabelModel.label_id == label_id,
                )
                .delete(synchronize_session=False)
            )
            if not deleted:
                raise NotFound("ProjectLabel", f"{project_id}/{label_id}")

