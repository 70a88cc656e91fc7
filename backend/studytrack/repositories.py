"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
todos, question counts, timer sessions, net results). Repositories
return SQLModel objects and perform commits/refreshes where appropriate.
User-scoped reads and writes always filter on `owner_id`.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .errors import TransientStoreError


def _commit(session: Session) -> None:
    """Commit the unit of work or roll it back and raise `TransientStoreError`."""
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise TransientStoreError('store unavailable, please retry') from exc


class UserRepository:
    """Lookup and profile upsert for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def upsert(self, user_id: str, email: Optional[str], first_name: Optional[str],
               last_name: Optional[str], profile_image_url: Optional[str]) -> models.User:
        """Create the user or refresh its profile fields."""
        user = self.get(user_id)
        if user is None:
            user = models.User(id=user_id)
        user.email = email
        user.first_name = first_name
        user.last_name = last_name
        user.profile_image_url = profile_image_url
        user.updated_at = datetime.now(timezone.utc)
        self.session.add(user)
        _commit(self.session)
        self.session.refresh(user)
        return user


class TodoRepository:
    """CRUD operations for `Todo` objects."""
    def __init__(self, session: Session):
        self.session = session

    def list(self, owner_id: str) -> List[models.Todo]:
        stmt = select(models.Todo).where(models.Todo.owner_id == owner_id).order_by(models.Todo.id)
        return self.session.exec(stmt).all()

    def get(self, owner_id: str, todo_id: int) -> Optional[models.Todo]:
        todo = self.session.get(models.Todo, todo_id)
        if todo is None or todo.owner_id != owner_id:
            return None
        return todo

    def create(self, todo: models.Todo) -> models.Todo:
        self.session.add(todo)
        _commit(self.session)
        self.session.refresh(todo)
        return todo

    def update(self, owner_id: str, todo_id: int, changes: dict) -> Optional[models.Todo]:
        """Apply a partial update; returns `None` if the todo is not owned."""
        todo = self.get(owner_id, todo_id)
        if todo is None:
            return None
        for key, value in changes.items():
            setattr(todo, key, value)
        self.session.add(todo)
        _commit(self.session)
        self.session.refresh(todo)
        return todo

    def delete(self, owner_id: str, todo_id: int) -> bool:
        todo = self.get(owner_id, todo_id)
        if todo is None:
            return False
        self.session.delete(todo)
        _commit(self.session)
        return True


class QuestionCountRepository:
    """Question counter rows keyed by (owner, subject, date)."""
    def __init__(self, session: Session):
        self.session = session

    def list_by_date(self, owner_id: str, day: str) -> List[models.QuestionCount]:
        stmt = select(models.QuestionCount).where(
            models.QuestionCount.owner_id == owner_id,
            models.QuestionCount.date == day
        )
        return self.session.exec(stmt).all()

    def list_by_date_range(self, owner_id: str, start: str, end: str) -> List[models.QuestionCount]:
        stmt = select(models.QuestionCount).where(
            models.QuestionCount.owner_id == owner_id,
            models.QuestionCount.date >= start,
            models.QuestionCount.date <= end
        ).order_by(models.QuestionCount.date)
        return self.session.exec(stmt).all()

    def get_by_key(self, owner_id: str, subject: str, day: str) -> Optional[models.QuestionCount]:
        stmt = select(models.QuestionCount).where(
            models.QuestionCount.owner_id == owner_id,
            models.QuestionCount.subject == subject,
            models.QuestionCount.date == day
        )
        return self.session.exec(stmt).first()

    def upsert(self, owner_id: str, subject: str, day: str, count: int) -> models.QuestionCount:
        """Insert the row or replace its `count` in a single statement.

        SQLite and PostgreSQL use `INSERT ... ON CONFLICT DO UPDATE` on the
        (owner_id, subject, date) unique constraint. Other dialects fall
        back to find-then-write inside one transaction.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect in ('sqlite', 'postgresql'):
            insert = pg_insert if dialect == 'postgresql' else sqlite_insert
            stmt = insert(models.QuestionCount.__table__).values(
                owner_id=owner_id, subject=subject, date=day, count=count
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=['owner_id', 'subject', 'date'],
                set_={'count': stmt.excluded['count']}
            )
            try:
                self.session.connection().execute(stmt)
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise TransientStoreError('store unavailable, please retry') from exc
            _commit(self.session)
            row = self.get_by_key(owner_id, subject, day)
            # the row may be cached in the identity map from an earlier read
            self.session.refresh(row)
            return row
        existing = self.get_by_key(owner_id, subject, day)
        if existing:
            existing.count = count
            self.session.add(existing)
            _commit(self.session)
            return existing
        row = models.QuestionCount(owner_id=owner_id, subject=subject, date=day, count=count)
        self.session.add(row)
        _commit(self.session)
        self.session.refresh(row)
        return row


class TimerSessionRepository:
    """Create and range queries for `TimerSession` rows (no updates)."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, timer_session: models.TimerSession) -> models.TimerSession:
        """Persist a session atomically with its final duration."""
        self.session.add(timer_session)
        _commit(self.session)
        self.session.refresh(timer_session)
        return timer_session

    def list_by_date(self, owner_id: str, day: str) -> List[models.TimerSession]:
        stmt = select(models.TimerSession).where(
            models.TimerSession.owner_id == owner_id,
            models.TimerSession.date == day
        ).order_by(models.TimerSession.id)
        return self.session.exec(stmt).all()

    def list_by_date_range(self, owner_id: str, start: str, end: str) -> List[models.TimerSession]:
        """Sessions with `start <= date <= end` (inclusive)."""
        stmt = select(models.TimerSession).where(
            models.TimerSession.owner_id == owner_id,
            models.TimerSession.date >= start,
            models.TimerSession.date <= end
        ).order_by(models.TimerSession.date, models.TimerSession.id)
        return self.session.exec(stmt).all()


class NetResultRepository:
    """Create, list and delete saved net snapshots."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, result: models.NetResult) -> models.NetResult:
        self.session.add(result)
        _commit(self.session)
        self.session.refresh(result)
        return result

    def list_for_owner(self, owner_id: str) -> List[models.NetResult]:
        """Newest snapshots first."""
        stmt = select(models.NetResult).where(models.NetResult.owner_id == owner_id).order_by(
            models.NetResult.date.desc(), models.NetResult.id.desc()
        )
        return self.session.exec(stmt).all()

    def get_owned(self, owner_id: str, result_id: int) -> Optional[models.NetResult]:
        result = self.session.get(models.NetResult, result_id)
        if result is None or result.owner_id != owner_id:
            return None
        return result

    def delete_owned(self, owner_id: str, result_id: int) -> bool:
        """Delete a snapshot; False if missing or owned by someone else."""
        result = self.get_owned(owner_id, result_id)
        if result is None:
            return False
        self.session.delete(result)
        _commit(self.session)
        return True
