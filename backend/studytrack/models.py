"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Every user-scoped table carries an `owner_id` pointing at `User.id`;
calendar days are stored as fixed-width `YYYY-MM-DD` strings so they
sort and range-compare lexicographically.
"""

from typing import Optional
from datetime import datetime, timezone

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """An authenticated person.

    `id` is the subject claim issued by the identity provider. Profiles
    are refreshed on every authentication callback and never deleted.
    """
    id: str = Field(primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Todo(SQLModel, table=True):
    """A to-do item."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(foreign_key='user.id', index=True)
    title: str
    completed: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class QuestionCount(SQLModel, table=True):
    """Number of questions solved for a subject on a day.

    At most one row exists per (owner, subject, date); writes replace
    `count` rather than incrementing it.
    """
    __table_args__ = (UniqueConstraint('owner_id', 'subject', 'date', name='uq_question_count_owner_subject_date'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(foreign_key='user.id', index=True)
    subject: str
    date: str = Field(index=True)
    count: int = Field(default=0, ge=0)


class TimerSession(SQLModel, table=True):
    """One completed, timed study interval. Immutable once written."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: Optional[str] = Field(default=None, foreign_key='user.id', index=True)
    subject: str
    duration_seconds: int = Field(ge=0)
    date: str = Field(index=True)


class NetResult(SQLModel, table=True):
    """A saved exam net snapshot.

    `subject_scores` maps subject name to `{correct, wrong, net}`;
    `total_net` is kept as a two-place decimal string.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(foreign_key='user.id', index=True)
    exam_type: str
    ayt_field: Optional[str] = None
    date: str = Field(index=True)
    publisher: str
    total_net: str
    subject_scores: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow)
