"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the pure aggregation / net calculation helpers. Services are
intentionally thin: they validate input, execute domain logic and
persist aggregates via repositories. They raise the errors defined in
`errors`, which the API layer maps to HTTP responses.
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlmodel import Session

from . import models, repositories
from .auth import decode_token, issue_access_token
from .config import settings
from .errors import AuthError, NotFoundError, ValidationError
from .utils import aggregation, net_calculator

logger = logging.getLogger("studytrack.services")


def _require_owner(owner_id: Optional[str]) -> str:
    if not owner_id:
        raise AuthError('not authenticated')
    return owner_id


class AuthService:
    """Identity provider callback handling."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def handle_callback(self, id_token: str):
        """Verify an ID token, create or refresh the user, and return `(user, access_token)`.

        The token must be signed with `IDENTITY_SECRET` and carry a `sub`
        claim; profile claims are optional.
        """
        claims = decode_token(id_token, secret=settings.IDENTITY_SECRET)
        sub = claims.get('sub')
        if not sub:
            raise AuthError('identity token missing subject')
        user = self.user_repo.upsert(
            user_id=str(sub),
            email=claims.get('email'),
            first_name=claims.get('first_name'),
            last_name=claims.get('last_name'),
            profile_image_url=claims.get('profile_image_url'),
        )
        logger.info("user profile refreshed user_id=%s", user.id)
        return user, issue_access_token(user)


class TodoService:
    """To-do list CRUD for one owner."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TodoRepository(session)

    def list(self, owner_id: str) -> List[models.Todo]:
        return self.repo.list(_require_owner(owner_id))

    def create(self, owner_id: str, title: str, completed: bool = False) -> models.Todo:
        owner_id = _require_owner(owner_id)
        if not title or not title.strip():
            raise ValidationError('title must not be empty')
        return self.repo.create(models.Todo(owner_id=owner_id, title=title.strip(), completed=completed))

    def update(self, owner_id: str, todo_id: int, changes: dict) -> models.Todo:
        changes = {k: v for k, v in changes.items() if v is not None}
        if 'title' in changes and not changes['title'].strip():
            raise ValidationError('title must not be empty')
        todo = self.repo.update(_require_owner(owner_id), todo_id, changes)
        if todo is None:
            raise NotFoundError('todo not found')
        return todo

    def delete(self, owner_id: str, todo_id: int) -> None:
        if not self.repo.delete(_require_owner(owner_id), todo_id):
            raise NotFoundError('todo not found')


class QuestionCountService:
    """Daily question counters. Counts are absolute values computed client side."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.QuestionCountRepository(session)

    def list_by_date(self, owner_id: str, day: str) -> List[models.QuestionCount]:
        aggregation.parse_day(day)
        return self.repo.list_by_date(_require_owner(owner_id), day)

    def upsert(self, owner_id: str, subject: str, day: str, count: int) -> models.QuestionCount:
        owner_id = _require_owner(owner_id)
        if not subject or not subject.strip():
            raise ValidationError('subject must not be empty')
        if count < 0:
            raise ValidationError('count must be >= 0')
        aggregation.parse_day(day)
        return self.repo.upsert(owner_id, subject.strip(), day, count)


class TimerSessionService:
    """Create and query saved timer sessions."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TimerSessionRepository(session)

    def create(self, owner_id: Optional[str], subject: str, duration_seconds: int, day: str) -> models.TimerSession:
        """Validate and persist a session with its final duration."""
        owner_id = _require_owner(owner_id)
        if not isinstance(subject, str) or not subject.strip():
            raise ValidationError('subject must not be empty')
        if duration_seconds < 0:
            raise ValidationError('duration_seconds must be >= 0')
        aggregation.parse_day(day)
        created = self.repo.create(models.TimerSession(
            owner_id=owner_id, subject=subject.strip(), duration_seconds=duration_seconds, date=day
        ))
        logger.info("timer session saved owner=%s subject=%s duration=%s date=%s",
                    owner_id, created.subject, created.duration_seconds, created.date)
        return created

    def list_by_date(self, owner_id: str, day: str) -> List[models.TimerSession]:
        aggregation.parse_day(day)
        return self.repo.list_by_date(_require_owner(owner_id), day)

    def list_by_date_range(self, owner_id: str, start: str, end: str) -> List[models.TimerSession]:
        _check_range(start, end)
        return self.repo.list_by_date_range(_require_owner(owner_id), start, end)


def _check_range(start: str, end: str) -> None:
    aggregation.parse_day(start)
    aggregation.parse_day(end)
    if start > end:
        raise ValidationError('start_date must not be after end_date')


class StatsService:
    """Streak, monthly calendar and range statistics."""
    def __init__(self, session: Session):
        self.session = session
        self.session_repo = repositories.TimerSessionRepository(session)
        self.count_repo = repositories.QuestionCountRepository(session)

    def streak(self, owner_id: str, today: Optional[str] = None) -> int:
        """Consecutive studied days ending today, bounded by `STREAK_WINDOW_DAYS`."""
        owner_id = _require_owner(owner_id)
        today = today or date.today().isoformat()
        window = settings.STREAK_WINDOW_DAYS
        start = (aggregation.parse_day(today) - timedelta(days=window - 1)).isoformat()
        sessions = self.session_repo.list_by_date_range(owner_id, start, today)
        return aggregation.streak(sessions, today, window=window)

    def monthly_calendar(self, owner_id: str, year: int, month: int) -> List[dict]:
        owner_id = _require_owner(owner_id)
        start, end = aggregation.month_bounds(year, month)
        sessions = self.session_repo.list_by_date_range(owner_id, start, end)
        return aggregation.monthly_calendar(sessions, year, month)

    def range_stats(self, owner_id: str, start: str, end: str) -> Dict:
        """Raw rows plus totals for the analytics charts."""
        owner_id = _require_owner(owner_id)
        _check_range(start, end)
        counts = self.count_repo.list_by_date_range(owner_id, start, end)
        sessions = self.session_repo.list_by_date_range(owner_id, start, end)
        summary = aggregation.summarize(sessions)
        return {
            'question_counts': counts,
            'timer_sessions': sessions,
            'total_seconds': summary['total_seconds'],
            'total_questions': sum(c.count for c in counts),
            'by_subject': summary['by_subject'],
        }


class NetResultService:
    """Saved exam net snapshots."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.NetResultRepository(session)

    def create(self, owner_id: str, exam_type: str, ayt_field: Optional[str], day: str,
               publisher: str, scores: Dict[str, dict]) -> models.NetResult:
        """Recompute nets from correct/wrong counts and store the snapshot."""
        owner_id = _require_owner(owner_id)
        aggregation.parse_day(day)
        if not scores:
            raise ValidationError('subject_scores must not be empty')
        subject_scores, total = net_calculator.build_snapshot(exam_type, ayt_field, scores)
        result = self.repo.create(models.NetResult(
            owner_id=owner_id,
            exam_type=exam_type,
            ayt_field=ayt_field,
            date=day,
            publisher=(publisher or '').strip(),
            total_net=total,
            subject_scores=subject_scores,
        ))
        logger.info("net result saved owner=%s exam=%s field=%s total=%s", owner_id, exam_type, ayt_field, total)
        return result

    def list(self, owner_id: str) -> List[models.NetResult]:
        return self.repo.list_for_owner(_require_owner(owner_id))

    def delete(self, owner_id: str, result_id: int) -> bool:
        """Delete an owned snapshot. Raises `NotFoundError` if not owned or missing."""
        if not self.repo.delete_owned(_require_owner(owner_id), result_id):
            raise NotFoundError('net result not found')
        return True
