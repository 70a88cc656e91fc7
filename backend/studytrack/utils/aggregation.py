"""Aggregations over timer session rows.

All functions are pure and accept any iterable of objects (or dicts)
exposing `subject`, `duration_seconds` and `date`. Days without a session
are reported as absent, never as a zero entry.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

from ..errors import ValidationError

DEFAULT_STREAK_WINDOW = 365


def _field(session, name: str):
    if isinstance(session, dict):
        return session[name]
    return getattr(session, name)


def parse_day(value: str) -> date:
    """Parse a fixed-width `YYYY-MM-DD` string, raising `ValidationError` otherwise."""
    if not isinstance(value, str) or len(value) != 10:
        raise ValidationError(f'invalid date: {value!r}, expected YYYY-MM-DD')
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f'invalid date: {value!r}, expected YYYY-MM-DD')


def daily_total(sessions: Iterable) -> int:
    """Sum of `duration_seconds` over `sessions`."""
    return sum(_field(s, 'duration_seconds') for s in sessions)


def by_date_range(sessions: Iterable, start: str, end: str) -> list:
    """Sessions whose date falls in `[start, end]`.

    ISO dates are fixed width, so string comparison orders them correctly.
    """
    return [s for s in sessions if start <= _field(s, 'date') <= end]


def group_by_subject(sessions: Iterable) -> dict[str, int]:
    """Map subject -> total seconds, in first-seen order."""
    totals: dict[str, int] = {}
    for s in sessions:
        subject = _field(s, 'subject')
        totals[subject] = totals.get(subject, 0) + _field(s, 'duration_seconds')
    return totals


def month_bounds(year: int, month: int) -> tuple[str, str]:
    """First and last calendar day of a month as ISO strings."""
    if not 1 <= month <= 12:
        raise ValidationError('month must be between 1 and 12')
    if not 1 <= year <= 9999:
        raise ValidationError('year out of range')
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1).isoformat(), date(year, month, last).isoformat()


def monthly_calendar(sessions: Iterable, year: int, month: int) -> list[dict]:
    """One `{date, total_seconds}` entry per studied day of the month, sorted by date."""
    start, end = month_bounds(year, month)
    per_day: dict[str, int] = defaultdict(int)
    for s in by_date_range(sessions, start, end):
        per_day[_field(s, 'date')] += _field(s, 'duration_seconds')
    return [{'date': d, 'total_seconds': per_day[d]} for d in sorted(per_day)]


def streak(sessions: Iterable, today: str, window: int = DEFAULT_STREAK_WINDOW) -> int:
    """Consecutive studied days ending at `today`.

    Returns 0 when `today` has no session. The walk back is bounded by
    `window` days, so a longer run reports `window`.
    """
    studied = {_field(s, 'date') for s in sessions}
    day = parse_day(today)
    count = 0
    while count < window and day.isoformat() in studied:
        count += 1
        day -= timedelta(days=1)
    return count


def summarize(sessions: Iterable) -> dict:
    """Totals used by the analytics charts."""
    sessions = list(sessions)
    return {
        'total_seconds': daily_total(sessions),
        'session_count': len(sessions),
        'by_subject': group_by_subject(sessions),
    }


def format_duration(seconds: int) -> str:
    """Render seconds as `HH:MM:SS`."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f'{hours:02d}:{minutes:02d}:{secs:02d}'
