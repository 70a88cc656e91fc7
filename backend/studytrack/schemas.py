"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Calendar days are validated as
fixed-width `YYYY-MM-DD` strings.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field

from .utils.aggregation import parse_day


def _check_day(value: str) -> str:
    parse_day(value)
    return value


Day = Annotated[str, AfterValidator(_check_day)]


class AuthCallbackIn(BaseModel):
    """Identity provider callback carrying a signed ID token."""
    id_token: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TodoIn(BaseModel):
    title: str = Field(min_length=1)
    completed: bool = False


class TodoUpdate(BaseModel):
    """Partial update; omitted fields are left untouched."""
    title: Optional[str] = Field(default=None, min_length=1)
    completed: Optional[bool] = None


class TodoOut(BaseModel):
    id: int
    title: str
    completed: bool


class QuestionCountIn(BaseModel):
    """Absolute question count for a subject on a day (not an increment)."""
    subject: str = Field(min_length=1)
    count: int = Field(ge=0)
    date: Day


class QuestionCountOut(BaseModel):
    id: int
    subject: str
    count: int
    date: str


class TimerSessionIn(BaseModel):
    """Payload sent by the timer when a stopwatch or Pomodoro run is saved."""
    subject: str
    duration_seconds: int
    date: Day


class TimerSessionOut(BaseModel):
    id: int
    subject: str
    duration_seconds: int
    date: str


class CalendarDayOut(BaseModel):
    date: str
    total_seconds: int


class StreakOut(BaseModel):
    streak: int


class StatsOut(BaseModel):
    question_counts: List[QuestionCountOut]
    timer_sessions: List[TimerSessionOut]
    total_seconds: int
    total_questions: int
    by_subject: Dict[str, int]


class ScoreIn(BaseModel):
    correct: int = Field(default=0, ge=0)
    wrong: int = Field(default=0, ge=0)


class SubjectScoreOut(BaseModel):
    correct: int
    wrong: int
    net: float


class NetResultIn(BaseModel):
    """A net snapshot to save.

    `total_net` and per-subject nets are recomputed server side from the
    correct/wrong counts; a client supplied `total_net` is ignored.
    """
    exam_type: Literal['TYT', 'AYT']
    ayt_field: Optional[Literal['sozel', 'esit', 'sayisal']] = None
    date: Day
    publisher: str = ''
    total_net: Optional[str] = None
    subject_scores: Dict[str, ScoreIn]


class NetResultOut(BaseModel):
    id: int
    exam_type: str
    ayt_field: Optional[str]
    date: str
    publisher: str
    total_net: str
    subject_scores: Dict[str, SubjectScoreOut]


class SubjectOut(BaseModel):
    name: str
    max_questions: int


class ReconcileIn(BaseModel):
    """One edit of a correct/wrong/blank field for a subject."""
    max_questions: int = Field(gt=0)
    correct: int = 0
    wrong: int = 0
    blank: int = 0
    field: Literal['correct', 'wrong', 'blank']
    value: int


class ReconcileOut(BaseModel):
    correct: int
    wrong: int
    blank: int
    net: float
