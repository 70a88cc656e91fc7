"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the study tracker backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Domain errors raised by services
are translated to status codes by the exception handlers below.

Endpoints implemented:
- POST /auth/callback, GET /auth/user
- GET/POST /todos, PATCH/DELETE /todos/{id}
- GET /question-counts/{date}, POST /question-counts
- POST /timer-sessions, GET /timer-sessions/{date}, GET /timer-sessions
- GET /streak, GET /monthly-study/{year}/{month}, GET /stats
- GET/POST /net-results, DELETE /net-results/{id}
- GET /net-results/subjects, POST /net-results/reconcile
- GET /health
"""

import json
import logging
import time
import uuid
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from . import models, services
from .auth import get_current_user, get_optional_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import StudyTrackerError
from .schemas import (
    AuthCallbackIn, CalendarDayOut, NetResultIn, NetResultOut, QuestionCountIn,
    QuestionCountOut, ReconcileIn, ReconcileOut, StatsOut, StreakOut, SubjectOut,
    TimerSessionIn, TimerSessionOut, TodoIn, TodoOut, TodoUpdate, TokenOut, UserOut,
)
from .utils import net_calculator

app = FastAPI(title="Study Tracker API")
logger = logging.getLogger("studytrack.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Wide-open CORS keeps local browser frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path != "/health":
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.exception_handler(StudyTrackerError)
async def study_error_handler(request: Request, exc: StudyTrackerError):
    if exc.status_code >= 500:
        logger.error("store_error path=%s detail=%s", request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": e.get("loc"), "msg": e.get("msg")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(errors)})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("store_error path=%s", request.url.path)
    return JSONResponse(status_code=503, content={"detail": "store unavailable, please retry"})


def _net_out(result: models.NetResult) -> dict:
    return {
        'id': result.id,
        'exam_type': result.exam_type,
        'ayt_field': result.ayt_field,
        'date': result.date,
        'publisher': result.publisher,
        'total_net': result.total_net,
        'subject_scores': result.subject_scores,
    }


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post('/auth/callback', response_model=TokenOut)
def auth_callback(payload: AuthCallbackIn, db: Session = Depends(get_session)):
    """Exchange an identity provider token for an API access token.

    The user's profile is created on first login and refreshed on every
    subsequent callback.
    """
    _user, token = services.AuthService(db).handle_callback(payload.id_token)
    return {'access_token': token}


@app.get('/auth/user', response_model=Optional[UserOut])
def auth_user(user: Optional[models.User] = Depends(get_optional_user)):
    """Return the current user, or `null` when the request is unauthenticated."""
    return user


@app.get('/todos', response_model=List[TodoOut])
def list_todos(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TodoService(db).list(user.id)


@app.post('/todos', response_model=TodoOut)
def create_todo(payload: TodoIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TodoService(db).create(user.id, payload.title, payload.completed)


@app.patch('/todos/{todo_id}', response_model=TodoOut)
def update_todo(todo_id: int, payload: TodoUpdate, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    return services.TodoService(db).update(user.id, todo_id, payload.model_dump(exclude_unset=True))


@app.delete('/todos/{todo_id}')
def delete_todo(todo_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.TodoService(db).delete(user.id, todo_id)
    return {'success': True}


@app.get('/question-counts/{day}', response_model=List[QuestionCountOut])
def list_question_counts(day: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.QuestionCountService(db).list_by_date(user.id, day)


@app.post('/question-counts', response_model=QuestionCountOut)
def upsert_question_count(payload: QuestionCountIn, db: Session = Depends(get_session),
                          user: models.User = Depends(get_current_user)):
    """Set the absolute count for (subject, date); replaces any existing value."""
    return services.QuestionCountService(db).upsert(user.id, payload.subject, payload.date, payload.count)


@app.post('/timer-sessions', response_model=TimerSessionOut)
def create_timer_session(payload: TimerSessionIn, db: Session = Depends(get_session),
                         user: models.User = Depends(get_current_user)):
    """Persist a finished stopwatch or Pomodoro run."""
    return services.TimerSessionService(db).create(user.id, payload.subject, payload.duration_seconds, payload.date)


@app.get('/timer-sessions/{day}', response_model=List[TimerSessionOut])
def list_timer_sessions(day: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TimerSessionService(db).list_by_date(user.id, day)


@app.get('/timer-sessions', response_model=List[TimerSessionOut])
def list_timer_sessions_range(start_date: str, end_date: str, db: Session = Depends(get_session),
                              user: models.User = Depends(get_current_user)):
    return services.TimerSessionService(db).list_by_date_range(user.id, start_date, end_date)


@app.get('/streak', response_model=StreakOut)
def get_streak(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return {'streak': services.StatsService(db).streak(user.id)}


@app.get('/monthly-study/{year}/{month}', response_model=List[CalendarDayOut])
def monthly_study(year: int, month: int, db: Session = Depends(get_session),
                  user: models.User = Depends(get_current_user)):
    """Per-day study totals for a month; days without sessions are omitted."""
    return services.StatsService(db).monthly_calendar(user.id, year, month)


@app.get('/stats', response_model=StatsOut)
def stats(start_date: str, end_date: str, db: Session = Depends(get_session),
          user: models.User = Depends(get_current_user)):
    return services.StatsService(db).range_stats(user.id, start_date, end_date)


@app.get('/net-results/subjects', response_model=List[SubjectOut])
def net_subjects(exam_type: str, ayt_field: Optional[str] = None):
    """Subject table (name and question count) for an exam configuration."""
    return [{'name': name, 'max_questions': max_q}
            for name, max_q in net_calculator.subjects_for(exam_type, ayt_field)]


@app.post('/net-results/reconcile', response_model=ReconcileOut)
def reconcile_score(payload: ReconcileIn):
    """Apply one field edit and return the consistent correct/wrong/blank triple."""
    score = {'correct': payload.correct, 'wrong': payload.wrong, 'blank': payload.blank}
    new = net_calculator.reconcile(score, payload.field, payload.value, payload.max_questions)
    return {**new, 'net': net_calculator.net(new)}


@app.get('/net-results', response_model=List[NetResultOut])
def list_net_results(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [_net_out(r) for r in services.NetResultService(db).list(user.id)]


@app.post('/net-results', response_model=NetResultOut)
def create_net_result(payload: NetResultIn, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    scores = {name: s.model_dump() for name, s in payload.subject_scores.items()}
    result = services.NetResultService(db).create(
        user.id, payload.exam_type, payload.ayt_field, payload.date, payload.publisher, scores
    )
    return _net_out(result)


@app.delete('/net-results/{result_id}')
def delete_net_result(result_id: int, db: Session = Depends(get_session),
                      user: models.User = Depends(get_current_user)):
    services.NetResultService(db).delete(user.id, result_id)
    return {'success': True}
