"""HTTP client for the study tracker API with a small query cache.

Reads are cached per endpoint; every mutation invalidates the entries it
can affect (the day's sessions and counts, the streak, the month
calendar and any stats range covering the day), so the next read
re-fetches fresh data. Error responses are mapped back onto the
exceptions in `errors`.
"""

import logging
import threading
from typing import Dict, List, Optional

import httpx

from .errors import AuthError, NotFoundError, StudyTrackerError, TransientStoreError, ValidationError

logger = logging.getLogger("studytrack.client")

_STATUS_ERRORS = {
    400: ValidationError,
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
    422: ValidationError,
}


class StudyTrackerClient:
    """Thin wrapper around an `httpx.Client` pointed at the API.

    `http` may be any `httpx.Client`, including FastAPI's `TestClient`.
    """

    def __init__(self, http: httpx.Client, token: Optional[str] = None):
        self.http = http
        self.token = token
        self._cache: Dict[tuple, object] = {}
        self._lock = threading.Lock()

    # ---- plumbing ----

    def _headers(self) -> dict:
        return {'Authorization': f'Bearer {self.token}'} if self.token else {}

    def _request(self, method: str, path: str, **kwargs):
        try:
            response = self.http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("request failed %s %s: %s", method, path, exc)
            raise TransientStoreError(f'could not reach the API: {exc}') from exc
        if response.status_code >= 400:
            try:
                detail = response.json().get('detail')
            except ValueError:
                detail = response.text
            error = _STATUS_ERRORS.get(response.status_code)
            if error is None:
                error = TransientStoreError if response.status_code >= 500 else StudyTrackerError
            raise error(str(detail))
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("non-JSON response %s %s status=%s", method, path, response.status_code)
            raise TransientStoreError(f'unexpected response from the API: {exc}') from exc

    def _cached(self, key: tuple, path: str, params: Optional[dict] = None):
        with self._lock:
            if key in self._cache:
                return self._cache[key]
        data = self._request('GET', path, params=params)
        with self._lock:
            self._cache[key] = data
        return data

    def cached_keys(self) -> List[tuple]:
        with self._lock:
            return list(self._cache)

    def invalidate_date(self, day: str) -> None:
        """Drop cached reads that may include `day`, plus the streak."""
        year, month = int(day[:4]), int(day[5:7])
        with self._lock:
            for key in list(self._cache):
                kind = key[0]
                if kind == 'streak':
                    stale = True
                elif kind in ('timer-sessions', 'question-counts'):
                    stale = key[1] == day
                elif kind == 'monthly-study':
                    stale = key[1:] == (year, month)
                elif kind == 'stats':
                    stale = key[1] <= day <= key[2]
                else:
                    stale = False
                if stale:
                    del self._cache[key]

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    # ---- auth ----

    def login(self, id_token: str) -> str:
        """Exchange an identity token for an access token and keep it for later calls."""
        data = self._request('POST', '/auth/callback', json={'id_token': id_token})
        self.token = data['access_token']
        self.clear_cache()
        return self.token

    def current_user(self) -> Optional[dict]:
        return self._request('GET', '/auth/user')

    # ---- timer sessions and stats ----

    def create_timer_session(self, subject: str, duration_seconds: int, day: str) -> dict:
        saved = self._request('POST', '/timer-sessions',
                              json={'subject': subject, 'duration_seconds': duration_seconds, 'date': day})
        self.invalidate_date(day)
        return saved

    def timer_sessions(self, day: str) -> List[dict]:
        return self._cached(('timer-sessions', day), f'/timer-sessions/{day}')

    def timer_sessions_range(self, start: str, end: str) -> List[dict]:
        return self._request('GET', '/timer-sessions', params={'start_date': start, 'end_date': end})

    def streak(self) -> int:
        return self._cached(('streak',), '/streak')['streak']

    def monthly_study(self, year: int, month: int) -> List[dict]:
        return self._cached(('monthly-study', year, month), f'/monthly-study/{year}/{month}')

    def stats(self, start: str, end: str) -> dict:
        return self._cached(('stats', start, end), '/stats', params={'start_date': start, 'end_date': end})

    # ---- question counts ----

    def question_counts(self, day: str) -> List[dict]:
        return self._cached(('question-counts', day), f'/question-counts/{day}')

    def set_question_count(self, subject: str, count: int, day: str) -> dict:
        saved = self._request('POST', '/question-counts', json={'subject': subject, 'count': count, 'date': day})
        self.invalidate_date(day)
        return saved

    # ---- net results ----

    def net_results(self) -> List[dict]:
        return self._request('GET', '/net-results')

    def create_net_result(self, exam_type: str, ayt_field: Optional[str], day: str,
                          publisher: str, subject_scores: Dict[str, dict]) -> dict:
        return self._request('POST', '/net-results', json={
            'exam_type': exam_type,
            'ayt_field': ayt_field,
            'date': day,
            'publisher': publisher,
            'subject_scores': subject_scores,
        })

    def delete_net_result(self, result_id: int) -> bool:
        """False when the result does not exist or belongs to someone else."""
        try:
            self._request('DELETE', f'/net-results/{result_id}')
        except NotFoundError:
            return False
        return True

    # ---- todos ----

    def todos(self) -> List[dict]:
        return self._request('GET', '/todos')

    def create_todo(self, title: str) -> dict:
        return self._request('POST', '/todos', json={'title': title})

    def update_todo(self, todo_id: int, **changes) -> dict:
        return self._request('PATCH', f'/todos/{todo_id}', json=changes)

    def delete_todo(self, todo_id: int) -> bool:
        self._request('DELETE', f'/todos/{todo_id}')
        return True
