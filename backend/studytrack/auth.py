"""Authentication helpers and FastAPI security dependency.

This module verifies identity-provider callback tokens, issues API
access tokens, and provides the `get_current_user` dependency that
resolves the bearer token to a `User`. Every failure raises `AuthError`
so owner-scoped routes reject the request before any write happens.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .database import get_session
from .errors import AuthError

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str, secret: Optional[str] = None) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises `AuthError`.
    """
    try:
        return jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError('token expired')
    except jwt.InvalidTokenError:
        raise AuthError('invalid token')


def issue_access_token(user: models.User) -> str:
    """Sign a short-lived API token for `user`."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {'sub': user.id, 'email': user.email, 'exp': int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _resolve_user(credentials: Optional[HTTPAuthorizationCredentials], db: Session) -> models.User:
    if credentials is None or not credentials.credentials:
        raise AuthError('not authenticated')
    payload = decode_token(credentials.credentials)
    user_id = payload.get('sub')
    if not user_id:
        raise AuthError('invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise AuthError('user not found')
    return user


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
                     db: Session = Depends(get_session)) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Raises `AuthError` (401) when the token is missing, invalid or
    expired, or when it names an unknown user.
    """
    return _resolve_user(credentials, db)


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
                      db: Session = Depends(get_session)) -> Optional[models.User]:
    """Like `get_current_user` but returns `None` instead of rejecting."""
    try:
        return _resolve_user(credentials, db)
    except AuthError:
        return None
