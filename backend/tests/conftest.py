import os
import tempfile
import uuid
from pathlib import Path

import jwt
import pytest

# must be set before the application package is imported
_DB_PATH = Path(tempfile.gettempdir()) / f"studytrack-test-{uuid.uuid4().hex}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Use a throwaway SQLite database for the whole test run."""
    yield
    if _DB_PATH.exists():
        try:
            _DB_PATH.unlink()
        except OSError:
            pass


def _identity_token(sub: str, **claims) -> str:
    from studytrack.config import settings
    payload = {"sub": sub, **claims}
    return jwt.encode(payload, settings.IDENTITY_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def identity_token():
    """Sign identity provider tokens the way the auth callback expects them."""
    return _identity_token


@pytest.fixture
def login():
    """Return a helper that signs a user in and yields bearer headers."""
    def _login(client, sub=None, **claims):
        sub = sub or f"user-{uuid.uuid4().hex[:8]}"
        r = client.post("/auth/callback", json={"id_token": _identity_token(sub, **claims)})
        assert r.status_code == 200
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login
