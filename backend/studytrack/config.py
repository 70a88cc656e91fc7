"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    IDENTITY_SECRET: str
    DATABASE_URL: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str
    STREAK_WINDOW_DAYS: int
    DEFAULT_POMODORO_MINUTES: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        # identity provider callback tokens; shares the API secret unless split out
        self.IDENTITY_SECRET = os.getenv("IDENTITY_SECRET", self.JWT_SECRET)
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'studytrack.db'}")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.STREAK_WINDOW_DAYS = int(os.getenv("STREAK_WINDOW_DAYS", "365"))
        self.DEFAULT_POMODORO_MINUTES = int(os.getenv("DEFAULT_POMODORO_MINUTES", "25"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.STREAK_WINDOW_DAYS < 1:
            raise RuntimeError("STREAK_WINDOW_DAYS must be >= 1")
        if not 1 <= self.DEFAULT_POMODORO_MINUTES <= 180:
            raise RuntimeError("DEFAULT_POMODORO_MINUTES must be between 1 and 180")


settings = Settings()
