"""Application settings loaded from environment variables or a `.env` file."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Strongly typed access to environment values.

    Every field has a development default so the app boots without a
    `.env` file; production deployments override them.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "CyberChat"
    """Display name used in emails and the OpenAPI title."""

    FRONTEND_URL: str = "http://localhost:5173"
    """Origin of the single-page frontend (allowed by CORS)."""

    LOG_LEVEL: str = "INFO"

    STORAGE_BACKEND: str = "memory"
    """`memory` for a process-local store, `sql` for SQLModel persistence."""

    DATABASE_URL: str = "sqlite:///./cyberchat.db"

    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_TIMEOUT: float = 30.0
    """Per-call timeout in seconds for the text generation API."""

    EMAIL_BACKEND: str = "logging"
    """`smtp` delivers mail; `logging` writes it to the log instead."""

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT: float = 10.0
    SENDER_EMAIL: str = "no-reply@cyberchat.local"

    VERIFICATION_CODE_TTL_MINUTES: int = 10

    SESSION_TTL_MINUTES: int = 60 * 24 * 7
    SESSION_COOKIE_NAME: str = "session"
    SESSION_COOKIE_SECURE: bool = False

    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()

