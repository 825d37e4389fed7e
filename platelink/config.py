# platelink/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./platelink.db"
    STORAGE_BACKEND: str = "sql"     # sql | memory

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Credits ───────────────────────────────────────────────────────────
    SIGNUP_BONUS: int = 5            # Free credits on account opening
    REFERRAL_REWARD: int = 5         # Credited to both referrer and referee
    CONTACT_COST: int = 1            # Credits per reveal
    LOW_BALANCE_THRESHOLD: int = 3   # Notify when a debit leaves less than this

    # ── Idempotency ───────────────────────────────────────────────────────
    IDEMPOTENCY_KEY_TTL_HOURS: int = 24

    # ── Pagination ────────────────────────────────────────────────────────
    HISTORY_DEFAULT_LIMIT: int = 20
    HISTORY_MAX_LIMIT: int = 50

    # ── Storage retries ───────────────────────────────────────────────────
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_BACKOFF_SECONDS: float = 0.2
    DB_RETRY_MAX_BACKOFF_SECONDS: float = 2.0

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"            # Relative paths resolve against the project root

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
