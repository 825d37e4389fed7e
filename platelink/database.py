# platelink/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy (PostgreSQL in production, SQLite for local runs). All models
are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from platelink.config import settings


def build_engine(url: str, **kwargs):
    """Engine factory shared by the app and the tests."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        echo=False,                  # Set True to log all SQL queries (debug only)
        **kwargs,
    )


def build_session_factory(bind):
    # Services hand detached rows back to callers after commit
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = build_session_factory(engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from platelink.models.user import User                                # noqa
    from platelink.models.vehicle import Vehicle, VehicleStats            # noqa
    from platelink.models.ledger import LedgerAccount, LedgerEntry, IdempotencyKey  # noqa
    from platelink.models.referral import ReferralApplication             # noqa
    from platelink.models.activity import ActivityEvent, Notification     # noqa

    Base.metadata.create_all(bind=bind or engine)
