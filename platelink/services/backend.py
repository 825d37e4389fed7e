# platelink/services/backend.py
"""
Backend composition.
The registry, ledger, referral, user and activity services come as one set,
either all in-memory or all SQLAlchemy-backed. The choice is made once, here,
from STORAGE_BACKEND; nothing downstream branches on it.
"""

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends

from platelink.config import settings
from platelink.services.activity_aggregator import (
    ActivityAggregator, InMemoryActivityAggregator, SqlActivityAggregator,
)
from platelink.services.credit_ledger import CreditLedger, InMemoryCreditLedger, SqlCreditLedger
from platelink.services.referral_engine import ReferralEngine, InMemoryReferralEngine, SqlReferralEngine
from platelink.services.search_gateway import SearchGateway
from platelink.services.user_directory import UserDirectory, InMemoryUserDirectory, SqlUserDirectory
from platelink.services.vehicle_registry import VehicleRegistry, InMemoryVehicleRegistry, SqlVehicleRegistry
from platelink.utils.ids import utcnow
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Backend:
    users: UserDirectory
    registry: VehicleRegistry
    ledger: CreditLedger
    referrals: ReferralEngine
    activity: ActivityAggregator
    kind: str = "memory"


def build_memory_backend(signup_bonus: int = None, referral_reward: int = None) -> Backend:
    signup_bonus = settings.SIGNUP_BONUS if signup_bonus is None else signup_bonus
    referral_reward = settings.REFERRAL_REWARD if referral_reward is None else referral_reward
    ledger = InMemoryCreditLedger()
    registry = InMemoryVehicleRegistry()
    return Backend(
        users=InMemoryUserDirectory(ledger, signup_bonus),
        registry=registry,
        ledger=ledger,
        referrals=InMemoryReferralEngine(ledger, referral_reward),
        activity=InMemoryActivityAggregator(registry),
        kind="memory",
    )


def build_sql_backend(session_factory, signup_bonus: int = None, referral_reward: int = None) -> Backend:
    signup_bonus = settings.SIGNUP_BONUS if signup_bonus is None else signup_bonus
    referral_reward = settings.REFERRAL_REWARD if referral_reward is None else referral_reward
    ledger = SqlCreditLedger(session_factory)
    registry = SqlVehicleRegistry(session_factory)
    return Backend(
        users=SqlUserDirectory(ledger, signup_bonus, session_factory),
        registry=registry,
        ledger=ledger,
        referrals=SqlReferralEngine(ledger, referral_reward, session_factory),
        activity=SqlActivityAggregator(registry, session_factory),
        kind="sql",
    )


def build_backend(kind: str = None) -> Backend:
    kind = (kind or settings.STORAGE_BACKEND).lower()
    if kind == "memory":
        return build_memory_backend()
    if kind == "sql":
        from platelink.database import SessionLocal, create_tables
        create_tables()
        return build_sql_backend(SessionLocal)
    raise ValueError(f"Unknown STORAGE_BACKEND: {kind!r} (expected 'sql' or 'memory')")


def purge_expired_keys(backend: Backend) -> int:
    cutoff = utcnow() - timedelta(hours=settings.IDEMPOTENCY_KEY_TTL_HOURS)
    purged = backend.ledger.purge_idempotency_keys(cutoff)
    if purged:
        logger.info(f"Purged {purged} idempotency keys older than {cutoff.isoformat()}")
    return purged


@lru_cache(maxsize=1)
def get_backend() -> Backend:
    """FastAPI dependency — the single backend for this process."""
    backend = build_backend()
    logger.info(f"Storage backend: {backend.kind}")
    return backend


def get_gateway(backend: Backend = Depends(get_backend)) -> SearchGateway:
    """FastAPI dependency — gateway over the process backend."""
    return SearchGateway(
        backend,
        contact_cost=settings.CONTACT_COST,
        low_balance_threshold=settings.LOW_BALANCE_THRESHOLD,
    )
