# platelink/services/referral_engine.py
"""
Referral program.

A referee can redeem one code, once, for all time. Redemption writes the
referee's write-once `referred_by`, records the application, and credits both
parties REFERRAL_REWARD. Those steps commit together or not at all.
"""

import re
import threading
from abc import ABC, abstractmethod

from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError

from platelink.domain import LedgerAccount, ReferralRecord, ReferralResult, ReferralStats, EntryKind, EntryReason
from platelink.errors import ConflictError, NotFoundError, ValidationError
from platelink.models.ledger import LedgerAccount as AccountRow, LedgerEntry as EntryRow
from platelink.models.referral import ReferralApplication
from platelink.utils.ids import REFERRAL_CODE_LENGTH, utcnow
from platelink.utils.retry import retry_transient
from platelink.utils.logger import get_logger

logger = get_logger(__name__)

_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{REFERRAL_CODE_LENGTH}}}$")


def clean_code(code: str) -> str:
    """Trim + uppercase, then require exactly 8 alphanumerics."""
    cleaned = (code or "").strip().upper()
    if not _CODE_PATTERN.match(cleaned):
        raise ValidationError(
            "InvalidFormat",
            f"Referral code must be {REFERRAL_CODE_LENGTH} letters or digits",
        )
    return cleaned


class ReferralEngine(ABC):
    def __init__(self, ledger, reward_amount: int):
        self._ledger = ledger
        self.reward_amount = reward_amount

    def validate_code(self, code: str) -> LedgerAccount:
        """Return the account that owns `code`."""
        account = self._ledger.find_account_by_code(clean_code(code))
        if account is None:
            raise NotFoundError("NotFound", "Referral code not found")
        return account

    def apply(self, referee_id: str, code: str) -> ReferralResult:
        if self._ledger.get_account(referee_id).referred_by is not None:
            raise _already_applied()
        try:
            referrer = self.validate_code(code)
        except (ValidationError, NotFoundError) as e:
            logger.warning(f"[REFERRAL] {referee_id} used invalid code {code!r}: {e.reason}")
            raise ValidationError("InvalidCode", "Invalid referral code") from e

        if referrer.user_id == referee_id:
            raise ValidationError("SelfReferral", "You cannot use your own referral code")

        result = self._apply_atomically(referee_id, referrer.user_id)
        logger.info(f"[REFERRAL] {referee_id} redeemed {referrer.referral_code} from {referrer.user_id} "
                    f"(+{result.reward_amount} each)")
        return result

    @abstractmethod
    def _apply_atomically(self, referee_id: str, referrer_id: str) -> ReferralResult:
        pass

    @abstractmethod
    def stats(self, user_id: str) -> ReferralStats:
        pass

    @abstractmethod
    def history(self, user_id: str, limit: int = None) -> list:
        """Referees this user brought in, most recent first."""


def _already_applied():
    return ConflictError("AlreadyApplied", "A referral code was already applied to this account")


# ── In-memory ────────────────────────────────────────────────────────────────

class InMemoryReferralEngine(ReferralEngine):
    def __init__(self, ledger, reward_amount):
        super().__init__(ledger, reward_amount)
        self._applications = {}          # referee_id -> ReferralRecord, in redemption order
        self._guard = threading.Lock()

    def _apply_atomically(self, referee_id, referrer_id):
        ledger = self._ledger
        with ledger.locks.hold_many([referee_id, referrer_id]):
            referee = ledger.get_account(referee_id)
            ledger.get_account(referrer_id)
            if referee.referred_by is not None or referee_id in self._applications:
                raise _already_applied()

            # Nothing below can fail once both accounts exist
            ledger._set_referred_by_locked(referee_id, referrer_id)
            ledger._append_locked(referee_id, EntryKind.EARNED, self.reward_amount,
                                  EntryReason.REFERRAL_REWARD, related_referral_user_id=referrer_id)
            ledger._append_locked(referrer_id, EntryKind.EARNED, self.reward_amount,
                                  EntryReason.REFERRAL_REWARD, related_referral_user_id=referee_id)
            with self._guard:
                self._applications[referee_id] = ReferralRecord(
                    referee_id=referee_id,
                    referrer_id=referrer_id,
                    reward_amount=self.reward_amount,
                    created_at=utcnow(),
                )
        return ReferralResult(referrer_id=referrer_id, reward_amount=self.reward_amount)

    def stats(self, user_id):
        account = self._ledger.get_account(user_id)
        mine = self.history(user_id)
        earned = sum(e.amount for e in self._ledger.history(user_id)
                     if e.reason == EntryReason.REFERRAL_REWARD)
        return ReferralStats(
            user_id=user_id,
            referral_code=account.referral_code,
            referred_by=account.referred_by,
            successful_referrals=len(mine),
            total_earned=earned,
        )

    def history(self, user_id, limit=None):
        self._ledger.get_account(user_id)
        with self._guard:
            records = [r for r in reversed(list(self._applications.values())) if r.referrer_id == user_id]
        return records if limit is None else records[:limit]


# ── SQLAlchemy ───────────────────────────────────────────────────────────────

class SqlReferralEngine(ReferralEngine):
    def __init__(self, ledger, reward_amount, session_factory):
        super().__init__(ledger, reward_amount)
        self._session_factory = session_factory

    @retry_transient
    def _apply_atomically(self, referee_id, referrer_id):
        ledger = self._ledger
        with self._session_factory() as db:
            if not db.get(AccountRow, referee_id):
                raise NotFoundError("UserNotFound", f"No ledger account for user {referee_id}")
            if db.get(ReferralApplication, referee_id):
                raise _already_applied()

            # Write-once: only flips a NULL referred_by
            flipped = db.execute(
                update(AccountRow)
                .where(AccountRow.user_id == referee_id, AccountRow.referred_by.is_(None))
                .values(referred_by=referrer_id)
            )
            if flipped.rowcount == 0:
                db.rollback()
                raise _already_applied()

            try:
                db.add(ReferralApplication(referee_id=referee_id, referrer_id=referrer_id,
                                           reward_amount=self.reward_amount, created_at=utcnow()))
                ledger._credit_in(db, referee_id, self.reward_amount, EntryReason.REFERRAL_REWARD,
                                  related_referral_user_id=referrer_id)
                ledger._credit_in(db, referrer_id, self.reward_amount, EntryReason.REFERRAL_REWARD,
                                  related_referral_user_id=referee_id)
                db.commit()
            except IntegrityError:
                db.rollback()
                raise _already_applied()
            except Exception:
                db.rollback()
                raise
        return ReferralResult(referrer_id=referrer_id, reward_amount=self.reward_amount)

    @retry_transient
    def stats(self, user_id):
        with self._session_factory() as db:
            account = db.get(AccountRow, user_id)
            if not account:
                raise NotFoundError("UserNotFound", f"No ledger account for user {user_id}")
            referrals = db.query(func.count(ReferralApplication.referee_id)).filter(
                ReferralApplication.referrer_id == user_id
            ).scalar()
            earned = db.query(func.coalesce(func.sum(EntryRow.amount), 0)).filter(
                EntryRow.user_id == user_id,
                EntryRow.reason == EntryReason.REFERRAL_REWARD.value,
            ).scalar()
            return ReferralStats(
                user_id=user_id,
                referral_code=account.referral_code,
                referred_by=account.referred_by,
                successful_referrals=referrals or 0,
                total_earned=int(earned or 0),
            )

    @retry_transient
    def history(self, user_id, limit=None):
        with self._session_factory() as db:
            if not db.get(AccountRow, user_id):
                raise NotFoundError("UserNotFound", f"No ledger account for user {user_id}")
            q = (db.query(ReferralApplication)
                 .filter(ReferralApplication.referrer_id == user_id)
                 .order_by(ReferralApplication.created_at.desc()))
            if limit is not None:
                q = q.limit(limit)
            return [
                ReferralRecord(referee_id=r.referee_id, referrer_id=r.referrer_id,
                               reward_amount=r.reward_amount, created_at=r.created_at)
                for r in q.all()
            ]
