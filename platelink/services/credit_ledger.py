# platelink/services/credit_ledger.py
"""
Credit ledger: one account per user plus an append-only entry log.

Invariants kept by both implementations:
  - balance >= 0 at all times
  - balance == signed sum of the user's entries after every commit
  - a debit carrying an idempotency key is committed at most once; a repeat
    returns the entry that was written the first time

Debits are serialized per user. In memory that is a per-user lock; in SQL it is
a conditional UPDATE (balance >= amount) inside the same transaction as the
entry insert, plus a unique key on idempotency_keys.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from platelink.domain import LedgerAccount, LedgerEntry, EntryKind, EntryReason
from platelink.errors import ConflictError, InsufficientBalanceError, NotFoundError, ValidationError
from platelink.models.ledger import (
    LedgerAccount as AccountRow,
    LedgerEntry as EntryRow,
    IdempotencyKey as IdempotencyRow,
)
from platelink.utils.ids import new_id, new_referral_code, utcnow
from platelink.utils.keyed_lock import KeyedLock
from platelink.utils.retry import retry_transient
from platelink.utils.logger import get_logger

logger = get_logger(__name__)

_CODE_ATTEMPTS = 5


def _check_amount(amount):
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError("InvalidAmount", f"Amount must be a positive integer, got {amount!r}")


def _user_not_found(user_id):
    return NotFoundError("UserNotFound", f"No ledger account for user {user_id}")


class CreditLedger(ABC):
    """Storage-agnostic ledger contract."""

    @abstractmethod
    def open_account(self, user_id: str, signup_bonus: int = 0, referral_code: str = None) -> LedgerAccount:
        """Idempotent. A referral code is generated unless one is given."""

    @abstractmethod
    def get_account(self, user_id: str) -> LedgerAccount:
        pass

    @abstractmethod
    def find_account_by_code(self, code: str) -> Optional[LedgerAccount]:
        pass

    @abstractmethod
    def credit(self, user_id: str, amount: int, reason: EntryReason,
               related_vehicle_id: str = None, related_referral_user_id: str = None) -> LedgerEntry:
        pass

    @abstractmethod
    def _debit(self, user_id, amount, reason, idempotency_key, related_vehicle_id):
        """Returns (entry, created). created is False for an idempotent replay."""

    @abstractmethod
    def history(self, user_id: str, limit: Optional[int] = None) -> list:
        """Entries, most recent first."""

    @abstractmethod
    def purge_idempotency_keys(self, older_than: datetime) -> int:
        pass

    def debit(self, user_id: str, amount: int, reason: EntryReason,
              idempotency_key: str = None, related_vehicle_id: str = None) -> LedgerEntry:
        entry, _ = self.debit_idempotent(user_id, amount, reason, idempotency_key, related_vehicle_id)
        return entry

    def debit_idempotent(self, user_id, amount, reason, idempotency_key=None, related_vehicle_id=None):
        _check_amount(amount)
        entry, created = self._debit(user_id, amount, EntryReason(reason), idempotency_key, related_vehicle_id)
        if created:
            logger.info(f"[LEDGER] Debit {amount} from {user_id} ({entry.reason.value}) entry={entry.entry_id}")
        else:
            logger.info(f"[LEDGER] Replayed debit for key {idempotency_key} entry={entry.entry_id}")
        return entry, created

    def get_balance(self, user_id: str) -> int:
        return self.get_account(user_id).balance


# ── In-memory ────────────────────────────────────────────────────────────────

class InMemoryCreditLedger(CreditLedger):
    def __init__(self):
        self._accounts = {}
        self._entries = {}
        self._codes = {}
        self._idempotency = {}          # key -> (entry, created_at)
        self._codes_lock = threading.Lock()
        self.locks = KeyedLock()        # shared with the referral engine

    def open_account(self, user_id, signup_bonus=0, referral_code=None):
        with self.locks.hold(user_id):
            if user_id in self._accounts:
                return self._accounts[user_id]
            with self._codes_lock:
                code = referral_code or new_referral_code()
                if referral_code and code in self._codes:
                    raise ConflictError("DuplicateReferralCode", f"Referral code {code} is taken")
                while code in self._codes:
                    code = new_referral_code()
                self._codes[code] = user_id
            self._accounts[user_id] = LedgerAccount(
                user_id=user_id, balance=0, referral_code=code, referred_by=None, created_at=utcnow(),
            )
            self._entries[user_id] = []
            if signup_bonus > 0:
                self._append_locked(user_id, EntryKind.EARNED, signup_bonus, EntryReason.SIGNUP_BONUS)
        logger.info(f"[LEDGER] Opened account {user_id} code={code} bonus={signup_bonus}")
        return self._accounts[user_id]

    def get_account(self, user_id):
        account = self._accounts.get(user_id)
        if account is None:
            raise _user_not_found(user_id)
        return account

    def find_account_by_code(self, code):
        user_id = self._codes.get(code)
        return self._accounts.get(user_id) if user_id else None

    def _append_locked(self, user_id, kind, amount, reason,
                       related_vehicle_id=None, related_referral_user_id=None):
        """Caller holds the user's lock and has already checked the balance."""
        account = self._accounts[user_id]
        entry = LedgerEntry(
            entry_id=new_id(),
            user_id=user_id,
            kind=kind,
            amount=amount,
            reason=reason,
            created_at=utcnow(),
            related_vehicle_id=related_vehicle_id,
            related_referral_user_id=related_referral_user_id,
        )
        self._entries[user_id].append(entry)
        self._accounts[user_id] = LedgerAccount(
            user_id=user_id,
            balance=account.balance + entry.signed_amount,
            referral_code=account.referral_code,
            referred_by=account.referred_by,
            created_at=account.created_at,
        )
        return entry

    def _set_referred_by_locked(self, user_id, referrer_id):
        account = self._accounts[user_id]
        self._accounts[user_id] = LedgerAccount(
            user_id=user_id,
            balance=account.balance,
            referral_code=account.referral_code,
            referred_by=referrer_id,
            created_at=account.created_at,
        )

    def credit(self, user_id, amount, reason, related_vehicle_id=None, related_referral_user_id=None):
        _check_amount(amount)
        with self.locks.hold(user_id):
            if user_id not in self._accounts:
                raise _user_not_found(user_id)
            entry = self._append_locked(user_id, EntryKind.EARNED, amount, EntryReason(reason),
                                        related_vehicle_id, related_referral_user_id)
        logger.info(f"[LEDGER] Credit {amount} to {user_id} ({entry.reason.value}) entry={entry.entry_id}")
        return entry

    def _debit(self, user_id, amount, reason, idempotency_key, related_vehicle_id):
        with self.locks.hold(user_id):
            if idempotency_key and idempotency_key in self._idempotency:
                return self._idempotency[idempotency_key][0], False
            account = self._accounts.get(user_id)
            if account is None:
                raise _user_not_found(user_id)
            if account.balance < amount:
                logger.warning(f"[LEDGER] Insufficient balance for {user_id}: {account.balance} < {amount}")
                raise InsufficientBalanceError(account.balance, amount)
            entry = self._append_locked(user_id, EntryKind.SPENT, amount, reason, related_vehicle_id)
            if idempotency_key:
                self._idempotency[idempotency_key] = (entry, entry.created_at)
            return entry, True

    def history(self, user_id, limit=None):
        if user_id not in self._accounts:
            raise _user_not_found(user_id)
        entries = list(reversed(self._entries[user_id]))
        return entries if limit is None else entries[:limit]

    def purge_idempotency_keys(self, older_than):
        expired = [k for k, (_, created_at) in list(self._idempotency.items()) if created_at < older_than]
        for key in expired:
            self._idempotency.pop(key, None)
        return len(expired)


# ── SQLAlchemy ───────────────────────────────────────────────────────────────

def _to_account(row: AccountRow) -> LedgerAccount:
    return LedgerAccount(
        user_id=row.user_id,
        balance=row.balance,
        referral_code=row.referral_code,
        referred_by=row.referred_by,
        created_at=row.created_at,
    )


def _to_entry(row: EntryRow) -> LedgerEntry:
    return LedgerEntry(
        entry_id=row.entry_id,
        user_id=row.user_id,
        kind=EntryKind(row.kind),
        amount=row.amount,
        reason=EntryReason(row.reason),
        created_at=row.created_at,
        related_vehicle_id=row.related_vehicle_id,
        related_referral_user_id=row.related_referral_user_id,
    )


class SqlCreditLedger(CreditLedger):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    # Helpers below work inside a caller's transaction and never commit.

    def _add_entry(self, db, user_id, kind, amount, reason,
                   related_vehicle_id=None, related_referral_user_id=None) -> EntryRow:
        row = EntryRow(
            entry_id=new_id(),
            user_id=user_id,
            kind=kind.value,
            amount=amount,
            reason=EntryReason(reason).value,
            related_vehicle_id=related_vehicle_id,
            related_referral_user_id=related_referral_user_id,
            created_at=utcnow(),
        )
        db.add(row)
        return row

    def _credit_in(self, db, user_id, amount, reason,
                   related_vehicle_id=None, related_referral_user_id=None) -> EntryRow:
        result = db.execute(
            update(AccountRow)
            .where(AccountRow.user_id == user_id)
            .values(balance=AccountRow.balance + amount)
        )
        if result.rowcount == 0:
            raise _user_not_found(user_id)
        return self._add_entry(db, user_id, EntryKind.EARNED, amount, reason,
                               related_vehicle_id, related_referral_user_id)

    def _open_account_in(self, db, user_id, signup_bonus=0, referral_code=None) -> AccountRow:
        code = referral_code or new_referral_code()
        if referral_code and db.query(AccountRow).filter(AccountRow.referral_code == code).first():
            raise ConflictError("DuplicateReferralCode", f"Referral code {code} is taken")
        while db.query(AccountRow).filter(AccountRow.referral_code == code).first():
            code = new_referral_code()
        row = AccountRow(user_id=user_id, balance=signup_bonus, referral_code=code,
                         referred_by=None, created_at=utcnow())
        db.add(row)
        if signup_bonus > 0:
            self._add_entry(db, user_id, EntryKind.EARNED, signup_bonus, EntryReason.SIGNUP_BONUS)
        return row

    def _replayed_entry(self, db, key):
        prior = db.get(IdempotencyRow, key)
        if not prior:
            return None
        row = db.query(EntryRow).filter(EntryRow.entry_id == prior.entry_id).one()
        return _to_entry(row)

    @retry_transient
    def open_account(self, user_id, signup_bonus=0, referral_code=None):
        for _ in range(_CODE_ATTEMPTS):
            with self._session_factory() as db:
                existing = db.get(AccountRow, user_id)
                if existing:
                    return _to_account(existing)
                row = self._open_account_in(db, user_id, signup_bonus, referral_code)
                try:
                    db.commit()
                except IntegrityError:
                    # Concurrent opening, or a referral code collision
                    db.rollback()
                    continue
                logger.info(f"[LEDGER] Opened account {user_id} code={row.referral_code} bonus={signup_bonus}")
                return _to_account(row)
        return self.get_account(user_id)

    @retry_transient
    def get_account(self, user_id):
        with self._session_factory() as db:
            row = db.get(AccountRow, user_id)
            if not row:
                raise _user_not_found(user_id)
            return _to_account(row)

    @retry_transient
    def find_account_by_code(self, code):
        with self._session_factory() as db:
            row = db.query(AccountRow).filter(AccountRow.referral_code == code).first()
            return _to_account(row) if row else None

    @retry_transient(attempts=1)     # not idempotent
    def credit(self, user_id, amount, reason, related_vehicle_id=None, related_referral_user_id=None):
        _check_amount(amount)
        with self._session_factory() as db:
            row = self._credit_in(db, user_id, amount, reason, related_vehicle_id, related_referral_user_id)
            db.commit()
        entry = _to_entry(row)
        logger.info(f"[LEDGER] Credit {amount} to {user_id} ({entry.reason.value}) entry={entry.entry_id}")
        return entry

    @retry_transient
    def _debit(self, user_id, amount, reason, idempotency_key, related_vehicle_id):
        with self._session_factory() as db:
            if idempotency_key:
                prior = self._replayed_entry(db, idempotency_key)
                if prior:
                    return prior, False

            result = db.execute(
                update(AccountRow)
                .where(AccountRow.user_id == user_id, AccountRow.balance >= amount)
                .values(balance=AccountRow.balance - amount)
            )
            if result.rowcount == 0:
                db.rollback()
                account = db.get(AccountRow, user_id)
                if not account:
                    raise _user_not_found(user_id)
                if idempotency_key:
                    # The same key may have committed while we waited on the row
                    prior = self._replayed_entry(db, idempotency_key)
                    if prior:
                        return prior, False
                logger.warning(f"[LEDGER] Insufficient balance for {user_id}: {account.balance} < {amount}")
                raise InsufficientBalanceError(account.balance, amount)

            row = self._add_entry(db, user_id, EntryKind.SPENT, amount, reason, related_vehicle_id)
            if idempotency_key:
                db.add(IdempotencyRow(key=idempotency_key, user_id=user_id,
                                      entry_id=row.entry_id, created_at=row.created_at))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                prior = self._replayed_entry(db, idempotency_key) if idempotency_key else None
                if prior:
                    return prior, False
                raise
            return _to_entry(row), True

    @retry_transient
    def history(self, user_id, limit=None):
        with self._session_factory() as db:
            if not db.get(AccountRow, user_id):
                raise _user_not_found(user_id)
            q = db.query(EntryRow).filter(EntryRow.user_id == user_id).order_by(EntryRow.id.desc())
            if limit is not None:
                q = q.limit(limit)
            return [_to_entry(r) for r in q.all()]

    @retry_transient
    def purge_idempotency_keys(self, older_than):
        with self._session_factory() as db:
            count = db.query(IdempotencyRow).filter(IdempotencyRow.created_at < older_than).delete()
            db.commit()
        return count
