# platelink/models/ledger.py
"""
Credit ledger tables.
ledger_accounts holds the running balance; ledger_entries is append-only and
its signed sum always equals that balance. idempotency_keys maps a committed
debit's key to its entry and is the only ledger table that is ever purged.
"""

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from platelink.database import Base


class LedgerAccount(Base):
    __tablename__ = "ledger_accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_ledger_balance_non_negative"),)

    user_id = Column(String(36), primary_key=True)
    balance = Column(Integer, default=0, nullable=False)
    referral_code = Column(String(8), unique=True, nullable=False, index=True)
    referred_by = Column(String(36))                      # write-once
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<LedgerAccount {self.user_id} balance={self.balance}>"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_ledger_amount_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)   # insertion order
    entry_id = Column(String(36), unique=True, nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    kind = Column(String(10), nullable=False)                    # earned | spent
    amount = Column(Integer, nullable=False)
    reason = Column(String(30), nullable=False)
    related_vehicle_id = Column(String(36))
    related_referral_user_id = Column(String(36))
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<LedgerEntry {self.entry_id} {self.kind} {self.amount} user={self.user_id}>"


class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"

    key = Column(String(300), primary_key=True)
    user_id = Column(String(36), nullable=False)
    entry_id = Column(String(36), nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<IdempotencyKey {self.key} entry={self.entry_id}>"
