# platelink/schemas/ledger.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from platelink.domain import EntryKind, EntryReason


class BalanceOut(BaseModel):
    user_id: str
    balance: int


class LedgerEntryOut(BaseModel):
    entry_id: str
    user_id: str
    kind: EntryKind
    amount: int
    reason: EntryReason
    created_at: datetime
    related_vehicle_id: Optional[str]
    related_referral_user_id: Optional[str]

    class Config:
        from_attributes = True


class RevealRequest(BaseModel):
    user_id: str
    vehicle_id: str
    idempotency_key: str = Field(min_length=1, max_length=200)    # stored with a user:vehicle prefix in a 300-char column


class RevealedContactOut(BaseModel):
    vehicle_id: str
    plate: str
    owner_name: str
    channels: dict[str, Optional[str]]
    entry_id: str
    cost: int
    balance: int
    replayed: bool

    class Config:
        from_attributes = True
