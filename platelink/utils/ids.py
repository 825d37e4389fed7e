# platelink/utils/ids.py
"""Identifier, referral code, and clock helpers."""

import secrets
import string
import uuid
from datetime import datetime, timezone

REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits


def new_id() -> str:
    return str(uuid.uuid4())


def new_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def utcnow() -> datetime:
    # Naive UTC, matching what the DateTime columns store
    return datetime.now(timezone.utc).replace(tzinfo=None)
