# platelink/domain.py
"""
Plain records shared by both storage backends.
The in-memory backend stores these directly; the SQL backend converts its
rows into them before returning, so callers never hold a live ORM object.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class PlateFamily(str, Enum):
    STANDARD = "Standard"
    BHARAT_SERIES = "BharatSeries"
    DELHI_SPECIAL = "DelhiSpecial"


class WheelCategory(str, Enum):
    TWO_WHEELER = "two_wheeler"
    THREE_WHEELER = "three_wheeler"
    FOUR_WHEELER = "four_wheeler"
    HEAVY = "heavy"
    OTHER = "other"


class EntryKind(str, Enum):
    EARNED = "earned"
    SPENT = "spent"


class EntryReason(str, Enum):
    SIGNUP_BONUS = "signup_bonus"
    REFERRAL_REWARD = "referral_reward"
    CONTACT_REVEAL = "contact_reveal"
    ADJUSTMENT = "adjustment"


class ActivityKind(str, Enum):
    VEHICLE_SEARCHED = "vehicle_searched"
    CONTACT_REVEALED = "contact_revealed"
    VEHICLE_ADDED = "vehicle_added"
    VEHICLE_DELETED = "vehicle_deleted"
    REFERRAL_REDEEMED = "referral_redeemed"


class NotificationKind(str, Enum):
    CONTACT_REQUEST = "contact_request"
    LOW_BALANCE = "low_balance"
    REFERRAL_SUCCESS = "referral_success"


def contact_value(method: str, phone: Optional[str], email: Optional[str]) -> Optional[str]:
    """What a method reaches: the email address for email, the phone number otherwise."""
    return (email if method == "email" else phone) or None


@dataclass(frozen=True)
class ContactMethods:
    phone: bool = True
    sms: bool = False
    whatsapp: bool = False
    email: bool = False

    def enabled(self) -> list:
        return [name for name in ("phone", "sms", "whatsapp", "email") if getattr(self, name)]

    def missing_values(self, phone: Optional[str], email: Optional[str]) -> list:
        """Enabled methods with nothing to reach the user on."""
        return [m for m in self.enabled() if not contact_value(m, phone, email)]


@dataclass(frozen=True)
class User:
    user_id: str
    full_name: str
    phone: Optional[str]
    email: Optional[str]
    contact_methods: ContactMethods
    created_at: datetime

    def reachable(self) -> dict:
        """Enabled methods that carry a value: method -> phone number or email."""
        channels = {m: contact_value(m, self.phone, self.email) for m in self.contact_methods.enabled()}
        return {m: v for m, v in channels.items() if v}

    @property
    def contactable(self) -> bool:
        return bool(self.reachable())


@dataclass(frozen=True)
class Vehicle:
    vehicle_id: str
    owner_id: str
    plate: str
    plate_family: PlateFamily
    wheel_category: WheelCategory
    verified: bool
    created_at: datetime


@dataclass(frozen=True)
class VehicleStats:
    vehicle_id: str
    total_searches: int = 0
    contact_requests: int = 0
    last_searched_at: Optional[datetime] = None


@dataclass(frozen=True)
class LedgerAccount:
    user_id: str
    balance: int
    referral_code: str
    referred_by: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class LedgerEntry:
    entry_id: str
    user_id: str
    kind: EntryKind
    amount: int
    reason: EntryReason
    created_at: datetime
    related_vehicle_id: Optional[str] = None
    related_referral_user_id: Optional[str] = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.kind == EntryKind.EARNED else -self.amount


@dataclass(frozen=True)
class ReferralResult:
    referrer_id: str
    reward_amount: int


@dataclass(frozen=True)
class ReferralStats:
    user_id: str
    referral_code: str
    referred_by: Optional[str]
    successful_referrals: int
    total_earned: int


@dataclass(frozen=True)
class ReferralRecord:
    referee_id: str
    referrer_id: str
    reward_amount: int
    created_at: datetime


@dataclass(frozen=True)
class ActivityEvent:
    event_id: str
    kind: ActivityKind
    created_at: datetime
    user_id: Optional[str] = None
    plate: Optional[str] = None
    vehicle_id: Optional[str] = None
    found: Optional[bool] = None


@dataclass(frozen=True)
class Notification:
    notification_id: str
    user_id: str
    kind: NotificationKind
    message: str
    created_at: datetime
    is_read: bool = False


@dataclass(frozen=True)
class UserStats:
    user_id: str
    vehicles_searched: int
    times_contacted: int
    vehicles_registered: int
    contacts_revealed: int = 0
    unread_notifications: int = 0
