# platelink/services/search_gateway.py
"""
Plate lookup and paid contact reveal.

search:  normalize -> registry lookup -> mask owner -> count the search
reveal:  vehicle + owner checks -> idempotent debit -> count the contact ->
         return only the contact channels the owner switched on

A search that finds nothing is a normal result, not an error. A reveal that is
retried with the same idempotency key charges once and answers the same way.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from platelink.domain import Vehicle, EntryReason, NotificationKind, ContactMethods
from platelink.errors import NotFoundError, NotContactableError
from platelink.services import plate_normalizer
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


def mask_name(full_name: str) -> str:
    """'Riyaansh Mittal' -> 'Riyaansh M.'; single-word names pass through."""
    parts = (full_name or "").split()
    if len(parts) < 2:
        return parts[0] if parts else ""
    return f"{parts[0]} {parts[-1][0]}."


@dataclass(frozen=True)
class MaskedOwner:
    masked_name: str
    member_since: datetime
    contact_methods: ContactMethods
    contactable: bool


@dataclass(frozen=True)
class SearchResult:
    plate: str
    found: bool
    plate_family: Optional[str] = None
    vehicle: Optional[Vehicle] = None
    owner: Optional[MaskedOwner] = None
    total_searches: int = 0


@dataclass(frozen=True)
class RevealedContact:
    vehicle_id: str
    plate: str
    owner_name: str
    channels: dict = field(default_factory=dict)     # method -> phone/email, enabled methods only
    entry_id: str = ""
    cost: int = 0
    balance: int = 0
    replayed: bool = False


class SearchGateway:
    def __init__(self, backend, contact_cost: int = 1, low_balance_threshold: int = 0):
        self.users = backend.users
        self.registry = backend.registry
        self.ledger = backend.ledger
        self.activity = backend.activity
        self.contact_cost = contact_cost
        self.low_balance_threshold = low_balance_threshold

    def search(self, raw_plate: str, searcher_id: str = None) -> SearchResult:
        plate = plate_normalizer.normalize(raw_plate)
        vehicle = self.registry.find_by_plate(plate.value)
        owner = self.users.get(vehicle.owner_id) if vehicle else None

        if vehicle is None or owner is None:
            self.activity.record_search(searcher_id, plate.value, None)
            logger.info(f"[SEARCH] {plate.value} not found (searcher={searcher_id})")
            return SearchResult(plate=plate.value, found=False, plate_family=plate.family.value)

        stats = self.activity.record_search(searcher_id, plate.value, vehicle)
        if stats is None:
            # Removed between lookup and count
            return SearchResult(plate=plate.value, found=False, plate_family=plate.family.value)

        logger.info(f"[SEARCH] {plate.value} found vehicle={vehicle.vehicle_id} searches={stats.total_searches}")
        return SearchResult(
            plate=plate.value,
            found=True,
            plate_family=plate.family.value,
            vehicle=vehicle,
            owner=MaskedOwner(
                masked_name=mask_name(owner.full_name),
                member_since=owner.created_at,
                contact_methods=owner.contact_methods,
                contactable=owner.contactable,
            ),
            total_searches=stats.total_searches,
        )

    def reveal(self, user_id: str, vehicle_id: str, idempotency_key: str) -> RevealedContact:
        self.users.require(user_id)
        vehicle = self.registry.find_by_id(vehicle_id)
        owner = self.users.get(vehicle.owner_id) if vehicle else None
        if vehicle is None or owner is None:
            raise NotFoundError("VehicleNotFound", f"Vehicle {vehicle_id} not found")
        if not owner.contactable:
            raise NotContactableError(message=f"Owner of {vehicle.plate} has no contact method enabled")

        key = f"{user_id}:{vehicle_id}:{idempotency_key}"
        entry, created = self.ledger.debit_idempotent(
            user_id, self.contact_cost, EntryReason.CONTACT_REVEAL,
            idempotency_key=key, related_vehicle_id=vehicle_id,
        )
        balance = self.ledger.get_balance(user_id)

        if created:
            if self.activity.record_contact(user_id, vehicle) is None:
                logger.warning(f"[REVEAL] {vehicle.plate} was removed while {user_id} revealed it; "
                               f"charged entry={entry.entry_id}, contact not counted")
            if balance < self.low_balance_threshold:
                self.activity.notify(user_id, NotificationKind.LOW_BALANCE,
                                     f"Only {balance} credits left. Refer a friend to earn more.")
            logger.info(f"[REVEAL] {user_id} revealed {vehicle.plate} entry={entry.entry_id} balance={balance}")

        return RevealedContact(
            vehicle_id=vehicle_id,
            plate=vehicle.plate,
            owner_name=owner.full_name,
            channels=owner.reachable(),
            entry_id=entry.entry_id,
            cost=entry.amount,
            balance=balance,
            replayed=not created,
        )
