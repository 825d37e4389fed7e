# platelink/services/vehicle_registry.py
"""
Vehicle registry: vehicles keyed by id, by plate, and by owner.

A plate is unique across the whole registry, not per owner. Registration and
removal of a plate are serialized per plate; stats increments are serialized
per vehicle and are the only way the counters move.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from platelink.domain import Vehicle, VehicleStats, WheelCategory, PlateFamily
from platelink.errors import ConflictError, NotFoundError, NotOwnerError
from platelink.models.vehicle import Vehicle as VehicleRow, VehicleStats as VehicleStatsRow
from platelink.services.plate_normalizer import Plate
from platelink.utils.ids import new_id, utcnow
from platelink.utils.keyed_lock import KeyedLock
from platelink.utils.retry import retry_transient
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


def _conflict(existing_owner_id: str, owner_id: str, plate: str) -> ConflictError:
    if existing_owner_id == owner_id:
        return ConflictError("AlreadyRegisteredBySelf", f"You already registered {plate}")
    return ConflictError("AlreadyRegisteredByOther", f"{plate} is registered to another owner")


class VehicleRegistry(ABC):
    """Storage-agnostic registry contract."""

    @abstractmethod
    def register_vehicle(self, owner_id: str, plate: Plate, wheel_category: WheelCategory) -> Vehicle:
        pass

    @abstractmethod
    def find_by_plate(self, plate: str) -> Optional[Vehicle]:
        pass

    @abstractmethod
    def find_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        pass

    @abstractmethod
    def remove_vehicle(self, owner_id: str, vehicle_id: str) -> Vehicle:
        pass

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> list:
        pass

    @abstractmethod
    def increment_stats(self, vehicle_id: str, searches: int = 0, contacts: int = 0,
                        searched_at: Optional[datetime] = None) -> Optional[VehicleStats]:
        """Atomically add to the counters. Returns None if the vehicle is gone."""
        pass

    @abstractmethod
    def get_stats(self, vehicle_id: str) -> Optional[VehicleStats]:
        pass


# ── In-memory ────────────────────────────────────────────────────────────────

class InMemoryVehicleRegistry(VehicleRegistry):
    def __init__(self):
        self._by_id = {}
        self._by_plate = {}
        self._stats = {}
        self._plate_locks = KeyedLock()
        self._stats_locks = KeyedLock()

    def register_vehicle(self, owner_id, plate, wheel_category):
        with self._plate_locks.hold(plate.value):
            existing = self._by_plate.get(plate.value)
            if existing is not None:
                raise _conflict(existing.owner_id, owner_id, plate.value)
            vehicle = Vehicle(
                vehicle_id=new_id(),
                owner_id=owner_id,
                plate=plate.value,
                plate_family=plate.family,
                wheel_category=WheelCategory(wheel_category),
                verified=False,
                created_at=utcnow(),
            )
            self._stats[vehicle.vehicle_id] = VehicleStats(vehicle_id=vehicle.vehicle_id)
            self._by_id[vehicle.vehicle_id] = vehicle
            self._by_plate[plate.value] = vehicle
        logger.info(f"Registered {plate.value} ({plate.family.value}) for owner {owner_id}")
        return vehicle

    def find_by_plate(self, plate):
        return self._by_plate.get(str(plate))

    def find_by_id(self, vehicle_id):
        return self._by_id.get(vehicle_id)

    def remove_vehicle(self, owner_id, vehicle_id):
        vehicle = self._by_id.get(vehicle_id)
        if vehicle is None:
            raise NotFoundError("NotFound", f"Vehicle {vehicle_id} not found")
        with self._plate_locks.hold(vehicle.plate):
            # Re-read under the lock: a concurrent removal may have won
            vehicle = self._by_id.get(vehicle_id)
            if vehicle is None:
                raise NotFoundError("NotFound", f"Vehicle {vehicle_id} not found")
            if vehicle.owner_id != owner_id:
                raise NotOwnerError("NotOwner", "Only the owner can remove this vehicle")
            with self._stats_locks.hold(vehicle_id):
                del self._by_id[vehicle_id]
                del self._by_plate[vehicle.plate]
                self._stats.pop(vehicle_id, None)
        logger.info(f"Removed {vehicle.plate} for owner {owner_id}")
        return vehicle

    def list_by_owner(self, owner_id):
        return [v for v in list(self._by_id.values()) if v.owner_id == owner_id]

    def increment_stats(self, vehicle_id, searches=0, contacts=0, searched_at=None):
        with self._stats_locks.hold(vehicle_id):
            current = self._stats.get(vehicle_id)
            if current is None:
                return None
            updated = VehicleStats(
                vehicle_id=vehicle_id,
                total_searches=current.total_searches + searches,
                contact_requests=current.contact_requests + contacts,
                last_searched_at=searched_at or current.last_searched_at,
            )
            self._stats[vehicle_id] = updated
            return updated

    def get_stats(self, vehicle_id):
        return self._stats.get(vehicle_id)


# ── SQLAlchemy ───────────────────────────────────────────────────────────────

def _to_vehicle(row: VehicleRow) -> Vehicle:
    return Vehicle(
        vehicle_id=row.id,
        owner_id=row.owner_id,
        plate=row.plate,
        plate_family=PlateFamily(row.plate_family),
        wheel_category=WheelCategory(row.wheel_category),
        verified=bool(row.verified),
        created_at=row.created_at,
    )


def _to_stats(row: VehicleStatsRow) -> VehicleStats:
    return VehicleStats(
        vehicle_id=row.vehicle_id,
        total_searches=row.total_searches,
        contact_requests=row.contact_requests,
        last_searched_at=row.last_searched_at,
    )


class SqlVehicleRegistry(VehicleRegistry):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @retry_transient
    def register_vehicle(self, owner_id, plate, wheel_category):
        with self._session_factory() as db:
            existing = db.query(VehicleRow).filter(VehicleRow.plate == plate.value).first()
            if existing:
                raise _conflict(existing.owner_id, owner_id, plate.value)

            row = VehicleRow(
                id=new_id(),
                owner_id=owner_id,
                plate=plate.value,
                plate_family=plate.family.value,
                wheel_category=WheelCategory(wheel_category).value,
                verified=False,
                created_at=utcnow(),
            )
            db.add(row)
            db.add(VehicleStatsRow(vehicle_id=row.id, total_searches=0, contact_requests=0))
            try:
                db.commit()
            except IntegrityError:
                # Lost the race on the unique plate index
                db.rollback()
                winner = db.query(VehicleRow).filter(VehicleRow.plate == plate.value).first()
                raise _conflict(winner.owner_id if winner else None, owner_id, plate.value)

        logger.info(f"Registered {plate.value} ({plate.family.value}) for owner {owner_id}")
        return _to_vehicle(row)

    @retry_transient
    def find_by_plate(self, plate):
        with self._session_factory() as db:
            row = db.query(VehicleRow).filter(VehicleRow.plate == str(plate)).first()
            return _to_vehicle(row) if row else None

    @retry_transient
    def find_by_id(self, vehicle_id):
        with self._session_factory() as db:
            row = db.get(VehicleRow, vehicle_id)
            return _to_vehicle(row) if row else None

    @retry_transient
    def remove_vehicle(self, owner_id, vehicle_id):
        with self._session_factory() as db:
            row = db.get(VehicleRow, vehicle_id)
            if not row:
                raise NotFoundError("NotFound", f"Vehicle {vehicle_id} not found")
            if row.owner_id != owner_id:
                raise NotOwnerError("NotOwner", "Only the owner can remove this vehicle")
            vehicle = _to_vehicle(row)
            db.query(VehicleStatsRow).filter(VehicleStatsRow.vehicle_id == vehicle_id).delete()
            deleted = db.query(VehicleRow).filter(
                VehicleRow.id == vehicle_id, VehicleRow.owner_id == owner_id
            ).delete()
            if not deleted:
                db.rollback()
                raise NotFoundError("NotFound", f"Vehicle {vehicle_id} not found")
            db.commit()
        logger.info(f"Removed {vehicle.plate} for owner {owner_id}")
        return vehicle

    @retry_transient
    def list_by_owner(self, owner_id):
        with self._session_factory() as db:
            rows = db.query(VehicleRow).filter(VehicleRow.owner_id == owner_id).all()
            return [_to_vehicle(r) for r in rows]

    @retry_transient(attempts=1)     # not idempotent
    def increment_stats(self, vehicle_id, searches=0, contacts=0, searched_at=None):
        values = {
            "total_searches": VehicleStatsRow.total_searches + searches,
            "contact_requests": VehicleStatsRow.contact_requests + contacts,
        }
        if searched_at is not None:
            values["last_searched_at"] = searched_at
        with self._session_factory() as db:
            result = db.execute(
                update(VehicleStatsRow)
                .where(VehicleStatsRow.vehicle_id == vehicle_id)
                .values(**values)
            )
            if result.rowcount == 0:
                db.rollback()
                return None
            db.commit()
            row = db.get(VehicleStatsRow, vehicle_id)
            return _to_stats(row) if row else None

    @retry_transient
    def get_stats(self, vehicle_id):
        with self._session_factory() as db:
            row = db.get(VehicleStatsRow, vehicle_id)
            return _to_stats(row) if row else None
