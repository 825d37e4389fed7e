# platelink/services/vehicle_service.py
"""
Owner-facing vehicle flows: add a plate, remove a plate, list my plates.
Normalizes the raw plate, checks the owner exists, calls the registry, and
leaves an activity trail. Used by the vehicles router.
"""

from platelink.domain import ActivityKind, WheelCategory
from platelink.errors import NotFoundError, NotOwnerError, ValidationError
from platelink.services import plate_normalizer
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


def _wheel_category(value) -> WheelCategory:
    try:
        return WheelCategory(value)
    except ValueError:
        allowed = ", ".join(c.value for c in WheelCategory)
        raise ValidationError("InvalidWheelCategory", f"wheel_category must be one of: {allowed}")


def register_vehicle(backend, owner_id: str, raw_plate: str, wheel_category):
    """Register `raw_plate` for `owner_id`. Raises ValidationError / ConflictError / NotFoundError."""
    plate = plate_normalizer.normalize(raw_plate)
    category = _wheel_category(wheel_category)
    backend.users.require(owner_id)

    vehicle = backend.registry.register_vehicle(owner_id, plate, category)
    backend.activity.record(ActivityKind.VEHICLE_ADDED, user_id=owner_id,
                            plate=vehicle.plate, vehicle_id=vehicle.vehicle_id)
    return vehicle


def remove_vehicle(backend, owner_id: str, vehicle_id: str):
    vehicle = backend.registry.remove_vehicle(owner_id, vehicle_id)
    backend.activity.record(ActivityKind.VEHICLE_DELETED, user_id=owner_id,
                            plate=vehicle.plate, vehicle_id=vehicle.vehicle_id)
    return vehicle


def list_vehicles(backend, owner_id: str):
    return backend.registry.list_by_owner(owner_id)


def is_registered(backend, raw_plate: str) -> bool:
    """Check if a plate is registered, without counting it as a search."""
    return backend.registry.find_by_plate(plate_normalizer.normalize(raw_plate).value) is not None


def contact_history(backend, owner_id: str, vehicle_id: str, limit: int = 20):
    """Reveals made against one of the owner's vehicles."""
    vehicle = backend.registry.find_by_id(vehicle_id)
    if vehicle is None:
        raise NotFoundError("VehicleNotFound", f"Vehicle {vehicle_id} not found")
    if vehicle.owner_id != owner_id:
        raise NotOwnerError("NotOwner", "Only the owner can see who contacted this vehicle")
    return backend.activity.contacts_for_vehicle(vehicle_id, limit)
