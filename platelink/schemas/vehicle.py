# platelink/schemas/vehicle.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from platelink.domain import PlateFamily, WheelCategory
from platelink.schemas.user import ContactMethodsSchema


class VehicleCreate(BaseModel):
    owner_id: str
    raw_plate: str
    wheel_category: str      # two_wheeler | three_wheeler | four_wheeler | heavy | other


class VehicleRegistered(BaseModel):
    vehicle_id: str
    plate: str
    plate_family: PlateFamily


class VehicleOut(BaseModel):
    vehicle_id: str
    owner_id: str
    plate: str
    plate_family: PlateFamily
    wheel_category: WheelCategory
    verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class VehicleStatsOut(BaseModel):
    vehicle_id: str
    total_searches: int
    contact_requests: int
    last_searched_at: Optional[datetime]

    class Config:
        from_attributes = True


class MaskedOwnerOut(BaseModel):
    masked_name: str
    member_since: datetime
    contact_methods: ContactMethodsSchema
    contactable: bool

    class Config:
        from_attributes = True


class FoundMasked(BaseModel):
    found: bool = True
    plate: str
    plate_family: PlateFamily
    vehicle_id: str
    wheel_category: WheelCategory
    verified: bool
    registered_at: datetime
    total_searches: int
    owner: MaskedOwnerOut
