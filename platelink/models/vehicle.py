# platelink/models/vehicle.py
"""
Registered vehicles table + per-vehicle search statistics.
The unique index on plate is what keeps two owners from ever holding
the same plate, even when both insert at the same moment.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from platelink.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), nullable=False, index=True)
    plate = Column(String(12), unique=True, nullable=False, index=True)
    plate_family = Column(String(20), nullable=False)
    wheel_category = Column(String(20), nullable=False)   # two_wheeler | three_wheeler | four_wheeler | heavy | other
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Vehicle {self.plate} owner={self.owner_id} category={self.wheel_category}>"


class VehicleStats(Base):
    __tablename__ = "vehicle_stats"

    vehicle_id = Column(String(36), primary_key=True)     # vehicles.id, deleted with it
    total_searches = Column(Integer, default=0, nullable=False)
    contact_requests = Column(Integer, default=0, nullable=False)
    last_searched_at = Column(DateTime)

    def __repr__(self):
        return f"<VehicleStats {self.vehicle_id} searches={self.total_searches} contacts={self.contact_requests}>"
