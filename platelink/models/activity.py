# platelink/models/activity.py
"""
Activity history + owner notifications.
Rows here outlive the vehicles they mention; removal of a vehicle never
touches them.
"""

from sqlalchemy import Column, String, DateTime, Boolean, Text
from platelink.database import Base


class ActivityEvent(Base):
    __tablename__ = "activity_events"

    id = Column(String(36), primary_key=True)
    kind = Column(String(30), nullable=False, index=True)
    user_id = Column(String(36), index=True)
    plate = Column(String(12))
    vehicle_id = Column(String(36), index=True)
    found = Column(Boolean)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityEvent {self.kind} user={self.user_id} plate={self.plate}>"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    kind = Column(String(30), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Notification {self.id} kind={self.kind} read={self.is_read}>"
