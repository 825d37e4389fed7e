# platelink/schemas/activity.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from platelink.domain import ActivityKind, NotificationKind


class ActivityEventOut(BaseModel):
    event_id: str
    kind: ActivityKind
    user_id: Optional[str]
    plate: Optional[str]
    vehicle_id: Optional[str]
    found: Optional[bool]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationOut(BaseModel):
    notification_id: str
    user_id: str
    kind: NotificationKind
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
