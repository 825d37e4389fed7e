# platelink/routers/activity.py
"""Search history, activity feed, and owner notifications."""

from fastapi import APIRouter, Depends, Query

from platelink.config import settings
from platelink.schemas.activity import ActivityEventOut, NotificationOut
from platelink.services.backend import Backend, get_backend

router = APIRouter()


def _clamp(limit: int) -> int:
    return min(limit, settings.HISTORY_MAX_LIMIT)


@router.get("/search/history", response_model=list[ActivityEventOut], summary="My recent searches")
def search_history(user_id: str, limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                   backend: Backend = Depends(get_backend)):
    return [ActivityEventOut.model_validate(e) for e in backend.activity.search_history(user_id, _clamp(limit))]


@router.get("/activity", response_model=list[ActivityEventOut], summary="My activity feed")
def activity_feed(user_id: str, limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                  backend: Backend = Depends(get_backend)):
    return [ActivityEventOut.model_validate(e) for e in backend.activity.activity(user_id, _clamp(limit))]


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(user_id: str, unread_only: bool = False,
                       limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1),
                       backend: Backend = Depends(get_backend)):
    notifications = backend.activity.notifications(user_id, unread_only=unread_only, limit=_clamp(limit))
    return [NotificationOut.model_validate(n) for n in notifications]


@router.put("/notifications/read-all", summary="Mark every notification as read")
def mark_all_notifications_read(user_id: str, backend: Backend = Depends(get_backend)):
    return {"user_id": user_id, "marked_read": backend.activity.mark_all_read(user_id)}


@router.put("/notifications/{notification_id}/read", summary="Mark a notification as read")
def mark_notification_read(notification_id: str, user_id: str, backend: Backend = Depends(get_backend)):
    backend.activity.mark_read(user_id, notification_id)
    return {"notification_id": notification_id, "is_read": True}


@router.delete("/notifications/{notification_id}", summary="Delete a notification")
def delete_notification(notification_id: str, user_id: str, backend: Backend = Depends(get_backend)):
    backend.activity.delete_notification(user_id, notification_id)
    return {"status": "deleted", "notification_id": notification_id}
