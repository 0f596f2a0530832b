"""Notification routes — create, list and mark notifications read."""

from fastapi import APIRouter, Depends, HTTPException, Query

from managemate.api.deps import get_notification_service
from managemate.schemas.notification import (
    MarkAllRead,
    NotificationCreate,
    NotificationRead,
)
from managemate.services.notification_service import (
    InvalidNotificationType,
    NotificationService,
)

router = APIRouter()


@router.post("/notifications", response_model=NotificationRead, status_code=201)
async def create_notification(
    body: NotificationCreate,
    svc: NotificationService = Depends(get_notification_service),
):
    """Store a notification and publish it on the notifications channel."""
    try:
        return await svc.create_notification(
            recipient_id=body.recipient_id,
            message=body.message,
            type=body.type,
            link=body.link,
        )
    except (InvalidNotificationType, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/notifications", response_model=list[NotificationRead])
async def list_notifications(
    recipient_id: str = Query(..., description="User whose notifications to list"),
    limit: int = Query(50, ge=1, le=200),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.notifications.list_for_recipient(recipient_id, limit=limit)


@router.post("/notifications/mark-all-read")
async def mark_all_read(
    body: MarkAllRead,
    svc: NotificationService = Depends(get_notification_service),
):
    updated = await svc.notifications.mark_all_read(body.recipient_id)
    return {"updated": updated}


@router.patch("/notifications/{notification_id}", response_model=NotificationRead)
async def mark_read(
    notification_id: str,
    svc: NotificationService = Depends(get_notification_service),
):
    notification = await svc.notifications.mark_read(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
