"""User Notifications API - In-app notification inbox endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, HTTPException
from pydantic import BaseModel

from ..deps import get_current_user_dep
from ...domain.models import ActorContext, Notification
from ...domain.errors import DomainError
from ...services.notification_service import NotificationService
from ...utils.time import format_iso
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class NotificationResponse(BaseModel):
    """Single notification response"""
    notification_id: str
    process_id: Optional[str] = None
    message: str
    type: str
    is_read: bool
    created_at: str
    read_at: Optional[str] = None

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            notification_id=notification.notification_id,
            process_id=notification.process_id,
            message=notification.message,
            type=notification.type.value,
            is_read=notification.is_read,
            created_at=format_iso(notification.created_at),
            read_at=format_iso(notification.read_at) if notification.read_at else None
        )


class NotificationListResponse(BaseModel):
    """List of notifications with metadata"""
    items: List[NotificationResponse]
    unread_count: int
    total: int


class SetReadRequest(BaseModel):
    """Toggle the read flag"""
    is_read: bool = True


class MarkReadResponse(BaseModel):
    """Response after marking notifications read"""
    success: bool
    marked_count: int


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Notifications for the current user, newest first, with the unread count"""
    service = NotificationService()
    notifications = service.list_for_user(
        actor.user_id, unread_only=unread_only, skip=skip, limit=limit
    )
    return NotificationListResponse(
        items=[NotificationResponse.from_notification(n) for n in notifications],
        unread_count=service.unread_count(actor.user_id),
        total=service.count_for_user(actor.user_id, unread_only=unread_only)
    )


@router.post("/mark-all-read", response_model=MarkReadResponse)
async def mark_all_read(
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Mark every unread notification of the current user as read"""
    count = NotificationService().mark_all_read(actor.user_id)
    return MarkReadResponse(success=True, marked_count=count)


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def set_notification_read(
    notification_id: str,
    request: SetReadRequest,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Mark one of the current user's notifications read or unread"""
    try:
        notification = NotificationService().set_read(
            notification_id, actor.user_id, request.is_read
        )
        return NotificationResponse.from_notification(notification)

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
