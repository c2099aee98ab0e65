"""Audit API Routes - Audit log browsing for admins"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..deps import get_current_user_dep, page_to_skip
from ...domain.models import ActorContext
from ...domain.enums import AuditAction
from ...domain.errors import DomainError, ValidationError
from ...services.audit_service import AuditService
from ...utils.time import parse_iso

router = APIRouter()


class AuditListResponse(BaseModel):
    """Response for audit log list"""
    items: List[Dict[str, Any]]
    actions: List[str]
    page: int
    page_size: int
    total: int


def _parse_bound(name: str, value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_iso(value)
    except (ValueError, OverflowError):
        raise ValidationError(f"Invalid {name}: {value}", details={name: value})


@router.get("", response_model=AuditListResponse)
async def list_audit_entries(
    process_id: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    start_date: Optional[str] = Query(None, description="ISO 8601 lower bound"),
    end_date: Optional[str] = Query(None, description="ISO 8601 upper bound"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Audit entries, newest first, plus the distinct action tags (ADMIN)"""
    try:
        filters = {
            "process_id": process_id,
            "actor_id": actor_id,
            "action": action,
            "date_from": _parse_bound("start_date", start_date),
            "date_to": _parse_bound("end_date", end_date),
        }
        service = AuditService()
        entries = service.list_entries(
            actor, skip=page_to_skip(page, page_size), limit=page_size, **filters
        )
        return AuditListResponse(
            items=[e.model_dump(mode="json") for e in entries],
            actions=service.list_actions(actor),
            page=page,
            page_size=page_size,
            total=service.count_entries(actor, **filters)
        )

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
