"""Audit Service - Read access to the audit log"""
from datetime import datetime
from typing import List, Optional

from ..domain.models import ActorContext, AuditLogEntry
from ..domain.enums import AuditAction
from ..engine.permission_guard import PermissionGuard
from ..repositories import Repositories, get_repositories


class AuditService:
    """Service for querying audit entries (ADMIN only)"""

    def __init__(
        self,
        repos: Optional[Repositories] = None,
        permission_guard: Optional[PermissionGuard] = None
    ):
        self.repo = (repos or get_repositories()).audit
        self.permission_guard = permission_guard or PermissionGuard()

    def list_entries(
        self,
        actor: ActorContext,
        process_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[AuditLogEntry]:
        """List entries, newest first"""
        self.permission_guard.ensure_can_view_audit(actor)
        return self.repo.list_entries(
            process_id=process_id,
            actor_id=actor_id,
            action=action,
            date_from=date_from,
            date_to=date_to,
            skip=skip,
            limit=limit
        )

    def count_entries(
        self,
        actor: ActorContext,
        process_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> int:
        """Count entries"""
        self.permission_guard.ensure_can_view_audit(actor)
        return self.repo.count_entries(
            process_id=process_id,
            actor_id=actor_id,
            action=action,
            date_from=date_from,
            date_to=date_to
        )

    def list_actions(self, actor: ActorContext) -> List[str]:
        """Distinct action tags, for filter dropdowns"""
        self.permission_guard.ensure_can_view_audit(actor)
        return self.repo.list_actions()
