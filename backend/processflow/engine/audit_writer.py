"""Audit Writer - Append-only audit entries"""
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..domain.models import AuditLogEntry
from ..domain.enums import AuditAction
from ..utils.idgen import generate_audit_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.base import AuditRepository

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit entries (append-only)

    Every process and template state change produces one entry.
    """

    def __init__(self, repo: "AuditRepository"):
        self.repo = repo

    def record(
        self,
        action: AuditAction,
        actor_id: str,
        process_id: Optional[str] = None,
        previous_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> AuditLogEntry:
        """Write a single audit entry"""
        entry = AuditLogEntry(
            audit_id=generate_audit_id(),
            action=action,
            actor_id=actor_id,
            process_id=process_id,
            previous_value=previous_value,
            new_value=new_value,
            notes=notes,
            created_at=utc_now(),
            correlation_id=correlation_id
        )
        saved = self.repo.create_entry(entry)
        logger.debug(
            f"Audit entry {saved.audit_id}: {action.value}",
            extra={"action": action.value, "process_id": process_id, "actor_id": actor_id}
        )
        return saved
