"""Audit Repository - Data access for audit log entries"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection, to_document, AUDIT_LOGS
from .base import build_query_filters
from ..domain.models import AuditLogEntry
from ..domain.enums import AuditAction
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit log entries (append-only)"""

    def __init__(self):
        self._audit_logs: Collection = get_collection(AUDIT_LOGS)

    def create_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Create an audit entry (append-only)"""
        self._audit_logs.insert_one(to_document(entry, entry.audit_id))
        logger.info(
            f"Created audit entry: {entry.action.value}",
            extra={
                "process_id": entry.process_id,
                "actor_id": entry.actor_id,
                "action": entry.action.value
            }
        )
        return entry

    def list_entries(
        self,
        process_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[AuditLogEntry]:
        """List entries, newest first"""
        query = self._query(process_id, actor_id, action, date_from, date_to)
        cursor = self._audit_logs.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)

        entries = []
        for doc in cursor:
            doc.pop("_id", None)
            entries.append(AuditLogEntry.model_validate(doc))
        return entries

    def count_entries(
        self,
        process_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> int:
        """Count entries"""
        return self._audit_logs.count_documents(
            self._query(process_id, actor_id, action, date_from, date_to)
        )

    def list_actions(self) -> List[str]:
        """Distinct action tags present in the log"""
        return sorted(self._audit_logs.distinct("action"))

    def _query(
        self,
        process_id: Optional[str],
        actor_id: Optional[str],
        action: Optional[AuditAction],
        date_from: Optional[datetime],
        date_to: Optional[datetime]
    ) -> Dict[str, Any]:
        query = build_query_filters(
            process_id=process_id,
            actor_id=actor_id,
            action=action.value if action else None
        )
        created_at: Dict[str, Any] = {}
        if date_from:
            created_at["$gte"] = date_from
        if date_to:
            created_at["$lte"] = date_to
        if created_at:
            query["created_at"] = created_at
        return query
