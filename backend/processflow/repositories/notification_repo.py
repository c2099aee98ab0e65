"""Notification Repository - Data access for the in-app notification inbox"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .mongo_client import get_collection, to_document, NOTIFICATIONS
from ..domain.models import Notification
from ..domain.errors import NotificationNotFoundError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for in-app notifications"""

    def __init__(self):
        self._collection: Collection = get_collection(NOTIFICATIONS)

    def create_notification(self, notification: Notification) -> Notification:
        """Persist a notification"""
        self._collection.insert_one(to_document(notification, notification.notification_id))
        logger.info(
            f"Created notification for {notification.user_id}",
            extra={
                "notification_id": notification.notification_id,
                "user_id": notification.user_id,
                "process_id": notification.process_id
            }
        )
        return notification

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        """Get a single notification by ID"""
        doc = self._collection.find_one({"_id": notification_id})
        return self._from_doc(doc) if doc else None

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> List[Notification]:
        """Get notifications for a user, newest first"""
        cursor = (
            self._collection.find(self._query(user_id, unread_only))
            .sort("created_at", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [self._from_doc(doc) for doc in cursor]

    def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        """Count notifications for a user"""
        return self._collection.count_documents(self._query(user_id, unread_only))

    def set_read(self, notification_id: str, is_read: bool) -> Notification:
        """Set or clear the read flag"""
        result = self._collection.find_one_and_update(
            {"_id": notification_id},
            {"$set": {"is_read": is_read, "read_at": utc_now() if is_read else None}},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return self._from_doc(result)

    def mark_all_read(self, user_id: str) -> int:
        """Mark all notifications as read for a user. Returns count of updated."""
        result = self._collection.update_many(
            {"user_id": user_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": utc_now()}}
        )
        logger.info(
            f"Marked {result.modified_count} notifications as read",
            extra={"user_id": user_id}
        )
        return result.modified_count

    def _query(self, user_id: str, unread_only: bool) -> Dict[str, Any]:
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False
        return query

    @staticmethod
    def _from_doc(doc: Dict[str, Any]) -> Notification:
        doc.pop("_id", None)
        return Notification.model_validate(doc)
