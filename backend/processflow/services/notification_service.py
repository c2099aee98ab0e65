"""Notification Service - In-app notification dispatch and inbox operations"""
from typing import List, Optional, TYPE_CHECKING

from ..domain.models import Notification
from ..domain.enums import NotificationType, CreatorNotice, ELEVATED_ROLES
from ..domain.errors import NotificationNotFoundError, ForbiddenError
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.base import NotificationRepository, UserRepository

logger = get_logger(__name__)


class NotificationService:
    """Service for creating and reading in-app notifications"""

    # Notification type per creator notice
    CREATOR_NOTICE_TYPES = {
        CreatorNotice.APPROVED: NotificationType.UPDATE,
        CreatorNotice.REJECTED: NotificationType.ACTION_REQUIRED,
        CreatorNotice.CHANGES_REQUESTED: NotificationType.ACTION_REQUIRED,
    }

    def __init__(
        self,
        notification_repo: Optional["NotificationRepository"] = None,
        user_repo: Optional["UserRepository"] = None
    ):
        if notification_repo is None or user_repo is None:
            from ..repositories import get_repositories
            repos = get_repositories()
            notification_repo = notification_repo or repos.notifications
            user_repo = user_repo or repos.users
        self.repo = notification_repo
        self.user_repo = user_repo

    # =========================================================================
    # Dispatch
    # =========================================================================

    def notify_user(
        self,
        user_id: str,
        message: str,
        notification_type: NotificationType = NotificationType.INFO,
        process_id: Optional[str] = None
    ) -> Notification:
        """Create one notification for one user"""
        notification = Notification(
            notification_id=generate_notification_id(),
            user_id=user_id,
            process_id=process_id,
            message=message,
            type=notification_type,
            is_read=False,
            created_at=utc_now()
        )
        return self.repo.create_notification(notification)

    def notify_approver_pool(
        self,
        message: str,
        process_id: Optional[str] = None
    ) -> List[Notification]:
        """One ACTION_REQUIRED notification per ADMIN/APPROVER user"""
        approvers = self.user_repo.list_by_roles(ELEVATED_ROLES)
        if not approvers:
            logger.warning(
                "Approver pool is empty, nobody notified",
                extra={"process_id": process_id}
            )
        return [
            self.notify_user(
                user_id=approver.user_id,
                message=message,
                notification_type=NotificationType.ACTION_REQUIRED,
                process_id=process_id
            )
            for approver in approvers
        ]

    def notify_process_creator(
        self,
        process_id: str,
        creator_id: str,
        notice: CreatorNotice,
        template_name: str,
        actor_name: Optional[str] = None
    ) -> Notification:
        """Tell the creator what happened to their request"""
        return self.notify_user(
            user_id=creator_id,
            message=self.creator_message(notice, template_name, actor_name),
            notification_type=self.CREATOR_NOTICE_TYPES[notice],
            process_id=process_id
        )

    @staticmethod
    def creator_message(
        notice: CreatorNotice,
        template_name: str,
        actor_name: Optional[str] = None
    ) -> str:
        """Message text for a creator notice"""
        by_actor = f" by {actor_name}" if actor_name else ""
        if notice == CreatorNotice.APPROVED:
            return f'Your request "{template_name}" has been approved{by_actor}'
        if notice == CreatorNotice.REJECTED:
            return f'Your request "{template_name}" has been rejected{by_actor}'
        return f'Changes requested for your "{template_name}" request{by_actor}'

    # =========================================================================
    # Inbox
    # =========================================================================

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> List[Notification]:
        """List a user's notifications, newest first"""
        return self.repo.list_for_user(user_id, unread_only=unread_only, skip=skip, limit=limit)

    def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        """Count a user's notifications"""
        return self.repo.count_for_user(user_id, unread_only=unread_only)

    def unread_count(self, user_id: str) -> int:
        """Count unread notifications"""
        return self.repo.count_for_user(user_id, unread_only=True)

    def set_read(self, notification_id: str, user_id: str, is_read: bool = True) -> Notification:
        """
        Toggle the read flag on one of the user's notifications

        Raises:
            NotificationNotFoundError: Unknown notification
            ForbiddenError: Notification belongs to another user
        """
        notification = self.repo.get_notification(notification_id)
        if notification is None:
            raise NotificationNotFoundError(
                f"Notification {notification_id} not found",
                details={"notification_id": notification_id}
            )
        if notification.user_id != user_id:
            raise ForbiddenError(
                "You can only update your own notifications",
                details={"notification_id": notification_id}
            )
        return self.repo.set_read(notification_id, is_read)

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification read. Returns count updated."""
        return self.repo.mark_all_read(user_id)
