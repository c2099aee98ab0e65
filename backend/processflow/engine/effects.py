"""Post-Commit Effects - Audit and notification side effects run after a transaction"""
from typing import Any, Dict, List, Literal, Optional, Sequence, Union, TYPE_CHECKING
from pydantic import BaseModel, Field

from ..domain.enums import AuditAction, CreatorNotice, NotificationType
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .audit_writer import AuditWriter
    from ..services.notification_service import NotificationService
    from ..repositories import Repositories

logger = get_logger(__name__)


# ============================================================================
# Effect records
# ============================================================================

class AuditEffect(BaseModel):
    """Append an audit log entry"""
    kind: Literal["audit"] = "audit"
    action: AuditAction
    actor_id: str
    process_id: Optional[str] = None
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class NotifyUserEffect(BaseModel):
    """Send one notification to a single user"""
    kind: Literal["notify_user"] = "notify_user"
    user_id: str
    message: str
    type: NotificationType = NotificationType.INFO
    process_id: Optional[str] = None


class NotifyApproverPoolEffect(BaseModel):
    """Tell every ADMIN/APPROVER user about a pending approval"""
    kind: Literal["notify_approver_pool"] = "notify_approver_pool"
    process_id: str
    template_name: str


class NotifyCreatorEffect(BaseModel):
    """Tell a process creator about the outcome of an action"""
    kind: Literal["notify_creator"] = "notify_creator"
    process_id: str
    creator_id: str
    notice: CreatorNotice
    template_name: str
    actor_name: Optional[str] = None


Effect = Union[AuditEffect, NotifyUserEffect, NotifyApproverPoolEffect, NotifyCreatorEffect]


# ============================================================================
# Dispatcher
# ============================================================================

class EffectDispatcher:
    """
    Run effects one at a time after the owning transaction committed

    A failing effect is logged and skipped; it never reaches the caller and
    never stops the remaining effects.
    """

    def __init__(
        self,
        audit_writer: "AuditWriter",
        notification_service: "NotificationService"
    ):
        self.audit_writer = audit_writer
        self.notification_service = notification_service

    def dispatch(
        self,
        effects: Sequence[Effect],
        correlation_id: Optional[str] = None
    ) -> List[Effect]:
        """
        Execute effects in order

        Returns:
            The effects that failed
        """
        failed: List[Effect] = []
        for effect in effects:
            try:
                self._run(effect, correlation_id)
            except Exception as e:
                failed.append(effect)
                logger.warning(
                    f"Post-commit effect {effect.kind} failed: {e}",
                    exc_info=True,
                    extra={
                        "effect": effect.kind,
                        "process_id": getattr(effect, "process_id", None),
                        "correlation_id": correlation_id
                    }
                )
        return failed

    def _run(self, effect: Effect, correlation_id: Optional[str]) -> None:
        if isinstance(effect, AuditEffect):
            self.audit_writer.record(
                action=effect.action,
                actor_id=effect.actor_id,
                process_id=effect.process_id,
                previous_value=effect.previous_value,
                new_value=effect.new_value,
                notes=effect.notes,
                correlation_id=correlation_id
            )
        elif isinstance(effect, NotifyUserEffect):
            self.notification_service.notify_user(
                user_id=effect.user_id,
                message=effect.message,
                notification_type=effect.type,
                process_id=effect.process_id
            )
        elif isinstance(effect, NotifyApproverPoolEffect):
            self.notification_service.notify_approver_pool(
                message=f"New approval request: {effect.template_name}",
                process_id=effect.process_id
            )
        elif isinstance(effect, NotifyCreatorEffect):
            self.notification_service.notify_process_creator(
                process_id=effect.process_id,
                creator_id=effect.creator_id,
                notice=effect.notice,
                template_name=effect.template_name,
                actor_name=effect.actor_name
            )
        else:
            raise TypeError(f"Unknown effect: {effect!r}")


def build_effect_dispatcher(repos: "Repositories") -> EffectDispatcher:
    """Dispatcher writing to the audit and notification repositories of one backend"""
    from .audit_writer import AuditWriter
    from ..services.notification_service import NotificationService

    return EffectDispatcher(
        audit_writer=AuditWriter(repos.audit),
        notification_service=NotificationService(
            notification_repo=repos.notifications,
            user_repo=repos.users
        )
    )
