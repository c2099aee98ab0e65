"""Permission Guard - Role and ownership enforcement for engine and service operations"""
from ..domain.models import ActorContext, ProcessInstance
from ..domain.enums import UserRole, ELEVATED_ROLES
from ..domain.errors import ForbiddenError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement

    Rules:
    - Only ADMIN and APPROVER users act on approval steps
    - Only ADMIN users manage workflow templates and read the audit log
    - USER role sees only the processes it created
    """

    def is_elevated(self, actor: ActorContext) -> bool:
        """Check if actor belongs to the approver pool"""
        return actor.role in ELEVATED_ROLES

    def is_admin(self, actor: ActorContext) -> bool:
        return actor.role == UserRole.ADMIN

    def can_view_process(self, actor: ActorContext, process: ProcessInstance) -> bool:
        """Approvers see everything, others only their own processes"""
        return self.is_elevated(actor) or process.created_by == actor.user_id

    def ensure_can_act_on_step(self, actor: ActorContext) -> None:
        """Raise ForbiddenError unless actor may approve/reject steps"""
        if not self.is_elevated(actor):
            logger.warning(
                f"Actor {actor.user_id} with role {actor.role.value} tried to act on a step",
                extra={"actor_id": actor.user_id}
            )
            raise ForbiddenError(
                "Only approvers and admins can act on approval steps",
                details={"role": actor.role.value}
            )

    def ensure_can_manage_templates(self, actor: ActorContext) -> None:
        """Raise ForbiddenError unless actor is ADMIN"""
        if not self.is_admin(actor):
            raise ForbiddenError(
                "Only admins can manage workflow templates",
                details={"role": actor.role.value}
            )

    def ensure_can_view_process(self, actor: ActorContext, process: ProcessInstance) -> None:
        """Raise ForbiddenError if actor may not see the process"""
        if not self.can_view_process(actor, process):
            raise ForbiddenError(
                "You can only view processes you created",
                details={"process_id": process.process_id}
            )

    def ensure_can_view_audit(self, actor: ActorContext) -> None:
        """Raise ForbiddenError unless actor is ADMIN"""
        if not self.is_admin(actor):
            raise ForbiddenError("Only admins can view the audit log")
