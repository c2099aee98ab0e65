"""Process Service - Business logic for process instances"""
from typing import Any, Dict, List, Optional

from ..domain.models import ActorContext, ProcessInstance, ProcessStepInstance, AuditLogEntry
from ..domain.enums import ProcessStatus, StepAction, UserRole
from ..domain.errors import ProcessNotFoundError
from ..engine.engine import WorkflowEngine
from ..engine.effects import build_effect_dispatcher
from ..repositories import Repositories, get_repositories
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProcessService:
    """Service for starting, acting on and reading processes"""

    def __init__(
        self,
        repos: Optional[Repositories] = None,
        engine: Optional[WorkflowEngine] = None
    ):
        self.repos = repos or get_repositories()
        self.repo = self.repos.processes
        self.engine = engine or WorkflowEngine(
            template_repo=self.repos.templates,
            process_repo=self.repos.processes,
            effect_dispatcher=build_effect_dispatcher(self.repos)
        )

    def create_process(
        self,
        template_id: str,
        form_data: Optional[Dict[str, Any]],
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> ProcessInstance:
        """Start a process from an ACTIVE template"""
        return self.engine.create_process(template_id, form_data, actor, correlation_id)

    def act_on_step(
        self,
        process_id: str,
        step_id: str,
        action: StepAction,
        actor: ActorContext,
        comments: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ProcessInstance:
        """Approve, reject or request changes on a pending approval step"""
        return self.engine.act_step(process_id, step_id, action, actor, comments, correlation_id)

    def get_process(self, process_id: str, actor: ActorContext) -> ProcessInstance:
        """Get process by ID, enforcing visibility"""
        process = self.repo.get_process(process_id)
        if process is None:
            raise ProcessNotFoundError(
                f"Process not found: {process_id}",
                details={"process_id": process_id}
            )
        self.engine.permission_guard.ensure_can_view_process(actor, process)
        return process

    def get_process_steps(self, process_id: str) -> List[ProcessStepInstance]:
        """Step instances ordered by step_order"""
        return self.repo.get_process_steps(process_id)

    def get_process_detail(self, process_id: str, actor: ActorContext) -> Dict[str, Any]:
        """
        Process with its ordered step instances and audit trail

        Returns:
            Dict with process, steps and audit_trail
        """
        process = self.get_process(process_id, actor)
        audit_trail: List[AuditLogEntry] = self.repos.audit.list_entries(
            process_id=process_id, limit=200
        )
        return {
            "process": process,
            "steps": self.get_process_steps(process_id),
            "audit_trail": audit_trail,
        }

    def list_processes(
        self,
        actor: ActorContext,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[ProcessInstance]:
        """List processes visible to the actor, newest first"""
        return self.repo.list_processes(
            status=status,
            template_id=template_id,
            created_by=self._visible_creator(actor, created_by),
            skip=skip,
            limit=limit
        )

    def count_processes(
        self,
        actor: ActorContext,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> int:
        """Count processes visible to the actor"""
        return self.repo.count_processes(
            status=status,
            template_id=template_id,
            created_by=self._visible_creator(actor, created_by)
        )

    def _visible_creator(self, actor: ActorContext, created_by: Optional[str]) -> Optional[str]:
        # USER role only ever sees its own processes
        if actor.role == UserRole.USER:
            return actor.user_id
        return created_by
