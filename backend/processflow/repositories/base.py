"""Repository Protocols - Storage contracts the engine and services depend on"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..domain.models import (
    WorkflowTemplate, ProcessInstance, ProcessStepInstance, StepContext,
    TransitionPlan, AuditLogEntry, Notification, User
)
from ..domain.enums import TemplateStatus, ProcessStatus, AuditAction, UserRole


class TemplateStore(Protocol):
    """Workflow template storage. Read-only from the engine's point of view."""

    def create_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        """Persist a new template"""

    def get_template_with_steps(self, template_id: str) -> Optional[WorkflowTemplate]:
        """Get a template with its ordered steps and form schema"""

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> WorkflowTemplate:
        """Swap in a new definition if the stored version still matches"""

    def update_status(self, template_id: str, status: TemplateStatus) -> WorkflowTemplate:
        """Change the lifecycle status"""

    def list_templates(
        self,
        status: Optional[TemplateStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowTemplate]:
        """List templates, most recently updated first"""

    def count_templates(self, status: Optional[TemplateStatus] = None) -> int:
        """Count templates"""

    def delete_template(self, template_id: str) -> bool:
        """Delete a template. Returns True if deleted."""


class ProcessRepository(Protocol):
    """Durable, transactional storage for processes and their step instances"""

    def create_process_with_steps(
        self,
        process: ProcessInstance,
        steps: Sequence[ProcessStepInstance]
    ) -> ProcessInstance:
        """Insert a process and all its step instances atomically"""

    def apply_transition(self, plan: TransitionPlan) -> ProcessInstance:
        """
        Apply every step update and the process status change atomically

        Raises:
            StepNotPendingError: If a step no longer has its expected status
            ProcessNotActiveError: If the process left the expected statuses
            ProcessNotFoundError: If the process disappeared
        """

    def get_step_with_context(self, step_instance_id: str) -> Optional[StepContext]:
        """Get a step instance with its process, sibling steps and template"""

    def get_process(self, process_id: str) -> Optional[ProcessInstance]:
        """Get a process by ID"""

    def get_process_steps(self, process_id: str) -> List[ProcessStepInstance]:
        """Get step instances of a process ordered by step_order"""

    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[ProcessInstance]:
        """List processes, newest first"""

    def count_processes(
        self,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> int:
        """Count processes"""


class AuditRepository(Protocol):
    """Append-only audit log storage"""

    def create_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an entry"""

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

    def count_entries(
        self,
        process_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> int:
        """Count entries"""

    def list_actions(self) -> List[str]:
        """Distinct action tags present in the log"""


class NotificationRepository(Protocol):
    """In-app notification storage"""

    def create_notification(self, notification: Notification) -> Notification:
        """Persist a notification"""

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        """Get a notification by ID"""

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> List[Notification]:
        """List a user's notifications, newest first"""

    def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        """Count a user's notifications"""

    def set_read(self, notification_id: str, is_read: bool) -> Notification:
        """Toggle the read flag"""

    def mark_all_read(self, user_id: str) -> int:
        """Mark all unread notifications read. Returns count updated."""


class UserRepository(Protocol):
    """User directory"""

    def create_user(self, user: User) -> User:
        """Persist a user"""

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID"""

    def list_by_roles(self, roles: Sequence[UserRole]) -> List[User]:
        """Users holding any of the given roles"""


def build_query_filters(**filters: Any) -> Dict[str, Any]:
    """Drop unset filters so backends only match on what was provided"""
    return {key: value for key, value in filters.items() if value is not None}
