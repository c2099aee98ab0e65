"""In-Memory Repositories - Lock-guarded storage for tests and local runs"""
import threading
from datetime import datetime
from typing import Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from ..domain.models import (
    WorkflowTemplate, ProcessInstance, ProcessStepInstance, StepContext,
    TransitionPlan, AuditLogEntry, Notification, User
)
from ..domain.enums import TemplateStatus, ProcessStatus, AuditAction, UserRole
from ..domain.errors import (
    TemplateNotFoundError, ProcessNotFoundError, StepNotPendingError,
    NotificationNotFoundError, ConcurrencyError, ValidationError, ProcessNotActiveError
)
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _copy(model: M) -> M:
    return model.model_copy(deep=True)


class MemoryStore:
    """Shared tables plus the lock that serialises every write"""

    def __init__(self):
        self.lock = threading.RLock()
        self.templates: Dict[str, WorkflowTemplate] = {}
        self.processes: Dict[str, ProcessInstance] = {}
        self.steps: Dict[str, ProcessStepInstance] = {}
        self.audit: List[AuditLogEntry] = []
        self.notifications: Dict[str, Notification] = {}
        self.users: Dict[str, User] = {}


class InMemoryTemplateRepository:
    """TemplateStore backed by a dict"""

    def __init__(self, store: MemoryStore):
        self._store = store

    def create_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        with self._store.lock:
            if template.template_id in self._store.templates:
                raise ValidationError(f"Workflow template {template.template_id} already exists")
            self._store.templates[template.template_id] = _copy(template)
        return template

    def get_template_with_steps(self, template_id: str) -> Optional[WorkflowTemplate]:
        with self._store.lock:
            template = self._store.templates.get(template_id)
            return _copy(template) if template else None

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> WorkflowTemplate:
        with self._store.lock:
            current = self._store.templates.get(template.template_id)
            if current is None:
                raise TemplateNotFoundError(f"Workflow template not found: {template.template_id}")
            if current.version != expected_version:
                raise ConcurrencyError(
                    "Workflow template was modified by another request",
                    details={"template_id": template.template_id, "expected_version": expected_version}
                )
            self._store.templates[template.template_id] = _copy(template)
        return _copy(template)

    def update_status(self, template_id: str, status: TemplateStatus) -> WorkflowTemplate:
        with self._store.lock:
            current = self._store.templates.get(template_id)
            if current is None:
                raise TemplateNotFoundError(f"Workflow template not found: {template_id}")
            updated = current.model_copy(update={"status": status, "updated_at": utc_now()}, deep=True)
            self._store.templates[template_id] = updated
            return _copy(updated)

    def list_templates(
        self,
        status: Optional[TemplateStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowTemplate]:
        with self._store.lock:
            matches = [t for t in self._store.templates.values() if status is None or t.status == status]
        matches.sort(key=lambda t: t.updated_at, reverse=True)
        return [_copy(t) for t in matches[skip:skip + limit]]

    def count_templates(self, status: Optional[TemplateStatus] = None) -> int:
        with self._store.lock:
            return sum(1 for t in self._store.templates.values() if status is None or t.status == status)

    def delete_template(self, template_id: str) -> bool:
        with self._store.lock:
            return self._store.templates.pop(template_id, None) is not None


class InMemoryProcessRepository:
    """ProcessRepository with staged writes applied under the store lock"""

    def __init__(self, store: MemoryStore):
        self._store = store

    def create_process_with_steps(
        self,
        process: ProcessInstance,
        steps: Sequence[ProcessStepInstance]
    ) -> ProcessInstance:
        with self._store.lock:
            if process.process_id in self._store.processes:
                raise ValidationError(f"Process {process.process_id} already exists")
            self._store.processes[process.process_id] = _copy(process)
            for step in steps:
                self._store.steps[step.step_instance_id] = _copy(step)
        return process

    def apply_transition(self, plan: TransitionPlan) -> ProcessInstance:
        with self._store.lock:
            process = self._store.processes.get(plan.process_id)
            if process is None:
                raise ProcessNotFoundError(f"Process not found: {plan.process_id}")
            if process.status not in plan.expected_process_statuses:
                raise ProcessNotActiveError(
                    "Process no longer accepts step actions",
                    details={"process_id": plan.process_id, "status": process.status.value}
                )

            # Stage every change first so a failed check leaves nothing behind
            staged: Dict[str, ProcessStepInstance] = {}
            for update in plan.step_updates:
                current = self._store.steps.get(update.step_instance_id)
                if (
                    current is None
                    or current.process_id != plan.process_id
                    or current.status != update.expected_status
                ):
                    raise StepNotPendingError(
                        "Step is not pending",
                        details={"step_id": update.step_instance_id}
                    )
                changes = {"status": update.status, "acted_at": update.acted_at}
                if update.acted_by is not None:
                    changes["acted_by"] = update.acted_by
                if update.comments is not None:
                    changes["comments"] = update.comments
                staged[update.step_instance_id] = current.model_copy(update=changes, deep=True)

            updated_process = process.model_copy(
                update={"status": plan.process_status, "updated_at": plan.updated_at},
                deep=True
            )
            self._store.steps.update(staged)
            self._store.processes[plan.process_id] = updated_process
            return _copy(updated_process)

    def get_step_with_context(self, step_instance_id: str) -> Optional[StepContext]:
        with self._store.lock:
            step = self._store.steps.get(step_instance_id)
            if step is None:
                return None
            process = self._store.processes.get(step.process_id)
            if process is None:
                return None
            template = self._store.templates.get(process.template_id)
            return StepContext(
                step=_copy(step),
                process=_copy(process),
                steps=self.get_process_steps(process.process_id),
                template=_copy(template) if template else None
            )

    def get_process(self, process_id: str) -> Optional[ProcessInstance]:
        with self._store.lock:
            process = self._store.processes.get(process_id)
            return _copy(process) if process else None

    def get_process_steps(self, process_id: str) -> List[ProcessStepInstance]:
        with self._store.lock:
            steps = [_copy(s) for s in self._store.steps.values() if s.process_id == process_id]
        return sorted(steps, key=lambda s: s.step_order)

    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[ProcessInstance]:
        matches = self._filter(status, template_id, created_by)
        matches.sort(key=lambda p: p.created_at, reverse=True)
        return matches[skip:skip + limit]

    def count_processes(
        self,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> int:
        return len(self._filter(status, template_id, created_by))

    def _filter(
        self,
        status: Optional[ProcessStatus],
        template_id: Optional[str],
        created_by: Optional[str]
    ) -> List[ProcessInstance]:
        with self._store.lock:
            return [
                _copy(p) for p in self._store.processes.values()
                if (status is None or p.status == status)
                and (template_id is None or p.template_id == template_id)
                and (created_by is None or p.created_by == created_by)
            ]


class InMemoryAuditRepository:
    """Append-only list of audit entries"""

    def __init__(self, store: MemoryStore):
        self._store = store

    def create_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        with self._store.lock:
            self._store.audit.append(_copy(entry))
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
        matches = self._filter(process_id, actor_id, action, date_from, date_to)
        # Stable sort keeps insertion order among equal timestamps, newest first
        matches = list(reversed(matches))
        matches.sort(key=lambda e: e.created_at, reverse=True)
        return matches[skip:skip + limit]

    def count_entries(
        self,
        process_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> int:
        return len(self._filter(process_id, actor_id, action, date_from, date_to))

    def list_actions(self) -> List[str]:
        with self._store.lock:
            return sorted({e.action.value for e in self._store.audit})

    def _filter(
        self,
        process_id: Optional[str],
        actor_id: Optional[str],
        action: Optional[AuditAction],
        date_from: Optional[datetime],
        date_to: Optional[datetime]
    ) -> List[AuditLogEntry]:
        with self._store.lock:
            return [
                _copy(e) for e in self._store.audit
                if (process_id is None or e.process_id == process_id)
                and (actor_id is None or e.actor_id == actor_id)
                and (action is None or e.action == action)
                and (date_from is None or e.created_at >= date_from)
                and (date_to is None or e.created_at <= date_to)
            ]


class InMemoryNotificationRepository:
    """Notification inbox backed by a dict"""

    def __init__(self, store: MemoryStore):
        self._store = store

    def create_notification(self, notification: Notification) -> Notification:
        with self._store.lock:
            self._store.notifications[notification.notification_id] = _copy(notification)
        return notification

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self._store.lock:
            notification = self._store.notifications.get(notification_id)
            return _copy(notification) if notification else None

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> List[Notification]:
        matches = list(reversed(self._filter(user_id, unread_only)))
        matches.sort(key=lambda n: n.created_at, reverse=True)
        return matches[skip:skip + limit]

    def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        return len(self._filter(user_id, unread_only))

    def set_read(self, notification_id: str, is_read: bool) -> Notification:
        with self._store.lock:
            current = self._store.notifications.get(notification_id)
            if current is None:
                raise NotificationNotFoundError(f"Notification {notification_id} not found")
            updated = current.model_copy(
                update={"is_read": is_read, "read_at": utc_now() if is_read else None},
                deep=True
            )
            self._store.notifications[notification_id] = updated
            return _copy(updated)

    def mark_all_read(self, user_id: str) -> int:
        now = utc_now()
        count = 0
        with self._store.lock:
            for notification_id, n in self._store.notifications.items():
                if n.user_id == user_id and not n.is_read:
                    self._store.notifications[notification_id] = n.model_copy(
                        update={"is_read": True, "read_at": now}, deep=True
                    )
                    count += 1
        return count

    def _filter(self, user_id: str, unread_only: bool) -> List[Notification]:
        with self._store.lock:
            return [
                _copy(n) for n in self._store.notifications.values()
                if n.user_id == user_id and (not unread_only or not n.is_read)
            ]


class InMemoryUserRepository:
    """User directory backed by a dict"""

    def __init__(self, store: MemoryStore):
        self._store = store

    def create_user(self, user: User) -> User:
        with self._store.lock:
            if any(u.email == user.email for u in self._store.users.values()):
                raise ValidationError(f"User {user.email} already exists")
            self._store.users[user.user_id] = _copy(user)
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._store.lock:
            user = self._store.users.get(user_id)
            return _copy(user) if user else None

    def list_by_roles(self, roles: Sequence[UserRole]) -> List[User]:
        wanted = {UserRole(role) for role in roles}
        with self._store.lock:
            matches = [_copy(u) for u in self._store.users.values() if u.role in wanted]
        return sorted(matches, key=lambda u: u.email)
