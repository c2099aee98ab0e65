"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class UserRole(str, Enum):
    """Application roles"""
    ADMIN = "ADMIN"
    APPROVER = "APPROVER"
    USER = "USER"


class TemplateStatus(str, Enum):
    """Workflow template lifecycle status"""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class StepType(str, Enum):
    """Types of workflow steps"""
    FORM = "FORM"
    APPROVAL = "APPROVAL"
    NOTIFICATION = "NOTIFICATION"  # No human interaction, auto-completes when reached


class ProcessStatus(str, Enum):
    """Aggregate process status"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class StepInstanceStatus(str, Enum):
    """Runtime status per process step"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


class StepAction(str, Enum):
    """Decisions an approver can take on a pending approval step"""
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"


class NotificationType(str, Enum):
    """In-app notification types"""
    INFO = "INFO"
    ACTION_REQUIRED = "ACTION_REQUIRED"
    UPDATE = "UPDATE"


class CreatorNotice(str, Enum):
    """Messages sent to a process creator"""
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


class AuditAction(str, Enum):
    """Audit log action tags"""
    PROCESS_CREATED = "PROCESS_CREATED"
    STEP_COMPLETED = "STEP_COMPLETED"
    STEP_REJECTED = "STEP_REJECTED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    WORKFLOW_CREATED = "WORKFLOW_CREATED"
    WORKFLOW_UPDATED = "WORKFLOW_UPDATED"
    WORKFLOW_STATUS_CHANGED = "WORKFLOW_STATUS_CHANGED"
    WORKFLOW_DELETED = "WORKFLOW_DELETED"


class FormFieldType(str, Enum):
    """Form field kinds"""
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    DROPDOWN = "dropdown"
    FILE = "file"


class ConditionOperator(str, Enum):
    """Operators for field visibility conditions"""
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN_OR_EQUALS = "GREATER_THAN_OR_EQUALS"
    LESS_THAN_OR_EQUALS = "LESS_THAN_OR_EQUALS"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    IN = "IN"
    NOT_IN = "NOT_IN"
    IS_EMPTY = "IS_EMPTY"
    IS_NOT_EMPTY = "IS_NOT_EMPTY"


# Roles allowed to act on approval steps (the approver pool)
ELEVATED_ROLES = (UserRole.ADMIN, UserRole.APPROVER)

# Process statuses that still accept step actions; COMPLETED and REJECTED are terminal
ACTIONABLE_PROCESS_STATUSES = (
    ProcessStatus.PENDING, ProcessStatus.IN_PROGRESS, ProcessStatus.CHANGES_REQUESTED
)

# Audit tag per approver decision
ACTION_AUDIT_TAGS = {
    StepAction.APPROVE: AuditAction.STEP_COMPLETED,
    StepAction.REJECT: AuditAction.STEP_REJECTED,
    StepAction.REQUEST_CHANGES: AuditAction.CHANGES_REQUESTED,
}

# Creator notice per approver decision
ACTION_CREATOR_NOTICES = {
    StepAction.APPROVE: CreatorNotice.APPROVED,
    StepAction.REJECT: CreatorNotice.REJECTED,
    StepAction.REQUEST_CHANGES: CreatorNotice.CHANGES_REQUESTED,
}
