"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    UserRole, TemplateStatus, StepType, ProcessStatus, StepInstanceStatus,
    NotificationType, AuditAction, ACTIONABLE_PROCESS_STATUSES
)
from .form_models import FormSchema


# ============================================================================
# Users & Identity
# ============================================================================

class User(BaseModel):
    """Application user; ADMIN and APPROVER users form the approver pool"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    name: str = Field(..., description="Display name")
    role: UserRole = Field(default=UserRole.USER)


class ActorContext(BaseModel):
    """Identity and role of the caller, passed explicitly into every operation"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="User ID")
    email: str = Field(default="", description="User email")
    display_name: Optional[str] = Field(None, description="User display name")
    role: UserRole = Field(default=UserRole.USER)


# ============================================================================
# Workflow Templates
# ============================================================================

class WorkflowStep(BaseModel):
    """One step of a workflow template"""
    model_config = ConfigDict(extra="forbid")

    step_id: str = Field(..., description="Step ID")
    step_order: int = Field(..., ge=1, description="Execution sequence, contiguous from 1")
    step_type: StepType
    name: str = Field(..., min_length=1)
    config: Dict[str, Any] = Field(default_factory=dict)


class StepDefinition(BaseModel):
    """Step as submitted by the designer; ids are assigned on save"""
    model_config = ConfigDict(extra="forbid")

    step_order: int = Field(..., ge=1)
    step_type: StepType
    name: str = Field(..., min_length=1)
    config: Dict[str, Any] = Field(default_factory=dict)


class WorkflowTemplate(BaseModel):
    """Reusable workflow definition"""
    model_config = ConfigDict(extra="forbid")

    template_id: str
    name: str
    description: Optional[str] = None
    status: TemplateStatus = TemplateStatus.DRAFT
    steps: List[WorkflowStep] = Field(default_factory=list)
    form_schema: Optional[FormSchema] = None
    version: int = Field(default=1, description="Bumped whenever steps or form schema are swapped")
    created_by: str
    created_at: datetime
    updated_at: datetime

    @property
    def ordered_steps(self) -> List[WorkflowStep]:
        """Steps sorted by step_order"""
        return sorted(self.steps, key=lambda s: s.step_order)

    @property
    def has_form_step(self) -> bool:
        return any(s.step_type == StepType.FORM for s in self.steps)


# ============================================================================
# Process Instances
# ============================================================================

class ProcessInstance(BaseModel):
    """One execution of a workflow template"""
    model_config = ConfigDict(extra="forbid")

    process_id: str
    template_id: str
    template_name: str = Field(..., description="Template name when the process was created")
    template_version: int = Field(..., description="Template version when the process was created")
    created_by: str = Field(..., description="Creator user ID")
    form_data: Dict[str, Any] = Field(default_factory=dict)
    status: ProcessStatus = ProcessStatus.IN_PROGRESS
    created_at: datetime
    updated_at: datetime


class ProcessStepInstance(BaseModel):
    """Per-process tracking record for one template step"""
    model_config = ConfigDict(extra="forbid")

    step_instance_id: str
    process_id: str
    workflow_step_id: str
    # Snapshot of the template step, keeps history resolvable after template edits
    step_order: int = Field(..., ge=1)
    step_type: StepType
    step_name: str
    status: StepInstanceStatus = StepInstanceStatus.PENDING
    acted_by: Optional[str] = None
    acted_at: Optional[datetime] = None
    comments: Optional[str] = None


class StepContext(BaseModel):
    """A step instance together with its parent process and siblings"""
    step: ProcessStepInstance
    process: ProcessInstance
    steps: List[ProcessStepInstance] = Field(default_factory=list, description="All steps of the process, ordered")
    template: Optional[WorkflowTemplate] = Field(None, description="Current template, if it still exists")


class StepUpdate(BaseModel):
    """A single step instance change within a transition"""
    step_instance_id: str
    status: StepInstanceStatus
    acted_by: Optional[str] = None
    acted_at: datetime
    comments: Optional[str] = None
    expected_status: StepInstanceStatus = StepInstanceStatus.PENDING


class TransitionPlan(BaseModel):
    """All writes of one step action, applied atomically by the process repository"""
    process_id: str
    step_updates: List[StepUpdate]
    process_status: ProcessStatus
    updated_at: datetime
    expected_process_statuses: List[ProcessStatus] = Field(
        default_factory=lambda: list(ACTIONABLE_PROCESS_STATUSES),
        description="Process statuses the write is conditional on"
    )
    next_step: Optional[ProcessStepInstance] = Field(None, description="Step at step_order + 1 after an approval, if any")
    auto_completed_step: Optional[ProcessStepInstance] = None

    @property
    def completes_process(self) -> bool:
        return self.process_status == ProcessStatus.COMPLETED


# ============================================================================
# Audit & Notifications
# ============================================================================

class AuditLogEntry(BaseModel):
    """Append-only audit record"""
    model_config = ConfigDict(extra="forbid")

    audit_id: str
    action: AuditAction
    actor_id: str
    process_id: Optional[str] = None
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: datetime
    correlation_id: Optional[str] = None


class Notification(BaseModel):
    """Per-recipient in-app message"""
    model_config = ConfigDict(extra="forbid")

    notification_id: str
    user_id: str
    process_id: Optional[str] = None
    message: str
    type: NotificationType = NotificationType.INFO
    is_read: bool = False
    created_at: datetime
    read_at: Optional[datetime] = None
