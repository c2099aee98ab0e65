"""
Workflow Engine - The process execution state machine

This module contains the WorkflowEngine class that creates process instances
from workflow templates and moves them through their ordered steps.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor with repository, guard and dispatcher collaborators

2. PROCESS CREATION
   - create_process: Validate, materialise step instances, persist

3. STEP ACTIONS
   - act_step: approve / reject / request_changes on a pending APPROVAL step
   - _load_actionable_step: Precondition checks, in order

4. TEMPLATE STATUS
   - set_template_status: Lifecycle change with activation guards

5. EFFECT BUILDING
   - Audit and notification effects, dispatched after commit

=============================================================================
DEPENDENCIES
=============================================================================

Repositories:
    - TemplateStore: Template definitions (read-only here except status)
    - ProcessRepository: Processes and step instances, transactional

Guards & Resolvers:
    - PermissionGuard: Role checks
    - TemplateGuard: Activation rules
    - FormValidator: Form data checks at creation
    - TransitionResolver: Next-step planning

Effects:
    - EffectDispatcher: Audit sink and notification dispatcher, post-commit

=============================================================================
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..domain.models import (
    ActorContext, ProcessInstance, ProcessStepInstance, StepContext,
    TransitionPlan, WorkflowTemplate
)
from ..domain.enums import (
    TemplateStatus, StepType, StepAction, StepInstanceStatus, ProcessStatus,
    AuditAction, NotificationType,
    ACTIONABLE_PROCESS_STATUSES, ACTION_AUDIT_TAGS, ACTION_CREATOR_NOTICES
)
from ..domain.errors import (
    TemplateNotFoundError, StepNotFoundError, StepNotPendingError,
    ProcessNotActiveError, ValidationError, FormValidationError
)
from .permission_guard import PermissionGuard
from .template_guard import TemplateGuard
from .form_validator import FormValidator
from .transition_resolver import TransitionResolver
from .effects import (
    Effect, EffectDispatcher, AuditEffect, NotifyUserEffect, build_effect_dispatcher,
    NotifyApproverPoolEffect, NotifyCreatorEffect
)
from ..utils.idgen import generate_process_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.base import TemplateStore, ProcessRepository

logger = get_logger(__name__)


class WorkflowEngine:
    """
    The Workflow Engine - Central orchestrator for process execution

    Responsibilities:
    - Create process instances from ACTIVE templates
    - Apply approver decisions as single atomic transitions
    - Guard template activation
    - Emit audit and notification effects after each commit

    The actor is always passed in explicitly; the engine keeps no request state.
    """

    def __init__(
        self,
        template_repo: Optional["TemplateStore"] = None,
        process_repo: Optional["ProcessRepository"] = None,
        effect_dispatcher: Optional[EffectDispatcher] = None,
        permission_guard: Optional[PermissionGuard] = None,
        template_guard: Optional[TemplateGuard] = None,
        form_validator: Optional[FormValidator] = None,
        transition_resolver: Optional[TransitionResolver] = None
    ):
        if template_repo is None or process_repo is None or effect_dispatcher is None:
            from ..repositories import get_repositories

            repos = get_repositories()
            template_repo = template_repo or repos.templates
            process_repo = process_repo or repos.processes
            effect_dispatcher = effect_dispatcher or build_effect_dispatcher(repos)

        self.template_repo = template_repo
        self.process_repo = process_repo
        self.effect_dispatcher = effect_dispatcher
        self.permission_guard = permission_guard or PermissionGuard()
        self.template_guard = template_guard or TemplateGuard()
        self.form_validator = form_validator or FormValidator()
        self.transition_resolver = transition_resolver or TransitionResolver()

    # =========================================================================
    # Process Creation
    # =========================================================================

    def create_process(
        self,
        template_id: str,
        form_data: Optional[Dict[str, Any]],
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> ProcessInstance:
        """
        Create a new process instance from an ACTIVE template

        Algorithm:
        1. Check template exists, is ACTIVE and has steps
        2. Validate form data against the template's form schema
        3. Materialise one step instance per template step
           (a FORM first step is completed by the creator)
        4. Persist process and steps in one transaction
        5. Dispatch audit and notification effects

        Raises:
            TemplateNotFoundError: Unknown template
            ValidationError: Template not ACTIVE or without steps
            FormValidationError: Form data rejected by the form schema
        """
        form_data = dict(form_data or {})

        template = self.template_repo.get_template_with_steps(template_id)
        if template is None:
            raise TemplateNotFoundError(
                f"Workflow template not found: {template_id}",
                details={"template_id": template_id}
            )

        if template.status != TemplateStatus.ACTIVE:
            raise ValidationError(
                "Workflow is not active",
                details={"template_id": template_id, "status": template.status.value}
            )

        if not template.steps:
            raise ValidationError(
                "Workflow has no steps",
                details={"template_id": template_id}
            )

        field_errors = self.form_validator.validate(template.form_schema, form_data)
        if field_errors:
            raise FormValidationError(
                "Form data is invalid",
                details={"errors": field_errors}
            )

        now = utc_now()
        process = ProcessInstance(
            process_id=generate_process_id(),
            template_id=template.template_id,
            template_name=template.name,
            template_version=template.version,
            created_by=actor.user_id,
            form_data=form_data,
            status=ProcessStatus.IN_PROGRESS,
            created_at=now,
            updated_at=now
        )
        steps = self.transition_resolver.build_step_instances(
            template, process.process_id, actor.user_id, now
        )

        process = self.process_repo.create_process_with_steps(process, steps)

        logger.info(
            f"Created process {process.process_id} from template {template.template_id}",
            extra={
                "process_id": process.process_id,
                "template_id": template.template_id,
                "actor_id": actor.user_id,
                "correlation_id": correlation_id
            }
        )

        first_actionable = self.transition_resolver.first_actionable_step(steps)
        self.effect_dispatcher.dispatch(
            self._creation_effects(template, process, first_actionable, actor),
            correlation_id
        )
        return process

    def _creation_effects(
        self,
        template: WorkflowTemplate,
        process: ProcessInstance,
        first_actionable: Optional[ProcessStepInstance],
        actor: ActorContext
    ) -> List[Effect]:
        effects: List[Effect] = [
            AuditEffect(
                action=AuditAction.PROCESS_CREATED,
                actor_id=actor.user_id,
                process_id=process.process_id,
                new_value={"workflow_name": template.name, "form_data": process.form_data},
                notes=f'Process started for "{template.name}"'
            ),
            NotifyUserEffect(
                user_id=actor.user_id,
                message=f'Your "{template.name}" request has been submitted',
                type=NotificationType.INFO,
                process_id=process.process_id
            ),
        ]
        if first_actionable is not None and first_actionable.step_type == StepType.APPROVAL:
            effects.append(
                NotifyApproverPoolEffect(
                    process_id=process.process_id,
                    template_name=template.name
                )
            )
        return effects

    # =========================================================================
    # Step Actions
    # =========================================================================

    def act_step(
        self,
        process_id: str,
        step_id: str,
        action: StepAction,
        actor: ActorContext,
        comments: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ProcessInstance:
        """
        Apply an approver decision to a pending APPROVAL step

        Algorithm:
        1. Check preconditions (see _load_actionable_step)
        2. Plan the transition from the process's own step instances
        3. Apply the plan atomically; the repository re-checks PENDING
        4. Dispatch audit and notification effects

        Returns:
            The updated process
        """
        action = StepAction(action)
        context = self._load_actionable_step(process_id, step_id, actor)

        plan = self.transition_resolver.resolve_action(
            steps=context.steps,
            target=context.step,
            action=action,
            actor_id=actor.user_id,
            comments=comments,
            now=utc_now()
        )

        process = self.process_repo.apply_transition(plan)

        logger.info(
            f"Step {step_id} {action.value} by {actor.user_id}, process now {process.status.value}",
            extra={
                "process_id": process_id,
                "step_id": step_id,
                "action": action.value,
                "actor_id": actor.user_id,
                "status": process.status.value,
                "correlation_id": correlation_id
            }
        )

        self.effect_dispatcher.dispatch(
            self._action_effects(context, plan, action, actor, comments),
            correlation_id
        )
        return process

    def _load_actionable_step(
        self,
        process_id: str,
        step_id: str,
        actor: ActorContext
    ) -> StepContext:
        """
        Check action preconditions, in order:
        1. Step exists
        2. Step belongs to the process
        3. Step is PENDING
        4. Step is an APPROVAL step
        5. Actor is ADMIN or APPROVER
        6. Process is still active
        """
        context = self.process_repo.get_step_with_context(step_id)
        if context is None:
            raise StepNotFoundError(
                f"Step not found: {step_id}",
                details={"step_id": step_id}
            )

        step = context.step
        if step.process_id != process_id:
            raise ValidationError(
                "Step does not belong to this process",
                details={"step_id": step_id, "process_id": process_id}
            )

        if step.status != StepInstanceStatus.PENDING:
            raise StepNotPendingError(
                "Step is not pending",
                details={"step_id": step_id, "status": step.status.value}
            )

        if step.step_type != StepType.APPROVAL:
            raise ValidationError(
                "This step type does not support approval actions",
                details={"step_id": step_id, "step_type": step.step_type.value}
            )

        self.permission_guard.ensure_can_act_on_step(actor)

        if context.process.status not in ACTIONABLE_PROCESS_STATUSES:
            raise ProcessNotActiveError(
                "Process no longer accepts step actions",
                details={"process_id": process_id, "status": context.process.status.value}
            )

        return context

    def _action_effects(
        self,
        context: StepContext,
        plan: TransitionPlan,
        action: StepAction,
        actor: ActorContext,
        comments: Optional[str]
    ) -> List[Effect]:
        process = context.process
        step_name = context.step.step_name
        notes = f"{step_name}: {action.value}"
        if comments:
            notes = f"{notes} - {comments}"

        effects: List[Effect] = [
            AuditEffect(
                action=ACTION_AUDIT_TAGS[action],
                actor_id=actor.user_id,
                process_id=process.process_id,
                new_value={"step_name": step_name, "action": action.value, "comments": comments},
                notes=notes
            ),
            NotifyCreatorEffect(
                process_id=process.process_id,
                creator_id=process.created_by,
                notice=ACTION_CREATOR_NOTICES[action],
                template_name=process.template_name,
                actor_name=actor.display_name
            ),
        ]

        if (
            action == StepAction.APPROVE
            and plan.next_step is not None
            and plan.next_step.step_type == StepType.APPROVAL
        ):
            effects.append(
                NotifyApproverPoolEffect(
                    process_id=process.process_id,
                    template_name=process.template_name
                )
            )
        return effects

    # =========================================================================
    # Template Status
    # =========================================================================

    def set_template_status(
        self,
        template_id: str,
        new_status: TemplateStatus,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> WorkflowTemplate:
        """
        Change a template's lifecycle status

        Activation requires at least one step and, when a FORM step exists,
        a form schema. Other transitions are unguarded.

        Raises:
            TemplateNotFoundError: Unknown template
            ForbiddenError: Actor is not ADMIN
            TemplateValidationError: Activation guard failed
        """
        new_status = TemplateStatus(new_status)

        template = self.template_repo.get_template_with_steps(template_id)
        if template is None:
            raise TemplateNotFoundError(
                f"Workflow template not found: {template_id}",
                details={"template_id": template_id}
            )

        self.permission_guard.ensure_can_manage_templates(actor)

        if new_status == TemplateStatus.ACTIVE:
            self.template_guard.validate_activation(template)

        previous_status = template.status
        updated = self.template_repo.update_status(template_id, new_status)

        logger.info(
            f"Template {template_id} status {previous_status.value} -> {new_status.value}",
            extra={
                "template_id": template_id,
                "actor_id": actor.user_id,
                "status": new_status.value,
                "correlation_id": correlation_id
            }
        )

        self.effect_dispatcher.dispatch(
            [
                AuditEffect(
                    action=AuditAction.WORKFLOW_STATUS_CHANGED,
                    actor_id=actor.user_id,
                    previous_value={"status": previous_status.value},
                    new_value={"status": new_status.value},
                    notes=(
                        f'Workflow "{template.name}" status changed from '
                        f"{previous_status.value} to {new_status.value}"
                    )
                )
            ],
            correlation_id
        )
        return updated
