"""Workflow Service - Business logic for workflow template management"""
from typing import Any, Dict, List, Optional, Sequence

from ..domain.models import ActorContext, StepDefinition, WorkflowStep, WorkflowTemplate
from ..domain.form_models import FormSchema
from ..domain.enums import TemplateStatus, AuditAction
from ..domain.errors import TemplateNotFoundError, TemplateValidationError, ValidationError
from ..engine.engine import WorkflowEngine
from ..engine.effects import AuditEffect, build_effect_dispatcher
from ..repositories import Repositories, get_repositories
from ..utils.idgen import generate_template_id, generate_step_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """Service for workflow template operations"""

    def __init__(
        self,
        repos: Optional[Repositories] = None,
        engine: Optional[WorkflowEngine] = None
    ):
        self.repos = repos or get_repositories()
        self.repo = self.repos.templates
        self.engine = engine or WorkflowEngine(
            template_repo=self.repos.templates,
            process_repo=self.repos.processes,
            effect_dispatcher=build_effect_dispatcher(self.repos)
        )

    def create_template(
        self,
        name: str,
        description: Optional[str],
        steps: Sequence[StepDefinition],
        form_schema: Optional[FormSchema],
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> WorkflowTemplate:
        """Create a new workflow template (DRAFT)"""
        self.engine.permission_guard.ensure_can_manage_templates(actor)

        built_steps = self._build_steps(steps)
        now = utc_now()
        template = WorkflowTemplate(
            template_id=generate_template_id(),
            name=name,
            description=description,
            status=TemplateStatus.DRAFT,
            steps=built_steps,
            form_schema=form_schema,
            version=1,
            created_by=actor.user_id,
            created_at=now,
            updated_at=now
        )
        template = self.repo.create_template(template)

        logger.info(
            f"Created workflow template: {template.template_id}",
            extra={"template_id": template.template_id, "actor_id": actor.user_id}
        )
        self._audit(
            AuditAction.WORKFLOW_CREATED,
            actor,
            new_value={"name": template.name, "step_count": len(built_steps)},
            notes=f'Workflow "{template.name}" created',
            correlation_id=correlation_id
        )
        return template

    def get_template(self, template_id: str) -> WorkflowTemplate:
        """Get template by ID"""
        template = self.repo.get_template_with_steps(template_id)
        if template is None:
            raise TemplateNotFoundError(
                f"Workflow template not found: {template_id}",
                details={"template_id": template_id}
            )
        return template

    def list_templates(
        self,
        status: Optional[TemplateStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowTemplate]:
        """List templates"""
        return self.repo.list_templates(status=status, skip=skip, limit=limit)

    def count_templates(self, status: Optional[TemplateStatus] = None) -> int:
        """Count templates"""
        return self.repo.count_templates(status=status)

    def count_processes(self, template_id: str) -> int:
        """Number of processes started from a template"""
        return self.repos.processes.count_processes(template_id=template_id)

    def update_template(
        self,
        template_id: str,
        actor: ActorContext,
        name: Optional[str] = None,
        description: Optional[str] = None,
        steps: Optional[Sequence[StepDefinition]] = None,
        form_schema: Optional[FormSchema] = None,
        clear_form_schema: bool = False,
        correlation_id: Optional[str] = None
    ) -> WorkflowTemplate:
        """
        Update a template

        Name and description may change in any status. Steps and form schema
        are replaced wholesale and only while the template is not ACTIVE;
        a structural change bumps the version.
        """
        self.engine.permission_guard.ensure_can_manage_templates(actor)
        current = self.get_template(template_id)

        structural = steps is not None or form_schema is not None or clear_form_schema
        if structural and current.status == TemplateStatus.ACTIVE:
            raise TemplateValidationError(
                "Cannot change steps or form of an active workflow; set it to DRAFT first",
                details={"template_id": template_id, "status": current.status.value}
            )

        updates: Dict[str, Any] = {"updated_at": utc_now()}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if steps is not None:
            updates["steps"] = self._build_steps(steps)
        if clear_form_schema:
            updates["form_schema"] = None
        elif form_schema is not None:
            updates["form_schema"] = form_schema
        if structural:
            updates["version"] = current.version + 1

        replacement = WorkflowTemplate.model_validate(
            {**current.model_dump(), **updates}
        )
        updated = self.repo.replace_template(replacement, expected_version=current.version)

        logger.info(
            f"Updated workflow template: {template_id}",
            extra={"template_id": template_id, "actor_id": actor.user_id}
        )
        self._audit(
            AuditAction.WORKFLOW_UPDATED,
            actor,
            previous_value={"name": current.name, "version": current.version},
            new_value={"name": updated.name, "version": updated.version},
            notes=f'Workflow "{updated.name}" updated',
            correlation_id=correlation_id
        )
        return updated

    def set_status(
        self,
        template_id: str,
        status: TemplateStatus,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> WorkflowTemplate:
        """Change lifecycle status, activation guards included"""
        return self.engine.set_template_status(template_id, status, actor, correlation_id)

    def delete_template(
        self,
        template_id: str,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> bool:
        """
        Delete a template

        Only templates without processes can be deleted; the others should be
        archived instead.
        """
        self.engine.permission_guard.ensure_can_manage_templates(actor)
        template = self.get_template(template_id)

        process_count = self.count_processes(template_id)
        if process_count > 0:
            raise ValidationError(
                "Cannot delete workflow with existing processes. Archive it instead.",
                details={"template_id": template_id, "process_count": process_count}
            )

        deleted = self.repo.delete_template(template_id)
        if deleted:
            logger.info(
                f"Deleted workflow template: {template_id}",
                extra={"template_id": template_id, "actor_id": actor.user_id}
            )
            self._audit(
                AuditAction.WORKFLOW_DELETED,
                actor,
                previous_value={"name": template.name, "status": template.status.value},
                notes=f'Workflow "{template.name}" deleted',
                correlation_id=correlation_id
            )
        return deleted

    def _build_steps(self, steps: Sequence[StepDefinition]) -> List[WorkflowStep]:
        """Fresh step records with new ids, checked for order contiguity"""
        built = [
            WorkflowStep(
                step_id=generate_step_id(),
                step_order=step.step_order,
                step_type=step.step_type,
                name=step.name,
                config=dict(step.config)
            )
            for step in steps
        ]
        self.engine.template_guard.validate_structure(built)
        return sorted(built, key=lambda s: s.step_order)

    def _audit(
        self,
        action: AuditAction,
        actor: ActorContext,
        previous_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        self.engine.effect_dispatcher.dispatch(
            [
                AuditEffect(
                    action=action,
                    actor_id=actor.user_id,
                    previous_value=previous_value,
                    new_value=new_value,
                    notes=notes
                )
            ],
            correlation_id
        )
