"""Template Guard - Structural and activation checks for workflow templates"""
from typing import Sequence

from ..domain.errors import TemplateValidationError
from ..domain.models import WorkflowStep, WorkflowTemplate


class TemplateGuard:
    """
    Guards run when a template is saved or its status changes

    Saving checks structure only; the activation rules are checked at the
    status-change boundary, so DRAFT templates may be incomplete.
    """

    def validate_structure(self, steps: Sequence[WorkflowStep]) -> None:
        """
        Step orders must be unique and contiguous from 1

        Raises:
            TemplateValidationError: If the ordering is broken
        """
        orders = sorted(step.step_order for step in steps)
        if len(set(orders)) != len(orders):
            raise TemplateValidationError(
                "Step order values must be unique",
                details={"step_orders": orders}
            )
        if orders != list(range(1, len(orders) + 1)):
            raise TemplateValidationError(
                "Step order values must be contiguous starting at 1",
                details={"step_orders": orders}
            )

    def validate_activation(self, template: WorkflowTemplate) -> None:
        """
        An ACTIVE template needs at least one step and, when any step is
        a FORM step, a form schema

        Raises:
            TemplateValidationError: If the template cannot be activated
        """
        if not template.steps:
            raise TemplateValidationError(
                "Cannot activate workflow without steps",
                details={"step_count": 0}
            )
        if template.has_form_step and template.form_schema is None:
            raise TemplateValidationError(
                "Cannot activate workflow with a FORM step but no form schema"
            )
