"""Transition Resolver - Materialise step instances and plan step transitions"""
from datetime import datetime
from typing import List, Optional, Sequence

from ..domain.models import (
    WorkflowTemplate, ProcessStepInstance, StepUpdate, TransitionPlan
)
from ..domain.enums import (
    StepType, StepAction, StepInstanceStatus, ProcessStatus
)
from ..utils.idgen import generate_step_instance_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TransitionResolver:
    """
    Stateless planner for the process state machine

    Given the ordered step instances of a process and an action on one of
    them, compute every write the action implies:
    1. The target step becomes COMPLETED (approve) or REJECTED (otherwise)
    2. reject -> process REJECTED, request_changes -> CHANGES_REQUESTED
    3. approve -> look at step_order + 1:
       none -> COMPLETED
       NOTIFICATION -> auto-complete it; COMPLETED if nothing follows it
       FORM / APPROVAL -> IN_PROGRESS, next step untouched

    Only a single NOTIFICATION step is auto-completed per action.
    """

    def build_step_instances(
        self,
        template: WorkflowTemplate,
        process_id: str,
        creator_id: str,
        now: datetime
    ) -> List[ProcessStepInstance]:
        """
        One PENDING step instance per template step, in order

        A FORM first step is completed on creation by the creator: the form
        data is submitted together with the creation request.
        """
        instances = []
        for step in template.ordered_steps:
            instance = ProcessStepInstance(
                step_instance_id=generate_step_instance_id(),
                process_id=process_id,
                workflow_step_id=step.step_id,
                step_order=step.step_order,
                step_type=step.step_type,
                step_name=step.name,
            )
            if step.step_order == 1 and step.step_type == StepType.FORM:
                instance.status = StepInstanceStatus.COMPLETED
                instance.acted_by = creator_id
                instance.acted_at = now
            instances.append(instance)
        return instances

    def first_actionable_step(
        self,
        steps: Sequence[ProcessStepInstance]
    ) -> Optional[ProcessStepInstance]:
        """First step still PENDING after creation"""
        for step in sorted(steps, key=lambda s: s.step_order):
            if step.status == StepInstanceStatus.PENDING:
                return step
        return None

    def find_by_order(
        self,
        steps: Sequence[ProcessStepInstance],
        step_order: int
    ) -> Optional[ProcessStepInstance]:
        for step in steps:
            if step.step_order == step_order:
                return step
        return None

    def resolve_action(
        self,
        steps: Sequence[ProcessStepInstance],
        target: ProcessStepInstance,
        action: StepAction,
        actor_id: str,
        comments: Optional[str],
        now: datetime
    ) -> TransitionPlan:
        """
        Plan the transition for an action on a pending step

        Args:
            steps: All step instances of the process
            target: The step being acted on
            action: approve / reject / request_changes
            actor_id: Acting user
            comments: Optional comments recorded on the step
            now: Timestamp used for every write

        Returns:
            TransitionPlan for the process repository
        """
        updates = [
            StepUpdate(
                step_instance_id=target.step_instance_id,
                status=(
                    StepInstanceStatus.COMPLETED
                    if action == StepAction.APPROVE
                    else StepInstanceStatus.REJECTED
                ),
                acted_by=actor_id,
                acted_at=now,
                comments=comments,
            )
        ]

        if action == StepAction.REJECT:
            return self._plan(target, updates, ProcessStatus.REJECTED, now)

        if action == StepAction.REQUEST_CHANGES:
            return self._plan(target, updates, ProcessStatus.CHANGES_REQUESTED, now)

        next_step = self.find_by_order(steps, target.step_order + 1)
        if next_step is None:
            return self._plan(target, updates, ProcessStatus.COMPLETED, now)

        if next_step.step_type == StepType.NOTIFICATION:
            updates.append(
                StepUpdate(
                    step_instance_id=next_step.step_instance_id,
                    status=StepInstanceStatus.COMPLETED,
                    acted_at=now,
                )
            )
            after = self.find_by_order(steps, next_step.step_order + 1)
            status = ProcessStatus.IN_PROGRESS if after is not None else ProcessStatus.COMPLETED
            return self._plan(
                target, updates, status, now,
                next_step=next_step, auto_completed_step=next_step
            )

        return self._plan(target, updates, ProcessStatus.IN_PROGRESS, now, next_step=next_step)

    def _plan(
        self,
        target: ProcessStepInstance,
        updates: List[StepUpdate],
        status: ProcessStatus,
        now: datetime,
        next_step: Optional[ProcessStepInstance] = None,
        auto_completed_step: Optional[ProcessStepInstance] = None
    ) -> TransitionPlan:
        logger.info(
            f"Resolved transition for step {target.step_instance_id} -> process {status.value}",
            extra={
                "process_id": target.process_id,
                "step_id": target.step_instance_id,
                "status": status.value
            }
        )
        return TransitionPlan(
            process_id=target.process_id,
            step_updates=updates,
            process_status=status,
            updated_at=now,
            next_step=next_step,
            auto_completed_step=auto_completed_step,
        )
