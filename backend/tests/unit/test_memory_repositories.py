"""In-memory repository tests: atomic transitions and optimistic template writes"""
import pytest

from processflow.domain.models import StepUpdate, TransitionPlan, User
from processflow.domain.enums import (
    StepType, StepAction, StepInstanceStatus, ProcessStatus, TemplateStatus, UserRole
)
from processflow.domain.errors import (
    StepNotPendingError, ConcurrencyError, TemplateNotFoundError, ValidationError,
    ProcessNotActiveError
)
from processflow.utils.time import utc_now

from ..conftest import REQUESTER


@pytest.fixture
def started(engine, make_template, requester):
    template = make_template([StepType.APPROVAL, StepType.APPROVAL])
    process = engine.create_process(template.template_id, {}, requester)
    return process, engine.process_repo.get_process_steps(process.process_id)


class TestProcessRepository:

    def test_failed_transition_leaves_nothing_behind(self, repos, started):
        process, steps = started
        now = utc_now()
        plan = TransitionPlan(
            process_id=process.process_id,
            step_updates=[
                StepUpdate(step_instance_id=steps[0].step_instance_id,
                           status=StepInstanceStatus.COMPLETED, acted_by="USR-approver", acted_at=now),
                StepUpdate(step_instance_id="PSI-missing", status=StepInstanceStatus.COMPLETED, acted_at=now),
            ],
            process_status=ProcessStatus.COMPLETED,
            updated_at=now
        )

        with pytest.raises(StepNotPendingError):
            repos.processes.apply_transition(plan)

        assert repos.processes.get_process(process.process_id).status == ProcessStatus.IN_PROGRESS
        assert repos.processes.get_process_steps(process.process_id)[0].status == StepInstanceStatus.PENDING

    def test_replaying_a_plan_is_refused(self, repos, started):
        process, steps = started
        now = utc_now()
        plan = TransitionPlan(
            process_id=process.process_id,
            step_updates=[
                StepUpdate(step_instance_id=steps[0].step_instance_id,
                           status=StepInstanceStatus.COMPLETED, acted_by="USR-approver", acted_at=now),
            ],
            process_status=ProcessStatus.IN_PROGRESS,
            updated_at=now
        )
        repos.processes.apply_transition(plan)

        with pytest.raises(StepNotPendingError):
            repos.processes.apply_transition(plan)

    def test_plan_resolved_before_a_rejection_cannot_reopen_the_process(self, repos, engine, started, approver):
        process, steps = started
        context = repos.processes.get_step_with_context(steps[1].step_instance_id)
        stale_plan = engine.transition_resolver.resolve_action(
            context.steps, context.step, StepAction.APPROVE, approver.user_id, None, utc_now()
        )

        engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.REJECT, approver)

        with pytest.raises(ProcessNotActiveError):
            repos.processes.apply_transition(stale_plan)

        assert repos.processes.get_process(process.process_id).status == ProcessStatus.REJECTED
        assert [s.status for s in repos.processes.get_process_steps(process.process_id)] == [
            StepInstanceStatus.REJECTED, StepInstanceStatus.PENDING
        ]

    def test_step_context(self, repos, started):
        process, steps = started

        context = repos.processes.get_step_with_context(steps[1].step_instance_id)

        assert context.process.process_id == process.process_id
        assert [s.step_order for s in context.steps] == [1, 2]
        assert context.template.template_id == process.template_id
        assert repos.processes.get_step_with_context("PSI-missing") is None

    def test_reads_are_copies(self, repos, started):
        process, _ = started

        loaded = repos.processes.get_process(process.process_id)
        loaded.status = ProcessStatus.REJECTED

        assert repos.processes.get_process(process.process_id).status == ProcessStatus.IN_PROGRESS

    def test_filters_and_pagination(self, repos, engine, make_template, requester, other_user):
        template = make_template([StepType.APPROVAL])
        for _ in range(3):
            engine.create_process(template.template_id, {}, requester)
        engine.create_process(template.template_id, {}, other_user)

        assert repos.processes.count_processes(created_by=REQUESTER.user_id) == 3
        assert repos.processes.count_processes(template_id=template.template_id) == 4
        assert len(repos.processes.list_processes(skip=2, limit=10)) == 2
        assert repos.processes.count_processes(status=ProcessStatus.COMPLETED) == 0


class TestTemplateRepository:

    def test_stale_replace_is_refused(self, repos, make_template):
        template = make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT)
        first = template.model_copy(update={"name": "First", "version": 2})
        second = template.model_copy(update={"name": "Second", "version": 2})

        repos.templates.replace_template(first, expected_version=1)
        with pytest.raises(ConcurrencyError):
            repos.templates.replace_template(second, expected_version=1)

        assert repos.templates.get_template_with_steps(template.template_id).name == "First"

    def test_replace_unknown_template(self, repos, make_template):
        template = make_template([StepType.APPROVAL])
        repos.templates.delete_template(template.template_id)

        with pytest.raises(TemplateNotFoundError):
            repos.templates.replace_template(template, expected_version=1)

    def test_update_status(self, repos, make_template):
        template = make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT)

        updated = repos.templates.update_status(template.template_id, TemplateStatus.ARCHIVED)

        assert updated.status == TemplateStatus.ARCHIVED
        assert updated.updated_at >= template.updated_at


class TestUserRepository:

    def test_duplicate_email_rejected(self, repos):
        with pytest.raises(ValidationError):
            repos.users.create_user(User(user_id="USR-dup", email=REQUESTER.email, name="Dup"))

    def test_list_by_roles(self, repos):
        approvers = repos.users.list_by_roles([UserRole.APPROVER])

        assert [u.user_id for u in approvers] == ["USR-approver"]
