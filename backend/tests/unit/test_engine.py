"""Workflow engine tests: process creation, step actions and template status"""
import threading

import pytest

from processflow.domain.enums import (
    StepType, StepAction, StepInstanceStatus, ProcessStatus, TemplateStatus,
    AuditAction, NotificationType, CreatorNotice
)
from processflow.domain.errors import (
    TemplateNotFoundError, ValidationError, FormValidationError, TemplateValidationError,
    StepNotFoundError, StepNotPendingError, ProcessNotActiveError, ForbiddenError
)
from processflow.engine.audit_writer import AuditWriter
from processflow.engine.effects import EffectDispatcher, NotifyCreatorEffect, NotifyUserEffect
from processflow.engine.engine import WorkflowEngine
from processflow.services.notification_service import NotificationService

from ..conftest import APPROVER, ADMIN, REQUESTER


def _messages(repos, user_id):
    return [n.message for n in repos.notifications.list_for_user(user_id, limit=100)]


def _start(engine, template, requester, form_data=None):
    process = engine.create_process(template.template_id, form_data or {}, requester)
    steps = engine.process_repo.get_process_steps(process.process_id)
    return process, steps


# ============================================================================
# Process creation
# ============================================================================

class TestCreateProcess:

    def test_form_first_step_is_completed_by_creator(self, engine, repos, make_template, requester, simple_form):
        template = make_template([StepType.FORM, StepType.APPROVAL], form_schema=simple_form)

        process, steps = _start(engine, template, requester, {"title": "Laptop", "amount": 1200})

        assert process.status == ProcessStatus.IN_PROGRESS
        assert process.created_by == REQUESTER.user_id
        assert process.template_version == template.version
        assert process.form_data == {"title": "Laptop", "amount": 1200}
        assert [s.step_order for s in steps] == [1, 2]
        assert steps[0].status == StepInstanceStatus.COMPLETED
        assert steps[0].acted_by == REQUESTER.user_id
        assert steps[0].acted_at is not None
        assert steps[1].status == StepInstanceStatus.PENDING
        assert steps[1].acted_by is None

    def test_non_form_first_step_stays_pending(self, engine, make_template, requester):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])

        _, steps = _start(engine, template, requester)

        assert all(s.status == StepInstanceStatus.PENDING for s in steps)

    def test_step_instances_mirror_template_steps(self, engine, make_template, requester):
        template = make_template([StepType.APPROVAL, StepType.NOTIFICATION, StepType.APPROVAL])

        _, steps = _start(engine, template, requester)

        assert len(steps) == len(template.steps)
        assert [(s.step_order, s.step_type, s.workflow_step_id) for s in steps] == [
            (t.step_order, t.step_type, t.step_id) for t in template.ordered_steps
        ]

    def test_creation_audits_and_notifies(self, engine, repos, make_template, requester):
        template = make_template([StepType.APPROVAL])

        process, _ = _start(engine, template, requester)

        entries = repos.audit.list_entries(process_id=process.process_id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.PROCESS_CREATED
        assert entries[0].actor_id == REQUESTER.user_id
        assert entries[0].notes == 'Process started for "Purchase Request"'
        assert entries[0].new_value["workflow_name"] == "Purchase Request"

        assert _messages(repos, REQUESTER.user_id) == ['Your "Purchase Request" request has been submitted']
        for pool_member in (APPROVER, ADMIN):
            inbox = repos.notifications.list_for_user(pool_member.user_id)
            assert [n.message for n in inbox] == ["New approval request: Purchase Request"]
            assert inbox[0].type == NotificationType.ACTION_REQUIRED
            assert inbox[0].process_id == process.process_id

    def test_no_pool_notice_when_first_pending_step_is_not_approval(self, engine, repos, make_template, requester):
        template = make_template([StepType.NOTIFICATION, StepType.APPROVAL])

        _start(engine, template, requester)

        assert repos.notifications.count_for_user(APPROVER.user_id) == 0

    def test_unknown_template(self, engine, requester):
        with pytest.raises(TemplateNotFoundError):
            engine.create_process("WF-missing", {}, requester)

    def test_inactive_template_is_rejected(self, engine, repos, make_template, requester):
        template = make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT)

        with pytest.raises(ValidationError) as exc_info:
            engine.create_process(template.template_id, {}, requester)

        assert exc_info.value.message == "Workflow is not active"
        assert repos.processes.count_processes() == 0

    def test_template_without_steps_is_rejected(self, engine, make_template, requester):
        template = make_template([])

        with pytest.raises(ValidationError) as exc_info:
            engine.create_process(template.template_id, {}, requester)

        assert exc_info.value.message == "Workflow has no steps"

    def test_invalid_form_data_persists_nothing(self, engine, repos, make_template, requester, simple_form):
        template = make_template([StepType.FORM, StepType.APPROVAL], form_schema=simple_form)

        with pytest.raises(FormValidationError) as exc_info:
            engine.create_process(template.template_id, {"amount": 0}, requester)

        assert exc_info.value.details["errors"] == {
            "title": "Title is required",
            "amount": "Amount must be at least 1",
        }
        assert repos.processes.count_processes() == 0
        assert repos.audit.count_entries() == 0


# ============================================================================
# Step actions
# ============================================================================

class TestActStep:

    def test_approving_last_step_completes_process(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver,
                                  comments="Looks good")

        assert updated.status == ProcessStatus.COMPLETED
        step = repos.processes.get_process_steps(process.process_id)[0]
        assert step.status == StepInstanceStatus.COMPLETED
        assert step.acted_by == APPROVER.user_id
        assert step.comments == "Looks good"

        messages = set(_messages(repos, REQUESTER.user_id))
        assert 'Your request "Purchase Request" has been approved by Aaron Approver' in messages
        assert not any("has been completed" in m for m in messages)

        actions = [e.action for e in repos.audit.list_entries(process_id=process.process_id)]
        assert actions == [AuditAction.STEP_COMPLETED, AuditAction.PROCESS_CREATED]

    def test_approve_moves_to_next_approval_step(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, "approve", approver)

        assert updated.status == ProcessStatus.IN_PROGRESS
        after = repos.processes.get_process_steps(process.process_id)
        assert [s.status for s in after] == [StepInstanceStatus.COMPLETED, StepInstanceStatus.PENDING]
        # Creation notice plus the one for the second approval
        assert repos.notifications.count_for_user(APPROVER.user_id) == 2

    def test_notification_step_after_approval_auto_completes(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.NOTIFICATION])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)

        assert updated.status == ProcessStatus.COMPLETED
        after = repos.processes.get_process_steps(process.process_id)
        assert after[1].status == StepInstanceStatus.COMPLETED
        assert after[1].acted_by is None
        assert after[1].acted_at is not None

    def test_pool_is_not_notified_past_an_auto_completed_step(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.NOTIFICATION, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)

        assert updated.status == ProcessStatus.IN_PROGRESS
        after = repos.processes.get_process_steps(process.process_id)
        assert [s.status for s in after] == [
            StepInstanceStatus.COMPLETED, StepInstanceStatus.COMPLETED, StepInstanceStatus.PENDING
        ]
        # Only the creation notice; the step after the approved one is a NOTIFICATION
        assert repos.notifications.count_for_user(APPROVER.user_id) == 1

    def test_only_one_notification_step_is_auto_completed(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.NOTIFICATION, StepType.NOTIFICATION])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)

        assert updated.status == ProcessStatus.IN_PROGRESS
        after = repos.processes.get_process_steps(process.process_id)
        assert [s.status for s in after] == [
            StepInstanceStatus.COMPLETED, StepInstanceStatus.COMPLETED, StepInstanceStatus.PENDING
        ]

    def test_reject_is_terminal(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.REJECT, approver,
                                  comments="Over budget")

        assert updated.status == ProcessStatus.REJECTED
        after = repos.processes.get_process_steps(process.process_id)
        assert after[0].status == StepInstanceStatus.REJECTED
        assert after[1].status == StepInstanceStatus.PENDING

        with pytest.raises(ProcessNotActiveError):
            engine.act_step(process.process_id, steps[1].step_instance_id, StepAction.APPROVE, approver)

        entry = repos.audit.list_entries(process_id=process.process_id, action=AuditAction.STEP_REJECTED)[0]
        assert entry.notes == "Approval 1: reject - Over budget"

    def test_request_changes(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.REQUEST_CHANGES, approver)

        assert updated.status == ProcessStatus.CHANGES_REQUESTED
        assert repos.processes.get_process_steps(process.process_id)[0].status == StepInstanceStatus.REJECTED
        inbox = repos.notifications.list_for_user(REQUESTER.user_id, limit=10)
        change_notice = [n for n in inbox if n.message.startswith("Changes requested")]
        assert change_notice[0].type == NotificationType.ACTION_REQUIRED
        assert change_notice[0].message == 'Changes requested for your "Purchase Request" request by Aaron Approver'

    def test_changes_requested_process_still_accepts_actions(self, engine, repos, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)
        engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.REQUEST_CHANGES, approver)

        updated = engine.act_step(process.process_id, steps[1].step_instance_id, StepAction.APPROVE, approver)

        assert updated.status == ProcessStatus.COMPLETED
        assert repos.processes.get_process_steps(process.process_id)[1].status == StepInstanceStatus.COMPLETED

    def test_second_action_on_same_step_fails(self, engine, repos, make_template, requester, approver, admin):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)
        engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)
        audit_count = repos.audit.count_entries()

        with pytest.raises(StepNotPendingError):
            engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, admin)

        assert repos.audit.count_entries() == audit_count

    def test_unknown_step(self, engine, make_template, requester, approver):
        template = make_template([StepType.APPROVAL])
        process, _ = _start(engine, template, requester)

        with pytest.raises(StepNotFoundError):
            engine.act_step(process.process_id, "PSI-missing", StepAction.APPROVE, approver)

    def test_step_of_another_process(self, engine, make_template, requester, approver):
        template = make_template([StepType.APPROVAL])
        first, _ = _start(engine, template, requester)
        _, other_steps = _start(engine, template, requester)

        with pytest.raises(ValidationError) as exc_info:
            engine.act_step(first.process_id, other_steps[0].step_instance_id, StepAction.APPROVE, approver)

        assert exc_info.value.message == "Step does not belong to this process"

    def test_only_approval_steps_accept_actions(self, engine, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.FORM])
        process, steps = _start(engine, template, requester)
        engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)

        with pytest.raises(ValidationError) as exc_info:
            engine.act_step(process.process_id, steps[1].step_instance_id, StepAction.APPROVE, approver)

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert exc_info.value.message == "This step type does not support approval actions"

    def test_user_role_cannot_act(self, engine, repos, make_template, requester):
        template = make_template([StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        with pytest.raises(ForbiddenError):
            engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, requester)

        assert repos.processes.get_process_steps(process.process_id)[0].status == StepInstanceStatus.PENDING

    def test_pending_check_runs_before_role_check(self, engine, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)
        engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)

        with pytest.raises(StepNotPendingError):
            engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, requester)

    def test_unknown_action(self, engine, make_template, requester, approver):
        template = make_template([StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        with pytest.raises(ValueError):
            engine.act_step(process.process_id, steps[0].step_instance_id, "escalate", approver)

    def test_concurrent_approvals_apply_once(self, engine, repos, make_template, requester, approver, admin):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)
        step_id = steps[0].step_instance_id
        barrier = threading.Barrier(2)
        outcomes = []

        def approve(actor):
            barrier.wait()
            try:
                engine.act_step(process.process_id, step_id, StepAction.APPROVE, actor)
                outcomes.append("ok")
            except StepNotPendingError:
                outcomes.append("not_pending")

        threads = [threading.Thread(target=approve, args=(a,)) for a in (approver, admin)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["not_pending", "ok"]
        assert len(repos.audit.list_entries(process_id=process.process_id,
                                            action=AuditAction.STEP_COMPLETED)) == 1


# ============================================================================
# Post-commit effects
# ============================================================================

class ExplodingNotificationService(NotificationService):

    def notify_process_creator(self, *args, **kwargs):
        raise RuntimeError("notification store unavailable")


class TestEffectIsolation:

    def test_failed_notification_does_not_undo_action(self, repos, make_template, requester, approver):
        dispatcher = EffectDispatcher(
            audit_writer=AuditWriter(repos.audit),
            notification_service=ExplodingNotificationService(repos.notifications, repos.users)
        )
        engine = WorkflowEngine(
            template_repo=repos.templates,
            process_repo=repos.processes,
            effect_dispatcher=dispatcher
        )
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process, steps = _start(engine, template, requester)

        updated = engine.act_step(process.process_id, steps[0].step_instance_id, StepAction.APPROVE, approver)

        assert updated.status == ProcessStatus.IN_PROGRESS
        assert repos.processes.get_process_steps(process.process_id)[0].status == StepInstanceStatus.COMPLETED
        assert repos.audit.count_entries(process_id=process.process_id, action=AuditAction.STEP_COMPLETED) == 1
        # Effects after the failing one still run
        assert repos.notifications.count_for_user(APPROVER.user_id) == 2

    def test_dispatch_reports_failed_effects(self, repos):
        dispatcher = EffectDispatcher(
            audit_writer=AuditWriter(repos.audit),
            notification_service=ExplodingNotificationService(repos.notifications, repos.users)
        )
        failing = NotifyCreatorEffect(
            process_id="PRC-1", creator_id=REQUESTER.user_id,
            notice=CreatorNotice.APPROVED, template_name="Purchase Request"
        )
        working = NotifyUserEffect(user_id=REQUESTER.user_id, message="hello")

        failed = dispatcher.dispatch([failing, working], correlation_id="COR-test")

        assert failed == [failing]
        assert _messages(repos, REQUESTER.user_id) == ["hello"]


# ============================================================================
# Template status
# ============================================================================

class TestTemplateStatus:

    def test_activation_requires_steps(self, engine, make_template, admin):
        template = make_template([], status=TemplateStatus.DRAFT)

        with pytest.raises(TemplateValidationError) as exc_info:
            engine.set_template_status(template.template_id, TemplateStatus.ACTIVE, admin)

        assert exc_info.value.message == "Cannot activate workflow without steps"

    def test_activation_requires_form_schema_for_form_step(self, engine, make_template, admin):
        template = make_template([StepType.FORM, StepType.APPROVAL], status=TemplateStatus.DRAFT)

        with pytest.raises(TemplateValidationError):
            engine.set_template_status(template.template_id, TemplateStatus.ACTIVE, admin)

    def test_activation_succeeds_and_is_audited(self, engine, repos, make_template, admin, simple_form):
        template = make_template([StepType.FORM, StepType.APPROVAL], status=TemplateStatus.DRAFT,
                                 form_schema=simple_form)

        updated = engine.set_template_status(template.template_id, TemplateStatus.ACTIVE, admin)

        assert updated.status == TemplateStatus.ACTIVE
        entry = repos.audit.list_entries(action=AuditAction.WORKFLOW_STATUS_CHANGED)[0]
        assert entry.previous_value == {"status": "DRAFT"}
        assert entry.new_value == {"status": "ACTIVE"}
        assert entry.notes == 'Workflow "Purchase Request" status changed from DRAFT to ACTIVE'

    def test_archiving_is_unguarded(self, engine, make_template, admin):
        template = make_template([], status=TemplateStatus.DRAFT)

        updated = engine.set_template_status(template.template_id, TemplateStatus.ARCHIVED, admin)

        assert updated.status == TemplateStatus.ARCHIVED

    def test_only_admin_changes_status(self, engine, make_template, approver):
        template = make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT)

        with pytest.raises(ForbiddenError):
            engine.set_template_status(template.template_id, TemplateStatus.ACTIVE, approver)

    def test_unknown_template(self, engine, admin):
        with pytest.raises(TemplateNotFoundError):
            engine.set_template_status("WF-missing", TemplateStatus.ACTIVE, admin)
