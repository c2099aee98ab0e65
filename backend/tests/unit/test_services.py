"""Service layer tests: templates, processes, notifications, audit"""
import pytest

from processflow.domain.models import StepDefinition
from processflow.domain.enums import (
    StepType, StepAction, TemplateStatus, ProcessStatus, AuditAction,
    CreatorNotice, NotificationType
)
from processflow.domain.errors import (
    ForbiddenError, TemplateValidationError, ValidationError, TemplateNotFoundError,
    ProcessNotFoundError, NotificationNotFoundError
)
from processflow.repositories import build_memory_repositories
from processflow.services.audit_service import AuditService
from processflow.services.notification_service import NotificationService
from processflow.services.process_service import ProcessService
from processflow.services.workflow_service import WorkflowService

from ..conftest import REQUESTER, OTHER_USER, APPROVER


def _definitions(*step_types):
    return [
        StepDefinition(step_order=index, step_type=step_type, name=f"Step {index}")
        for index, step_type in enumerate(step_types, start=1)
    ]


@pytest.fixture
def workflow_service(repos, engine):
    return WorkflowService(repos=repos, engine=engine)


@pytest.fixture
def process_service(repos, engine):
    return ProcessService(repos=repos, engine=engine)


@pytest.fixture
def notification_service(repos):
    return NotificationService(notification_repo=repos.notifications, user_repo=repos.users)


# ============================================================================
# Workflow templates
# ============================================================================

class TestWorkflowService:

    def test_create_template_starts_as_draft(self, workflow_service, repos, admin):
        template = workflow_service.create_template(
            name="Onboarding", description="New hire", steps=_definitions(StepType.APPROVAL),
            form_schema=None, actor=admin
        )

        assert template.status == TemplateStatus.DRAFT
        assert template.version == 1
        assert template.steps[0].step_id.startswith("STP-")
        entry = repos.audit.list_entries(action=AuditAction.WORKFLOW_CREATED)[0]
        assert entry.new_value == {"name": "Onboarding", "step_count": 1}

    def test_create_requires_admin(self, workflow_service, approver):
        with pytest.raises(ForbiddenError):
            workflow_service.create_template("X", None, [], None, approver)

    def test_create_rejects_broken_step_order(self, workflow_service, admin):
        steps = [
            StepDefinition(step_order=1, step_type=StepType.APPROVAL, name="A"),
            StepDefinition(step_order=3, step_type=StepType.APPROVAL, name="B"),
        ]
        with pytest.raises(TemplateValidationError):
            workflow_service.create_template("X", None, steps, None, admin)

    def test_draft_template_may_be_incomplete(self, workflow_service, admin):
        template = workflow_service.create_template(
            "Draft", None, _definitions(StepType.FORM), None, admin
        )

        assert template.form_schema is None

    def test_steps_round_trip_in_order(self, workflow_service, admin):
        steps = [
            StepDefinition(step_order=2, step_type=StepType.APPROVAL, name="Manager"),
            StepDefinition(step_order=1, step_type=StepType.APPROVAL, name="Lead"),
            StepDefinition(step_order=3, step_type=StepType.NOTIFICATION, name="Notify"),
        ]
        created = workflow_service.create_template("Ordered", None, steps, None, admin)

        loaded = workflow_service.get_template(created.template_id)

        assert [s.name for s in loaded.ordered_steps] == ["Lead", "Manager", "Notify"]
        assert len(loaded.steps) == 3

    def test_structural_update_bumps_version(self, workflow_service, admin, simple_form):
        template = workflow_service.create_template(
            "Purchase", None, _definitions(StepType.APPROVAL), None, admin
        )

        updated = workflow_service.update_template(
            template.template_id, admin,
            steps=_definitions(StepType.FORM, StepType.APPROVAL),
            form_schema=simple_form
        )

        assert updated.version == 2
        assert [s.step_type for s in updated.ordered_steps] == [StepType.FORM, StepType.APPROVAL]
        assert updated.form_schema is not None
        assert {s.step_id for s in updated.steps}.isdisjoint({s.step_id for s in template.steps})

    def test_metadata_update_keeps_version(self, workflow_service, make_template, admin):
        template = make_template([StepType.APPROVAL])

        updated = workflow_service.update_template(template.template_id, admin, name="Renamed")

        assert updated.name == "Renamed"
        assert updated.version == template.version
        assert updated.status == TemplateStatus.ACTIVE

    def test_active_template_structure_is_frozen(self, workflow_service, make_template, admin):
        template = make_template([StepType.APPROVAL])

        with pytest.raises(TemplateValidationError):
            workflow_service.update_template(
                template.template_id, admin, steps=_definitions(StepType.APPROVAL, StepType.APPROVAL)
            )

    def test_clear_form_schema(self, workflow_service, make_template, admin, simple_form):
        template = make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT, form_schema=simple_form)

        updated = workflow_service.update_template(template.template_id, admin, clear_form_schema=True)

        assert updated.form_schema is None
        assert updated.version == template.version + 1

    def test_update_unknown_template(self, workflow_service, admin):
        with pytest.raises(TemplateNotFoundError):
            workflow_service.update_template("WF-missing", admin, name="X")

    def test_delete_unused_template(self, workflow_service, repos, make_template, admin):
        template = make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT)

        assert workflow_service.delete_template(template.template_id, admin) is True
        assert repos.templates.get_template_with_steps(template.template_id) is None
        assert repos.audit.count_entries(action=AuditAction.WORKFLOW_DELETED) == 1

    def test_delete_template_with_processes_is_refused(self, workflow_service, process_service, make_template,
                                                       admin, requester):
        template = make_template([StepType.APPROVAL])
        process_service.create_process(template.template_id, {}, requester)

        with pytest.raises(ValidationError) as exc_info:
            workflow_service.delete_template(template.template_id, admin)

        assert exc_info.value.message == "Cannot delete workflow with existing processes. Archive it instead."

    def test_process_keeps_step_snapshot_after_template_edit(self, workflow_service, process_service, repos,
                                                             make_template, admin, requester):
        template = make_template([StepType.APPROVAL])
        process = process_service.create_process(template.template_id, {}, requester)
        workflow_service.set_status(template.template_id, TemplateStatus.DRAFT, admin)

        workflow_service.update_template(
            template.template_id, admin, steps=_definitions(StepType.APPROVAL, StepType.APPROVAL)
        )

        steps = repos.processes.get_process_steps(process.process_id)
        assert len(steps) == 1
        assert steps[0].step_name == "Approval 1"
        assert process.template_version == 1

    def test_list_and_count_by_status(self, workflow_service, make_template):
        make_template([StepType.APPROVAL])
        make_template([StepType.APPROVAL], status=TemplateStatus.DRAFT)

        assert workflow_service.count_templates() == 2
        assert len(workflow_service.list_templates(status=TemplateStatus.ACTIVE)) == 1


# ============================================================================
# Processes
# ============================================================================

class TestProcessService:

    def test_user_sees_only_own_processes(self, process_service, make_template, requester, other_user, approver):
        template = make_template([StepType.APPROVAL])
        mine = process_service.create_process(template.template_id, {}, requester)
        process_service.create_process(template.template_id, {}, other_user)

        listed = process_service.list_processes(requester, created_by=OTHER_USER.user_id)

        assert [p.process_id for p in listed] == [mine.process_id]
        assert process_service.count_processes(requester) == 1
        assert process_service.count_processes(approver) == 2

    def test_detail_includes_steps_and_audit_trail(self, process_service, make_template, requester, approver):
        template = make_template([StepType.APPROVAL, StepType.APPROVAL])
        process = process_service.create_process(template.template_id, {}, requester)
        step = process_service.get_process_steps(process.process_id)[0]
        process_service.act_on_step(process.process_id, step.step_instance_id, StepAction.APPROVE, approver)

        detail = process_service.get_process_detail(process.process_id, requester)

        assert detail["process"].status == ProcessStatus.IN_PROGRESS
        assert [s.step_order for s in detail["steps"]] == [1, 2]
        assert [e.action for e in detail["audit_trail"]] == [
            AuditAction.STEP_COMPLETED, AuditAction.PROCESS_CREATED
        ]

    def test_other_user_cannot_view_process(self, process_service, make_template, requester, other_user):
        template = make_template([StepType.APPROVAL])
        process = process_service.create_process(template.template_id, {}, requester)

        with pytest.raises(ForbiddenError):
            process_service.get_process(process.process_id, other_user)

    def test_unknown_process(self, process_service, approver):
        with pytest.raises(ProcessNotFoundError):
            process_service.get_process("PRC-missing", approver)


# ============================================================================
# Notifications
# ============================================================================

class TestNotificationService:

    @pytest.mark.parametrize("notice, actor_name, expected", [
        (CreatorNotice.APPROVED, "Ann", 'Your request "Travel" has been approved by Ann'),
        (CreatorNotice.APPROVED, None, 'Your request "Travel" has been approved'),
        (CreatorNotice.REJECTED, "Ann", 'Your request "Travel" has been rejected by Ann'),
        (CreatorNotice.CHANGES_REQUESTED, "Ann", 'Changes requested for your "Travel" request by Ann'),
    ])
    def test_creator_messages(self, notice, actor_name, expected):
        assert NotificationService.creator_message(notice, "Travel", actor_name) == expected

    def test_creator_notice_types(self, notification_service):
        rejected = notification_service.notify_process_creator(
            "PRC-1", REQUESTER.user_id, CreatorNotice.REJECTED, "Travel", "Ann"
        )
        approved = notification_service.notify_process_creator(
            "PRC-1", REQUESTER.user_id, CreatorNotice.APPROVED, "Travel"
        )

        assert rejected.type == NotificationType.ACTION_REQUIRED
        assert approved.type == NotificationType.UPDATE

    def test_approver_pool_gets_one_notice_each(self, notification_service):
        sent = notification_service.notify_approver_pool("New approval request: Travel", "PRC-1")

        assert sorted(n.user_id for n in sent) == sorted(["USR-admin", APPROVER.user_id])
        assert all(n.type == NotificationType.ACTION_REQUIRED for n in sent)

    def test_empty_approver_pool(self):
        empty = build_memory_repositories()
        service = NotificationService(notification_repo=empty.notifications, user_repo=empty.users)

        assert service.notify_approver_pool("New approval request: Travel", "PRC-1") == []

    def test_inbox_read_flags(self, notification_service):
        first = notification_service.notify_user(REQUESTER.user_id, "one")
        notification_service.notify_user(REQUESTER.user_id, "two")
        notification_service.notify_user(OTHER_USER.user_id, "elsewhere")

        assert notification_service.unread_count(REQUESTER.user_id) == 2

        read = notification_service.set_read(first.notification_id, REQUESTER.user_id)
        assert read.is_read and read.read_at is not None
        assert notification_service.unread_count(REQUESTER.user_id) == 1

        unread = notification_service.set_read(first.notification_id, REQUESTER.user_id, is_read=False)
        assert not unread.is_read and unread.read_at is None

        assert notification_service.mark_all_read(REQUESTER.user_id) == 2
        assert notification_service.unread_count(REQUESTER.user_id) == 0
        assert notification_service.unread_count(OTHER_USER.user_id) == 1

    def test_list_newest_first(self, notification_service):
        for message in ("one", "two", "three"):
            notification_service.notify_user(REQUESTER.user_id, message)

        listed = notification_service.list_for_user(REQUESTER.user_id)

        assert [n.message for n in listed] == ["three", "two", "one"]
        assert notification_service.count_for_user(REQUESTER.user_id) == 3

    def test_cannot_touch_other_users_notification(self, notification_service):
        notification = notification_service.notify_user(OTHER_USER.user_id, "private")

        with pytest.raises(ForbiddenError):
            notification_service.set_read(notification.notification_id, REQUESTER.user_id)

    def test_unknown_notification(self, notification_service):
        with pytest.raises(NotificationNotFoundError):
            notification_service.set_read("NTF-missing", REQUESTER.user_id)


# ============================================================================
# Audit
# ============================================================================

class TestAuditService:

    def test_admin_filters_entries(self, repos, engine, make_template, admin, requester, approver):
        template = make_template([StepType.APPROVAL])
        process = engine.create_process(template.template_id, {}, requester)
        step = repos.processes.get_process_steps(process.process_id)[0]
        engine.act_step(process.process_id, step.step_instance_id, StepAction.REJECT, approver)
        service = AuditService(repos=repos)

        rejected = service.list_entries(admin, action=AuditAction.STEP_REJECTED)

        assert len(rejected) == 1
        assert rejected[0].actor_id == APPROVER.user_id
        assert service.count_entries(admin, process_id=process.process_id) == 2
        assert service.count_entries(admin, actor_id=REQUESTER.user_id) == 1
        assert service.list_actions(admin) == ["PROCESS_CREATED", "STEP_REJECTED"]

    def test_date_range(self, repos, engine, make_template, admin, requester):
        template = make_template([StepType.APPROVAL])
        engine.create_process(template.template_id, {}, requester)
        service = AuditService(repos=repos)
        created_at = service.list_entries(admin)[0].created_at

        assert service.count_entries(admin, date_from=created_at, date_to=created_at) == 1
        assert service.count_entries(admin, date_to=created_at.replace(year=created_at.year - 1)) == 0

    def test_non_admin_is_refused(self, repos, approver):
        with pytest.raises(ForbiddenError):
            AuditService(repos=repos).list_entries(approver)
