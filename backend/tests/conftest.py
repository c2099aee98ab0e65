"""
Pytest Configuration and Fixtures

Shared fixtures for all tests. The in-memory storage backend is selected
before any application module is imported.
"""

import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("MONGO_DB", "processflow_test")
os.environ.setdefault("JWT_SECRET", "test-secret-for-processflow-suite-0123456789")

import pytest
from typing import Callable, Optional, Sequence

from processflow.domain.models import (
    ActorContext, User, WorkflowStep, WorkflowTemplate
)
from processflow.domain.form_models import FormSchema
from processflow.domain.enums import UserRole, StepType, TemplateStatus
from processflow.engine.engine import WorkflowEngine
from processflow.engine.effects import build_effect_dispatcher
from processflow.repositories import Repositories, build_memory_repositories
from processflow.utils.idgen import generate_template_id, generate_step_id
from processflow.utils.time import utc_now


ADMIN = User(user_id="USR-admin", email="admin@example.com", name="Ada Admin", role=UserRole.ADMIN)
APPROVER = User(user_id="USR-approver", email="approver@example.com", name="Aaron Approver", role=UserRole.APPROVER)
REQUESTER = User(user_id="USR-user", email="user@example.com", name="Uma User", role=UserRole.USER)
OTHER_USER = User(user_id="USR-other", email="other@example.com", name="Otto Other", role=UserRole.USER)


def actor_for(user: User) -> ActorContext:
    return ActorContext(
        user_id=user.user_id,
        email=user.email,
        display_name=user.name,
        role=user.role
    )


@pytest.fixture
def repos() -> Repositories:
    """Fresh in-memory repositories with the demo users"""
    repositories = build_memory_repositories()
    for user in (ADMIN, APPROVER, REQUESTER, OTHER_USER):
        repositories.users.create_user(user)
    return repositories


@pytest.fixture
def engine(repos: Repositories) -> WorkflowEngine:
    return WorkflowEngine(
        template_repo=repos.templates,
        process_repo=repos.processes,
        effect_dispatcher=build_effect_dispatcher(repos)
    )


@pytest.fixture
def admin() -> ActorContext:
    return actor_for(ADMIN)


@pytest.fixture
def approver() -> ActorContext:
    return actor_for(APPROVER)


@pytest.fixture
def requester() -> ActorContext:
    return actor_for(REQUESTER)


@pytest.fixture
def other_user() -> ActorContext:
    return actor_for(OTHER_USER)


@pytest.fixture
def simple_form() -> FormSchema:
    return FormSchema.model_validate({
        "fields": [
            {"id": "f_title", "name": "title", "label": "Title", "type": "text", "required": True},
            {"id": "f_amount", "name": "amount", "label": "Amount", "type": "number",
             "validation": {"min_value": 1}},
        ]
    })


@pytest.fixture
def make_template(repos: Repositories) -> Callable[..., WorkflowTemplate]:
    """Store a template built from a list of step types"""

    def _make(
        step_types: Sequence[StepType],
        status: TemplateStatus = TemplateStatus.ACTIVE,
        form_schema: Optional[FormSchema] = None,
        name: str = "Purchase Request"
    ) -> WorkflowTemplate:
        now = utc_now()
        template = WorkflowTemplate(
            template_id=generate_template_id(),
            name=name,
            status=status,
            steps=[
                WorkflowStep(
                    step_id=generate_step_id(),
                    step_order=index,
                    step_type=step_type,
                    name=f"{step_type.value.title()} {index}"
                )
                for index, step_type in enumerate(step_types, start=1)
            ],
            form_schema=form_schema,
            created_by=ADMIN.user_id,
            created_at=now,
            updated_at=now
        )
        return repos.templates.create_template(template)

    return _make
