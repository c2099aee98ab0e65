"""
Seed Data Script - Creates demo users and sample workflow templates
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from processflow.domain.models import User, ActorContext, StepDefinition
from processflow.domain.form_models import FormSchema
from processflow.domain.enums import UserRole, StepType, TemplateStatus
from processflow.repositories import get_repositories
from processflow.services.workflow_service import WorkflowService
from processflow.utils.jwt import JWTValidator


DEMO_USERS = [
    User(user_id="USR-admin", email="admin@example.com", name="Ada Admin", role=UserRole.ADMIN),
    User(user_id="USR-approver", email="approver@example.com", name="Aaron Approver", role=UserRole.APPROVER),
    User(user_id="USR-user", email="user@example.com", name="Uma User", role=UserRole.USER),
]

EXPENSE_FORM = FormSchema.model_validate({
    "fields": [
        {"id": "f_title", "name": "title", "label": "Title", "type": "text", "required": True,
         "validation": {"min_length": 3, "max_length": 120}},
        {"id": "f_amount", "name": "amount", "label": "Amount", "type": "currency", "required": True,
         "validation": {"min_value": 1, "max_value": 10000, "currency": "USD"}},
        {"id": "f_category", "name": "category", "label": "Category", "type": "dropdown", "required": True,
         "options": ["Travel", "Equipment", "Training", "Other"]},
        {"id": "f_other", "name": "other_details", "label": "Other Details", "type": "textarea",
         "required": True, "visible_when": {"field_id": "f_category", "value": "Other"}},
        {"id": "f_date", "name": "expense_date", "label": "Expense Date", "type": "date", "required": True,
         "validation": {"allow_future_dates": False}},
        {"id": "f_receipt", "name": "receipt", "label": "Receipt", "type": "file",
         "validation": {"accept": ".pdf,.png,.jpg"}},
    ]
})

SAMPLE_TEMPLATES = [
    {
        "name": "Expense Reimbursement",
        "description": "Submit an expense for manager and finance approval",
        "form_schema": EXPENSE_FORM,
        "steps": [
            StepDefinition(step_order=1, step_type=StepType.FORM, name="Submit Expense"),
            StepDefinition(step_order=2, step_type=StepType.APPROVAL, name="Manager Approval"),
            StepDefinition(step_order=3, step_type=StepType.APPROVAL, name="Finance Approval"),
            StepDefinition(step_order=4, step_type=StepType.NOTIFICATION, name="Notify Payroll"),
        ],
    },
    {
        "name": "Access Request",
        "description": "Request access to an internal system",
        "form_schema": None,
        "steps": [
            StepDefinition(step_order=1, step_type=StepType.APPROVAL, name="Security Review"),
        ],
    },
]


def seed_users() -> None:
    """Create demo users that do not exist yet"""
    users = get_repositories().users
    for user in DEMO_USERS:
        if users.get_user(user.user_id) is None:
            users.create_user(user)
            print(f"Created user {user.email} ({user.role.value})")


def seed_templates(admin: ActorContext) -> None:
    """Create and activate the sample templates"""
    service = WorkflowService()
    if service.count_templates() > 0:
        print("Templates already exist. Skipping template seed.")
        return

    for sample in SAMPLE_TEMPLATES:
        template = service.create_template(
            name=sample["name"],
            description=sample["description"],
            steps=sample["steps"],
            form_schema=sample["form_schema"],
            actor=admin
        )
        service.set_status(template.template_id, TemplateStatus.ACTIVE, admin)
        print(f"Created template {template.template_id}: {template.name}")


def main():
    seed_users()
    admin_user = DEMO_USERS[0]
    admin = ActorContext(
        user_id=admin_user.user_id,
        email=admin_user.email,
        display_name=admin_user.name,
        role=admin_user.role
    )
    seed_templates(admin)

    validator = JWTValidator()
    print("\nBearer tokens for the demo users:")
    for user in DEMO_USERS:
        actor = ActorContext(user_id=user.user_id, email=user.email, display_name=user.name, role=user.role)
        print(f"  {user.role.value:<9} {validator.issue_token(actor)}")


if __name__ == "__main__":
    main()
