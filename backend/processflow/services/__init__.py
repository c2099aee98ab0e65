"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .process_service import ProcessService
from .notification_service import NotificationService
from .audit_service import AuditService

__all__ = [
    "WorkflowService",
    "ProcessService",
    "NotificationService",
    "AuditService",
]
