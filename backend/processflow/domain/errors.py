"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class ForbiddenError(DomainError):
    """Caller lacks the required role or ownership"""
    error_code = "FORBIDDEN"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Request violates a precondition or invariant"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class TemplateValidationError(ValidationError):
    """Workflow template definition or activation guard failed"""
    error_code = "TEMPLATE_VALIDATION_ERROR"


class FormValidationError(ValidationError):
    """Submitted form data does not satisfy the form schema"""
    error_code = "FORM_VALIDATION_ERROR"


class StepNotPendingError(ValidationError):
    """Step was already acted upon"""
    error_code = "STEP_NOT_PENDING"


class ProcessNotActiveError(ValidationError):
    """Process is in a status that no longer accepts step actions"""
    error_code = "PROCESS_NOT_ACTIVE"


# Concurrency Errors
class ConcurrencyError(DomainError):
    """Record was modified by another request since it was read"""
    error_code = "CONCURRENCY_ERROR"
    http_status = 409


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class TemplateNotFoundError(NotFoundError):
    """Workflow template not found"""
    error_code = "TEMPLATE_NOT_FOUND"


class ProcessNotFoundError(NotFoundError):
    """Process instance not found"""
    error_code = "PROCESS_NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Process step instance not found"""
    error_code = "STEP_NOT_FOUND"


class NotificationNotFoundError(NotFoundError):
    """Notification not found"""
    error_code = "NOTIFICATION_NOT_FOUND"
