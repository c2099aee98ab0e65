"""Workflow Engine - Process execution state machine"""
from .engine import WorkflowEngine
from .permission_guard import PermissionGuard
from .template_guard import TemplateGuard
from .transition_resolver import TransitionResolver
from .condition_evaluator import ConditionEvaluator
from .form_validator import FormValidator
from .audit_writer import AuditWriter
from .effects import EffectDispatcher

__all__ = [
    "WorkflowEngine",
    "PermissionGuard",
    "TemplateGuard",
    "TransitionResolver",
    "ConditionEvaluator",
    "FormValidator",
    "AuditWriter",
    "EffectDispatcher",
]
