"""Utility modules - Logging, bearer tokens, ids and UTC time helpers"""
from .logger import get_logger, setup_logging, set_correlation_id, get_correlation_id
from .jwt import JWTValidator, get_current_user
from .idgen import (
    generate_template_id, generate_process_id, generate_step_instance_id,
    generate_audit_id, generate_notification_id, generate_correlation_id
)
from .time import utc_now, utc_today, format_iso, parse_iso, parse_date

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "get_correlation_id",
    "JWTValidator",
    "get_current_user",
    "generate_template_id",
    "generate_process_id",
    "generate_step_instance_id",
    "generate_audit_id",
    "generate_notification_id",
    "generate_correlation_id",
    "utc_now",
    "utc_today",
    "format_iso",
    "parse_iso",
    "parse_date",
]
