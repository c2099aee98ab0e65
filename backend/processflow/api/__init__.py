"""API module - HTTP routes, request dependencies and middleware for ProcessFlow"""
from .deps import get_current_user_dep, get_correlation_id_dep, page_to_skip

__all__ = ["get_current_user_dep", "get_correlation_id_dep", "page_to_skip"]
