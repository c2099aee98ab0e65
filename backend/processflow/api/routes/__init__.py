"""API Routes module"""
from fastapi import APIRouter

from .workflows import router as workflows_router
from .processes import router as processes_router
from .notifications import router as notifications_router
from .audit import router as audit_router

# Main API router
api_router = APIRouter()

api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(processes_router, prefix="/processes", tags=["Processes"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(audit_router, prefix="/audit", tags=["Audit"])

__all__ = ["api_router"]
