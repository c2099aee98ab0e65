"""Process API Routes - Start processes and act on approval steps"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, Field

from ..deps import get_current_user_dep, get_correlation_id_dep, page_to_skip
from ...domain.models import ActorContext
from ...domain.enums import ProcessStatus, StepAction
from ...domain.errors import DomainError
from ...services.process_service import ProcessService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class CreateProcessRequest(BaseModel):
    """Request to start a process"""
    template_id: str = Field(..., min_length=1)
    form_data: Dict[str, Any] = Field(default_factory=dict)


class StepActionRequest(BaseModel):
    """Approver decision on a pending step"""
    action: StepAction
    comments: Optional[str] = Field(None, max_length=5000)


class ProcessListResponse(BaseModel):
    """Response for process list"""
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int


def _detail_response(service: ProcessService, process_id: str, actor: ActorContext) -> Dict[str, Any]:
    detail = service.get_process_detail(process_id, actor)
    return {
        **detail["process"].model_dump(mode="json"),
        "steps": [s.model_dump(mode="json") for s in detail["steps"]],
        "audit_trail": [a.model_dump(mode="json") for a in detail["audit_trail"]],
    }


# ============================================================================
# Routes
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_process(
    request: CreateProcessRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Start a process from an ACTIVE template

    A FORM first step is completed with the submitted form data.
    """
    try:
        service = ProcessService()
        process = service.create_process(
            template_id=request.template_id,
            form_data=request.form_data,
            actor=actor,
            correlation_id=correlation_id
        )
        return _detail_response(service, process.process_id, actor)

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("", response_model=ProcessListResponse)
async def list_processes(
    status: Optional[ProcessStatus] = Query(None),
    template_id: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep)
):
    """List processes; USER role only sees its own"""
    service = ProcessService()
    processes = service.list_processes(
        actor=actor,
        status=status,
        template_id=template_id,
        created_by=created_by,
        skip=page_to_skip(page, page_size),
        limit=page_size
    )
    total = service.count_processes(
        actor=actor,
        status=status,
        template_id=template_id,
        created_by=created_by
    )
    return ProcessListResponse(
        items=[p.model_dump(mode="json") for p in processes],
        page=page,
        page_size=page_size,
        total=total
    )


@router.get("/{process_id}")
async def get_process(
    process_id: str,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Process with ordered step instances and audit trail"""
    try:
        return _detail_response(ProcessService(), process_id, actor)

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{process_id}/steps/{step_id}/action")
async def act_on_step(
    process_id: str,
    step_id: str,
    request: StepActionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Approve, reject or request changes on a pending APPROVAL step"""
    try:
        service = ProcessService()
        service.act_on_step(
            process_id=process_id,
            step_id=step_id,
            action=request.action,
            actor=actor,
            comments=request.comments,
            correlation_id=correlation_id
        )
        return _detail_response(service, process_id, actor)

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
