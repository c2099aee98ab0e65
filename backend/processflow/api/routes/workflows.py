"""Workflow API Routes - Template designer endpoints"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, Field

from ..deps import get_current_user_dep, get_correlation_id_dep, page_to_skip
from ...domain.models import ActorContext, StepDefinition
from ...domain.form_models import FormSchema
from ...domain.enums import TemplateStatus
from ...domain.errors import DomainError
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class CreateWorkflowRequest(BaseModel):
    """Request to create a new workflow template"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    steps: List[StepDefinition] = Field(default_factory=list)
    form_schema: Optional[FormSchema] = None


class UpdateWorkflowRequest(BaseModel):
    """Request to update a workflow template; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    steps: Optional[List[StepDefinition]] = None
    form_schema: Optional[FormSchema] = None
    clear_form_schema: bool = False


class UpdateStatusRequest(BaseModel):
    """Request to change template status"""
    status: TemplateStatus


class WorkflowListResponse(BaseModel):
    """Response for workflow list"""
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int


# ============================================================================
# Routes
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_workflow(
    request: CreateWorkflowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Create a DRAFT workflow template (ADMIN)"""
    try:
        service = WorkflowService()
        template = service.create_template(
            name=request.name,
            description=request.description,
            steps=request.steps,
            form_schema=request.form_schema,
            actor=actor,
            correlation_id=correlation_id
        )
        return template.model_dump(mode="json")

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    status: Optional[TemplateStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep)
):
    """List workflow templates, most recently updated first"""
    service = WorkflowService()
    templates = service.list_templates(
        status=status,
        skip=page_to_skip(page, page_size),
        limit=page_size
    )
    return WorkflowListResponse(
        items=[t.model_dump(mode="json") for t in templates],
        page=page,
        page_size=page_size,
        total=service.count_templates(status=status)
    )


@router.get("/{template_id}")
async def get_workflow(
    template_id: str,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Get a template with its steps, form schema and process count"""
    try:
        service = WorkflowService()
        template = service.get_template(template_id)
        return {
            **template.model_dump(mode="json"),
            "process_count": service.count_processes(template_id)
        }

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.put("/{template_id}")
async def update_workflow(
    template_id: str,
    request: UpdateWorkflowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Update name/description, or replace steps and form schema (ADMIN)"""
    try:
        service = WorkflowService()
        template = service.update_template(
            template_id=template_id,
            actor=actor,
            name=request.name,
            description=request.description,
            steps=request.steps,
            form_schema=request.form_schema,
            clear_form_schema=request.clear_form_schema,
            correlation_id=correlation_id
        )
        return template.model_dump(mode="json")

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{template_id}/status")
async def update_workflow_status(
    template_id: str,
    request: UpdateStatusRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Change template status; activation requires steps and, for FORM steps, a form schema"""
    try:
        service = WorkflowService()
        template = service.set_status(template_id, request.status, actor, correlation_id)
        return template.model_dump(mode="json")

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{template_id}")
async def delete_workflow(
    template_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Delete a template that has no processes (ADMIN)"""
    try:
        service = WorkflowService()
        deleted = service.delete_template(template_id, actor, correlation_id)
        return {"success": deleted}

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
