from fastapi import APIRouter, Depends
from typing import Optional
from terraform_api.core.dependencies import get_lifecycle_service
from terraform_api.core.exceptions import ValidationError
from terraform_api.modules.terraform.schemas import (
    TemplateRequest, TemplateOperationResponse, DestroyResponse, StatusResponse,
    CleanupResponse, BucketSweepSummary, ErrorResponse
)
from terraform_api.modules.terraform.service import TemplateLifecycleService

router = APIRouter(prefix="/terraform", tags=["terraform"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _require_template_name(request: Optional[TemplateRequest]) -> str:
    if request is None or not request.template_name:
        raise ValidationError("Missing required field: template_name")
    return request.template_name


@router.get("/status", response_model=StatusResponse)
async def get_status(service: TemplateLifecycleService = Depends(get_lifecycle_service)):
    """Get status of active templates"""
    return StatusResponse(activeTemplates=service.status())


@router.post("/init", response_model=TemplateOperationResponse, responses=ERROR_RESPONSES)
async def init_template(
    request: Optional[TemplateRequest] = None,
    service: TemplateLifecycleService = Depends(get_lifecycle_service)
):
    """Initialize Terraform for a specific template"""
    outcome = await service.init(_require_template_name(request))
    return TemplateOperationResponse(
        message="Terraform initialized successfully",
        template_name=outcome.template_name,
        status=outcome.record,
        output=outcome.output
    )


@router.post("/apply", response_model=TemplateOperationResponse, responses=ERROR_RESPONSES)
async def apply_template(
    request: Optional[TemplateRequest] = None,
    service: TemplateLifecycleService = Depends(get_lifecycle_service)
):
    """Apply Terraform configuration for a specific template"""
    outcome = await service.apply(_require_template_name(request))
    return TemplateOperationResponse(
        message="Terraform applied successfully",
        template_name=outcome.template_name,
        status=outcome.record,
        output=outcome.output
    )


@router.post("/destroy", response_model=DestroyResponse, responses=ERROR_RESPONSES)
async def destroy_template(
    request: Optional[TemplateRequest] = None,
    service: TemplateLifecycleService = Depends(get_lifecycle_service)
):
    """Destroy Terraform resources for a specific template"""
    outcome = await service.destroy(_require_template_name(request))
    return DestroyResponse(
        message="Terraform resources destroyed successfully",
        template_name=outcome.template_name,
        output=outcome.output
    )


@router.post("/cleanup", response_model=CleanupResponse, responses={500: {"model": ErrorResponse}})
async def cleanup(service: TemplateLifecycleService = Depends(get_lifecycle_service)):
    """
    Clean up all temporary resources.
    Deletes every temporary bucket, removes all tracked workspaces and
    forgets every active template.
    """
    report = await service.cleanup_all()
    return CleanupResponse(
        message="All temporary resources cleaned up successfully",
        buckets=BucketSweepSummary(succeeded=report.buckets.succeeded, failed=report.buckets.failed),
        workspaces_removed=report.workspaces_removed
    )
