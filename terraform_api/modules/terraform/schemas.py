from pydantic import BaseModel, Field
from typing import Optional, Dict, List

from terraform_api.modules.terraform.models import TemplateRecord


class TemplateRequest(BaseModel):
    # Optional so a missing name is reported as our 400, not FastAPI's 422
    template_name: Optional[str] = None


class TemplateOperationResponse(BaseModel):
    message: str
    template_name: str
    status: TemplateRecord
    output: str = ""


class DestroyResponse(BaseModel):
    message: str
    template_name: str
    output: str = ""


class StatusResponse(BaseModel):
    activeTemplates: Dict[str, TemplateRecord]


class BucketSweepSummary(BaseModel):
    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    message: str
    buckets: BucketSweepSummary
    workspaces_removed: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
