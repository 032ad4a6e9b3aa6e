from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TemplateStatus(str, Enum):
    INITIALIZED = "initialized"
    APPLIED = "applied"
    APPLY_FAILED = "apply_failed"
    DESTROY_FAILED = "destroy_failed"


class TemplateRecord(BaseModel):
    """
    Lifecycle record of one active template.

    name, bucket_name, workspace_path and created_at identify the record and are
    never modified; a fresh init replaces the whole record instead.
    A successful destroy deletes the record, so there is no "destroyed" status.
    """
    name: str
    bucket_name: str
    workspace_path: str
    status: TemplateStatus = TemplateStatus.INITIALIZED
    error: Optional[str] = None
    created_at: int  # epoch milliseconds

    class Config:
        use_enum_values = True
