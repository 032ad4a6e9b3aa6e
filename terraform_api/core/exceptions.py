"""
Error taxonomy for the Terraform API.

Each error carries the HTTP status it maps to, a stable ``error`` summary for
clients and a ``details`` string with the underlying (redacted) message.
"""
from typing import Optional


class TerraformApiError(Exception):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, details: str = "", error: Optional[str] = None):
        super().__init__(details)
        self.details = details
        if error:
            self.error = error


class ValidationError(TerraformApiError):
    """Missing or malformed request field. Raised before any side effect."""
    status_code = 400
    error = "template_name is required."


class NotFoundError(TerraformApiError):
    status_code = 404
    error = "Template not found"

    def __init__(self, template_name: str):
        message = f"Template {template_name} not found. Run /terraform/init first."
        super().__init__(message, error=message)


class WorkspaceError(TerraformApiError):
    error = "Workspace error"


class SubprocessError(TerraformApiError):
    """Terraform exited non-zero, timed out or could not be started."""
    error = "Terraform command failed"


class ReconciliationError(TerraformApiError):
    error = "Failed to clean up temporary resources"
