"""
Core dependencies shared by the route modules
"""
from typing import Optional

from terraform_api.modules.terraform.service import TemplateLifecycleService


class LifecycleServiceProvider:
    _service: Optional[TemplateLifecycleService] = None

    @classmethod
    def get_service(cls) -> TemplateLifecycleService:
        # One service per process: it owns the in-memory registry and locks
        if cls._service is None:
            cls._service = TemplateLifecycleService()
        return cls._service

    @classmethod
    def reset_service(cls):
        cls._service = None


def get_lifecycle_service() -> TemplateLifecycleService:
    return LifecycleServiceProvider.get_service()
