import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from terraform_api.config import settings
from terraform_api.core.exceptions import (
    NotFoundError, ReconciliationError, TerraformApiError, SubprocessError, ValidationError
)
from terraform_api.core.redaction import redact
from terraform_api.modules.terraform.bucket_reconciler import BucketReconciler, SweepReport
from terraform_api.modules.terraform.locks import KeyedLock
from terraform_api.modules.terraform.models import TemplateRecord, TemplateStatus
from terraform_api.modules.terraform.process_runner import CommandResult, CommandSpec, ProcessRunner
from terraform_api.modules.terraform.registry import TemplateRegistry
from terraform_api.modules.terraform.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

# Names end up in directory and bucket names
TEMPLATE_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


@dataclass
class OperationOutcome:
    template_name: str
    output: str
    record: Optional[TemplateRecord] = None


@dataclass
class CleanupReport:
    buckets: SweepReport
    workspaces_removed: List[str] = field(default_factory=list)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _error_details(error: Exception) -> str:
    if isinstance(error, TerraformApiError):
        return error.details
    return redact(f"{type(error).__name__}: {error}")


class TemplateLifecycleService:
    """
    Drives init/apply/destroy for templates and the global cleanup.

    Every operation on a template name holds that name's lock for its whole
    duration, so calls for the same name are linearized while different names
    proceed concurrently. Blocking filesystem and S3 work runs in worker
    threads to keep the event loop free.
    """

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        workspaces: Optional[WorkspaceManager] = None,
        runner: Optional[ProcessRunner] = None,
        reconciler: Optional[BucketReconciler] = None,
        locks: Optional[KeyedLock] = None,
        terraform_binary: Optional[str] = None,
        clock: Callable[[], int] = _epoch_ms,
    ):
        self.registry = registry or TemplateRegistry()
        self.workspaces = workspaces or WorkspaceManager()
        self.runner = runner or ProcessRunner()
        self._reconciler = reconciler
        self.locks = locks or KeyedLock()
        self.terraform_binary = terraform_binary or settings.terraform_binary
        self.clock = clock

    @property
    def reconciler(self) -> BucketReconciler:
        # Built on first use so the service starts without AWS configuration
        if self._reconciler is None:
            self._reconciler = BucketReconciler()
        return self._reconciler

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, TemplateRecord]:
        return self.registry.list_all()

    async def init(self, template_name: str) -> OperationOutcome:
        """
        Create a fresh workspace and record for the template and run terraform init.

        An existing record for the same name is replaced, and its workspace is
        removed first so repeated inits do not leak directories. If anything
        fails the new workspace is removed and no record is kept.
        """
        self._validate_name(template_name)
        async with self.locks.hold(template_name):
            logger.info(f"[INIT] Starting initialization for template: {template_name}")

            previous = self.registry.get(template_name)
            if previous is not None:
                logger.info(f"[INIT] Replacing existing record for {template_name}, removing {previous.workspace_path}")
                await asyncio.to_thread(self.workspaces.remove_workspace, previous.workspace_path)
                self.registry.delete(template_name)

            created_at = self.clock()
            record = TemplateRecord(
                name=template_name,
                bucket_name=f"{self.reconciler_prefix}{template_name}-{created_at}",
                workspace_path=self.workspaces.path_for(template_name, created_at),
                status=TemplateStatus.INITIALIZED,
                created_at=created_at,
            )
            logger.info(f"[INIT] Generated S3 bucket name: {record.bucket_name}")

            try:
                await asyncio.to_thread(self.workspaces.ensure_workspace, record.workspace_path)
                result = await self._run(record, "init", (), "Failed to initialize Terraform")
            except Exception as e:
                logger.error(f"[INIT] Terraform Initialization Error: {_error_details(e)}")
                await asyncio.to_thread(self.workspaces.remove_workspace, record.workspace_path)
                raise

            self.registry.set(template_name, record)
            logger.info(f"[INIT] Initialization completed successfully for {template_name}")
            return OperationOutcome(template_name, redact(result.output), record)

    async def apply(self, template_name: str) -> OperationOutcome:
        """Run terraform apply. A failure marks the record apply_failed but keeps it for retry."""
        self._validate_name(template_name)
        async with self.locks.hold(template_name):
            logger.info(f"[APPLY] Starting apply for template: {template_name}")
            record = self._get_or_raise(template_name)

            try:
                await self._ensure_workspace(record)
                result = await self._run(record, "apply", ("-auto-approve",), "Failed to apply Terraform")
            except Exception as e:
                details = _error_details(e)
                logger.error(f"[APPLY] Terraform Apply Error: {details}")
                self.registry.set(
                    template_name,
                    record.model_copy(update={"status": TemplateStatus.APPLY_FAILED, "error": details}),
                )
                raise

            record = record.model_copy(update={"status": TemplateStatus.APPLIED, "error": None})
            self.registry.set(template_name, record)
            logger.info(f"[APPLY] Apply completed successfully for {template_name}")
            return OperationOutcome(template_name, redact(result.output), record)

    async def destroy(self, template_name: str) -> OperationOutcome:
        """
        Run terraform destroy, then drop the template's bucket, workspace and record.

        On failure the record is marked destroy_failed and both record and
        workspace are left in place for inspection or a retry. Deleting the
        bucket is best-effort and never fails the destroy.
        """
        self._validate_name(template_name)
        async with self.locks.hold(template_name):
            logger.info(f"[DESTROY] Starting destroy for template: {template_name}")
            record = self._get_or_raise(template_name)

            try:
                await self._ensure_workspace(record)
                result = await self._run(
                    record, "destroy", ("-auto-approve",), "Failed to destroy Terraform resources"
                )
            except Exception as e:
                details = _error_details(e)
                logger.error(f"[DESTROY] Terraform Destroy Error: {details}")
                self.registry.set(
                    template_name,
                    record.model_copy(update={"status": TemplateStatus.DESTROY_FAILED, "error": details}),
                )
                raise

            logger.info(f"[DESTROY] Attempting to clean up S3 bucket: {record.bucket_name}")
            try:
                deleted = await asyncio.to_thread(self.reconciler.delete_bucket, record.bucket_name)
            except Exception as e:
                logger.error(f"[DESTROY] Error cleaning up bucket {record.bucket_name}: {redact(str(e))}")
                deleted = False
            if not deleted:
                logger.warning(f"[DESTROY] Bucket {record.bucket_name} was not cleaned up")

            await asyncio.to_thread(self.workspaces.remove_workspace, record.workspace_path)
            self.registry.delete(template_name)
            logger.info(f"[DESTROY] Destroy completed successfully for {template_name}")
            return OperationOutcome(template_name, redact(result.output))

    async def cleanup_all(self) -> CleanupReport:
        """
        Sweep every temporary bucket, remove all tracked workspaces and clear the registry.

        Runs with every template name held: in-flight operations finish first
        and new ones wait until the cleanup is done. Only a failure to list
        buckets aborts the cleanup (nothing else is touched in that case).
        Records are dropped whether or not their own destroy ever ran.
        """
        logger.info("[CLEANUP] Starting cleanup of all temporary resources")
        async with self.locks.hold_all():
            try:
                buckets = await asyncio.to_thread(self.reconciler.sweep_temporary_buckets)
            except ReconciliationError as e:
                logger.error(f"[CLEANUP] Cleanup Error: {e.details}")
                raise

            records = self.registry.list_all()
            self.registry.clear()

            removed = []
            for record in records.values():
                path = record.workspace_path
                if not await asyncio.to_thread(self.workspaces.exists, path):
                    continue
                if await asyncio.to_thread(self.workspaces.remove_workspace, path):
                    removed.append(path)

        logger.info(
            f"[CLEANUP] Cleanup completed: {len(buckets.succeeded)} bucket(s) deleted, "
            f"{len(buckets.failed)} failed, {len(removed)} workspace(s) removed"
        )
        return CleanupReport(buckets=buckets, workspaces_removed=removed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def reconciler_prefix(self) -> str:
        if self._reconciler is not None:
            return self._reconciler.prefix
        return settings.temp_bucket_prefix

    def _validate_name(self, template_name: Optional[str]) -> None:
        if not template_name:
            raise ValidationError("Missing required field: template_name")
        if not TEMPLATE_NAME_PATTERN.fullmatch(template_name):
            raise ValidationError(
                f"Invalid template_name {template_name!r}: use letters, digits, '.', '_' or '-'",
                error="template_name is invalid.",
            )

    def _get_or_raise(self, template_name: str) -> TemplateRecord:
        record = self.registry.get(template_name)
        if record is None:
            logger.info(f"Template not found: {template_name}")
            raise NotFoundError(template_name)
        return record

    async def _ensure_workspace(self, record: TemplateRecord) -> None:
        """Recreate a workspace that disappeared from disk and re-run terraform init in it."""
        if await asyncio.to_thread(self.workspaces.exists, record.workspace_path):
            return
        logger.info(f"Workspace not found, recreating: {record.workspace_path}")
        await asyncio.to_thread(self.workspaces.ensure_workspace, record.workspace_path)
        await self._run(record, "init", (), "Failed to initialize Terraform")

    def _terraform_env(self, record: TemplateRecord) -> Dict[str, str]:
        """Extra environment for terraform; credentials go through env vars, never argv."""
        env = {
            f"TF_VAR_{settings.bucket_name_variable}": record.bucket_name,
            "AWS_DEFAULT_REGION": settings.aws_region,
        }
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            env["AWS_ACCESS_KEY_ID"] = settings.aws_access_key_id
            env["AWS_SECRET_ACCESS_KEY"] = settings.aws_secret_access_key
        return env

    async def _run(self, record: TemplateRecord, subcommand: str, args: tuple, error: str) -> CommandResult:
        spec = CommandSpec(
            binary=self.terraform_binary,
            subcommand=subcommand,
            working_dir=record.workspace_path,
            args=tuple(args),
            env=self._terraform_env(record),
        )
        result = await self.runner.run(spec)
        if not result.success:
            raise SubprocessError(redact(result.describe()), error=error)
        return result
