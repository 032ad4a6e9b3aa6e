import os
import shutil
import logging
from typing import List, Optional

from terraform_api.config import settings
from terraform_api.core.exceptions import WorkspaceError

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """Creates and removes the per-template working directories terraform runs in."""

    def __init__(
        self,
        source_path: Optional[str] = None,
        template_files: Optional[List[str]] = None,
        root: Optional[str] = None,
    ):
        self.source_path = source_path or settings.terraform_path
        # Explicit file list, never a recursive copy of the source directory
        self.template_files = template_files if template_files is not None else settings.get_template_files_list()
        self.root = root or settings.get_workspace_root()

    def path_for(self, template_name: str, created_at: int) -> str:
        """Workspace location, unique per (template_name, created_at)."""
        return os.path.abspath(os.path.join(self.root, f"{template_name}-{created_at}"))

    def exists(self, path: str) -> bool:
        return os.path.isdir(path)

    def ensure_workspace(self, path: str) -> List[str]:
        """
        Create the workspace directory and seed it with the template files.

        Files missing at the source are skipped silently; a file that fails to
        copy is logged and skipped. Only a failure to create the directory
        itself is raised.

        Returns:
            Names of the files copied into the workspace
        """
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Failed to create workspace {path}: {e}", error="Failed to create workspace")
        logger.info(f"Created workspace directory: {path}")

        copied = []
        for file_name in self.template_files:
            src_path = os.path.join(self.source_path, file_name)
            if not os.path.isfile(src_path):
                continue
            try:
                shutil.copyfile(src_path, os.path.join(path, file_name))
                copied.append(file_name)
                logger.info(f"Copied {file_name} to {path}")
            except OSError as e:
                logger.warning(f"Could not copy {file_name}: {e}")
        return copied

    def remove_workspace(self, path: str) -> bool:
        """Recursively delete a workspace. A path that is already gone counts as removed."""
        if not os.path.exists(path):
            return True
        try:
            shutil.rmtree(path)
            logger.info(f"Cleaned up workspace directory: {path}")
            return True
        except OSError as e:
            logger.error(f"Error cleaning up workspace directory {path}: {e}")
            return False
