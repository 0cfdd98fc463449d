"""
AbsolutePathManager for consistent path resolution of cleaning inputs and outputs.
"""

import os
from pathlib import Path
from typing import Union
import logging

logger = logging.getLogger(__name__)


class PathResolutionError(Exception):
    """Raised when path cannot be resolved to absolute path"""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot resolve path '{path}': {reason}")


class FileAccessError(Exception):
    """Raised when file cannot be accessed with absolute path"""
    def __init__(self, path: str, operation: str, reason: str):
        self.path = path
        self.operation = operation
        self.reason = reason
        super().__init__(f"Cannot {operation} file '{path}': {reason}")


class AbsolutePathManager:
    """
    Resolves every path against a workspace root so that configuration files
    can use paths relative to their own location.
    """

    def __init__(self, workspace_root: Union[str, Path]):
        """
        Args:
            workspace_root: Directory relative paths are resolved against

        Raises:
            PathResolutionError: If workspace_root does not exist
        """
        try:
            self.workspace_root = Path(workspace_root).resolve()
        except (OSError, ValueError) as e:
            raise PathResolutionError(str(workspace_root), str(e))

        if not self.workspace_root.is_dir():
            raise PathResolutionError(str(workspace_root), "Workspace root directory does not exist")

        logger.debug(f"Initialized AbsolutePathManager with workspace: {self.workspace_root}")

    def resolve_path(self, path: Union[str, Path]) -> Path:
        """Return the absolute form of path (relative paths are taken from the workspace root)"""
        if not path:
            raise PathResolutionError("", "Empty path provided")

        try:
            path_obj = Path(path).expanduser()
            if path_obj.is_absolute():
                return path_obj.resolve()
            return (self.workspace_root / path_obj).resolve()
        except (OSError, ValueError) as e:
            raise PathResolutionError(str(path), str(e))

    def validate_path(self, path: Union[str, Path], must_exist: bool = False,
                      must_be_file: bool = False, must_be_dir: bool = False) -> bool:
        """
        Check existence, type and read permission of a path.

        Raises:
            FileAccessError: If the path fails any requested check
        """
        abs_path = self.resolve_path(path)
        must_exist = must_exist or must_be_file or must_be_dir

        if not abs_path.exists():
            if must_exist:
                raise FileAccessError(str(abs_path), "access", "Path does not exist")
            return True

        if must_be_file and not abs_path.is_file():
            raise FileAccessError(str(abs_path), "access", "Path exists but is not a file")

        if must_be_dir and not abs_path.is_dir():
            raise FileAccessError(str(abs_path), "access", "Path exists but is not a directory")

        if not os.access(abs_path, os.R_OK):
            raise FileAccessError(str(abs_path), "read", "No read permission")

        return True

    def ensure_directory(self, path: Union[str, Path]) -> Path:
        """Create a directory (and parents) if needed"""
        abs_path = self.resolve_path(path)
        try:
            abs_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileAccessError(str(abs_path), "create directory", str(e))
        return abs_path

    def ensure_file_writable(self, path: Union[str, Path]) -> Path:
        """Create parent directories of a file path and check write permission"""
        abs_path = self.resolve_path(path)
        self.ensure_directory(abs_path.parent)

        target = abs_path if abs_path.exists() else abs_path.parent
        if not os.access(target, os.W_OK):
            raise FileAccessError(str(target), "write", "No write permission")

        return abs_path
