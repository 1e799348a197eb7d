"""Path validation for executor filesystem operations."""

import posixpath
from typing import Optional

import structlog

from ..models.errors import PathValidationError

logger = structlog.get_logger(__name__)


class PathValidator:
    """Rejects user-influenced paths before they reach a filesystem."""

    # Maximum filename length
    MAX_FILENAME_LENGTH = 255

    @classmethod
    def validate_path(cls, path: str) -> str:
        """Validate a host path and return its normalized form.

        A path is rejected when it is empty, contains a null byte, or has a
        ``..`` segment either as written or after normalization.
        """
        if not path:
            raise PathValidationError(path or "", "path must not be empty")

        if "\x00" in path:
            logger.warning("Null byte in path", path=repr(path))
            raise PathValidationError(path, "path must not contain null bytes")

        cleaned = posixpath.normpath(path.replace("\\", "/"))
        raw_segments = path.replace("\\", "/").split("/")
        if ".." in raw_segments or ".." in cleaned.split("/"):
            logger.warning("Path traversal attempt", path=path)
            raise PathValidationError(path)

        return cleaned

    @classmethod
    def validate_filename(cls, filename: str) -> str:
        """Validate a bare file name used inside a scratch directory."""
        if not filename or filename in (".", ".."):
            raise PathValidationError(filename or "", "file name must not be empty")

        if len(filename) > cls.MAX_FILENAME_LENGTH:
            raise PathValidationError(filename, "file name too long")

        if "/" in filename or "\\" in filename or "\x00" in filename:
            logger.warning("Path traversal attempt in filename", filename=filename)
            raise PathValidationError(filename, "file name must not contain path separators")

        return filename

    @classmethod
    def parent_dir(cls, path: str) -> Optional[str]:
        """Directory part of ``path`` or None for a bare name."""
        parent = posixpath.dirname(path.rstrip("/"))
        return parent or None


validate_path = PathValidator.validate_path
validate_filename = PathValidator.validate_filename
