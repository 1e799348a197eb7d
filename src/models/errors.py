"""Error models and exception classes for the host connection layer."""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Error type enumeration."""

    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    COMMAND_FAILED = "command_failed"
    TIMEOUT = "timeout"
    PARSE = "parse"
    PATH_VALIDATION = "path_validation"
    CLEANUP = "cleanup"
    EXECUTOR = "executor"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Subject of the error, e.g. a host id")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


# Custom Exception Classes


class DockhandException(Exception):
    """Base exception for the host connection layer."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.EXECUTOR,
        details: Optional[List[ErrorDetail]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation for API error envelopes."""
        data: Dict[str, Any] = {
            "error": self.message,
            "error_type": self.error_type.value,
        }
        if self.details:
            data["details"] = [d.model_dump(exclude_none=True) for d in self.details]
        return data


class ConfigurationError(DockhandException):
    """Unsupported transport, auth kind or otherwise unusable host settings."""

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(message=message, error_type=ErrorType.CONFIGURATION, **kwargs)


class HostConnectionError(DockhandException):
    """Dial, authentication or TLS failure while reaching a host."""

    def __init__(self, message: str = "Connection failed", host: Optional[str] = None, **kwargs):
        self.host = host
        super().__init__(message=message, error_type=ErrorType.CONNECTION, **kwargs)


class ConnectionCloseError(HostConnectionError):
    """One or more cached connections failed to close."""

    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = failures
        details = [ErrorDetail(field=host_id, message=str(err)) for host_id, err in failures.items()]
        summary = "; ".join(f"{host_id}: {err}" for host_id, err in failures.items())
        super().__init__(message=f"Failed to close {len(failures)} connection(s): {summary}", details=details)


class ExecutorError(DockhandException):
    """Process or filesystem operation failed on the target host."""

    def __init__(self, message: str = "Executor operation failed", **kwargs):
        kwargs.setdefault("error_type", ErrorType.EXECUTOR)
        super().__init__(message=message, **kwargs)


class CommandError(ExecutorError):
    """A command exited with a non-zero status."""

    def __init__(
        self,
        command: Sequence[str],
        exit_code: Optional[int],
        stderr: str = "",
        **kwargs,
    ):
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"Command failed with exit code {exit_code}: {' '.join(self.command)}"
        if stderr:
            message += f", stderr: {stderr.strip()}"
        super().__init__(message=message, error_type=ErrorType.COMMAND_FAILED, **kwargs)


class CommandTimeoutError(ExecutorError):
    """A command exceeded its deadline and was terminated."""

    def __init__(self, command: Sequence[str], timeout: float, **kwargs):
        self.command = list(command)
        self.timeout = timeout
        super().__init__(
            message=f"Command timed out after {timeout:g} seconds: {' '.join(self.command)}",
            error_type=ErrorType.TIMEOUT,
            **kwargs,
        )


class PathValidationError(ExecutorError):
    """A path was rejected before touching any filesystem."""

    def __init__(self, path: str, reason: str = "path must not contain '..'", **kwargs):
        self.path = path
        super().__init__(
            message=f"Invalid path {path!r}: {reason}",
            error_type=ErrorType.PATH_VALIDATION,
            **kwargs,
        )


class ComposeParseError(DockhandException):
    """Compose CLI output could not be parsed at all."""

    def __init__(self, message: str = "Failed to parse compose output", **kwargs):
        super().__init__(message=message, error_type=ErrorType.PARSE, **kwargs)


class CleanupError(DockhandException):
    """Temporary artifact removal failed."""

    def __init__(self, path: str, message: Optional[str] = None, **kwargs):
        self.path = path
        super().__init__(
            message=message or f"Failed to clean up {path}",
            error_type=ErrorType.CLEANUP,
            **kwargs,
        )
