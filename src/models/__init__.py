"""Data models for the host connection layer."""

from .host import (
    CertificateBundle,
    CertificateStore,
    HostDescriptor,
    SSHAuthKind,
    TransportKind,
)
from .files import FileInfo
from .compose import (
    ComposeOptions,
    ComposeSourceType,
    DownOptions,
    LogsOptions,
    PortPublisher,
    ServiceStatus,
    UpOptions,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    DockhandException,
    ConfigurationError,
    HostConnectionError,
    ConnectionCloseError,
    ExecutorError,
    CommandError,
    CommandTimeoutError,
    PathValidationError,
    ComposeParseError,
    CleanupError,
)

__all__ = [
    # Host models
    "CertificateBundle",
    "CertificateStore",
    "HostDescriptor",
    "SSHAuthKind",
    "TransportKind",
    # File models
    "FileInfo",
    # Compose models
    "ComposeOptions",
    "ComposeSourceType",
    "DownOptions",
    "LogsOptions",
    "PortPublisher",
    "ServiceStatus",
    "UpOptions",
    # Errors
    "ErrorType",
    "ErrorDetail",
    "DockhandException",
    "ConfigurationError",
    "HostConnectionError",
    "ConnectionCloseError",
    "ExecutorError",
    "CommandError",
    "CommandTimeoutError",
    "PathValidationError",
    "ComposeParseError",
    "CleanupError",
]
