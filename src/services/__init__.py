"""Services module for the host connection and compose layer."""

from .compose import ComposeService, collect_output
from .compose_output import parse_ps_output
from .connection import ConnectionCache, DockerConnection, create_connection
from .executor import CommandExecutor, CommandStream, create_executor

__all__ = [
    "ComposeService",
    "collect_output",
    "parse_ps_output",
    "ConnectionCache",
    "DockerConnection",
    "create_connection",
    "CommandExecutor",
    "CommandStream",
    "create_executor",
]
