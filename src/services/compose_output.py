"""Parsing of ``compose ps --format json`` output.

Compose releases disagree on the shape: newer ones print one JSON object
per line, older ones a single JSON array. Both are accepted. Records that
do not fit ``ServiceStatus`` are read field by field instead, and lines
that are not JSON at all are skipped.
"""

import json
from typing import Any, Dict, List

import structlog
from pydantic import ValidationError

from ..models.compose import PortPublisher, ServiceStatus
from ..models.errors import ComposeParseError

logger = structlog.get_logger(__name__)

_STRING_FIELDS = {
    "Name": "name",
    "Command": "command",
    "State": "state",
    "Status": "status",
    "Health": "health",
}

_OPTIONAL_FIELDS = {
    "ID": "id",
    "Service": "service",
    "Project": "project",
    "Image": "image",
}


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def _publishers_from_list(value: Any) -> List[PortPublisher]:
    if not isinstance(value, list):
        return []

    publishers = []
    for item in value:
        if not isinstance(item, dict):
            continue
        publishers.append(
            PortPublisher(
                url=str(item.get("URL") or ""),
                target_port=_as_int(item.get("TargetPort")),
                published_port=_as_int(item.get("PublishedPort")),
                protocol=str(item.get("Protocol") or ""),
            )
        )
    return publishers


def _status_from_mapping(data: Dict[str, Any]) -> ServiceStatus:
    """Build a status from an arbitrary mapping, pulling known keys only."""
    values: Dict[str, Any] = {}
    for key, attr in _STRING_FIELDS.items():
        value = data.get(key)
        values[attr] = value if isinstance(value, str) else ""
    for key, attr in _OPTIONAL_FIELDS.items():
        value = data.get(key)
        values[attr] = value if isinstance(value, str) else None

    values["exit_code"] = _as_int(data.get("ExitCode"))
    values["publishers"] = _publishers_from_list(data.get("Publishers"))
    return ServiceStatus(**values)


def _parse_record(data: Any) -> ServiceStatus:
    try:
        return ServiceStatus.model_validate(data)
    except ValidationError:
        if not isinstance(data, dict):
            raise
        return _status_from_mapping(data)


def parse_ps_output(output: str) -> List[ServiceStatus]:
    """Parse ``ps`` output into one ``ServiceStatus`` per container.

    Args:
        output: Raw stdout of ``compose ps --format json``

    Returns:
        Parsed statuses; empty output yields an empty list

    Raises:
        ComposeParseError: If the output is a JSON array that cannot be read
    """
    output = output.strip()
    if not output:
        return []

    if output.startswith("["):
        try:
            records = json.loads(output)
        except json.JSONDecodeError as e:
            raise ComposeParseError(f"Malformed compose ps output: {e}") from e
        if not isinstance(records, list):
            raise ComposeParseError("Malformed compose ps output: expected a JSON array")

        statuses = []
        for record in records:
            try:
                statuses.append(_parse_record(record))
            except ValidationError:
                logger.debug("Skipping unparseable compose ps record", record=repr(record)[:200])
        return statuses

    statuses = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        try:
            statuses.append(ServiceStatus.model_validate_json(line))
            continue
        except ValidationError:
            pass

        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping unparseable compose ps line", line=line[:200])
            continue

        if isinstance(data, dict):
            statuses.append(_status_from_mapping(data))
        else:
            logger.debug("Skipping non-object compose ps line", line=line[:200])

    return statuses
