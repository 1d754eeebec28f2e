"""Shared log line and report data codec helpers."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def domain_build_log_line(message: str, level: str = "INFO", at_utc: datetime | None = None) -> str:
    """Build one timestamped log artifact line.

    Args:
        message: Log message text.
        level: Severity label.
        at_utc: Optional explicit timestamp.

    Returns:
        str: Single line without trailing newline.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    timestamp = (at_utc or datetime.now(timezone.utc)).isoformat()
    single_line_message = " ".join(str(message).splitlines())
    return f"{timestamp} {level.upper()} {single_line_message}"


def domain_encode_report_data(data: Any) -> bytes:
    """Encode evaluated report data for the `data` artifact.

    Args:
        data: JSON-compatible data set.

    Returns:
        bytes: UTF-8 JSON payload.

    Raises:
        TypeError: Raised when data is not JSON-serializable.
    """

    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def domain_decode_report_data(payload: bytes) -> Any:
    """Decode a `data` artifact payload.

    Args:
        payload: UTF-8 JSON payload.

    Returns:
        Any: Decoded data set.

    Raises:
        ValueError: Raised when payload is not valid JSON.
    """

    return json.loads(payload.decode("utf-8"))
