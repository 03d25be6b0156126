"""Logging helpers for failed device requests."""

from __future__ import annotations

import logging
from typing import Any


def describe_device(device: Any) -> str:
    """Short ``<type> <id>`` label for log lines."""
    if device is None:
        return "<detached device>"
    return f"{getattr(device, 'type', '?')} {getattr(device, 'id', '?')}"


def handle_failed_request(
    logger: logging.Logger | logging.LoggerAdapter[Any],
    device: Any,
    exc: BaseException,
    message: str,
) -> None:
    """Log a failed device request with enough context to diagnose it."""
    host = getattr(device, "host", None) if device is not None else None
    logger.error(
        "%s; device=%s host=%s error=%s",
        message,
        describe_device(device),
        host or "-",
        exc,
        exc_info=exc,
    )
