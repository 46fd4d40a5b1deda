"""
Logging setup for applications embedding the client.

Library modules only create module loggers; ``configure_logging`` is for the
process entry point (the CLI calls it). A filter on the handler masks bearer
tokens and password/token values so credentials never reach the output.
"""
from __future__ import annotations

import logging
import re
import sys
from typing import Any, Mapping, Optional, TextIO, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SENSITIVE_FIELDS = {"password", "secret", "token", "authorization", "credential"}

SENSITIVE_PATTERNS = [
    (re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*"), r"\1***"),
    (
        re.compile(r"""(["']?(?:password|secret|token)["']?\s*[:=]\s*["']?)[^"',\s}]+""", re.IGNORECASE),
        r"\1***",
    ),
]


def mask_text(text: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_value(value: Any) -> Any:
    """Recursively mask sensitive keys in mappings and sensitive patterns in strings."""
    if isinstance(value, Mapping):
        return {
            k: "***" if str(k).lower() in SENSITIVE_FIELDS else mask_value(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(mask_value(v) for v in value)
    if isinstance(value, str):
        return mask_text(value)
    return value


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            if isinstance(record.args, Mapping):
                record.args = mask_value(record.args)
            else:
                record.args = tuple(mask_value(a) for a in record.args)
        if isinstance(record.msg, str):
            record.msg = mask_text(record.msg)
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.WARNING, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Attach a redacting stream handler to the ``splitdesk`` logger.

    Calling it again replaces the handler instead of adding a second one.
    """
    logger = logging.getLogger("splitdesk")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_splitdesk", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RedactingFilter())
    handler._splitdesk = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
