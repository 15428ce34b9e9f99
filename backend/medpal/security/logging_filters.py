"""Logging filters that scrub credentials from log records."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Bearer\s+[\w\.-]+"
    r"|access_token\"?\s*[:=]\s*\"?[^\"\s&,]+\"?"
    r"|password\"?\s*[:=]\s*\"?[^\"\s&,]+\"?)",
    re.IGNORECASE,
)

REDACTED = "**REDACTED**"


def scrub(value: str) -> str:
    """Replace bearer tokens and password fields in ``value``."""
    return _SENSITIVE_PATTERN.sub(REDACTED, value)


class SensitiveFilter(logging.Filter):
    """Scrub the message and string arguments of every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                scrub(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def install(logger_names: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error", "")) -> None:
    """Attach a single ``SensitiveFilter`` to each named logger."""
    for name in logger_names:
        target = logging.getLogger(name)
        if not any(isinstance(flt, SensitiveFilter) for flt in target.filters):
            target.addFilter(SensitiveFilter())


__all__ = ["REDACTED", "SensitiveFilter", "install", "scrub"]
