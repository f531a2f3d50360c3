"""Redaction of credential-like material from log and report text.

Reports may be persisted or shared, so every error string that reaches a log
record or a report field goes through ``redact`` first.
"""

import logging
import re
from typing import List, Tuple

REDACTED_TOKEN = "[REDACTED_TOKEN]"

_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"github_pat_[A-Za-z0-9]{22}_[A-Za-z0-9]{59}"), REDACTED_TOKEN),
    (re.compile(r"ghp_[A-Za-z0-9]{36}"), REDACTED_TOKEN),
    # OAuth, user-to-server, server-to-server and refresh tokens
    (re.compile(r"gh[ousr]_[A-Za-z0-9]{36,}"), REDACTED_TOKEN),
    (re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE), "Bearer [REDACTED]"),
    (re.compile(r"Authorization:\s*(?:token\s+|Bearer\s+)?[A-Za-z0-9._~+/=-]+", re.IGNORECASE), "Authorization: [REDACTED]"),
    (re.compile(r"\btoken\s+[A-Za-z0-9_]{20,}"), "token [REDACTED]"),
]


def redact(text: str) -> str:
    """Replaces every credential-shaped substring of ``text``."""
    if not text:
        return text
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def summarize_error(error: BaseException) -> str:
    """Builds the sanitized one-line error summary used in reports and logs."""
    message = str(error) or error.__class__.__name__
    status = getattr(error, "status", None)
    summary = f"{error.__class__.__name__}: {message}"
    if status is not None:
        summary += f" (status {status})"
    return redact(summary)


class RedactingFormatter(logging.Formatter):
    """Formatter that redacts the fully rendered record, traceback included."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))
