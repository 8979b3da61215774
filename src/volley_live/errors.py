"""
volley_live.errors — Custom exception classes
==============================================

Defines the exception hierarchy for the scorer package.
Each exception stores full context for structured logging.

Faults on inconsistent engine structures (undo on an empty log, rotating
an empty lineup) are deliberately *not* exceptions: the engine logs them
and ignores the call.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
import json


class VolleyLiveError(Exception):
    """Base exception for all volley_live errors."""
    pass


class ConfigError(VolleyLiveError, ValueError):
    """Raised when configuration keys are missing or invalid."""
    pass


class SchemaVersionError(VolleyLiveError):
    """Raised when a persisted payload carries an unknown schema version."""

    def __init__(self, found: Any, expected: int):
        self.found = found
        self.expected = expected
        super().__init__(
            f"Unsupported schema_version {found!r} (expected {expected})"
        )


class BroadcastNetworkError(VolleyLiveError):
    """A push to or pull from a shared store failed."""

    def __init__(self, operation: str, match_code: Optional[str], reason: str):
        self.operation = operation
        self.match_code = match_code
        self.reason = reason
        super().__init__(f"{operation} failed for {match_code or '-'}: {reason}")


class BroadcastAuthorizationError(VolleyLiveError):
    """Raised when a broadcast is started or updated without an owner."""

    def __init__(self, message: str = "Sign in to share your match"):
        super().__init__(message)


class BatchCommitError(VolleyLiveError):
    """Raised when a batch of actions failed and was rolled back."""

    def __init__(
        self,
        applied_count: int,
        total_count: int,
        cause: BaseException,
        restored: bool,
        actions: Optional[List[Dict[str, Any]]] = None,
    ):
        self.applied_count = applied_count
        self.total_count = total_count
        self.cause = cause
        self.restored = restored
        self.actions = actions or []
        super().__init__(
            f"{applied_count} action(s) applied, then rolled back: {cause}"
        )

    def format_error_log(self) -> str:
        return _format_error_block(
            error_type="BATCH_ROLLBACK",
            summary=f"{self.applied_count}/{self.total_count} applied, restored={self.restored}",
            payload={"actions": self.actions},
            details=[f"{type(self.cause).__name__}: {self.cause}"],
        )


def _format_error_block(
    error_type: str,
    summary: str,
    payload: Dict[str, Any],
    details: Optional[List[str]],
) -> str:
    """Format a structured error block for terminal output."""
    from datetime import datetime, timezone

    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    lines = [
        "",
        "=" * 64,
        " SCORER ERROR",
        "=" * 64,
        f" Timestamp:    {timestamp}",
        f" Error Type:   {error_type}",
        f" Summary:      {summary}",
        "",
        " ── PAYLOAD " + "─" * 52,
        _indent_json(payload),
    ]

    if details:
        lines.append("")
        lines.append(" ── DETAILS " + "─" * 52)
        for detail in details:
            lines.append(f" • {detail}")

    lines.append("")
    lines.append("=" * 64)
    lines.append("")

    return "\n".join(lines)


def _indent_json(data: Dict[str, Any], indent: int = 2) -> str:
    """Format JSON with indentation for error logs."""
    try:
        formatted = json.dumps(data, indent=indent, default=str)
        return "\n".join(" " + line for line in formatted.split("\n"))
    except (TypeError, ValueError):
        return f" {repr(data)}"
