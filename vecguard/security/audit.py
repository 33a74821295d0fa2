"""Structured JSON audit logging using structlog.

Every egress evaluation, permission decision, rule mutation and budget
event is recorded as one JSON object per line for post-hoc review.
Values under sensitive keys are redacted before they reach the sink.
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Any

import structlog

REDACTED = "[REDACTED]"

SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "apikey",
    "api_key",
    "token",
    "access_token",
    "refresh_token",
    "authorization",
    "cookie",
    "secret",
})


class AuditLogger:
    """Structured audit logger for security decisions.

    With a ``log_path`` events are appended to a JSONL file through a
    dedicated structlog logger. Without one they go to the process-wide
    structlog configuration under the ``audit`` logger name.
    """

    def __init__(self, log_path: str | Path | None = None) -> None:
        """Initialize the audit logger.

        Args:
            log_path: Path to the JSONL audit log file, or None to emit
                through the process logger.
        """
        self._file = None
        if log_path is None:
            self._log_path = None
            self._logger = structlog.get_logger("audit")
            return

        self._log_path = Path(log_path)
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self._log_path, "a", buffering=1)  # noqa: SIM115

        self._logger = structlog.wrap_logger(
            structlog.PrintLogger(file=self._file),
            processors=[
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.JSONRenderer(),
            ],
        )

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def record(
        self,
        event_type: str,
        action: str,
        *,
        target: str | None = None,
        approved: bool | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record one audit event.

        Args:
            event_type: Subsystem emitting the event (egress, permission, budget).
            action: What happened (scan, check, rule_created, alert, ...).
            target: The path or destination the decision concerned.
            approved: The decision, if the event is a decision.
            details: Extra structured context. Sensitive keys are redacted.
        """
        fields: dict[str, Any] = {"audit": True, "type": event_type, "action": action}
        if target is not None:
            fields["target"] = target
        if approved is not None:
            fields["approved"] = approved
        if details:
            fields["details"] = _redact(_truncate(details))

        log = self._logger.warning if approved is False else self._logger.info
        log(f"audit_{event_type}_{action}", **fields)

    def close(self) -> None:
        """Close the audit log file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> AuditLogger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _redact(value: Any) -> Any:
    """Recursively replace values stored under sensitive keys."""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def _truncate(details: dict[str, Any], max_len: int = 2000) -> dict[str, Any]:
    """Truncate string values in a details dict to prevent log bloat."""
    truncated = {}
    for k, v in details.items():
        if isinstance(v, str) and len(v) > max_len:
            truncated[k] = v[:max_len] + f"... (truncated, {len(v)} total)"
        else:
            truncated[k] = v
    return truncated
