"""Egress gate: scan outbound data and decide whether it may leave.

Clean data always passes. When the scanner reports findings, the
configured mode decides: ``log-only`` and ``warn`` let the data through
and surface the findings, ``block`` defers to the permission engine and
denies outright when no engine is attached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from vecguard.config import EgressMode, PermissionAction
from vecguard.errors import PersistenceFailure
from vecguard.security.audit import AuditLogger
from vecguard.security.patterns import CRITICAL_TYPES
from vecguard.security.permissions import PermissionEngine
from vecguard.security.scanner import Finding, ScanResult, scan

logger = structlog.get_logger()

NETWORK_SCHEMES: tuple[str, ...] = ("http://", "https://")


@dataclass(frozen=True)
class EgressDecision:
    """Outcome of an egress check."""

    allowed: bool
    findings: tuple[Finding, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"allowed": self.allowed, "findings": [f.to_dict() for f in self.findings]}


def destination_action(destination: str) -> PermissionAction:
    """Map a destination to the permission action that governs it."""
    if destination.startswith(NETWORK_SCHEMES):
        return PermissionAction.EGRESS_NETWORK
    return PermissionAction.EGRESS_FILE


class EgressGate:
    """Scans and gates outbound data."""

    def __init__(
        self,
        mode: EgressMode = EgressMode.BLOCK,
        permission_engine: PermissionEngine | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._mode = EgressMode(mode)
        self._permission_engine = permission_engine
        self._audit = audit or AuditLogger()

    @property
    def mode(self) -> EgressMode:
        return self._mode

    @mode.setter
    def mode(self, mode: EgressMode | str) -> None:
        self._mode = EgressMode(mode)
        logger.info("egress_mode_changed", mode=self._mode.value)

    def scan_only(self, data: str) -> ScanResult:
        """Scan data without gating."""
        return scan(data)

    async def check(self, data: str, destination: str) -> EgressDecision:
        """Check outbound data bound for a destination.

        Args:
            data: The payload about to leave.
            destination: A URL or file path.

        Returns:
            EgressDecision with the verdict and the findings.

        Raises:
            PersistenceFailure: If block mode prompted, the operator asked
                for a rule, and the rule could not be saved.
        """
        result = scan(data)

        if not result.has_secrets:
            logger.debug("egress_clean", destination=destination, mode=self._mode.value)
            self._audit.record(
                "egress", "scan", target=destination, approved=True,
                details={"finding_count": 0, "mode": self._mode.value},
            )
            return EgressDecision(allowed=True)

        details: dict[str, Any] = {
            "finding_count": len(result.findings),
            "finding_types": result.finding_types,
            "critical_count": sum(1 for f in result.findings if f.type in CRITICAL_TYPES),
            "mode": self._mode.value,
        }
        logger.warning("egress_sensitive_data", destination=destination, **details)

        if self._mode in (EgressMode.LOG_ONLY, EgressMode.WARN):
            if self._mode == EgressMode.WARN:
                details["warning"] = "Sensitive data detected but allowed through"
            self._audit.record("egress", "scan", target=destination, approved=True, details=details)
            return EgressDecision(allowed=True, findings=result.findings)

        allowed = await self._check_blocked(destination, details)
        return EgressDecision(allowed=allowed, findings=result.findings)

    async def _check_blocked(self, destination: str, details: dict[str, Any]) -> bool:
        details["permission_checked"] = self._permission_engine is not None
        if self._permission_engine is None:
            self._audit.record("egress", "scan", target=destination, approved=False, details=details)
            return False

        action = destination_action(destination)
        try:
            allowed = await self._permission_engine.check(
                action,
                destination,
                context=f"Outbound data contains: {', '.join(details['finding_types'])}",
            )
        except PersistenceFailure:
            # Rule save failed; deny this transfer and let the caller decide
            self._audit.record("egress", "scan", target=destination, approved=False, details=details)
            raise
        except Exception:
            logger.exception("egress_permission_check_failed", destination=destination)
            allowed = False

        self._audit.record("egress", "scan", target=destination, approved=allowed, details=details)
        return allowed
