"""Security layer: secret scanning, egress gating, permissions, trust, audit."""

from __future__ import annotations

from vecguard.security.approval import (
    ApprovalResponse,
    ApprovalStrategy,
    AutoDenyApproval,
    CallbackApproval,
    InteractiveApproval,
)
from vecguard.security.audit import AuditLogger
from vecguard.security.egress import EgressDecision, EgressGate
from vecguard.security.permissions import PermissionEngine
from vecguard.security.scanner import Finding, ScanResult, scan
from vecguard.security.trust import (
    ClassifiedInput,
    InputSource,
    TrustedInput,
    classify_input,
    promote_to_trusted,
    sanitize_and_trust,
)

__all__ = [
    "ApprovalResponse",
    "ApprovalStrategy",
    "AuditLogger",
    "AutoDenyApproval",
    "CallbackApproval",
    "ClassifiedInput",
    "EgressDecision",
    "EgressGate",
    "Finding",
    "InputSource",
    "InteractiveApproval",
    "PermissionEngine",
    "ScanResult",
    "TrustedInput",
    "classify_input",
    "promote_to_trusted",
    "sanitize_and_trust",
    "scan",
]
