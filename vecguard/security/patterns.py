"""Detector table for secrets and PII in outbound data.

Each detector is a (name, compiled pattern, severity) entry. The order
of the tables is the order findings are reported in. New detectors are
added here; the scanner has no per-detector logic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class DetectorPattern:
    """A named regular expression with a severity class."""

    name: str
    pattern: re.Pattern[str]
    severity: Severity


# Known credential and secret formats
SECRET_PATTERNS: tuple[DetectorPattern, ...] = (
    DetectorPattern(
        "AWS_ACCESS_KEY",
        re.compile(r"AKIA[0-9A-Z]{16}"),
        Severity.CRITICAL,
    ),
    DetectorPattern(
        "AWS_SECRET_KEY",
        re.compile(r"(?:aws_secret_access_key|secret_key)\s*[=:]\s*[A-Za-z0-9/+=]{40}", re.IGNORECASE),
        Severity.CRITICAL,
    ),
    DetectorPattern(
        "GITHUB_TOKEN",
        re.compile(r"gh[pousr]_[A-Za-z0-9]{36,}"),
        Severity.CRITICAL,
    ),
    DetectorPattern(
        "GITHUB_PAT",
        re.compile(r"github_pat_[A-Za-z0-9]{22}_[A-Za-z0-9]{59}"),
        Severity.CRITICAL,
    ),
    DetectorPattern(
        "PRIVATE_KEY",
        re.compile(r"-----BEGIN (?:RSA|OPENSSH|EC|DSA|PGP) PRIVATE KEY-----"),
        Severity.CRITICAL,
    ),
    DetectorPattern(
        "JWT",
        re.compile(r"eyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}"),
        Severity.HIGH,
    ),
    DetectorPattern(
        "GENERIC_API_KEY",
        re.compile(r"(?:api[_-]?key|apikey)\s*[=:]\s*['\"]?[A-Za-z0-9]{20,}['\"]?", re.IGNORECASE),
        Severity.HIGH,
    ),
    DetectorPattern(
        "GENERIC_SECRET",
        re.compile(r"(?:secret|password|passwd|pwd)\s*[=:]\s*['\"]?[^\s'\"]{8,}['\"]?", re.IGNORECASE),
        Severity.HIGH,
    ),
    DetectorPattern(
        "SLACK_TOKEN",
        re.compile(r"xox[baprs]-[0-9]{10,}-[A-Za-z0-9-]+"),
        Severity.HIGH,
    ),
    DetectorPattern(
        "STRIPE_KEY",
        re.compile(r"sk_(?:test|live)_[A-Za-z0-9]{24,}"),
        Severity.CRITICAL,
    ),
)

# Personal data: lower severity than credentials except SSNs
PII_PATTERNS: tuple[DetectorPattern, ...] = (
    DetectorPattern(
        "EMAIL",
        re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
        Severity.MEDIUM,
    ),
    DetectorPattern(
        "PHONE_US",
        re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
        Severity.MEDIUM,
    ),
    DetectorPattern(
        "SSN",
        # 3-2-4 digits, excluding unassigned area/group/serial numbers
        re.compile(r"\b(?!000|666|9\d{2})\d{3}-?(?!00)\d{2}-?(?!0000)\d{4}\b"),
        Severity.CRITICAL,
    ),
    DetectorPattern(
        "IP_ADDRESS",
        re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"),
        Severity.MEDIUM,
    ),
)

HIGH_ENTROPY = "HIGH_ENTROPY"

CRITICAL_TYPES: frozenset[str] = frozenset(
    p.name for p in SECRET_PATTERNS + PII_PATTERNS if p.severity is Severity.CRITICAL
)
