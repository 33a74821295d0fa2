"""Scanner for secrets, credentials and PII in text.

Runs the detector tables and a Shannon-entropy heuristic over a blob
and returns findings with redacted excerpts. Scanning is a pure
function: it never logs, never raises on string input, and never keeps
the raw matched substring.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from vecguard.security.patterns import (
    HIGH_ENTROPY,
    PII_PATTERNS,
    SECRET_PATTERNS,
    DetectorPattern,
)

DEFAULT_ENTROPY_THRESHOLD = 4.5
MIN_ENTROPY_TOKEN_LENGTH = 20
REDACTION_MARKER = "***"


@dataclass(frozen=True)
class Finding:
    """One detected occurrence of sensitive content."""

    type: str
    line: int
    redacted_excerpt: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "line": self.line, "match": self.redacted_excerpt}


@dataclass(frozen=True)
class ScanResult:
    """Findings from one scan, in detector-category order."""

    findings: tuple[Finding, ...] = field(default_factory=tuple)

    @property
    def has_secrets(self) -> bool:
        return bool(self.findings)

    @property
    def finding_types(self) -> list[str]:
        """Distinct finding types, in first-seen order."""
        return list(dict.fromkeys(f.type for f in self.findings))


def shannon_entropy(text: str) -> float:
    """Shannon entropy of ``text`` in bits per character."""
    if not text:
        return 0.0
    length = len(text)
    return -sum(
        (count / length) * math.log2(count / length)
        for count in Counter(text).values()
    )


def has_high_entropy(token: str, threshold: float = DEFAULT_ENTROPY_THRESHOLD) -> bool:
    """Whether a token is long and random enough to look like a secret."""
    if len(token) <= MIN_ENTROPY_TOKEN_LENGTH:
        return False
    return shannon_entropy(token) > threshold


def redact_match(match: str) -> str:
    """Abbreviate a match so the secret itself is never reproduced.

    Matches of 12 characters or fewer keep their first 4 characters;
    longer ones keep the first and last 4.
    """
    if len(match) <= 12:
        return match[:4] + REDACTION_MARKER
    return match[:4] + REDACTION_MARKER + match[-4:]


def _line_number(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def _scan_patterns(text: str, patterns: Iterable[DetectorPattern]) -> list[Finding]:
    findings: list[Finding] = []
    for detector in patterns:
        for match in detector.pattern.finditer(text):
            findings.append(Finding(
                type=detector.name,
                line=_line_number(text, match.start()),
                redacted_excerpt=redact_match(match.group(0)),
            ))
    return findings


def _scan_entropy(text: str, threshold: float) -> list[Finding]:
    findings: list[Finding] = []
    for line_idx, line in enumerate(text.split("\n"), start=1):
        for token in line.split():
            if has_high_entropy(token, threshold):
                findings.append(Finding(
                    type=HIGH_ENTROPY,
                    line=line_idx,
                    redacted_excerpt=redact_match(token),
                ))
    return findings


def scan(
    text: str,
    *,
    include_patterns: bool = True,
    include_pii: bool = True,
    include_entropy: bool = True,
    entropy_threshold: float = DEFAULT_ENTROPY_THRESHOLD,
) -> ScanResult:
    """Scan text for secrets, credentials and PII.

    Detector categories run independently over the full text, in the
    order credentials, PII, entropy. Within a category findings follow
    table order then match order (patterns) or line order (entropy).

    Args:
        text: The blob to scan.
        include_patterns: Run the credential detectors.
        include_pii: Run the PII detectors.
        include_entropy: Run the high-entropy token heuristic.
        entropy_threshold: Bits per character above which a token is flagged.

    Returns:
        ScanResult with all findings.
    """
    findings: list[Finding] = []
    if include_patterns:
        findings.extend(_scan_patterns(text, SECRET_PATTERNS))
    if include_pii:
        findings.extend(_scan_patterns(text, PII_PATTERNS))
    if include_entropy:
        findings.extend(_scan_entropy(text, entropy_threshold))
    return ScanResult(findings=tuple(findings))
