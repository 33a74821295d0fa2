"""Shared test fixtures for vecguard tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vecguard.config import PermissionAction, PermissionConfig
from vecguard.security.approval import ApprovalResponse
from vecguard.security.audit import AuditLogger
from vecguard.store import MemoryConfigStore


class ScriptedApproval:
    """Approval strategy that replays canned responses and records calls."""

    def __init__(self, *responses: ApprovalResponse) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[PermissionAction, str, str | None]] = []

    async def request(
        self,
        action: PermissionAction,
        target: str,
        context: str | None = None,
    ) -> ApprovalResponse:
        self.calls.append((action, target, context))
        if not self._responses:
            return ApprovalResponse(approved=False)
        return self._responses.pop(0)


class FakeClock:
    """Controllable time source."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> PermissionConfig:
    """Empty strict config without a budget."""
    return PermissionConfig()


@pytest.fixture
def store(config: PermissionConfig) -> MemoryConfigStore:
    return MemoryConfigStore(config)


@pytest.fixture
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "audit.jsonl"


@pytest.fixture
def audit(audit_path: Path):
    logger = AuditLogger(audit_path)
    yield logger
    logger.close()


@pytest.fixture
def scripted():
    """Factory for ScriptedApproval test doubles."""
    return ScriptedApproval
