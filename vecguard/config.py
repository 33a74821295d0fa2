"""Configuration models for the persisted permission document.

The document is stored as YAML and validated with Pydantic v2 on every
load and save. Invalid documents are rejected as a whole, never
partially applied.
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

CONFIG_ENV_VAR = "VECGUARD_CONFIG"
DEFAULT_CONFIG_PATH = Path(".vecguard") / "permissions.yaml"

DEFAULT_ALERT_THRESHOLDS: tuple[float, ...] = (0.5, 0.7, 0.8, 1.0)


class PermissionAction(str, Enum):
    """Actions that are gated by permission rules."""

    FS_READ = "fs.read"
    FS_WRITE = "fs.write"
    FS_DELETE = "fs.delete"
    EGRESS_NETWORK = "egress.network"
    EGRESS_FILE = "egress.file"


class Verbosity(str, Enum):
    """How much detail a permission prompt shows."""

    MINIMAL = "minimal"
    DETAILED = "detailed"
    CUSTOM = "custom"


class PolicyMode(str, Enum):
    STRICT = "strict"
    PERMISSIVE = "permissive"


class EgressMode(str, Enum):
    """What the egress gate does when outbound data contains findings."""

    BLOCK = "block"
    WARN = "warn"
    LOG_ONLY = "log-only"


class ApprovalMode(str, Enum):
    """How the permission engine asks for approval when no rule matches."""

    INTERACTIVE = "interactive"
    AUTO_DENY = "auto_deny"


class BudgetPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to a naive datetime; aware values pass through."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PermissionRule(BaseModel):
    """A persisted decision for an (action, glob pattern) pair."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: PermissionAction
    pattern: str = Field(min_length=1)
    approved: bool
    verbosity: Verbosity = Verbosity.MINIMAL
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None

    @field_validator("created_at", "expires_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Interpret naive timestamps from hand-edited files as UTC."""
        return as_utc(v)


class AuditConfig(BaseModel):
    """Audit trail settings."""

    enabled: bool = True
    log_path: str | None = None


class TokenBudget(BaseModel):
    """Token budget with fractional alert thresholds."""

    limit: float = Field(gt=0)
    period: BudgetPeriod = BudgetPeriod.DAILY
    alert_thresholds: list[float] = Field(
        default_factory=lambda: list(DEFAULT_ALERT_THRESHOLDS)
    )

    @field_validator("alert_thresholds")
    @classmethod
    def thresholds_are_fractions(cls, v: list[float]) -> list[float]:
        """Reject thresholds outside [0, 1]."""
        for threshold in v:
            if not 0 <= threshold <= 1:
                raise ValueError(f"alert threshold {threshold} is not within [0, 1]")
        return v


class PermissionConfig(BaseModel):
    """Top-level persisted document: policy mode, rules, audit and budget."""

    version: Literal["1.0"] = "1.0"
    mode: PolicyMode = PolicyMode.STRICT
    egress_mode: EgressMode = EgressMode.BLOCK
    approval_mode: ApprovalMode = ApprovalMode.AUTO_DENY
    rules: list[PermissionRule] = Field(default_factory=list)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    token_budget: TokenBudget | None = None

    @field_validator("version", mode="before")
    @classmethod
    def version_as_string(cls, v: object) -> object:
        """YAML reads an unquoted ``version: 1.0`` as a float."""
        if isinstance(v, float):
            return str(v)
        return v

    @model_validator(mode="after")
    def rule_ids_unique(self) -> PermissionConfig:
        """A rule set may not contain two rules with the same id."""
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise ValueError(f"duplicate rule id: {rule.id!r}")
            seen.add(rule.id)
        return self


def default_config() -> PermissionConfig:
    """Return the fallback policy used when no valid document is available."""
    return PermissionConfig(
        mode=PolicyMode.STRICT,
        rules=[],
        audit=AuditConfig(enabled=True),
        token_budget=TokenBudget(limit=100_000, period=BudgetPeriod.DAILY),
    )


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Resolve the config document path from an argument, env var, or default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH
