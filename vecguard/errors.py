"""Error taxonomy shared by every vecguard component."""

from __future__ import annotations

from typing import Any


class SecurityError(Exception):
    """Base class for all vecguard errors."""


class ValidationFailure(SecurityError):
    """Raised when a value is rejected by a schema."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class TrustViolation(SecurityError):
    """Raised when untrusted data is used where trusted data is required."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"Cannot use {source} input as trusted without validation")


class PermissionDenied(SecurityError):
    """Raised by the throwing variant of a permission check."""

    def __init__(self, action: str, target: str, message: str | None = None) -> None:
        self.action = action
        self.target = target
        super().__init__(message or f"Permission denied: {action} on {target}")


class NotInitialized(SecurityError):
    """Raised when the security manager is used before init()."""

    def __init__(self) -> None:
        super().__init__("SecurityManager not initialized - call init() first")


class BudgetNotConfigured(SecurityError):
    """Raised when a budget operation runs without a configured token budget."""

    def __init__(self) -> None:
        super().__init__("Token tracker not initialized - no token_budget in config")


class PersistenceFailure(SecurityError):
    """Raised when the config document cannot be read, validated or written."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Config persistence failed for {path}: {reason}")


class LockTimeout(PersistenceFailure):
    """Raised when the config lock cannot be acquired."""
