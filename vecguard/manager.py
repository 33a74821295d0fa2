"""SecurityManager: single entry point to every security subsystem.

Loads the config document, wires the permission engine, egress gate
and token tracker together, and guards each operation against use
before ``init()`` or without a configured budget.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from vecguard.config import ApprovalMode, PermissionAction, PermissionConfig, utcnow
from vecguard.errors import BudgetNotConfigured, NotInitialized
from vecguard.monitoring.alerts import Alert
from vecguard.monitoring.budget import BudgetUsage
from vecguard.monitoring.tracker import TokenTracker, TokenUsageEvent, TrackResult
from vecguard.security.approval import ApprovalStrategy, AutoDenyApproval, InteractiveApproval
from vecguard.security.audit import AuditLogger
from vecguard.security.egress import EgressDecision, EgressGate
from vecguard.security.permissions import PermissionEngine
from vecguard.security.trust import ClassifiedInput, InputSource, classify_input
from vecguard.store import ConfigStore, FileConfigStore

logger = structlog.get_logger()


class SecurityManager:
    """Composition root for classification, permissions, egress and budget."""

    def __init__(
        self,
        *,
        store: ConfigStore | None = None,
        config_path: str | Path | None = None,
        approval: ApprovalStrategy | None = None,
        on_alert: Callable[[Alert], None] | None = None,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Create an uninitialized manager.

        Args:
            store: Config collaborator. Defaults to a FileConfigStore at
                ``config_path`` (or the environment/default location).
            config_path: Path to the YAML document when ``store`` is omitted.
            approval: Approval strategy. Defaults to the config's approval_mode.
            on_alert: Called for every budget alert.
            audit: Audit sink. Defaults to the config's audit settings.
            clock: Time source shared by all subsystems.
        """
        self._store = store or FileConfigStore(config_path)
        self._approval = approval
        self._on_alert = on_alert
        self._audit = audit
        self._owns_audit = audit is None
        self._clock = clock

        self._config: PermissionConfig | None = None
        self._permission_engine: PermissionEngine | None = None
        self._egress_gate: EgressGate | None = None
        self._token_tracker: TokenTracker | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def audit(self) -> AuditLogger | None:
        return self._audit

    @property
    def config(self) -> PermissionConfig:
        self._ensure_initialized()
        return self._config

    async def init(self) -> None:
        """Load config and construct all subsystems.

        Calling it again reloads the config and rebuilds every subsystem,
        closing the audit sink the previous call opened.
        """
        config = self._store.load()

        if self._owns_audit and self._audit is not None:
            self._audit.close()
            self._audit = None
        if self._audit is None:
            log_path = config.audit.log_path if config.audit.enabled else None
            self._audit = AuditLogger(log_path)

        approval = self._approval or self._default_approval(config.approval_mode)
        self._permission_engine = PermissionEngine(
            config,
            self._store,
            approval=approval,
            audit=self._audit,
            clock=self._clock,
        )
        self._egress_gate = EgressGate(
            mode=config.egress_mode,
            permission_engine=self._permission_engine,
            audit=self._audit,
        )
        if config.token_budget is not None:
            self._token_tracker = TokenTracker(
                config.token_budget,
                on_alert=self._on_alert,
                audit=self._audit,
                clock=self._clock,
            )

        self._config = config
        self._initialized = True
        logger.info(
            "security_manager_initialized",
            rules=len(config.rules),
            egress_mode=config.egress_mode.value,
            budget=config.token_budget is not None,
        )

    @staticmethod
    def _default_approval(mode: ApprovalMode) -> ApprovalStrategy:
        if mode == ApprovalMode.INTERACTIVE:
            return InteractiveApproval()
        return AutoDenyApproval()

    def classify(self, value: Any, source: InputSource | str) -> ClassifiedInput:
        """Tag input with its provenance and trust flag."""
        self._ensure_initialized()
        return classify_input(value, source)

    async def check_permission(
        self,
        action: PermissionAction | str,
        target: str,
        context: str | None = None,
    ) -> bool:
        """Check whether an action on a target is permitted."""
        return await self.get_permission_engine().check(action, target, context)

    async def check_permission_or_raise(
        self,
        action: PermissionAction | str,
        target: str,
        context: str | None = None,
    ) -> None:
        await self.get_permission_engine().check_or_raise(action, target, context)

    async def check_egress(self, data: str, destination: str) -> EgressDecision:
        """Scan outbound data and decide whether it may be sent."""
        return await self.get_egress_gate().check(data, destination)

    def track_usage(self, event: TokenUsageEvent | dict[str, Any]) -> TrackResult:
        """Record token usage for one exchange and evaluate budget alerts."""
        tracker = self.get_token_tracker()
        if not isinstance(event, TokenUsageEvent):
            event = TokenUsageEvent.model_validate(event)
        return tracker.track(event)

    def get_usage(self) -> BudgetUsage:
        return self.get_token_tracker().get_usage()

    def get_permission_engine(self) -> PermissionEngine:
        self._ensure_initialized()
        return self._permission_engine

    def get_egress_gate(self) -> EgressGate:
        self._ensure_initialized()
        return self._egress_gate

    def get_token_tracker(self) -> TokenTracker:
        self._ensure_initialized()
        if self._token_tracker is None:
            raise BudgetNotConfigured()
        return self._token_tracker

    def close(self) -> None:
        """Close the audit sink if this manager created it."""
        if self._owns_audit and self._audit is not None:
            self._audit.close()

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise NotInitialized()
