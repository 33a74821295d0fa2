"""Token usage tracking: budget accounting, alerts and bounded history."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field, model_validator

from vecguard.config import TokenBudget, utcnow
from vecguard.monitoring.alerts import Alert, AlertManager
from vecguard.monitoring.budget import BudgetManager, BudgetUsage
from vecguard.security.audit import AuditLogger

logger = structlog.get_logger()

DEFAULT_MAX_HISTORY = 100


class TokenUsageEvent(BaseModel):
    """Token counts for one completed exchange with the model provider."""

    model_config = {"frozen": True, "protected_namespaces": ()}

    model: str
    prompt_tokens: int = Field(ge=0)
    completion_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def default_total(cls, data: Any) -> Any:
        """Fill ``total_tokens`` from its parts when omitted."""
        if isinstance(data, dict) and "total_tokens" not in data:
            data = {
                **data,
                "total_tokens": data.get("prompt_tokens", 0) + data.get("completion_tokens", 0),
            }
        return data


@dataclass(frozen=True)
class TrackResult:
    alert: Alert | None
    usage: BudgetUsage


class TokenTracker:
    """Records usage events against a token budget and raises alerts."""

    def __init__(
        self,
        config: TokenBudget,
        *,
        max_history: int = DEFAULT_MAX_HISTORY,
        on_alert: Callable[[Alert], None] | None = None,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
        budget: BudgetManager | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._budget = budget or BudgetManager(config, clock=clock)
        self._alerts = AlertManager(
            config.alert_thresholds,
            fired=self._budget.fired_thresholds,
            on_alert=on_alert,
            clock=clock,
        )
        self._history: deque[TokenUsageEvent] = deque(maxlen=max_history)
        self._audit = audit or AuditLogger()

    @property
    def budget(self) -> BudgetManager:
        return self._budget

    @property
    def alerts(self) -> AlertManager:
        return self._alerts

    @property
    def history(self) -> list[TokenUsageEvent]:
        """Retained events, oldest first."""
        return list(self._history)

    @property
    def max_history(self) -> int:
        return self._history.maxlen or 0

    def track(self, event: TokenUsageEvent) -> TrackResult:
        """Record a usage event, resetting the period first if it expired.

        Returns:
            The alert fired by this event (if any) and the new usage.
        """
        if self._budget.check_and_reset_if_expired():
            logger.info("budget_period_reset", period=self._config.period.value)
            self._audit.record("budget", "period_reset", details={"period": self._config.period.value})

        self._budget.record(event.total_tokens)
        usage = self._budget.get_usage()
        alert = self._alerts.evaluate(usage.percentage)
        self._history.append(event)

        logger.info(
            "tokens_tracked",
            model=event.model,
            tokens=event.total_tokens,
            budget_percentage=f"{usage.percentage * 100:.1f}%",
            remaining=usage.remaining,
        )
        self._audit.record(
            "budget", "track",
            approved=usage.remaining > 0,
            details={
                "model": event.model,
                "tokens": event.total_tokens,
                "used": usage.used,
                "limit": usage.limit,
                "percentage": usage.percentage,
            },
        )
        if alert is not None:
            self._audit.record("budget", "alert", details=alert.to_dict())
        return TrackResult(alert=alert, usage=usage)

    def get_usage(self) -> BudgetUsage:
        return self._budget.get_usage()

    def reset(self) -> None:
        """Start a fresh period and clear the history."""
        self._budget.reset()
        self._history.clear()
        logger.info("budget_manual_reset")
        self._audit.record("budget", "manual_reset")

    def serialize(self) -> dict[str, Any]:
        return {
            "budget": self._budget.serialize(),
            "history": [e.model_dump(mode="json") for e in self._history],
        }

    @classmethod
    def deserialize(
        cls,
        data: dict[str, Any],
        config: TokenBudget,
        *,
        max_history: int = DEFAULT_MAX_HISTORY,
        on_alert: Callable[[Alert], None] | None = None,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> TokenTracker:
        """Restore a tracker from ``serialize()`` output.

        History beyond ``max_history`` keeps only the most recent events.
        """
        budget = BudgetManager.deserialize(data["budget"], config, clock=clock)
        tracker = cls(
            config,
            max_history=max_history,
            on_alert=on_alert,
            audit=audit,
            clock=clock,
            budget=budget,
        )
        tracker._history.extend(
            TokenUsageEvent.model_validate(e) for e in data.get("history", [])
        )
        return tracker
