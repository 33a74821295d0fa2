"""Threshold-based alerting for budget usage."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from vecguard.config import DEFAULT_ALERT_THRESHOLDS, utcnow

logger = structlog.get_logger()


class AlertLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Alert:
    """A one-time notification that usage crossed a threshold."""

    level: AlertLevel
    threshold: float
    actual: float
    message: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "threshold": self.threshold,
            "actual": self.actual,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


def alert_level_for(threshold: float) -> AlertLevel:
    if threshold >= 0.9:
        return AlertLevel.CRITICAL
    if threshold >= 0.7:
        return AlertLevel.WARNING
    return AlertLevel.INFO


class AlertManager:
    """Fires at most one alert per threshold per budget period.

    Each evaluation emits an alert only for the highest threshold that
    has been reached and has not fired yet. Lower thresholds crossed in
    the same jump stay unfired.
    """

    def __init__(
        self,
        thresholds: Iterable[float] = DEFAULT_ALERT_THRESHOLDS,
        *,
        fired: set[float] | None = None,
        on_alert: Callable[[Alert], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the alert manager.

        Args:
            thresholds: Fractions of the budget, in any order.
            fired: Shared set of already-fired thresholds. Pass the budget
                state's set so budget resets also reset alerts.
            on_alert: Called with every alert produced.
            clock: Time source for alert timestamps.
        """
        self._thresholds = sorted(thresholds)
        self._fired = fired if fired is not None else set()
        self._on_alert = on_alert
        self._clock = clock

    @property
    def thresholds(self) -> list[float]:
        return list(self._thresholds)

    @property
    def fired(self) -> frozenset[float]:
        return frozenset(self._fired)

    def set_callback(self, fn: Callable[[Alert], None] | None) -> None:
        self._on_alert = fn

    def evaluate(self, percentage: float) -> Alert | None:
        """Check usage against thresholds and fire at most one alert.

        Args:
            percentage: Current usage as a fraction of the limit.

        Returns:
            The alert fired, or None.
        """
        highest_unfired = None
        for threshold in self._thresholds:
            if percentage >= threshold and threshold not in self._fired:
                highest_unfired = threshold

        if highest_unfired is None:
            return None

        self._fired.add(highest_unfired)
        alert = Alert(
            level=alert_level_for(highest_unfired),
            threshold=highest_unfired,
            actual=percentage,
            message=(
                f"Token budget at {percentage * 100:.1f}% "
                f"({highest_unfired * 100:g}% threshold)"
            ),
            timestamp=self._clock(),
        )
        logger.warning(
            "budget_alert",
            level=alert.level.value,
            threshold=alert.threshold,
            actual=alert.actual,
        )
        if self._on_alert is not None:
            self._on_alert(alert)
        return alert

    def reset(self) -> None:
        """Clear fired thresholds so they can fire again."""
        self._fired.clear()
