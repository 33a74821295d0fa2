"""Token budget accounting with fixed-length periods.

Usage accumulates until the period elapses, then resets to zero along
with the set of alert thresholds that already fired. Periods are fixed
durations (a "monthly" period is 30 days), not calendar months.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from vecguard.config import BudgetPeriod, TokenBudget, as_utc, utcnow

PERIOD_DURATIONS: dict[BudgetPeriod, timedelta] = {
    BudgetPeriod.DAILY: timedelta(days=1),
    BudgetPeriod.WEEKLY: timedelta(days=7),
    BudgetPeriod.MONTHLY: timedelta(days=30),
}


@dataclass
class BudgetState:
    """Mutable accounting state for the current period."""

    used: float = 0.0
    period_start: datetime = field(default_factory=utcnow)
    fired_thresholds: set[float] = field(default_factory=set)


@dataclass(frozen=True)
class BudgetUsage:
    """Point-in-time usage snapshot."""

    used: float
    limit: float
    percentage: float
    remaining: float

    def to_dict(self) -> dict[str, float]:
        return {
            "used": self.used,
            "limit": self.limit,
            "percentage": self.percentage,
            "remaining": self.remaining,
        }


class BudgetManager:
    """Owns the budget state for one token budget."""

    def __init__(
        self,
        config: TokenBudget,
        *,
        clock: Callable[[], datetime] = utcnow,
        state: BudgetState | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._state = state or BudgetState(period_start=clock())

    @property
    def config(self) -> TokenBudget:
        return self._config

    @property
    def period_start(self) -> datetime:
        return self._state.period_start

    @property
    def fired_thresholds(self) -> set[float]:
        """The live set of thresholds already fired this period.

        The alert manager shares this set, so a reset clears both.
        """
        return self._state.fired_thresholds

    def record(self, tokens: float) -> None:
        """Add tokens to the period total. Overshooting the limit is allowed.

        Raises:
            ValueError: If ``tokens`` is negative.
        """
        if tokens < 0:
            raise ValueError(f"token count must be non-negative, got {tokens}")
        self._state.used += tokens

    def get_usage(self) -> BudgetUsage:
        used = self._state.used
        limit = self._config.limit
        return BudgetUsage(
            used=used,
            limit=limit,
            percentage=used / limit,
            remaining=max(0.0, limit - used),
        )

    def is_expired(self) -> bool:
        """Whether the current period has run its full length."""
        elapsed = self._clock() - self._state.period_start
        return elapsed > PERIOD_DURATIONS[self._config.period]

    def reset(self) -> None:
        """Start a new period now with zero usage and no fired thresholds."""
        self._state.used = 0.0
        self._state.period_start = self._clock()
        self._state.fired_thresholds.clear()

    def check_and_reset_if_expired(self) -> bool:
        """Reset if the period has expired. Returns whether a reset happened."""
        if self.is_expired():
            self.reset()
            return True
        return False

    def serialize(self) -> dict[str, Any]:
        return {
            "used": self._state.used,
            "period_start": self._state.period_start.isoformat(),
            "fired_thresholds": sorted(self._state.fired_thresholds),
        }

    @classmethod
    def deserialize(
        cls,
        data: dict[str, Any],
        config: TokenBudget,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> BudgetManager:
        """Restore a manager from ``serialize()`` output.

        A ``period_start`` without an offset is read as UTC.
        """
        state = BudgetState(
            used=float(data["used"]),
            period_start=as_utc(datetime.fromisoformat(data["period_start"])),
            fired_thresholds={float(t) for t in data.get("fired_thresholds", [])},
        )
        return cls(config, clock=clock, state=state)
