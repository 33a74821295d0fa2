"""Token usage monitoring: budgets, threshold alerts, usage history."""

from __future__ import annotations

from vecguard.monitoring.alerts import Alert, AlertLevel, AlertManager
from vecguard.monitoring.budget import BudgetManager, BudgetState, BudgetUsage
from vecguard.monitoring.tracker import TokenTracker, TokenUsageEvent, TrackResult

__all__ = [
    "Alert",
    "AlertLevel",
    "AlertManager",
    "BudgetManager",
    "BudgetState",
    "BudgetUsage",
    "TokenTracker",
    "TokenUsageEvent",
    "TrackResult",
]
