"""Permission engine: rule lookup, approval prompting, rule persistence.

A check first consults the rule list. If a live rule matches, its
``approved`` flag is the answer and nobody is asked. Otherwise the
approval strategy decides, and an approval that asks for a rule is
appended to the in-memory list and persisted through the config store
before the check returns.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from vecguard.config import PermissionAction, PermissionConfig, PermissionRule, Verbosity, utcnow
from vecguard.errors import PermissionDenied, PersistenceFailure
from vecguard.security import rules as rule_ops
from vecguard.security.approval import ApprovalStrategy, AutoDenyApproval
from vecguard.security.audit import AuditLogger
from vecguard.store import ConfigMutation, ConfigStore

logger = structlog.get_logger()


class PermissionEngine:
    """Decides whether an action on a target may proceed."""

    def __init__(
        self,
        config: PermissionConfig,
        store: ConfigStore,
        approval: ApprovalStrategy | None = None,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the engine.

        Args:
            config: The loaded document. The engine takes its own copy.
            store: Where rule mutations are persisted.
            approval: Asked when no rule matches. Defaults to auto-deny.
            audit: Receives one event per decision and rule mutation.
            clock: Time source for expiry checks and rule timestamps.
        """
        self._config = config.model_copy(deep=True)
        self._store = store
        self._approval = approval or AutoDenyApproval()
        self._audit = audit or AuditLogger()
        self._clock = clock
        # Rules live in memory whose save failed, by id, until a later save succeeds
        self._unsaved: dict[str, PermissionRule] = {}

    @property
    def approval(self) -> ApprovalStrategy:
        return self._approval

    @property
    def rules(self) -> list[PermissionRule]:
        """A copy of the current rule list, in match order."""
        return [rule.model_copy() for rule in self._config.rules]

    def match(self, action: PermissionAction | str, target: str) -> PermissionRule | None:
        """Return the rule that would decide this check, without prompting."""
        return rule_ops.match_rule(action, target, self._config.rules, now=self._clock())

    async def check(
        self,
        action: PermissionAction | str,
        target: str,
        context: str | None = None,
    ) -> bool:
        """Check whether an action on a target is permitted.

        Args:
            action: The requested action.
            target: Path or destination the action applies to.
            context: Optional explanation passed to the approval strategy.

        Returns:
            True if permitted.

        Raises:
            PersistenceFailure: If an approval created a rule that could not
                be saved. The rule stays in memory for this session.
        """
        action = PermissionAction(action)
        matched = self.match(action, target)

        if matched is not None:
            decision = "auto-approved" if matched.approved else "auto-denied"
            log = logger.info if matched.approved else logger.warning
            log(
                "permission_rule_matched",
                action=action.value,
                target=target,
                rule_id=matched.id,
                decision=decision,
            )
            self._audit.record(
                "permission", action.value, target=target, approved=matched.approved,
                details={"rule_id": matched.id, "decision": decision},
            )
            return matched.approved

        logger.info("permission_prompting", action=action.value, target=target)
        response = await self._approval.request(action, target, context)

        if response.approved and response.create_rule:
            pattern = response.rule_pattern or target
            self._audit.record(
                "permission", action.value, target=target, approved=True,
                details={"decision": "approved-with-rule", "pattern": pattern},
            )
            self.add_rule(action, pattern, approved=True)
        elif response.approved:
            logger.info("permission_approved_once", action=action.value, target=target)
            self._audit.record(
                "permission", action.value, target=target, approved=True,
                details={"decision": "approved-once"},
            )
        else:
            logger.warning("permission_denied", action=action.value, target=target)
            self._audit.record(
                "permission", action.value, target=target, approved=False,
                details={"decision": "denied"},
            )

        return response.approved

    async def check_or_raise(
        self,
        action: PermissionAction | str,
        target: str,
        context: str | None = None,
    ) -> None:
        """Check permission, raising instead of returning False.

        Raises:
            PermissionDenied: If the action is not permitted.
        """
        if not await self.check(action, target, context):
            raise PermissionDenied(PermissionAction(action).value, target)

    def add_rule(
        self,
        action: PermissionAction | str,
        pattern: str,
        *,
        approved: bool = True,
        verbosity: Verbosity = Verbosity.MINIMAL,
        expires_at: datetime | None = None,
    ) -> PermissionRule:
        """Append a rule and persist it.

        The rule is live in memory even if persisting fails, and is
        written again with the next successful save.

        Raises:
            ValidationFailure: If the rule is invalid.
            PersistenceFailure: If the rule could not be saved.
        """
        rule = rule_ops.new_rule(
            action,
            pattern,
            approved=approved,
            verbosity=verbosity,
            expires_at=expires_at,
            now=self._clock(),
        )
        self._config.rules = rule_ops.add_rule(self._config.rules, rule)
        self._unsaved[rule.id] = rule
        self._persist(
            lambda cfg: cfg.model_copy(update={"rules": rule_ops.add_rule(cfg.rules, rule)}),
        )
        logger.info(
            "permission_rule_created",
            rule_id=rule.id,
            action=rule.action.value,
            pattern=rule.pattern,
            approved=rule.approved,
        )
        self._audit.record(
            "permission", "rule_created", target=rule.pattern, approved=rule.approved,
            details={"rule_id": rule.id, "rule_action": rule.action.value},
        )
        return rule

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule by id and persist the change.

        Returns:
            True if a rule was removed from the in-memory list.

        Raises:
            PersistenceFailure: If the change could not be saved.
        """
        before = len(self._config.rules)
        self._config.rules = rule_ops.remove_rule(self._config.rules, rule_id)
        removed = len(self._config.rules) < before
        self._unsaved.pop(rule_id, None)
        self._persist(
            lambda cfg: cfg.model_copy(update={"rules": rule_ops.remove_rule(cfg.rules, rule_id)}),
        )
        logger.info("permission_rule_removed", rule_id=rule_id, removed=removed)
        self._audit.record("permission", "rule_removed", details={"rule_id": rule_id, "removed": removed})
        return removed

    def _persist(self, mutate: ConfigMutation) -> None:
        """Write a rule mutation, carrying along rules whose earlier save failed."""

        def apply(cfg: PermissionConfig) -> PermissionConfig:
            stored = {rule.id for rule in cfg.rules}
            pending = [rule for rule in self._unsaved.values() if rule.id not in stored]
            if pending:
                cfg = cfg.model_copy(update={"rules": [*cfg.rules, *pending]})
            return mutate(cfg)

        try:
            persisted = self._store.update(apply)
        except PersistenceFailure as e:
            logger.error(
                "permission_rules_persist_failed",
                error=str(e),
                unsaved=len(self._unsaved),
            )
            self._audit.record("permission", "persist_failed", approved=False, details={"error": e.reason})
            raise
        if self._unsaved:
            logger.info("permission_unsaved_rules_persisted", count=len(self._unsaved))
            self._unsaved.clear()
        # Pick up rules other processes persisted since we loaded
        self._config.rules = persisted.rules
