"""Permission rule matching and rule-list operations.

Rules are matched in stored order and the first live rule whose action
matches and whose glob pattern matches the target decides. There is no
ranking between allow and deny rules. Expired rules are skipped but
stay in the list until removed explicitly.
"""

from __future__ import annotations

import fnmatch
import uuid
from datetime import datetime

from vecguard.config import PermissionAction, PermissionRule, Verbosity, utcnow
from vecguard.errors import ValidationFailure


def is_expired(rule: PermissionRule, now: datetime | None = None) -> bool:
    """Whether a rule's expiry time has passed."""
    if rule.expires_at is None:
        return False
    return rule.expires_at < (now or utcnow())


def pattern_matches(target: str, pattern: str) -> bool:
    """Glob-match a target against a rule pattern.

    Target and pattern are split on ``/`` and compared segment by
    segment with fnmatch, case-sensitive on every platform. ``*`` and
    ``?`` never cross a separator, so ``/tmp/*`` covers ``/tmp/x.txt``
    but not ``/tmp/a/b.txt``. A ``**`` segment matches zero or more
    whole segments.
    """
    return _match_segments(tuple(target.split("/")), tuple(pattern.split("/")))


def _match_segments(target: tuple[str, ...], pattern: tuple[str, ...]) -> bool:
    if not pattern:
        return not target
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(target[i:], rest) for i in range(len(target) + 1))
    if not target or not fnmatch.fnmatchcase(target[0], head):
        return False
    return _match_segments(target[1:], rest)


def match_rule(
    action: PermissionAction | str,
    target: str,
    rules: list[PermissionRule],
    now: datetime | None = None,
) -> PermissionRule | None:
    """Find the first live rule matching an action and target.

    Args:
        action: The requested action.
        target: The path or destination being acted on.
        rules: Rules in stored order.
        now: Reference time for expiry checks (defaults to now).

    Returns:
        The first matching non-expired rule, or None.
    """
    action = PermissionAction(action)
    now = now or utcnow()
    for rule in rules:
        if is_expired(rule, now):
            continue
        if rule.action == action and pattern_matches(target, rule.pattern):
            return rule
    return None


def new_rule(
    action: PermissionAction | str,
    pattern: str,
    *,
    approved: bool = True,
    verbosity: Verbosity = Verbosity.MINIMAL,
    expires_at: datetime | None = None,
    now: datetime | None = None,
) -> PermissionRule:
    """Build a rule with a fresh id and creation time.

    Raises:
        ValidationFailure: If the pattern or action is invalid.
    """
    try:
        return PermissionRule(
            id=str(uuid.uuid4()),
            action=action,
            pattern=pattern,
            approved=approved,
            verbosity=verbosity,
            created_at=now or utcnow(),
            expires_at=expires_at,
        )
    except ValueError as e:
        raise ValidationFailure(f"Invalid permission rule: {e}") from e


def add_rule(rules: list[PermissionRule], rule: PermissionRule) -> list[PermissionRule]:
    """Return a new list with ``rule`` appended.

    Raises:
        ValidationFailure: If a rule with the same id already exists.
    """
    if any(existing.id == rule.id for existing in rules):
        raise ValidationFailure(f"Duplicate rule id: {rule.id!r}")
    return [*rules, rule]


def remove_rule(rules: list[PermissionRule], rule_id: str) -> list[PermissionRule]:
    """Return a new list without the rule with ``rule_id``."""
    return [rule for rule in rules if rule.id != rule_id]
