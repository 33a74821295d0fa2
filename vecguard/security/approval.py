"""Approval strategies for the permission engine.

When no rule decides a permission check, the engine asks an
``ApprovalStrategy``. Strategies are interchangeable: a terminal prompt
for interactive sessions, an auto-deny policy for non-interactive runs,
or a wrapped callable for embedding applications and tests.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, Union

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from vecguard.config import PermissionAction, Verbosity

logger = structlog.get_logger()


@dataclass(frozen=True)
class ApprovalResponse:
    """Decision returned by an approval strategy for a single check."""

    approved: bool
    create_rule: bool = False
    rule_pattern: str | None = None


DENIED = ApprovalResponse(approved=False)


class ApprovalStrategy(Protocol):
    """Capability the permission engine uses to ask for a decision."""

    async def request(
        self,
        action: PermissionAction,
        target: str,
        context: str | None = None,
    ) -> ApprovalResponse:
        """Return the decision for an action on a target."""


# (action, target, context) -> response, sync or async
ApprovalCallback = Callable[
    [PermissionAction, str, Union[str, None]],
    Union[ApprovalResponse, Awaitable[ApprovalResponse]],
]


class AutoDenyApproval:
    """Deny every request without prompting. Safe default for non-interactive use."""

    async def request(
        self,
        action: PermissionAction,
        target: str,
        context: str | None = None,
    ) -> ApprovalResponse:
        logger.info("approval_auto_denied", action=action.value, target=target)
        return DENIED


class CallbackApproval:
    """Adapt a plain or async callable to the ApprovalStrategy interface."""

    def __init__(self, callback: ApprovalCallback) -> None:
        self._callback = callback

    async def request(
        self,
        action: PermissionAction,
        target: str,
        context: str | None = None,
    ) -> ApprovalResponse:
        result = self._callback(action, target, context)
        if inspect.isawaitable(result):
            result = await result
        return result


_ACTION_DESCRIPTIONS: dict[PermissionAction, tuple[str, str]] = {
    PermissionAction.FS_READ: (
        "Read file or directory contents from filesystem",
        "Medium - may expose sensitive data",
    ),
    PermissionAction.FS_WRITE: (
        "Create or modify files/directories",
        "High - can alter system state",
    ),
    PermissionAction.FS_DELETE: (
        "Delete files or directories",
        "Critical - irreversible data loss",
    ),
    PermissionAction.EGRESS_NETWORK: (
        "Send data over network",
        "High - potential data exfiltration",
    ),
    PermissionAction.EGRESS_FILE: (
        "Write data to external file location",
        "High - potential data leak",
    ),
}


def format_permission_prompt(
    action: PermissionAction | str,
    target: str,
    verbosity: Verbosity | str = Verbosity.MINIMAL,
) -> str:
    """Render the text shown to an operator for a permission request."""
    action = PermissionAction(action)
    if Verbosity(verbosity) == Verbosity.MINIMAL:
        return f"Allow {action.value} on {target}? [y/N/r(ule)]"

    description, risk = _ACTION_DESCRIPTIONS[action]
    return (
        f"Action: {action.value}\n"
        f"Target: {target}\n"
        f"\n"
        f"Description: {description}\n"
        f"Risk Level: {risk}\n"
        f"\n"
        f"Allow this operation?\n"
        f"  y - Approve once\n"
        f"  r - Approve and create rule for similar requests\n"
        f"  N - Deny (default)"
    )


class InteractiveApproval:
    """Prompt the operator in the terminal.

    ``y`` approves once, ``r`` approves and asks for a rule pattern
    (defaulting to the target), anything else denies.
    """

    def __init__(
        self,
        console: Console | None = None,
        verbosity: Verbosity = Verbosity.DETAILED,
        input_fn: Callable[[str], str] = input,
    ) -> None:
        self._console = console or Console()
        self._verbosity = verbosity
        self._input = input_fn

    async def request(
        self,
        action: PermissionAction,
        target: str,
        context: str | None = None,
    ) -> ApprovalResponse:
        body = format_permission_prompt(action, target, self._verbosity)
        if context:
            body += f"\n\nContext: {context}"
        self._console.print(Panel(
            Text(body),
            title="[bold red]Permission Request[/]",
            border_style="red",
        ))

        try:
            answer = (await self._ask("Approve? [y/N/r]: ")).strip().lower()
            if answer in ("r", "rule"):
                pattern = (await self._ask(f"Rule pattern [{target}]: ")).strip()
                logger.info("approval_granted_with_rule", action=action.value, target=target)
                self._console.print("[green]Approved, rule created.[/]")
                return ApprovalResponse(
                    approved=True,
                    create_rule=True,
                    rule_pattern=pattern or target,
                )
        except (EOFError, KeyboardInterrupt):
            self._console.print("[red]Approval denied (no input).[/]")
            return DENIED

        if answer in ("y", "yes"):
            logger.info("approval_granted", action=action.value, target=target)
            self._console.print("[green]Approved.[/]")
            return ApprovalResponse(approved=True)

        logger.info("approval_denied", action=action.value, target=target)
        self._console.print("[red]Denied.[/]")
        return DENIED

    async def _ask(self, prompt: str) -> str:
        # Blocking input() runs in a thread so the event loop stays free
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._input, prompt)
