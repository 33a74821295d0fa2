"""CLI entry point for vecguard operator tooling using Click."""

from __future__ import annotations

import logging
import os
import sys

import click
import structlog
from rich.console import Console
from rich.table import Table

from vecguard import __version__
from vecguard.errors import PersistenceFailure
from vecguard.security.rules import remove_rule as drop_rule
from vecguard.security.scanner import scan as scan_text
from vecguard.store import FileConfigStore

logger = structlog.get_logger()


def configure_logging(log_level: str) -> None:
    """Configure structlog for console output."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the permissions document. Defaults to VECGUARD_CONFIG env or ./.vecguard/permissions.yaml",
)


@click.group()
@click.version_option(version=__version__, prog_name="vecguard")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. Defaults to VECGUARD_LOG_LEVEL env or WARNING.",
)
def cli(log_level: str | None) -> None:
    """vecguard - security policy tooling for agent sessions."""
    configure_logging(log_level or os.environ.get("VECGUARD_LOG_LEVEL", "WARNING"))


@cli.command()
@config_option
def check_config(config_path: str | None) -> None:
    """Validate the permissions document without using it."""
    store = FileConfigStore(config_path)
    try:
        config = store.read()
    except PersistenceFailure as e:
        click.echo(f"FAIL: {e}", err=True)
        sys.exit(1)

    click.echo("Configuration OK")
    click.echo(f"  Path: {store.path}{'' if store.path.exists() else ' (missing, using defaults)'}")
    click.echo(f"  Mode: {config.mode.value}")
    click.echo(f"  Egress mode: {config.egress_mode.value}")
    click.echo(f"  Approval mode: {config.approval_mode.value}")
    click.echo(f"  Rules: {len(config.rules)}")
    click.echo(f"  Audit: {'enabled' if config.audit.enabled else 'disabled'}")
    if config.token_budget is not None:
        budget = config.token_budget
        click.echo(f"  Token budget: {budget.limit:g} {budget.period.value}")
        click.echo(f"  Alert thresholds: {', '.join(f'{t:g}' for t in budget.alert_thresholds)}")


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("--no-entropy", is_flag=True, help="Skip the high-entropy token heuristic.")
@click.option("--no-pii", is_flag=True, help="Skip PII detectors.")
def scan(source, no_entropy: bool, no_pii: bool) -> None:
    """Scan a file (or stdin) for secrets and PII. Exits 1 on findings."""
    result = scan_text(source.read(), include_entropy=not no_entropy, include_pii=not no_pii)
    console = Console()
    if not result.has_secrets:
        console.print("[green]No findings.[/]")
        return

    table = Table(title=f"{len(result.findings)} finding(s)")
    table.add_column("Line", justify="right")
    table.add_column("Type")
    table.add_column("Excerpt")
    for finding in result.findings:
        table.add_row(str(finding.line), finding.type, finding.redacted_excerpt)
    console.print(table)
    sys.exit(1)


@cli.group()
def rules() -> None:
    """Inspect and edit persisted permission rules."""


@rules.command("list")
@config_option
def list_rules(config_path: str | None) -> None:
    """List rules in match order."""
    store = FileConfigStore(config_path)
    try:
        config = store.read()
    except PersistenceFailure as e:
        click.echo(f"FAIL: {e}", err=True)
        sys.exit(1)

    if not config.rules:
        click.echo("No rules.")
        return

    table = Table()
    table.add_column("ID")
    table.add_column("Action")
    table.add_column("Pattern")
    table.add_column("Decision")
    table.add_column("Expires")
    for rule in config.rules:
        table.add_row(
            rule.id,
            rule.action.value,
            rule.pattern,
            "allow" if rule.approved else "deny",
            rule.expires_at.isoformat() if rule.expires_at else "-",
        )
    Console().print(table)


@rules.command("remove")
@click.argument("rule_id")
@config_option
def remove_rule(rule_id: str, config_path: str | None) -> None:
    """Remove a rule by ID."""
    store = FileConfigStore(config_path)
    if not store.path.exists():
        click.echo(f"No rule with ID {rule_id}", err=True)
        sys.exit(1)
    removed = False

    def _drop(config):
        nonlocal removed
        kept = drop_rule(config.rules, rule_id)
        removed = len(kept) < len(config.rules)
        return config.model_copy(update={"rules": kept})

    try:
        store.update(_drop)
    except PersistenceFailure as e:
        click.echo(f"FAIL: {e}", err=True)
        sys.exit(1)

    if not removed:
        click.echo(f"No rule with ID {rule_id}", err=True)
        sys.exit(1)
    click.echo(f"Removed rule {rule_id}")


if __name__ == "__main__":
    cli()
