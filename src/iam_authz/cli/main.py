"""CLI entry point for iam-authz.

Invoked as::

    iam-authz [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m iam_authz.cli.main

Commands
--------
- validate    Validate an authorization config and summarise its registry
- check       Authorize a single request against a config
- audit show  Display recent decision records
- version     Show version information
"""
from __future__ import annotations

import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from iam_authz.audit.logger import AuditLogger
from iam_authz.engine.config_loader import AuthzConfig, ConfigError, ConfigLoader
from iam_authz.engine.decision_engine import DecisionEngine
from iam_authz.engine.registry import UnknownIdentity
from iam_authz.policies.document import InvalidPolicyDocument

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("authz.yaml")

_EXIT_ALLOWED = 0
_EXIT_DENIED = 1
_EXIT_CONFIG_ERROR = 2


def _load_config(config_path: str) -> AuthzConfig:
    try:
        return ConfigLoader().load(Path(config_path))
    except (ConfigError, FileNotFoundError) as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(_EXIT_CONFIG_ERROR)


def _parse_context(pairs: tuple[str, ...]) -> dict[str, str]:
    context: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--context")
        context[key] = value
    return context


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="iam-authz")
def cli() -> None:
    """iam-authz: trust and permission policy evaluation."""


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from iam_authz import __version__

    console.print(
        Panel(
            f"[bold]iam-authz[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Identity and resource policy decision engine.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@cli.command(name="validate")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(),
    help="Path to the authorization config.",
)
def validate_command(config_path: str) -> None:
    """Validate a config and summarise the registry it builds."""
    config = _load_config(config_path)
    engine = DecisionEngine()
    try:
        registry = engine.load_config(config)
    except InvalidPolicyDocument as exc:
        err_console.print(f"[red]Invalid policy document:[/red] {escape(str(exc))}")
        sys.exit(_EXIT_CONFIG_ERROR)

    table = Table(title="Identities", box=box.SIMPLE)
    table.add_column("Identity", style="cyan")
    table.add_column("Trust policy", style="magenta")
    table.add_column("Permission policies")
    for identity_id in sorted(registry.identities):
        identity = registry.identities[identity_id]
        trust = identity.trust_policy.policy_id if identity.trust_policy else "-"
        policies = ", ".join(p.policy_id for p in identity.permission_policies) or "-"
        table.add_row(escape(identity_id), escape(trust), escape(policies))
    console.print(table)
    console.print(
        f"[green]Valid[/green]: {len(registry.identities)} identities, "
        f"{len(registry.resources)} resources."
    )


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.command(name="check")
@click.option("--principal", "-p", required=True, help="Caller principal.")
@click.option("--identity", "-i", "identity_id", required=True, help="Target identity id.")
@click.option("--action", "-a", required=True, help="Action, e.g. logs:PutLogEvents.")
@click.option("--resource", "-r", "resource_id", required=True, help="Target resource id.")
@click.option(
    "--context",
    "-x",
    "context_pairs",
    multiple=True,
    help="Context value as KEY=VALUE; may be repeated.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(),
    help="Path to the authorization config.",
)
def check_command(
    principal: str,
    identity_id: str,
    action: str,
    resource_id: str,
    context_pairs: tuple[str, ...],
    config_path: str,
) -> None:
    """Authorize one request; exit 0 when allowed, 1 when denied."""
    context = _parse_context(context_pairs)
    config = _load_config(config_path)

    audit = AuditLogger(config.audit.log_path) if config.audit.enabled else None
    engine = DecisionEngine(decision_sink=audit.record_decision if audit else None)
    try:
        engine.load_config(config)
        decision = engine.check(principal, identity_id, action, resource_id, context)
    except InvalidPolicyDocument as exc:
        err_console.print(f"[red]Invalid policy document:[/red] {escape(str(exc))}")
        sys.exit(_EXIT_CONFIG_ERROR)
    except UnknownIdentity as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(_EXIT_CONFIG_ERROR)

    if decision.allowed:
        status_str = "[green]ALLOWED[/green]"
    else:
        status_str = f"[red]DENIED[/red] ({decision.reason.value if decision.reason else ''})"
    console.print(Panel(status_str, title="Authorization Decision", border_style="blue"))
    if decision.matched_statement_id:
        console.print(f"  Matched statement: [bold]{escape(decision.matched_statement_id)}[/bold]")

    sys.exit(_EXIT_ALLOWED if decision.allowed else _EXIT_DENIED)


# ---------------------------------------------------------------------------
# audit group
# ---------------------------------------------------------------------------


@cli.group(name="audit")
def audit_group() -> None:
    """Decision audit trail commands."""


@audit_group.command(name="show")
@click.option(
    "--last",
    "-n",
    default=20,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of recent decisions to show.",
)
@click.option("--denied", is_flag=True, help="Only show denied decisions.")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    type=click.Path(),
    help="Path to the authorization config.",
)
def audit_show_command(last: int, denied: bool, config_path: str) -> None:
    """Show recent decision records."""
    loader = ConfigLoader()
    cfg_path = Path(config_path)
    try:
        config = loader.load(cfg_path) if cfg_path.exists() else loader.defaults()
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(_EXIT_CONFIG_ERROR)

    audit = AuditLogger(config.audit.log_path)
    matching = audit.decisions(allowed=False if denied else None)
    records = matching[-last:]
    if not records:
        console.print("[yellow]No audit entries found.[/yellow]")
        return

    table = Table(title=f"Last {last} Decisions", box=box.SIMPLE)
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Principal", style="cyan")
    table.add_column("Identity")
    table.add_column("Action", style="magenta")
    table.add_column("Resource")
    table.add_column("Outcome")

    for record in records:
        ts = str(record.get("timestamp", ""))[:19].replace("T", " ")
        outcome = "ALLOW" if record.get("allowed") else f"DENY {record.get('reason') or ''}"
        table.add_row(
            ts,
            escape(str(record.get("principal", ""))),
            escape(str(record.get("target_identity_id", ""))),
            escape(str(record.get("action", ""))),
            escape(str(record.get("resource_id", ""))),
            outcome.strip(),
        )

    console.print(table)
    console.print(f"  Matching decisions: [cyan]{len(matching)}[/cyan]")


if __name__ == "__main__":
    cli()
