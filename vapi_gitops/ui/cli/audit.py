"""
CLI commands for the audit log — run history per environment.

Usage::

    vapi-gitops audit log dev
    vapi-gitops audit log prod -n 5 --json
"""

from __future__ import annotations

import json
import sys

import click


@click.group()
def audit() -> None:
    """Audit — push, pull, and cleanup history."""


@audit.command("log")
@click.argument("environment")
@click.option("-n", "limit", type=int, default=20, show_default=True, help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def audit_log(ctx: click.Context, environment: str, limit: int, as_json: bool) -> None:
    """Show the most recent runs against an environment."""
    from vapi_gitops.core.config.loader import ConfigError, load_settings
    from vapi_gitops.core.persistence.audit import AuditWriter

    try:
        settings = load_settings(environment, ctx.obj.get("root"), require_token=False)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    entries = AuditWriter(settings.audit_path).read_recent(limit)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No runs recorded for {environment}.")
        return

    colors = {"ok": "green", "partial": "yellow", "failed": "red"}
    for entry in entries:
        click.echo(f"{entry.timestamp}  {entry.operation_type:<8} ", nl=False)
        click.secho(f"{entry.status:<8}", fg=colors.get(entry.status, "white"), nl=False)
        counts = (
            f"+{entry.created} ~{entry.updated} 🔗{entry.linked} "
            f"-{entry.deleted} ⛔{entry.blocked}"
        )
        click.echo(f" {counts}  {entry.operation_id}")
        for error in entry.errors:
            click.echo(f"    │ {error}")
