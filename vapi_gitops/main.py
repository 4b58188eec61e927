"""
Vapi GitOps — CLI entrypoint.

Usage:
    vapi-gitops --help
    vapi-gitops push dev
    vapi-gitops push dev --type tools resources/tools/transfer-call.yml
    vapi-gitops pull staging --force
    vapi-gitops cleanup prod
    vapi-gitops status dev
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from vapi_gitops import __version__
from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceType
from vapi_gitops.core.observability.logging_config import resolve_level, setup_logging

_TYPE_CHOICE = click.Choice([rt.value for rt in APPLY_ORDER], case_sensitive=False)
_STATUS_COLORS = {"ok": "green", "partial": "yellow", "failed": "red"}


@click.group()
@click.version_option(version=__version__, prog_name="vapi-gitops")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--root",
    "-C",
    "root",
    type=click.Path(file_okay=False),
    default=None,
    help="Project root holding resources/ and .env files (default: current directory).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    root: str | None,
) -> None:
    """Vapi GitOps — declarative resource management for Vapi."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["root"] = Path(root).resolve() if root else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("VAPI_LOG_FILE"),
        log_file_level=os.environ.get("VAPI_LOG_FILE_LEVEL"),
    )


def _types(values: tuple[str, ...]) -> list[ResourceType] | None:
    return [ResourceType.parse(v) for v in values] or None


def _mode_label(mock: bool, force: bool = False) -> str:
    parts = []
    if mock:
        parts.append("[mock]")
    if force:
        parts.append("[force]")
    return (" ".join(parts) + " ") if parts else ""


# ── Rendering ───────────────────────────────────────────────────────


def _echo_deletions(plan) -> None:
    if plan is None or plan.empty:
        click.secho("   ✅ No orphaned resources", fg="green")
        return

    if plan.blocked:
        click.secho("   ⛔ Cannot delete (still referenced):", fg="yellow")
        for candidate in plan.blocked:
            click.echo(f"     • {candidate.label}")
            for referrer in candidate.referenced_by:
                click.echo(f"       ↳ referenced by {referrer}")

    if plan.dry_run:
        if plan.safe:
            click.secho("   ⚠️  Pending deletions (dry run):", fg="yellow")
            for candidate in plan.safe:
                click.echo(f"     🗑️  {candidate.label} ({candidate.uuid})")
            click.echo("   ℹ️  These exist on the platform but not in your files.")
            click.echo("   ℹ️  Re-run with --force to delete them.")
        return

    for candidate in plan.deleted:
        click.secho(f"   🗑️  Deleted {candidate.label}", fg="red")
    for candidate in plan.pending:
        click.echo(f"   ⊘ Not deleted: {candidate.label}")


def _echo_report(report, verbose: bool = False) -> None:
    icons = {"created": ("✨", "green"), "updated": ("📝", "cyan"), "linked": ("🔗", "blue")}
    for receipt in report.receipts:
        if receipt.action == "skipped":
            if verbose:
                click.secho(f"   ⊘ {receipt.label} ({receipt.detail})", fg="yellow")
            continue
        icon, color = icons.get(receipt.action, ("•", "white"))
        click.secho(f"   {icon} {receipt.action} ", fg=color, nl=False)
        detail = f" [{receipt.detail}]" if receipt.detail else ""
        click.echo(f"{receipt.label}{detail}")
        if verbose and receipt.uuid:
            click.echo(f"     │ {receipt.uuid}")

    if report.warnings:
        click.echo()
        click.secho("   ⚠️  Unresolved references:", fg="yellow")
        for warning in report.warnings:
            click.echo(f"     • {warning}")


def _echo_push(result, verbose: bool) -> None:
    click.echo()
    click.secho("   Orphans:", fg="white", bold=True)
    _echo_deletions(result.deletions)

    report = result.report
    if report is not None:
        click.echo()
        click.secho("   Applied:", fg="white", bold=True)
        if not report.receipts:
            click.echo("     (nothing to apply)")
        _echo_report(report, verbose)

        click.echo()
        click.echo(
            f"   Created: {report.created} | Updated: {report.updated} | "
            f"Linked: {report.linked}"
        )
        if result.partial:
            for type_name, count in report.applied_by_type().items():
                click.echo(f"     {type_name}: {count}")

    if result.platform_defaults and verbose:
        click.echo(f"   🔒 {len(result.platform_defaults)} platform default(s) skipped")

    if result.ledger_saved and result.state_path:
        click.secho(f"   💾 Ledger saved to {result.state_path.name}", fg="cyan")
    elif result.mock:
        click.secho("   💾 Mock run, ledger not saved", fg="cyan")


def _finish(result, as_json: bool) -> None:
    """Print JSON (when asked) and exit non-zero on error."""
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.error:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red")
    if result.error:
        sys.exit(1)
    if not as_json:
        click.echo()


# ── Commands ────────────────────────────────────────────────────────


@cli.command()
@click.argument("environment")
@click.argument("paths", nargs=-1)
@click.option("--type", "-t", "type_names", multiple=True, type=_TYPE_CHOICE,
              help="Only apply this resource type (repeatable).")
@click.option("--force", is_flag=True, help="Delete orphaned resources instead of listing them.")
@click.option("--strict-state", is_flag=True, help="Fail on a corrupt state file.")
@click.option("--mock", is_flag=True, help="Use an in-memory platform (nothing is saved).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def push(
    ctx: click.Context,
    environment: str,
    paths: tuple[str, ...],
    type_names: tuple[str, ...],
    force: bool,
    strict_state: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Push resource files to an environment.

    Examples:

        vapi-gitops push dev

        vapi-gitops push dev --type assistants --type tools

        vapi-gitops push prod resources/tools/transfer-call.yml --force
    """
    from vapi_gitops.core.use_cases.push import push as run_push

    if not as_json and not ctx.obj.get("quiet"):
        click.secho(f"\n🚀 {_mode_label(mock, force)}Push — {environment}", fg="cyan", bold=True)
        if type_names:
            click.echo(f"   Types: {', '.join(type_names)}")
        if paths:
            click.echo(f"   Files: {', '.join(paths)}")

    result = run_push(
        environment,
        base_dir=ctx.obj.get("root"),
        types=_types(type_names),
        paths=list(paths) or None,
        force=force,
        strict_state=strict_state,
        mock_mode=mock,
    )

    if not as_json:
        _echo_push(result, ctx.obj.get("verbose", False))
    _finish(result, as_json)


@cli.command()
@click.argument("environment")
@click.option("--force", is_flag=True, help="Overwrite locally modified files too.")
@click.option("--strict-state", is_flag=True, help="Fail on a corrupt state file.")
@click.option("--mock", is_flag=True, help="Use an in-memory platform (ledger is not saved).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def pull(
    ctx: click.Context,
    environment: str,
    force: bool,
    strict_state: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Pull platform resources into resource files."""
    from vapi_gitops.core.use_cases.pull import pull as run_pull

    if not as_json and not ctx.obj.get("quiet"):
        click.secho(f"\n📥 {_mode_label(mock, force)}Pull — {environment}", fg="cyan", bold=True)

    result = run_pull(
        environment,
        base_dir=ctx.obj.get("root"),
        force=force,
        strict_state=strict_state,
        mock_mode=mock,
    )

    if not as_json:
        _echo_pull(result)
    _finish(result, as_json)


def _echo_pull(result) -> None:
    if result.preserved:
        click.secho(f"   📦 {len(result.preserved)} locally changed file(s) preserved", fg="yellow")
    for rt, stats in result.stats.items():
        parts = [f"{stats.created} new", f"{stats.updated} updated"]
        if stats.skipped:
            parts.append(f"{stats.skipped} skipped")
        click.echo(f"   {rt.value}: {', '.join(parts)}")
    if result.skipped:
        click.echo("   ℹ️  Re-run with --force to overwrite locally changed files.")


@cli.command()
@click.argument("environment")
@click.argument("paths", nargs=-1)
@click.option("--type", "-t", "type_names", multiple=True, type=_TYPE_CHOICE,
              help="Only push this resource type (repeatable).")
@click.option("--force", is_flag=True, help="Delete orphaned resources instead of listing them.")
@click.option("--strict-state", is_flag=True, help="Fail on a corrupt state file.")
@click.option("--mock", is_flag=True, help="Use an in-memory platform (nothing is saved).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(
    ctx: click.Context,
    environment: str,
    paths: tuple[str, ...],
    type_names: tuple[str, ...],
    force: bool,
    strict_state: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Pull, then push (local edits are preserved by the pull)."""
    from vapi_gitops.core.use_cases.apply import apply as run_apply

    if not as_json and not ctx.obj.get("quiet"):
        click.secho(f"\n🔄 {_mode_label(mock, force)}Apply — {environment}", fg="cyan", bold=True)

    result = run_apply(
        environment,
        base_dir=ctx.obj.get("root"),
        types=_types(type_names),
        paths=list(paths) or None,
        force=force,
        strict_state=strict_state,
        mock_mode=mock,
    )

    if not as_json:
        if result.pull:
            click.echo()
            click.secho("   Pull:", fg="white", bold=True)
            _echo_pull(result.pull)
        if result.push:
            _echo_push(result.push, ctx.obj.get("verbose", False))
    _finish(result, as_json)


@cli.command()
@click.argument("environment")
@click.option("--force", is_flag=True, help="Delete untracked resources instead of listing them.")
@click.option("--strict-state", is_flag=True, help="Fail on a corrupt state file.")
@click.option("--mock", is_flag=True, help="Use an in-memory platform.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def cleanup(
    ctx: click.Context,
    environment: str,
    force: bool,
    strict_state: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Find (and with --force, delete) platform resources not in the state file."""
    from vapi_gitops.core.use_cases.cleanup import cleanup as run_cleanup

    if not as_json and not ctx.obj.get("quiet"):
        mode = "⚠️  DELETING" if force else "🔒 dry run (use --force to delete)"
        click.secho(f"\n🧹 {_mode_label(mock)}Cleanup — {environment}", fg="cyan", bold=True)
        click.echo(f"   Mode: {mode}")

    result = run_cleanup(
        environment,
        base_dir=ctx.obj.get("root"),
        force=force,
        strict_state=strict_state,
        mock_mode=mock,
    )

    if not as_json and result.report is not None:
        report = result.report
        click.echo(f"   State file keeps {result.kept} resource id(s)")
        for error in report.fetch_errors:
            click.secho(f"   ⚠️  Could not fetch {error}", fg="yellow")
        if not report.untracked:
            click.secho("   ✅ Nothing to delete, every resource is tracked", fg="green")
        else:
            deleted = {item.uuid for item in report.deleted}
            for item in report.untracked:
                marker = "✅ Deleted" if item.uuid in deleted else "🗑️ "
                click.echo(f"   {marker} {item.resource_type.label}: {item.name} ({item.uuid})")
            if report.dry_run:
                click.echo(f"   📋 {len(report.untracked)} resource(s) would be deleted")
            else:
                click.echo(f"   {len(report.deleted)} deleted, {len(report.failed)} failed")
    _finish(result, as_json)


@cli.command()
@click.argument("environment")
@click.option("--strict-state", is_flag=True, help="Fail on a corrupt state file.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, environment: str, strict_state: bool, as_json: bool) -> None:
    """Show ledger and resource file counts for an environment."""
    from vapi_gitops.core.use_cases.status import get_status

    result = get_status(environment, base_dir=ctx.obj.get("root"), strict_state=strict_state)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"\n📋 {result.environment}", fg="cyan", bold=True)
    if not result.state_exists:
        click.echo("   (no state file yet)")
    click.echo()
    click.secho(f"   {'type':<20} {'files':>6} {'state':>6}", fg="white", bold=True)
    for rt in APPLY_ORDER:
        declared = result.declared_counts.get(rt.value, 0)
        tracked = result.ledger_counts.get(rt.value, 0)
        click.echo(f"   {rt.value:<20} {declared:>6} {tracked:>6}")

    op = result.last_operation
    if op:
        click.echo()
        click.secho("   Last operation:", fg="white", bold=True)
        click.echo(f"     {op.operation_type} — ", nl=False)
        click.secho(op.status, fg=_STATUS_COLORS.get(op.status, "white"))
        click.echo(f"     at {op.timestamp}")

    click.echo()


# ── Sub-groups ──────────────────────────────────────────────────────

from vapi_gitops.ui.cli.audit import audit

cli.add_command(audit)


if __name__ == "__main__":
    cli()
