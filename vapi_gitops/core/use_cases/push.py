"""
Push use case — reconcile the platform with the resource files.

The full vertical slice: load settings, declared resources and the
ledger; delete (or report) orphans; apply in two passes; persist the
ledger and write the audit entry.

The ledger is saved even when the run fails part-way, so it always
reflects every platform mutation that actually happened. Mock runs
never write the ledger or the audit log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from vapi_gitops.adapters.base import PlatformClient, TransportError
from vapi_gitops.core.config.loader import ConfigError, Settings, load_settings
from vapi_gitops.core.config.resource_loader import load_all_resources
from vapi_gitops.core.engine.executor import (
    ApplyReport,
    apply_all,
    filter_records,
    generate_operation_id,
    skipped_platform_defaults,
)
from vapi_gitops.core.engine.orphans import DeletePlan, execute_deletions, plan_deletions
from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceType
from vapi_gitops.core.persistence.audit import AuditEntry, AuditWriter
from vapi_gitops.core.persistence.state_file import LedgerCorruptError, load_ledger, save_ledger
from vapi_gitops.core.use_cases.common import check_tables, create_client, outcome_status

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Result of a push."""

    environment: str = ""
    operation_id: str = ""
    report: ApplyReport | None = None
    deletions: DeletePlan | None = None
    platform_defaults: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    state_path: Path | None = None
    ledger_saved: bool = False
    mock: bool = False
    error: str | None = None

    @property
    def partial(self) -> bool:
        return bool(self.types or self.paths)

    def to_dict(self) -> dict:
        result: dict = {
            "environment": self.environment,
            "operation_id": self.operation_id,
            "partial": self.partial,
            "mock": self.mock,
            "ledger_saved": self.ledger_saved,
        }
        if self.error:
            result["error"] = self.error
        if self.state_path:
            result["state_path"] = str(self.state_path)
        if self.types:
            result["types"] = self.types
        if self.paths:
            result["paths"] = self.paths
        if self.platform_defaults:
            result["platform_defaults_skipped"] = self.platform_defaults
        if self.deletions:
            result["deletions"] = self.deletions.to_dict()
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def push(
    environment: str | None,
    base_dir: Path | None = None,
    types: list[ResourceType] | None = None,
    paths: list[str] | None = None,
    force: bool = False,
    strict_state: bool = False,
    mock_mode: bool = False,
    client: PlatformClient | None = None,
    settings: Settings | None = None,
) -> PushResult:
    """Apply the resource files to one environment.

    Args:
        environment: Target environment (dev, staging, prod).
        base_dir: Project root. Defaults to the current directory.
        types: Only apply (and check for orphans) these types.
        paths: Only apply resources matching these file paths.
        force: Delete unreferenced orphans instead of only reporting them.
        strict_state: Fail on a corrupt ledger instead of starting fresh.
        mock_mode: Use the in-memory platform and persist nothing.
        client: Pre-built transport (tests). Takes precedence over mock_mode.
        settings: Pre-resolved settings (skips .env loading).

    Returns:
        PushResult; ``error`` is set when the run failed.
    """
    result = PushResult(
        types=[t.value for t in types or []],
        paths=list(paths or []),
        mock=mock_mode,
    )

    problems = check_tables()
    if problems:
        result.error = "Invalid resource tables: " + "; ".join(problems)
        return result

    # ── Load settings, resources and ledger ──────────────────────
    try:
        if settings is None:
            settings = load_settings(
                environment,
                base_dir,
                require_token=client is None and not mock_mode,
            )
        records = load_all_resources(settings.resources_dir)
        ledger = load_ledger(settings.state_path, strict=strict_state)
    except (ConfigError, LedgerCorruptError) as e:
        result.error = str(e)
        return result

    result.environment = settings.environment
    result.state_path = settings.state_path
    persist = not mock_mode

    # ── Select what to apply ─────────────────────────────────────
    selected = filter_records(records, types, paths)
    result.platform_defaults = [
        f"{r.type.value}/{r.resource_id}" for r in skipped_platform_defaults(records)
    ]

    orphan_types: list[ResourceType] | None = None
    if paths:
        orphan_types = [rt for rt in APPLY_ORDER if selected[rt]]
        if not orphan_types:
            logger.warning("No resource files match %s", ", ".join(paths))
    elif types:
        orphan_types = list(types)

    if client is None:
        client = create_client(settings, mock_mode)

    operation_id = generate_operation_id()
    result.operation_id = operation_id
    report = ApplyReport(operation_id=operation_id)
    result.report = report

    # ── Orphans, pass 1, pass 2 ──────────────────────────────────
    try:
        plan = plan_deletions(records, ledger, orphan_types, force=force)
        result.deletions = plan
        execute_deletions(plan, ledger, client)
        apply_all(selected, ledger, client, report)
    except TransportError as e:
        logger.error("Push aborted: %s", e)
        result.error = str(e)
    finally:
        if persist:
            save_ledger(ledger, settings.state_path)
            result.ledger_saved = True

    # ── Audit ────────────────────────────────────────────────────
    if persist:
        deleted = len(result.deletions.deleted) if result.deletions else 0
        AuditWriter(settings.audit_path).write(
            AuditEntry(
                operation_id=operation_id,
                operation_type="push",
                environment=settings.environment,
                status=outcome_status(result.error, bool(report.receipts) or deleted > 0),
                created=report.created,
                updated=report.updated,
                linked=report.linked,
                deleted=deleted,
                blocked=len(result.deletions.blocked) if result.deletions else 0,
                warnings=len(report.warnings),
                errors=[result.error] if result.error else [],
                context={"types": result.types, "paths": result.paths, "force": force},
            )
        )

    return result
