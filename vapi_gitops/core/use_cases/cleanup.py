"""
Cleanup use case — sweep platform resources missing from the ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from vapi_gitops.adapters.base import PlatformClient
from vapi_gitops.core.config.loader import ConfigError, Settings, load_settings
from vapi_gitops.core.engine.executor import generate_operation_id
from vapi_gitops.core.persistence.audit import AuditEntry, AuditWriter
from vapi_gitops.core.persistence.state_file import LedgerCorruptError, load_ledger
from vapi_gitops.core.services.cleanup import CleanupReport, delete_untracked, find_untracked
from vapi_gitops.core.use_cases.common import create_client, outcome_status

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Result of a cleanup sweep."""

    environment: str = ""
    operation_id: str = ""
    report: CleanupReport | None = None
    kept: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {
            "environment": self.environment,
            "operation_id": self.operation_id,
            "kept": self.kept,
        }
        if self.report:
            result.update(self.report.to_dict())
        if self.error:
            result["error"] = self.error
        return result


def cleanup(
    environment: str | None,
    base_dir: Path | None = None,
    force: bool = False,
    strict_state: bool = False,
    mock_mode: bool = False,
    client: PlatformClient | None = None,
    settings: Settings | None = None,
) -> CleanupResult:
    """Report (or with ``force``, delete) platform resources not in the ledger.

    Returns:
        CleanupResult; ``error`` is set on configuration problems or
        when any deletion failed.
    """
    result = CleanupResult()

    try:
        if settings is None:
            settings = load_settings(
                environment,
                base_dir,
                require_token=client is None and not mock_mode,
            )
        ledger = load_ledger(settings.state_path, strict=strict_state)
    except (ConfigError, LedgerCorruptError) as e:
        result.error = str(e)
        return result

    result.environment = settings.environment
    result.operation_id = generate_operation_id()
    result.kept = ledger.total

    if client is None:
        client = create_client(settings, mock_mode)

    report = find_untracked(client, ledger)
    result.report = report

    if force and report.untracked:
        delete_untracked(client, report)
        if report.failed:
            result.error = f"{len(report.failed)} deletion(s) failed"

    if not mock_mode:
        AuditWriter(settings.audit_path).write(
            AuditEntry(
                operation_id=result.operation_id,
                operation_type="cleanup",
                environment=settings.environment,
                status=outcome_status(result.error, bool(report.deleted)),
                deleted=len(report.deleted),
                errors=report.failed + report.fetch_errors,
                context={"force": force, "untracked": len(report.untracked)},
            )
        )

    return result
