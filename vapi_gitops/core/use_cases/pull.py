"""
Pull use case — refresh resource files and the ledger from the platform.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from vapi_gitops.adapters.base import PlatformClient, TransportError
from vapi_gitops.core.config.loader import ConfigError, Settings, load_settings
from vapi_gitops.core.engine.executor import generate_operation_id
from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceType
from vapi_gitops.core.persistence.audit import AuditEntry, AuditWriter
from vapi_gitops.core.persistence.state_file import LedgerCorruptError, load_ledger, save_ledger
from vapi_gitops.core.services.pull import PullStats, locally_changed_files, pull_resource_type
from vapi_gitops.core.use_cases.common import check_tables, create_client, outcome_status

logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    """Result of a pull."""

    environment: str = ""
    operation_id: str = ""
    stats: dict[ResourceType, PullStats] = field(default_factory=dict)
    preserved: list[str] = field(default_factory=list)
    force: bool = False
    mock: bool = False
    error: str | None = None

    @property
    def created(self) -> int:
        return sum(s.created for s in self.stats.values())

    @property
    def updated(self) -> int:
        return sum(s.updated for s in self.stats.values())

    @property
    def skipped(self) -> int:
        return sum(s.skipped for s in self.stats.values())

    def to_dict(self) -> dict:
        result: dict = {
            "environment": self.environment,
            "operation_id": self.operation_id,
            "force": self.force,
            "mock": self.mock,
            "stats": {rt.value: s.to_dict() for rt, s in self.stats.items()},
        }
        if self.preserved:
            result["preserved"] = self.preserved
        if self.error:
            result["error"] = self.error
        return result


def pull(
    environment: str | None,
    base_dir: Path | None = None,
    force: bool = False,
    strict_state: bool = False,
    mock_mode: bool = False,
    client: PlatformClient | None = None,
    settings: Settings | None = None,
) -> PullResult:
    """Write the platform's resources into ``resources/`` and update the ledger.

    Args:
        environment: Target environment (dev, staging, prod).
        base_dir: Project root. Defaults to the current directory.
        force: Overwrite locally modified files too.
        strict_state: Fail on a corrupt ledger instead of starting fresh.
        mock_mode: Use the in-memory platform and persist no ledger.
        client: Pre-built transport (tests).
        settings: Pre-resolved settings.

    Returns:
        PullResult; ``error`` is set when the run failed.
    """
    result = PullResult(force=force, mock=mock_mode)

    problems = check_tables()
    if problems:
        result.error = "Invalid resource tables: " + "; ".join(problems)
        return result

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
    persist = not mock_mode

    if client is None:
        client = create_client(settings, mock_mode)

    changed = None if force else locally_changed_files(settings.base_dir)
    if changed:
        result.preserved = sorted(changed)
        logger.info("%d locally changed resource file(s) will be preserved", len(changed))

    try:
        for rt in APPLY_ORDER:
            result.stats[rt] = pull_resource_type(
                client, rt, ledger, settings.resources_dir, changed
            )
    except TransportError as e:
        logger.error("Pull aborted: %s", e)
        result.error = str(e)
    finally:
        if persist:
            save_ledger(ledger, settings.state_path)

    if persist:
        AuditWriter(settings.audit_path).write(
            AuditEntry(
                operation_id=result.operation_id,
                operation_type="pull",
                environment=settings.environment,
                status=outcome_status(result.error, bool(result.stats)),
                created=result.created,
                updated=result.updated,
                errors=[result.error] if result.error else [],
                context={"force": force, "skipped": result.skipped},
            )
        )

    return result
