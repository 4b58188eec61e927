"""
Status use case — ledger summary for one environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from vapi_gitops.core.config.loader import ConfigError, load_settings
from vapi_gitops.core.config.resource_loader import load_all_resources
from vapi_gitops.core.persistence.audit import AuditEntry, AuditWriter
from vapi_gitops.core.persistence.state_file import LedgerCorruptError, load_ledger


@dataclass
class StatusResult:
    """Ledger and resource counts per type."""

    environment: str = ""
    state_path: Path | None = None
    state_exists: bool = False
    ledger_counts: dict[str, int] = field(default_factory=dict)
    declared_counts: dict[str, int] = field(default_factory=dict)
    last_operation: AuditEntry | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["environment"] = self.environment
        result["state_path"] = str(self.state_path) if self.state_path else None
        result["state_exists"] = self.state_exists
        result["ledger"] = self.ledger_counts
        result["declared"] = self.declared_counts
        if self.last_operation:
            result["last_operation"] = self.last_operation.model_dump(mode="json")
        return result


def get_status(
    environment: str | None,
    base_dir: Path | None = None,
    strict_state: bool = False,
) -> StatusResult:
    """Summarize the ledger and the resource files. No network, no token."""
    result = StatusResult()

    try:
        settings = load_settings(environment, base_dir, require_token=False)
        ledger = load_ledger(settings.state_path, strict=strict_state)
        records = load_all_resources(settings.resources_dir)
    except (ConfigError, LedgerCorruptError) as e:
        result.error = str(e)
        return result

    result.environment = settings.environment
    result.state_path = settings.state_path
    result.state_exists = settings.state_path.is_file()
    result.ledger_counts = ledger.counts()
    result.declared_counts = {rt.value: len(batch) for rt, batch in records.items()}

    recent = AuditWriter(settings.audit_path).read_recent(1)
    result.last_operation = recent[-1] if recent else None

    return result
