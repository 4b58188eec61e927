"""
Cleanup service — remove platform resources the ledger does not know.

Unlike orphan deletion during push (ledger entries with no file), this
looks at the platform side: anything listed remotely whose UUID is in
no ledger section is untracked. Individual failures are counted and
reported; they do not stop the sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vapi_gitops.adapters.base import PlatformClient, TransportError
from vapi_gitops.core.models.resource import DELETE_ORDER, ResourceType
from vapi_gitops.core.models.state import StateLedger

logger = logging.getLogger(__name__)


@dataclass
class UntrackedResource:
    resource_type: ResourceType
    uuid: str
    name: str = "(unnamed)"

    def to_dict(self) -> dict:
        return {"type": self.resource_type.value, "uuid": self.uuid, "name": self.name}


@dataclass
class CleanupReport:
    """What the sweep found and did."""

    untracked: list[UntrackedResource] = field(default_factory=list)
    deleted: list[UntrackedResource] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    fetch_errors: list[str] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)
    dry_run: bool = True

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "untracked": [u.to_dict() for u in self.untracked],
            "deleted": [u.to_dict() for u in self.deleted],
            "failed": list(self.failed),
            "fetch_errors": list(self.fetch_errors),
            "totals": dict(self.totals),
        }


def find_untracked(
    client: PlatformClient,
    ledger: StateLedger,
    report: CleanupReport | None = None,
) -> CleanupReport:
    """List every type and collect resources whose UUID is not in the ledger.

    A type that cannot be listed is recorded in ``fetch_errors`` and skipped.
    Read-only platform defaults (no ``orgId``) are never reported.
    """
    report = report or CleanupReport()
    known = ledger.all_uuids()

    for rt in DELETE_ORDER:
        try:
            remote = client.list_resources(rt)
        except TransportError as e:
            logger.warning("⚠️  Could not fetch %s: %s", rt.value, e)
            report.fetch_errors.append(f"{rt.value}: {e}")
            continue

        report.totals[rt.value] = len(remote)
        for resource in remote:
            uuid = str(resource.get("id", ""))
            if not uuid or uuid in known or resource.get("orgId") is None:
                continue
            report.untracked.append(
                UntrackedResource(rt, uuid, str(resource.get("name") or "(unnamed)"))
            )

    logger.info("Found %d untracked resource(s)", len(report.untracked))
    return report


def delete_untracked(client: PlatformClient, report: CleanupReport) -> CleanupReport:
    """Delete every untracked resource in the report, continuing past failures."""
    report.dry_run = False
    for item in report.untracked:
        try:
            client.delete(item.resource_type, item.uuid)
        except TransportError as e:
            logger.error("❌ Failed to delete %s %s: %s", item.resource_type.label, item.name, e)
            report.failed.append(f"{item.resource_type.value}/{item.uuid}: {e}")
            continue
        report.deleted.append(item)
        logger.info("🗑️  Deleted %s %s (%s)", item.resource_type.label, item.name, item.uuid)
    return report
