"""
Orphan detection and deletion.

An orphan is a ledger entry whose resource id no longer exists in the
resources directory. Orphans are deleted from the platform only when:

    - the run is forced (otherwise this is a dry run that only reports)
    - no declared resource still references them (otherwise blocked)

Deletion walks DELETE_ORDER, the exact reverse of the apply order, so
dependents go before the things they depend on. Each ledger entry is
removed right after its remote delete succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vapi_gitops.adapters.base import PlatformClient
from vapi_gitops.core.engine.resolver import extract_referenced_ids
from vapi_gitops.core.models.resource import DELETE_ORDER, ResourceRecord, ResourceType
from vapi_gitops.core.models.state import StateLedger

logger = logging.getLogger(__name__)

RecordsByType = dict[ResourceType, list[ResourceRecord]]


@dataclass
class OrphanCandidate:
    """A ledger entry with no declared resource behind it."""

    resource_type: ResourceType
    resource_id: str
    uuid: str
    referenced_by: list[str] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return bool(self.referenced_by)

    @property
    def label(self) -> str:
        return f"{self.resource_type.value}/{self.resource_id}"

    def to_dict(self) -> dict:
        return {
            "type": self.resource_type.value,
            "resource_id": self.resource_id,
            "uuid": self.uuid,
            "referenced_by": list(self.referenced_by),
        }


@dataclass
class DeletePlan:
    """Orphans split into deletable and blocked, both in DELETE_ORDER."""

    safe: list[OrphanCandidate] = field(default_factory=list)
    blocked: list[OrphanCandidate] = field(default_factory=list)
    deleted: list[OrphanCandidate] = field(default_factory=list)
    dry_run: bool = True

    @property
    def empty(self) -> bool:
        return not self.safe and not self.blocked

    @property
    def pending(self) -> list[OrphanCandidate]:
        """Safe candidates not deleted (yet)."""
        done = {c.label for c in self.deleted}
        return [c for c in self.safe if c.label not in done]

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "safe": [c.to_dict() for c in self.safe],
            "blocked": [c.to_dict() for c in self.blocked],
            "deleted": [c.to_dict() for c in self.deleted],
        }


def declared_ids(records: RecordsByType) -> dict[ResourceType, set[str]]:
    return {rt: {r.resource_id for r in records.get(rt, [])} for rt in DELETE_ORDER}


def find_orphans(
    declared: dict[ResourceType, set[str]],
    ledger: StateLedger,
    types: list[ResourceType] | None = None,
) -> list[OrphanCandidate]:
    """Ledger entries whose id is not declared, in DELETE_ORDER.

    Args:
        declared: Declared resource ids per type.
        ledger: Current id mapping.
        types: Only consider these types. None = all.
    """
    orphans: list[OrphanCandidate] = []
    for rt in DELETE_ORDER:
        if types is not None and rt not in types:
            continue
        known = declared.get(rt, set())
        for resource_id, uuid in ledger.section(rt).items():
            if resource_id not in known:
                orphans.append(OrphanCandidate(rt, resource_id, uuid))
    return orphans


def find_referencing_resources(
    resource_type: ResourceType,
    resource_id: str,
    records: RecordsByType,
) -> list[str]:
    """Labels (``type/id``) of declared resources that reference a resource."""
    referrers: list[str] = []
    for rt, batch in records.items():
        for record in batch:
            if resource_id in extract_referenced_ids(record.payload).get(resource_type, []):
                referrers.append(f"{rt.value}/{record.resource_id}")
    return referrers


def plan_deletions(
    records: RecordsByType,
    ledger: StateLedger,
    types: list[ResourceType] | None = None,
    force: bool = False,
) -> DeletePlan:
    """Find orphans and partition them into safe and blocked.

    ``records`` must be the full declared set, platform defaults
    included, so that a reference from any declared file blocks a
    deletion.
    """
    plan = DeletePlan(dry_run=not force)
    for candidate in find_orphans(declared_ids(records), ledger, types):
        candidate.referenced_by = find_referencing_resources(
            candidate.resource_type, candidate.resource_id, records
        )
        if candidate.blocked:
            plan.blocked.append(candidate)
            logger.warning(
                "⛔ %s is orphaned but still referenced by %s",
                candidate.label,
                ", ".join(candidate.referenced_by),
            )
        else:
            plan.safe.append(candidate)
    return plan


def execute_deletions(
    plan: DeletePlan,
    ledger: StateLedger,
    client: PlatformClient,
) -> DeletePlan:
    """Delete the plan's safe candidates, in order.

    A dry-run plan is returned untouched.

    Raises:
        TransportError: On the first failed delete; later candidates
            are left in place.
    """
    if plan.dry_run:
        for candidate in plan.safe:
            logger.info("Pending deletion: %s (%s)", candidate.label, candidate.uuid)
        return plan

    for candidate in plan.safe:
        client.delete(candidate.resource_type, candidate.uuid)
        ledger.remove(candidate.resource_type, candidate.resource_id)
        plan.deleted.append(candidate)
        logger.info("🗑️  Deleted %s (%s)", candidate.label, candidate.uuid)

    return plan
