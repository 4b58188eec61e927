"""
Apply executor — the two-pass reconciliation loop.

Takes the declared resources and the StateLedger, and brings the
platform in line with the files:

    Pass 1  per type, in APPLY_ORDER:
            resolve references → create (new) or update (known)
            → record the UUID in the ledger immediately
    Pass 2  for every applied resource with forward references:
            resolve again against the complete ledger
            → PATCH only the deferred fields

Existence is judged only by ledger presence. Any transport failure
propagates to the caller; the ledger already holds every mutation that
succeeded up to that point.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Any

from vapi_gitops.adapters.base import PlatformClient
from vapi_gitops.core.config.resource_loader import RESOURCE_EXTENSIONS
from vapi_gitops.core.engine.resolver import (
    UnresolvedReference,
    build_link_patch,
    has_forward_references,
    resolve_references,
    strip_forward_references,
)
from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceRecord, ResourceType
from vapi_gitops.core.models.state import StateLedger

logger = logging.getLogger(__name__)

RecordsByType = dict[ResourceType, list[ResourceRecord]]


@dataclass
class ApplyReceipt:
    """Outcome of one platform mutation (or a decision not to make one)."""

    resource_type: ResourceType
    resource_id: str
    action: str                # created, updated, linked, skipped
    uuid: str = ""
    detail: str = ""

    @property
    def label(self) -> str:
        return f"{self.resource_type.value}/{self.resource_id}"

    def to_dict(self) -> dict:
        return {
            "type": self.resource_type.value,
            "resource_id": self.resource_id,
            "action": self.action,
            "uuid": self.uuid,
            "detail": self.detail,
        }


@dataclass
class ApplyReport:
    """Everything an apply run did, in order."""

    operation_id: str = ""
    receipts: list[ApplyReceipt] = field(default_factory=list)
    warnings: list[UnresolvedReference] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)

    def _count(self, action: str) -> int:
        return sum(1 for r in self.receipts if r.action == action)

    @property
    def created(self) -> int:
        return self._count("created")

    @property
    def updated(self) -> int:
        return self._count("updated")

    @property
    def linked(self) -> int:
        return self._count("linked")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def applied(self) -> int:
        return self.created + self.updated

    def applied_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for r in self.receipts:
            if r.action in ("created", "updated"):
                counts[r.resource_type.value] = counts.get(r.resource_type.value, 0) + 1
        return counts

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "created": self.created,
            "updated": self.updated,
            "linked": self.linked,
            "skipped": self.skipped,
            "deferred": list(self.deferred),
            "warnings": [str(w) for w in self.warnings],
            "receipts": [r.to_dict() for r in self.receipts],
        }


# ── Filtering ───────────────────────────────────────────────────────


def matches_path(record: ResourceRecord, path: str) -> bool:
    """Whether a CLI path argument designates ``record``.

    Accepts the file path (or any suffix of it), the resource id with
    or without extension, or ``<folder>/<resource id>``.
    """
    wanted = PurePath(path).as_posix().strip("/")
    if not wanted:
        return False
    stem = wanted
    for ext in RESOURCE_EXTENSIONS:
        if stem.endswith(ext):
            stem = stem[: -len(ext)]
            break

    file_path = PurePath(record.file_path).as_posix()
    if file_path == wanted or file_path.endswith(f"/{wanted}"):
        return True
    if stem == record.resource_id:
        return True
    return stem.endswith(f"{record.type.folder}/{record.resource_id}")


def filter_records(
    records: RecordsByType,
    types: list[ResourceType] | None = None,
    paths: list[str] | None = None,
) -> RecordsByType:
    """Restrict records to the requested types and/or paths.

    File paths take precedence: when given, the type filter is ignored
    and only matching records are selected. Platform defaults are always
    excluded: they are read-only and are never applied.
    """
    selected: RecordsByType = {}
    for rt in APPLY_ORDER:
        if types and not paths and rt not in types:
            selected[rt] = []
            continue
        candidates = [r for r in records.get(rt, []) if not r.is_platform_default]
        if paths:
            candidates = [r for r in candidates if any(matches_path(r, p) for p in paths)]
        selected[rt] = candidates
    return selected


def skipped_platform_defaults(records: RecordsByType) -> list[ResourceRecord]:
    return [r for rt in APPLY_ORDER for r in records.get(rt, []) if r.is_platform_default]


# ── Pass 1 ──────────────────────────────────────────────────────────


def prepare_payload(
    record: ResourceRecord,
    ledger: StateLedger,
    warnings: list[UnresolvedReference] | None = None,
) -> dict[str, Any]:
    """Resolve a record's references and drop unresolved forward ones."""
    resolved = resolve_references(
        record.payload,
        ledger,
        owner=f"{record.type.value}/{record.resource_id}",
        warnings=warnings,
    )
    return strip_forward_references(resolved, record.type, ledger)


def apply_resource(
    record: ResourceRecord,
    ledger: StateLedger,
    client: PlatformClient,
    report: ApplyReport,
) -> ApplyReceipt:
    """Create or update one resource and record the outcome.

    Raises:
        TransportError: If the platform call fails.
    """
    rt = record.type
    payload = prepare_payload(record, ledger, report.warnings)
    existing = ledger.get(rt, record.resource_id)

    if existing:
        for key in rt.update_excluded_keys:
            payload.pop(key, None)
        client.update(rt, existing, payload)
        receipt = ApplyReceipt(rt, record.resource_id, "updated", uuid=existing)
        logger.info("✓ %s/%s updated (%s)", rt.value, record.resource_id, existing)
    else:
        created = client.create(rt, payload)
        new_uuid = str(created["id"])
        ledger.set(rt, record.resource_id, new_uuid)
        receipt = ApplyReceipt(rt, record.resource_id, "created", uuid=new_uuid)
        logger.info("✓ %s/%s created (%s)", rt.value, record.resource_id, new_uuid)

    report.receipts.append(receipt)

    if has_forward_references(record.payload, rt):
        report.deferred.append(receipt.label)
        logger.debug("%s has forward references, deferred to linking", receipt.label)

    return receipt


def apply_resources(
    records: RecordsByType,
    ledger: StateLedger,
    client: PlatformClient,
    report: ApplyReport | None = None,
) -> ApplyReport:
    """Pass 1: apply every record, one type at a time in APPLY_ORDER.

    Mutates ``ledger`` in place after each successful create.

    Raises:
        TransportError: On the first failed mutation (the run aborts).
    """
    if report is None:
        report = ApplyReport(operation_id=generate_operation_id())

    for rt in APPLY_ORDER:
        batch = records.get(rt, [])
        if not batch:
            continue
        logger.info("Applying %d %s", len(batch), rt.value)
        for record in batch:
            if record.is_platform_default:
                report.receipts.append(
                    ApplyReceipt(rt, record.resource_id, "skipped", detail="platform default")
                )
                continue
            apply_resource(record, ledger, client, report)

    return report


# ── Pass 2 ──────────────────────────────────────────────────────────


def link_deferred_references(
    records: RecordsByType,
    ledger: StateLedger,
    client: PlatformClient,
    report: ApplyReport,
) -> ApplyReport:
    """Pass 2: PATCH forward references now that every target exists.

    Only resources applied in this run are linked. The PATCH body holds
    just the deferred top-level fields.

    Raises:
        TransportError: On the first failed PATCH.
    """
    applied = {r.label for r in report.receipts if r.action in ("created", "updated")}

    for rt in APPLY_ORDER:
        for record in records.get(rt, []):
            label = f"{rt.value}/{record.resource_id}"
            if label not in applied or not has_forward_references(record.payload, rt):
                continue

            target_uuid = ledger.get(rt, record.resource_id)
            if not target_uuid:
                continue

            patch = build_link_patch(record.payload, rt, ledger, owner=label, warnings=report.warnings)
            if not patch:
                continue

            client.update(rt, target_uuid, patch)
            fields = ", ".join(sorted(patch))
            report.receipts.append(
                ApplyReceipt(rt, record.resource_id, "linked", uuid=target_uuid, detail=fields)
            )
            logger.info("🔗 %s linked (%s)", label, fields)

    return report


def apply_all(
    records: RecordsByType,
    ledger: StateLedger,
    client: PlatformClient,
    report: ApplyReport | None = None,
) -> ApplyReport:
    """Run both passes."""
    report = apply_resources(records, ledger, client, report)
    return link_deferred_references(records, ledger, client, report)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
