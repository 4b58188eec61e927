"""
Reference resolver — symbolic resource ids ↔ platform UUIDs.

Resource files reference each other by resource id (the file path
relative to the type folder, e.g. ``transfer-call`` or
``healthcare/booking``). The platform only understands UUIDs. This
module rewrites every reference in a payload using the StateLedger,
and performs the inverse translation for pull.

Known reference locations are a static table (``REFERENCE_PATHS``).
Each path is a tuple of keys where ``"*"`` steps into every element of
a list, so ``("destinations", "*", "assistantId")`` means
``destinations[].assistantId``.

Resolution is best-effort. A reference that does not resolve is
dropped from list fields and left as-is in scalar fields, with a
warning: the target may be created later in the same run and linked in
the second pass.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from vapi_gitops.core.models.resource import ResourceType
from vapi_gitops.core.models.state import StateLedger

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

COMMENT_DELIMITER = "##"


def clean_id(value: str) -> str:
    """Strip a trailing ``## comment`` from a reference and trim it."""
    return value.split(COMMENT_DELIMITER, 1)[0].strip()


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


@dataclass(frozen=True)
class ReferencePath:
    """One place in a payload where a resource reference can live."""

    path: tuple[str, ...]
    target: ResourceType
    many: bool = False                # leaf is a list of ids
    output_key: str | None = None     # root key name used by the platform

    @property
    def field(self) -> str:
        """Top-level key holding this reference in a resolved payload."""
        return self.output_key or self.path[0]

    @property
    def output_path(self) -> tuple[str, ...]:
        if self.output_key:
            return (self.output_key, *self.path[1:])
        return self.path

    def describe(self) -> str:
        text = ".".join(self.path).replace(".*", "[]")
        return f"{text}[]" if self.many else text


REFERENCE_PATHS: tuple[ReferencePath, ...] = (
    ReferencePath(("toolIds",), ResourceType.TOOLS, many=True),
    ReferencePath(("model", "toolIds"), ResourceType.TOOLS, many=True),
    ReferencePath(
        ("artifactPlan", "structuredOutputIds"),
        ResourceType.STRUCTURED_OUTPUTS,
        many=True,
    ),
    ReferencePath(
        ("assistant_ids",),
        ResourceType.ASSISTANTS,
        many=True,
        output_key="assistantIds",
    ),
    ReferencePath(("hooks", "*", "do", "*", "toolId"), ResourceType.TOOLS),
    ReferencePath(("destinations", "*", "assistantId"), ResourceType.ASSISTANTS),
    ReferencePath(("members", "*", "assistantId"), ResourceType.ASSISTANTS),
    ReferencePath(
        ("members", "*", "assistantDestinations", "*", "assistantId"),
        ResourceType.ASSISTANTS,
    ),
    ReferencePath(("personalityId",), ResourceType.PERSONALITIES),
    ReferencePath(("scenarioId",), ResourceType.SCENARIOS),
    ReferencePath(("simulationIds",), ResourceType.SIMULATIONS, many=True),
    ReferencePath(
        ("evaluations", "*", "structuredOutputId"),
        ResourceType.STRUCTURED_OUTPUTS,
    ),
)


@dataclass(frozen=True)
class UnresolvedReference:
    """A reference that could not be mapped to a UUID."""

    owner: str
    path: str
    target: ResourceType
    value: str

    def __str__(self) -> str:
        where = f"{self.owner}: " if self.owner else ""
        return f"{where}{self.target.label} reference not found: {self.value} ({self.path})"


def forward_paths(resource_type: ResourceType) -> list[ReferencePath]:
    """Reference paths pointing at types applied after ``resource_type``."""
    return [ref for ref in REFERENCE_PATHS if ref.target.rank > resource_type.rank]


def check_reference_paths() -> list[str]:
    """Validate the reference table. Returns a list of problems."""
    problems: list[str] = []
    fields: dict[str, ResourceType] = {}
    for ref in REFERENCE_PATHS:
        if not ref.path or ref.path[0] == "*" or ref.path[-1] == "*":
            problems.append(f"malformed reference path: {ref.path}")
        seen = fields.setdefault(ref.describe(), ref.target)
        if seen is not ref.target:
            problems.append(f"{ref.describe()} targets both {seen.value} and {ref.target.value}")
    return problems


# ── Path walking ────────────────────────────────────────────────────


def _walk(node: Any, segments: tuple[str, ...]) -> Iterator[tuple[dict[str, Any], str]]:
    """Yield ``(parent, key)`` for every leaf matching ``segments``."""
    head, rest = segments[0], segments[1:]
    if head == "*":
        if isinstance(node, list):
            for item in node:
                yield from _walk(item, rest)
        return
    if not isinstance(node, dict) or head not in node:
        return
    if not rest:
        yield node, head
        return
    yield from _walk(node[head], rest)


def _leaf_values(node: Any, segments: tuple[str, ...], many: bool) -> list[Any]:
    values: list[Any] = []
    for parent, key in _walk(node, segments):
        value = parent[key]
        if many:
            if isinstance(value, list):
                values.extend(value)
        else:
            values.append(value)
    return values


def _is_resolved(value: Any, known: set[str]) -> bool:
    """Whether a leaf holds a platform id: UUID-shaped or a ledger value."""
    return isinstance(value, str) and (is_uuid(value) or value in known)


def _prune_unresolved(
    node: Any,
    segments: tuple[str, ...],
    known: set[str],
    in_list: bool = False,
) -> bool:
    """Remove unresolved scalar references found at ``segments``.

    A list element holding one is removed from its list; any other
    holder loses the key. Returns True when ``node`` itself must be
    dropped by the caller.
    """
    head, rest = segments[0], segments[1:]
    if head == "*":
        if isinstance(node, list):
            node[:] = [item for item in node if not _prune_unresolved(item, rest, known, in_list=True)]
        return False
    if not isinstance(node, dict) or head not in node:
        return False
    if rest:
        _prune_unresolved(node[head], rest, known)
        return False
    value = node[head]
    if isinstance(value, str) and not _is_resolved(value, known):
        if in_list:
            return True
        del node[head]
    return False


# ── Forward resolution (resource id → UUID) ─────────────────────────


def resolve_id(
    value: str,
    target: ResourceType,
    ledger: StateLedger,
) -> str | None:
    """Resolve one reference. UUID-shaped values pass through."""
    cleaned = clean_id(value)
    if is_uuid(cleaned):
        return cleaned
    return ledger.get(target, cleaned)


def resolve_references(
    payload: dict[str, Any],
    ledger: StateLedger,
    owner: str = "",
    warnings: list[UnresolvedReference] | None = None,
) -> dict[str, Any]:
    """Return a deep copy of ``payload`` with references mapped to UUIDs.

    Never mutates ``payload`` or ``ledger``.

    Args:
        payload: Raw resource document.
        ledger: Current id mapping.
        owner: Resource label used in warnings (e.g. ``tools/transfer``).
        warnings: Optional list that collects unresolved references.
    """
    resolved = copy.deepcopy(payload)

    def _unresolved(ref: ReferencePath, value: str) -> None:
        item = UnresolvedReference(
            owner=owner,
            path=ref.describe(),
            target=ref.target,
            value=clean_id(value),
        )
        logger.warning("⚠️  %s", item)
        if warnings is not None:
            warnings.append(item)

    for ref in REFERENCE_PATHS:
        for parent, key in list(_walk(resolved, ref.path)):
            value = parent[key]
            if ref.many:
                if not isinstance(value, list):
                    continue
                new_value: Any = []
                for item in value:
                    if not isinstance(item, str):
                        continue
                    uuid = resolve_id(item, ref.target, ledger)
                    if uuid is None:
                        _unresolved(ref, item)
                        continue
                    new_value.append(uuid)
            else:
                if not isinstance(value, str):
                    continue
                uuid = resolve_id(value, ref.target, ledger)
                if uuid is None:
                    _unresolved(ref, value)
                    continue
                new_value = uuid

            if ref.output_key and parent is resolved:
                del parent[key]
                parent[ref.output_key] = new_value
            else:
                parent[key] = new_value

    # Workflows are managed elsewhere on the platform; only the key is renamed.
    if isinstance(resolved.get("workflow_ids"), list):
        resolved["workflowIds"] = [w for w in resolved.pop("workflow_ids") if w]

    return resolved


def strip_forward_references(
    resolved: dict[str, Any],
    resource_type: ResourceType,
    ledger: StateLedger,
) -> dict[str, Any]:
    """Drop unresolved references to types applied after ``resource_type``.

    The platform validates referenced ids on create, so a payload must
    not carry ids of resources that do not exist yet. The linking pass
    sends them once everything has been created.

    A leaf counts as resolved when it is UUID-shaped or is one of the
    ledger's ids for the target type; anything else is dropped.
    """
    stripped = copy.deepcopy(resolved)
    for ref in forward_paths(resource_type):
        known = set(ledger.section(ref.target).values())
        if ref.many:
            for parent, key in list(_walk(stripped, ref.output_path)):
                if isinstance(parent[key], list):
                    parent[key] = [v for v in parent[key] if _is_resolved(v, known)]
        else:
            _prune_unresolved(stripped, ref.output_path, known)
    return stripped


def has_forward_references(payload: dict[str, Any], resource_type: ResourceType) -> bool:
    """Whether a raw payload references any type applied later."""
    return any(
        _leaf_values(payload, ref.path, ref.many)
        for ref in forward_paths(resource_type)
    )


def build_link_patch(
    payload: dict[str, Any],
    resource_type: ResourceType,
    ledger: StateLedger,
    owner: str = "",
    warnings: list[UnresolvedReference] | None = None,
) -> dict[str, Any]:
    """Build the narrow PATCH body for deferred forward references.

    Contains only the top-level fields holding forward references,
    resolved against the (now complete) ledger. A field whose
    references all remain unresolved is left out.
    """
    refs = [ref for ref in forward_paths(resource_type) if _leaf_values(payload, ref.path, ref.many)]
    if not refs:
        return {}

    resolved = strip_forward_references(
        resolve_references(payload, ledger, owner=owner, warnings=warnings),
        resource_type,
        ledger,
    )

    patch: dict[str, Any] = {}
    for ref in refs:
        known = set(ledger.section(ref.target).values())
        linked = [
            v for v in _leaf_values(resolved, ref.output_path, ref.many) if _is_resolved(v, known)
        ]
        if not linked:
            logger.warning(
                "⚠️  %s: no %s references resolved in %s, not linking",
                owner or resource_type.label,
                ref.target.label,
                ref.field,
            )
            continue
        if ref.field in resolved:
            patch[ref.field] = resolved[ref.field]
    return patch


# ── Reference extraction ────────────────────────────────────────────


def extract_referenced_ids(payload: dict[str, Any]) -> dict[ResourceType, list[str]]:
    """List the (comment-stripped) ids a raw payload references, per target type."""
    refs: dict[ResourceType, list[str]] = {ref.target: [] for ref in REFERENCE_PATHS}
    for ref in REFERENCE_PATHS:
        for value in _leaf_values(payload, ref.path, ref.many):
            if isinstance(value, str):
                refs[ref.target].append(clean_id(value))
    return refs


# ── Reverse resolution (UUID → resource id) ─────────────────────────


def resolve_to_resource_ids(
    payload: dict[str, Any],
    ledger: StateLedger,
) -> dict[str, Any]:
    """Return a copy of a platform payload with UUIDs mapped to resource ids.

    Used by pull so written files reference each other symbolically.
    UUIDs the ledger does not know (e.g. platform defaults) are kept.
    """
    resolved = copy.deepcopy(payload)
    reverse = {rt: ledger.reverse(rt) for rt in {ref.target for ref in REFERENCE_PATHS}}

    for ref in REFERENCE_PATHS:
        mapping = reverse[ref.target]
        for parent, key in list(_walk(resolved, ref.output_path)):
            value = parent[key]
            if ref.many:
                if not isinstance(value, list):
                    continue
                new_value: Any = [mapping.get(v, v) if isinstance(v, str) else v for v in value]
            elif isinstance(value, str):
                new_value = mapping.get(value, value)
            else:
                continue

            if ref.output_key and parent is resolved:
                del parent[key]
                parent[ref.path[0]] = new_value
            else:
                parent[key] = new_value

    return resolved
