"""
StateLedger — the per-environment id mapping.

Maps (resource type, resource id) → platform UUID. It is serialized to
``.vapi-state.<env>.json`` and is the only source of truth for "does this
resource already exist on the platform". Existence is never inferred by
matching names against the remote side.

The ledger is an explicit value: it is loaded by the use case and passed
to the resolver and orchestrators, never held in a module global.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceType


class StateLedger(BaseModel):
    """Root ledger model — one section per resource type.

    Unknown top-level sections are kept on load and written back on save,
    so a file produced by a newer version survives a round-trip.
    """

    model_config = ConfigDict(extra="allow")

    tools: dict[str, str] = Field(default_factory=dict)
    structuredOutputs: dict[str, str] = Field(default_factory=dict)
    assistants: dict[str, str] = Field(default_factory=dict)
    squads: dict[str, str] = Field(default_factory=dict)
    personalities: dict[str, str] = Field(default_factory=dict)
    scenarios: dict[str, str] = Field(default_factory=dict)
    simulations: dict[str, str] = Field(default_factory=dict)
    simulationSuites: dict[str, str] = Field(default_factory=dict)

    def section(self, resource_type: ResourceType) -> dict[str, str]:
        """The live (mutable) mapping for one type."""
        return getattr(self, resource_type.value)

    def get(self, resource_type: ResourceType, resource_id: str) -> str | None:
        return self.section(resource_type).get(resource_id)

    def set(self, resource_type: ResourceType, resource_id: str, uuid: str) -> None:
        self.section(resource_type)[resource_id] = uuid

    def remove(self, resource_type: ResourceType, resource_id: str) -> str | None:
        """Drop an entry. Returns the UUID it held, if any."""
        return self.section(resource_type).pop(resource_id, None)

    def replace_section(self, resource_type: ResourceType, mapping: dict[str, str]) -> None:
        setattr(self, resource_type.value, dict(mapping))

    def reverse(self, resource_type: ResourceType) -> dict[str, str]:
        """UUID → resource id for one type."""
        return {uuid: rid for rid, uuid in self.section(resource_type).items()}

    def all_uuids(self) -> set[str]:
        """Every UUID the ledger knows, across all types."""
        return {uuid for rt in APPLY_ORDER for uuid in self.section(rt).values()}

    def counts(self) -> dict[str, int]:
        return {rt.value: len(self.section(rt)) for rt in APPLY_ORDER}

    @property
    def total(self) -> int:
        return sum(self.counts().values())
