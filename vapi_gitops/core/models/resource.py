"""
Resource model — the closed set of platform resource types.

Every resource type carries its static facts in one table: apply rank,
resources folder, API endpoint, display label, and the keys that must
not be sent on update. Ordering between types is this table, not a
computed graph: adding a type means one ``_TYPE_INFO`` entry plus a
reference path in the resolver.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ResourceType(StrEnum):
    """Platform resource types, declared in apply order."""

    TOOLS = "tools"
    STRUCTURED_OUTPUTS = "structuredOutputs"
    ASSISTANTS = "assistants"
    SQUADS = "squads"
    PERSONALITIES = "personalities"
    SCENARIOS = "scenarios"
    SIMULATIONS = "simulations"
    SIMULATION_SUITES = "simulationSuites"

    @property
    def info(self) -> ResourceTypeInfo:
        return _TYPE_INFO[self]

    @property
    def rank(self) -> int:
        """Position in the apply order (0 = applied first)."""
        return APPLY_ORDER.index(self)

    @property
    def label(self) -> str:
        return self.info.label

    @property
    def endpoint(self) -> str:
        return self.info.endpoint

    @property
    def folder(self) -> str:
        return self.info.folder

    @property
    def update_excluded_keys(self) -> tuple[str, ...]:
        return self.info.update_excluded_keys

    @classmethod
    def parse(cls, value: str) -> ResourceType:
        """Look up a type by its value, case-insensitively.

        Raises:
            ValueError: If no type matches.
        """
        for member in cls:
            if member.value.lower() == value.lower():
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown resource type '{value}' (expected one of: {valid})")


@dataclass(frozen=True)
class ResourceTypeInfo:
    """Static facts about a resource type."""

    label: str
    endpoint: str
    folder: str
    update_excluded_keys: tuple[str, ...] = ()


_TYPE_INFO: dict[ResourceType, ResourceTypeInfo] = {
    ResourceType.TOOLS: ResourceTypeInfo(
        label="tool",
        endpoint="/tool",
        folder="tools",
        update_excluded_keys=("type",),
    ),
    ResourceType.STRUCTURED_OUTPUTS: ResourceTypeInfo(
        label="structured output",
        endpoint="/structured-output",
        folder="structuredOutputs",
        update_excluded_keys=("type",),
    ),
    ResourceType.ASSISTANTS: ResourceTypeInfo(
        label="assistant",
        endpoint="/assistant",
        folder="assistants",
    ),
    ResourceType.SQUADS: ResourceTypeInfo(
        label="squad",
        endpoint="/squad",
        folder="squads",
    ),
    ResourceType.PERSONALITIES: ResourceTypeInfo(
        label="personality",
        endpoint="/eval/simulation/personality",
        folder="simulations/personalities",
    ),
    ResourceType.SCENARIOS: ResourceTypeInfo(
        label="scenario",
        endpoint="/eval/simulation/scenario",
        folder="simulations/scenarios",
    ),
    ResourceType.SIMULATIONS: ResourceTypeInfo(
        label="simulation",
        endpoint="/eval/simulation",
        folder="simulations/tests",
    ),
    ResourceType.SIMULATION_SUITES: ResourceTypeInfo(
        label="simulation suite",
        endpoint="/eval/simulation/suite",
        folder="simulations/suites",
    ),
}

# Static topological order. Earlier types never depend on later ones
# except through references deferred to the linking pass.
APPLY_ORDER: tuple[ResourceType, ...] = (
    ResourceType.TOOLS,
    ResourceType.STRUCTURED_OUTPUTS,
    ResourceType.ASSISTANTS,
    ResourceType.SQUADS,
    ResourceType.PERSONALITIES,
    ResourceType.SCENARIOS,
    ResourceType.SIMULATIONS,
    ResourceType.SIMULATION_SUITES,
)

DELETE_ORDER: tuple[ResourceType, ...] = tuple(reversed(APPLY_ORDER))


def check_order_table() -> list[str]:
    """Validate the static order and type tables.

    Returns:
        A list of problems (empty when the tables are consistent).
    """
    problems: list[str] = []
    for member in ResourceType:
        count = APPLY_ORDER.count(member)
        if count != 1:
            problems.append(f"{member.value} appears {count} times in APPLY_ORDER")
        if member not in _TYPE_INFO:
            problems.append(f"{member.value} has no type info entry")
    return problems


class ResourceRecord(BaseModel):
    """A declared resource loaded from the resources directory.

    ``resource_id`` is the file path relative to the type folder,
    without extension (e.g. ``healthcare/booking``).
    """

    resource_id: str
    type: ResourceType
    payload: dict[str, Any] = Field(default_factory=dict)
    file_path: str = ""

    @property
    def is_platform_default(self) -> bool:
        """Read-only platform resources pulled down for reference only."""
        return self.payload.get("_platformDefault") is True
