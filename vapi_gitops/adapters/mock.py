"""
Mock platform — in-memory test double for PlatformClient.

Used by ``--mock`` and the test suite to exercise the reconciler
without network access. Behaves like the platform where it matters:
create assigns a UUID, update is a shallow PATCH merge (upserting
unknown UUIDs), delete removes the document. Every call is recorded
and failures can be injected.
"""

from __future__ import annotations

import copy
import uuid as uuid_lib
from dataclasses import dataclass, field
from typing import Any

from vapi_gitops.adapters.base import PlatformClient, TransportError
from vapi_gitops.core.models.resource import ResourceType


@dataclass
class MockCall:
    """One recorded platform call."""

    method: str
    resource_type: ResourceType
    uuid: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Failure:
    method: str
    resource_type: ResourceType | None
    uuid: str | None
    name: str | None
    status: int
    body: str

    def matches(self, call: MockCall) -> bool:
        if self.method != call.method:
            return False
        if self.resource_type is not None and self.resource_type != call.resource_type:
            return False
        if self.uuid is not None and self.uuid != call.uuid:
            return False
        if self.name is not None and call.payload.get("name") != self.name:
            return False
        return True


class MockPlatformClient(PlatformClient):
    """In-memory platform.

    By default every call succeeds. Use ``set_failure`` to make matching
    calls raise TransportError, and ``seed`` to pre-populate resources.
    """

    def __init__(self, adapter_name: str = "mock"):
        self._name = adapter_name
        self._store: dict[ResourceType, dict[str, dict[str, Any]]] = {rt: {} for rt in ResourceType}
        self._call_log: list[MockCall] = []
        self._failures: list[_Failure] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[MockCall]:
        """All calls this mock has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls(self, method: str | None = None) -> list[MockCall]:
        """Recorded calls, optionally filtered by method."""
        if method is None:
            return list(self._call_log)
        return [c for c in self._call_log if c.method == method]

    def stored(self, resource_type: ResourceType, uuid: str) -> dict[str, Any] | None:
        """The platform-side document for a UUID (a copy)."""
        doc = self._store[resource_type].get(uuid)
        return copy.deepcopy(doc) if doc is not None else None

    def seed(self, resource_type: ResourceType, doc: dict[str, Any]) -> str:
        """Insert a resource directly, bypassing the call log."""
        resource_uuid = doc.get("id") or str(uuid_lib.uuid4())
        self._store[resource_type][resource_uuid] = {**copy.deepcopy(doc), "id": resource_uuid}
        return resource_uuid

    def set_failure(
        self,
        method: str,
        resource_type: ResourceType | None = None,
        uuid: str | None = None,
        name: str | None = None,
        status: int = 500,
        body: str = "Mock failure",
    ) -> None:
        """Make matching calls raise TransportError."""
        self._failures.append(_Failure(method, resource_type, uuid, name, status, body))

    def reset(self) -> None:
        """Clear call log and injected failures (stored resources are kept)."""
        self._call_log.clear()
        self._failures.clear()

    # ── PlatformClient ──────────────────────────────────────────

    def create(self, resource_type: ResourceType, payload: dict[str, Any]) -> dict[str, Any]:
        call = self._record("POST", resource_type, None, payload)
        resource_uuid = str(uuid_lib.uuid4())
        doc = {**copy.deepcopy(call.payload), "id": resource_uuid, "orgId": "mock-org"}
        self._store[resource_type][resource_uuid] = doc
        return copy.deepcopy(doc)

    def update(self, resource_type: ResourceType, uuid: str, payload: dict[str, Any]) -> None:
        call = self._record("PATCH", resource_type, uuid, payload)
        doc = self._store[resource_type].setdefault(uuid, {"id": uuid, "orgId": "mock-org"})
        doc.update(copy.deepcopy(call.payload))

    def delete(self, resource_type: ResourceType, uuid: str) -> None:
        self._record("DELETE", resource_type, uuid, {})
        self._store[resource_type].pop(uuid, None)

    def list_resources(self, resource_type: ResourceType) -> list[dict[str, Any]]:
        self._record("GET", resource_type, None, {})
        return [copy.deepcopy(doc) for doc in self._store[resource_type].values()]

    def _record(
        self,
        method: str,
        resource_type: ResourceType,
        uuid: str | None,
        payload: dict[str, Any],
    ) -> MockCall:
        call = MockCall(method, resource_type, uuid, copy.deepcopy(payload))
        self._call_log.append(call)
        for failure in self._failures:
            if failure.matches(call):
                endpoint = resource_type.endpoint + (f"/{uuid}" if uuid else "")
                raise TransportError(method, endpoint, failure.status, failure.body)
        return call
