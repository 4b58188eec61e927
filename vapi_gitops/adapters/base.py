"""
Adapter base — the contract between the reconciler and the platform.

The orchestrators only talk to the platform through this interface.
Every call either succeeds or raises TransportError; retry, backoff
and throttling live entirely inside the implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from vapi_gitops.core.models.resource import ResourceType


class TransportError(Exception):
    """A platform call failed.

    Carries the HTTP status (0 when no response was received) and the
    response body so the failure can be reported verbatim.
    """

    def __init__(self, method: str, endpoint: str, status: int = 0, body: str = ""):
        self.method = method
        self.endpoint = endpoint
        self.status = status
        self.body = body
        detail = f" ({status})" if status else ""
        super().__init__(f"API {method} {endpoint} failed{detail}: {body}")


class PlatformClient(ABC):
    """Abstract base class for platform transports.

    To add a transport:
        1. Subclass PlatformClient
        2. Implement name, create, update, delete, list_resources
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier (e.g. 'vapi', 'mock')."""

    @abstractmethod
    def create(self, resource_type: ResourceType, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a resource. Returns the platform document, including ``id``."""

    @abstractmethod
    def update(self, resource_type: ResourceType, uuid: str, payload: dict[str, Any]) -> None:
        """PATCH a resource with the given fields."""

    @abstractmethod
    def delete(self, resource_type: ResourceType, uuid: str) -> None:
        """Delete a resource."""

    @abstractmethod
    def list_resources(self, resource_type: ResourceType) -> list[dict[str, Any]]:
        """List every resource of a type."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
