"""Adapters — platform transports.

Public re-exports for convenient access.
"""

from vapi_gitops.adapters.base import PlatformClient, TransportError
from vapi_gitops.adapters.mock import MockCall, MockPlatformClient
from vapi_gitops.adapters.vapi_client import VapiClient

__all__ = [
    "MockCall",
    "MockPlatformClient",
    "PlatformClient",
    "TransportError",
    "VapiClient",
]
