"""
Shared use-case plumbing: transport selection, table checks, outcome status.
"""

from __future__ import annotations

import logging

from vapi_gitops.adapters.base import PlatformClient
from vapi_gitops.adapters.mock import MockPlatformClient
from vapi_gitops.adapters.vapi_client import VapiClient
from vapi_gitops.core.config.loader import Settings
from vapi_gitops.core.engine.resolver import check_reference_paths
from vapi_gitops.core.models.resource import check_order_table

logger = logging.getLogger(__name__)


def create_client(settings: Settings, mock_mode: bool = False) -> PlatformClient:
    """The transport for a run: the in-memory mock, or the real API."""
    if mock_mode:
        logger.info("Mock mode: using in-memory platform")
        return MockPlatformClient()
    return VapiClient(settings.token, settings.base_url)


def check_tables() -> list[str]:
    """Validate the static type order and reference tables."""
    return check_order_table() + check_reference_paths()


def outcome_status(error: str | None, progressed: bool) -> str:
    """Audit status: ok, partial (failed after some mutations), or failed."""
    if not error:
        return "ok"
    return "partial" if progressed else "failed"
