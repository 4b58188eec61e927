"""
Domain models — Pydantic types for the reconciler.

All models are re-exported here for convenient access:

    from vapi_gitops.core.models import ResourceType, ResourceRecord, StateLedger
"""

from vapi_gitops.core.models.resource import (
    APPLY_ORDER,
    DELETE_ORDER,
    ResourceRecord,
    ResourceType,
    ResourceTypeInfo,
    check_order_table,
)
from vapi_gitops.core.models.state import StateLedger

__all__ = [
    # resource.py
    "APPLY_ORDER",
    "DELETE_ORDER",
    "ResourceRecord",
    "ResourceType",
    "ResourceTypeInfo",
    "check_order_table",
    # state.py
    "StateLedger",
]
