"""
Apply use case — pull, then push.

Brings the files up to date with the platform (keeping local edits),
then pushes them back. A failed pull stops the run before anything is
pushed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from vapi_gitops.adapters.base import PlatformClient
from vapi_gitops.adapters.mock import MockPlatformClient
from vapi_gitops.core.models.resource import ResourceType
from vapi_gitops.core.use_cases.pull import PullResult, pull
from vapi_gitops.core.use_cases.push import PushResult, push


@dataclass
class ApplyResult:
    pull: PullResult | None = None
    push: PushResult | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.pull:
            result["pull"] = self.pull.to_dict()
        if self.push:
            result["push"] = self.push.to_dict()
        if self.error:
            result["error"] = self.error
        return result


def apply(
    environment: str | None,
    base_dir: Path | None = None,
    types: list[ResourceType] | None = None,
    paths: list[str] | None = None,
    force: bool = False,
    strict_state: bool = False,
    mock_mode: bool = False,
    client: PlatformClient | None = None,
) -> ApplyResult:
    """Pull (never forced) and then push with the given options."""
    result = ApplyResult()
    if client is None and mock_mode:
        client = MockPlatformClient()

    result.pull = pull(
        environment,
        base_dir,
        force=False,
        strict_state=strict_state,
        mock_mode=mock_mode,
        client=client,
    )
    if result.pull.error:
        result.error = f"Pull failed: {result.pull.error}"
        return result

    result.push = push(
        environment,
        base_dir,
        types=types,
        paths=paths,
        force=force,
        strict_state=strict_state,
        mock_mode=mock_mode,
        client=client,
    )
    if result.push.error:
        result.error = result.push.error

    return result
