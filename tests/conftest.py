"""
Shared test fixtures and configuration.
"""

import os
import textwrap
from pathlib import Path

import pytest

from vapi_gitops.adapters.mock import MockPlatformClient
from vapi_gitops.core.config.loader import Settings
from vapi_gitops.core.models.state import StateLedger

_VAPI_VARS = (
    "VAPI_TOKEN",
    "VAPI_BASE_URL",
    "VAPI_LOG_LEVEL",
    "VAPI_LOG_FILE",
    "VAPI_LOG_FILE_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environ(monkeypatch):
    """Keep .env loading from leaking variables between tests."""
    for key in _VAPI_VARS:
        monkeypatch.delenv(key, raising=False)
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def ledger() -> StateLedger:
    return StateLedger()


@pytest.fixture
def client() -> MockPlatformClient:
    return MockPlatformClient()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with an empty resources/ directory."""
    (tmp_path / "resources").mkdir()
    return tmp_path


@pytest.fixture
def settings(project: Path) -> Settings:
    return Settings(environment="dev", base_dir=project, token="test-token")


@pytest.fixture
def write_resource(project: Path):
    """Write a resource file: ``write_resource("tools", "t1.yml", "...")``."""

    def _write(folder: str, name: str, content: str) -> Path:
        path = project / "resources" / folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write
