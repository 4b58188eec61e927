"""
Configuration loader — environment selection, .env files, and paths.

Reads the per-environment .env files into the process environment,
validates the target environment and credentials, and returns a typed
Settings object. Nothing here talks to the network.

.env files are loaded in this order, never overriding a variable that
is already set (process environment wins):

    .env.<env>          e.g. .env.dev
    .env.<env>.local    local overrides, not committed
    .env.local          always loaded last
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from vapi_gitops.core.persistence.audit import default_audit_path
from vapi_gitops.core.persistence.state_file import default_state_path

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS: tuple[str, ...] = ("dev", "staging", "prod")
DEFAULT_BASE_URL = "https://api.vapi.ai"
RESOURCES_DIR_NAME = "resources"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


class Settings(BaseModel):
    """Resolved configuration for one run against one environment."""

    environment: str
    base_dir: Path
    token: str = ""
    base_url: str = DEFAULT_BASE_URL
    env_files_loaded: list[str] = Field(default_factory=list)

    @property
    def resources_dir(self) -> Path:
        return self.base_dir / RESOURCES_DIR_NAME

    @property
    def state_path(self) -> Path:
        return default_state_path(self.base_dir, self.environment)

    @property
    def audit_path(self) -> Path:
        return default_audit_path(self.base_dir, self.environment)


def validate_environment(environment: str | None) -> str:
    """Check an environment name against the allowed set.

    Raises:
        ConfigError: If missing or not one of VALID_ENVIRONMENTS.
    """
    if not environment:
        raise ConfigError(
            "Environment argument is required "
            f"(one of: {', '.join(VALID_ENVIRONMENTS)})"
        )
    if environment not in VALID_ENVIRONMENTS:
        raise ConfigError(
            f"Invalid environment: {environment} "
            f"(must be one of: {', '.join(VALID_ENVIRONMENTS)})"
        )
    return environment


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file into a key/value dict.

    Handles:
    - KEY=value
    - KEY="value"
    - KEY='value'
    - export KEY=value
    - Comments (#)
    - Empty lines
    """
    result: dict[str, str] = {}
    if not path.is_file():
        return result

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:].strip()

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        result[key] = value

    return result


def env_file_candidates(base_dir: Path, environment: str) -> list[Path]:
    return [
        base_dir / f".env.{environment}",
        base_dir / f".env.{environment}.local",
        base_dir / ".env.local",
    ]


def load_env_files(base_dir: Path, environment: str) -> list[str]:
    """Load the environment's .env files into ``os.environ``.

    Returns:
        Names of the files that were found and loaded.
    """
    loaded: list[str] = []
    for env_file in env_file_candidates(base_dir, environment):
        if not env_file.is_file():
            continue
        for key, value in parse_env_file(env_file).items():
            os.environ.setdefault(key, value)
        loaded.append(env_file.name)
        logger.info("Loaded env file: %s", env_file.name)
    return loaded


def load_settings(
    environment: str | None,
    base_dir: Path | None = None,
    require_token: bool = True,
) -> Settings:
    """Resolve settings for a run.

    Args:
        environment: Target environment name (dev, staging, prod).
        base_dir: Project root holding ``resources/`` and the .env files.
            Defaults to the current directory.
        require_token: Fail when ``VAPI_TOKEN`` is not set. Commands that
            never call the platform pass False.

    Returns:
        Validated Settings.

    Raises:
        ConfigError: On an invalid environment or missing token.
    """
    env = validate_environment(environment)
    root = (base_dir or Path.cwd()).resolve()

    loaded = load_env_files(root, env)

    token = os.environ.get("VAPI_TOKEN", "")
    if require_token and not token:
        raise ConfigError(
            "VAPI_TOKEN environment variable is required. "
            f"Create a .env.{env} file with: VAPI_TOKEN=your-token"
        )

    settings = Settings(
        environment=env,
        base_dir=root,
        token=token,
        base_url=os.environ.get("VAPI_BASE_URL") or DEFAULT_BASE_URL,
        env_files_loaded=loaded,
    )
    logger.debug("Settings resolved: env=%s base_url=%s", env, settings.base_url)
    return settings
