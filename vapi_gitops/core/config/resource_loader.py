"""
Resource loader — reads declared resources from the resources directory.

Each resource type lives in its own folder under ``resources/``::

    resources/
        tools/
            transfer-call.yml
        assistants/
            healthcare/
                booking.md        # frontmatter + system prompt
        simulations/
            personalities/
            scenarios/
            tests/
            suites/

A resource id is the file path relative to its type folder, without
extension, always ``/``-separated. Markdown files carry the resource as
YAML frontmatter; the body becomes the first ``model.messages`` entry
with role ``system``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from vapi_gitops.core.config.loader import ConfigError
from vapi_gitops.core.models.resource import APPLY_ORDER, ResourceRecord, ResourceType

logger = logging.getLogger(__name__)

RESOURCE_EXTENSIONS = (".yml", ".yaml", ".md")

_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL | re.MULTILINE)


def parse_markdown(content: str) -> tuple[dict[str, Any], str]:
    """Split a markdown resource into (frontmatter mapping, body).

    A file without frontmatter is all body.
    """
    match = _FRONTMATTER.match(content)
    if not match:
        return {}, content.strip()
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise ValueError("frontmatter is not a mapping")
    return data, match.group(2).strip()


def attach_system_prompt(data: dict[str, Any], prompt: str) -> dict[str, Any]:
    """Insert ``prompt`` as the first system message of ``model.messages``."""
    if not prompt:
        return data
    model = data.get("model")
    if not isinstance(model, dict):
        model = {}
    messages = [
        m for m in model.get("messages") or []
        if not (isinstance(m, dict) and m.get("role") == "system")
    ]
    data["model"] = {**model, "messages": [{"role": "system", "content": prompt}, *messages]}
    return data


def load_resource_file(path: Path) -> dict[str, Any]:
    """Load one resource file into a payload mapping.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping.
    """
    try:
        content = path.read_text(encoding="utf-8")
        if path.suffix == ".md":
            data, prompt = parse_markdown(content)
            return attach_system_prompt(data, prompt)
        data = yaml.safe_load(content)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load resource file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Resource file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data


def load_resources(resources_dir: Path, resource_type: ResourceType) -> list[ResourceRecord]:
    """Load every resource of one type, sorted by resource id.

    Raises:
        ConfigError: On unreadable files or duplicate resource ids.
    """
    type_dir = resources_dir / resource_type.folder
    if not type_dir.is_dir():
        logger.debug("No %s directory at %s, skipping", resource_type.value, type_dir)
        return []

    records: dict[str, ResourceRecord] = {}
    for path in sorted(type_dir.rglob("*")):
        if not path.is_file() or path.suffix not in RESOURCE_EXTENSIONS:
            continue

        resource_id = path.relative_to(type_dir).with_suffix("").as_posix()
        if resource_id in records:
            raise ConfigError(
                f"Duplicate {resource_type.label} id '{resource_id}': "
                f"{records[resource_id].file_path} and {path}"
            )

        records[resource_id] = ResourceRecord(
            resource_id=resource_id,
            type=resource_type,
            payload=load_resource_file(path),
            file_path=str(path),
        )
        logger.debug("Loaded %s/%s", resource_type.value, resource_id)

    return [records[rid] for rid in sorted(records)]


def load_all_resources(resources_dir: Path) -> dict[ResourceType, list[ResourceRecord]]:
    """Load every type, keyed in apply order."""
    loaded = {rt: load_resources(resources_dir, rt) for rt in APPLY_ORDER}
    logger.info(
        "Loaded %d resources from %s",
        sum(len(records) for records in loaded.values()),
        resources_dir,
    )
    return loaded
