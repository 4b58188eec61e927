"""
Pull service — write platform state back into resource files.

For one type at a time, lists the platform's resources, maps each
UUID to a resource id (from the ledger, or a fresh slug from its name),
translates UUID references back to resource ids and writes one file per
resource. The ledger section for the type is replaced by what the
platform returned.

Locally modified resource files (per ``git status``) are left alone
unless the pull is forced; their ledger mapping is still kept.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from vapi_gitops.adapters.base import PlatformClient
from vapi_gitops.core.config.loader import RESOURCES_DIR_NAME
from vapi_gitops.core.config.resource_loader import RESOURCE_EXTENSIONS
from vapi_gitops.core.engine.resolver import resolve_to_resource_ids
from vapi_gitops.core.models.resource import ResourceType
from vapi_gitops.core.models.state import StateLedger

logger = logging.getLogger(__name__)

# Server-managed or computed fields, never written to files
EXCLUDED_FIELDS = frozenset({
    "id",
    "orgId",
    "createdAt",
    "updatedAt",
    "analyticsMetadata",
    "isDeleted",
    "isServerUrlSecretSet",
    "workflowIds",
})

PLATFORM_DEFAULT_KEY = "_platformDefault"


@dataclass
class PullStats:
    """Per-type pull counters."""

    created: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {"created": self.created, "updated": self.updated, "skipped": self.skipped}


# ── Naming ──────────────────────────────────────────────────────────


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def extract_name(resource: dict[str, Any]) -> str | None:
    """A resource's display name; tools keep theirs under ``function.name``."""
    name = resource.get("name")
    if isinstance(name, str) and name:
        return name
    fn = resource.get("function")
    if isinstance(fn, dict) and isinstance(fn.get("name"), str) and fn["name"]:
        return fn["name"]
    return None


def generate_resource_id(resource: dict[str, Any], existing: set[str]) -> str:
    """Slug from the resource name, made unique with ``-1``, ``-2`` suffixes."""
    name = extract_name(resource)
    base = slugify(name) if name else ""
    if not base:
        base = f"resource-{str(resource.get('id', ''))[:8]}"

    resource_id = base
    counter = 1
    while resource_id in existing:
        resource_id = f"{base}-{counter}"
        counter += 1
    return resource_id


# ── Rendering ───────────────────────────────────────────────────────


def clean_resource(resource: dict[str, Any]) -> dict[str, Any]:
    """Drop server-managed fields and null values."""
    return {
        key: value
        for key, value in resource.items()
        if key not in EXCLUDED_FIELDS and value is not None
    }


def order_keys(value: Any) -> Any:
    """Recursively order mapping keys: ``name`` first, then alphabetical."""
    if isinstance(value, dict):
        keys = sorted(value, key=lambda k: (str(k) != "name", str(k)))
        return {k: order_keys(value[k]) for k in keys}
    if isinstance(value, list):
        return [order_keys(v) for v in value]
    return value


def extract_system_prompt(data: dict[str, Any]) -> tuple[str | None, dict[str, Any]]:
    """Split the system message out of ``model.messages``.

    Returns:
        (prompt or None, data without the system message).
    """
    model = data.get("model")
    if not isinstance(model, dict) or not isinstance(model.get("messages"), list):
        return None, data

    messages = model["messages"]
    system = next(
        (m for m in messages if isinstance(m, dict) and m.get("role") == "system"),
        None,
    )
    if not system or not system.get("content"):
        return None, data

    remaining = [m for m in messages if not (isinstance(m, dict) and m.get("role") == "system")]
    cleaned_model = {k: v for k, v in model.items() if k != "messages"}
    if remaining:
        cleaned_model["messages"] = remaining
    return str(system["content"]), {**data, "model": cleaned_model}


def _dump_yaml(data: dict[str, Any]) -> str:
    return yaml.safe_dump(
        order_keys(data),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=4096,
    )


def render_resource(resource_type: ResourceType, data: dict[str, Any]) -> tuple[str, str]:
    """Render a resource to (file extension, file content).

    Assistants with a system prompt become markdown with frontmatter.
    """
    if resource_type is ResourceType.ASSISTANTS:
        prompt, cleaned = extract_system_prompt(data)
        if prompt:
            return ".md", f"---\n{_dump_yaml(cleaned)}---\n\n{prompt}\n"
    return ".yml", _dump_yaml(data)


def write_resource_file(
    resources_dir: Path,
    resource_type: ResourceType,
    resource_id: str,
    data: dict[str, Any],
) -> Path:
    """Write one resource file, replacing any sibling with another extension."""
    ext, content = render_resource(resource_type, data)
    base = resources_dir / resource_type.folder / resource_id
    path = base.with_name(base.name + ext)
    path.parent.mkdir(parents=True, exist_ok=True)

    for other in RESOURCE_EXTENSIONS:
        sibling = base.with_name(base.name + other)
        if other != ext and sibling.is_file():
            sibling.unlink()
            logger.debug("Removed %s (superseded by %s)", sibling, path.name)

    path.write_text(content, encoding="utf-8")
    return path


# ── Git ─────────────────────────────────────────────────────────────


def run_git(*args: str, cwd: Path, timeout: int = 15) -> subprocess.CompletedProcess[str]:
    """Run a git command and return the result."""
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
    )


def locally_changed_files(base_dir: Path) -> set[str] | None:
    """Resource files with uncommitted changes, relative to ``base_dir``.

    Returns:
        The set of changed paths under ``resources/``, or None when
        ``base_dir`` is not inside a git repository with commits.
    """
    try:
        if run_git("rev-parse", "--is-inside-work-tree", cwd=base_dir).returncode != 0:
            return None
        if run_git("rev-parse", "HEAD", cwd=base_dir).returncode != 0:
            return None
        prefix = run_git("rev-parse", "--show-prefix", cwd=base_dir).stdout.strip()
        status = run_git("status", "--porcelain", "--untracked-files=all", cwd=base_dir)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("git unavailable: %s", e)
        return None

    changed: set[str] = set()
    for line in status.stdout.splitlines():
        if len(line) < 4:
            continue
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        path = path.strip().strip('"')
        if prefix:
            if not path.startswith(prefix):
                continue
            path = path[len(prefix):]
        if path.startswith(f"{RESOURCES_DIR_NAME}/"):
            changed.add(path)
    return changed


def _is_changed(resource_type: ResourceType, resource_id: str, changed: set[str]) -> bool:
    stem = f"{RESOURCES_DIR_NAME}/{resource_type.folder}/{resource_id}"
    return any(f"{stem}{ext}" in changed for ext in RESOURCE_EXTENSIONS)


# ── Pull ────────────────────────────────────────────────────────────


def pull_resource_type(
    client: PlatformClient,
    resource_type: ResourceType,
    ledger: StateLedger,
    resources_dir: Path,
    changed: set[str] | None = None,
) -> PullStats:
    """Pull one type into files and replace its ledger section.

    Args:
        client: Platform transport.
        resource_type: Type to pull.
        ledger: Ledger to read mappings from and update.
        resources_dir: The ``resources/`` directory.
        changed: Locally changed resource paths to preserve. None = overwrite all.

    Raises:
        TransportError: If listing fails.
    """
    stats = PullStats()
    remote = client.list_resources(resource_type)
    logger.info("Found %d %s on the platform", len(remote), resource_type.value)

    reverse = ledger.reverse(resource_type)
    existing = set(ledger.section(resource_type))
    section: dict[str, str] = {}

    for resource in remote:
        resource_uuid = str(resource.get("id", ""))
        if not resource_uuid:
            logger.warning("Skipping %s without id", resource_type.label)
            continue

        resource_id = reverse.get(resource_uuid)
        is_new = resource_id is None
        if resource_id is None:
            resource_id = generate_resource_id(resource, existing)
            existing.add(resource_id)

        if changed and _is_changed(resource_type, resource_id, changed):
            logger.info("⏭️  %s/%s locally changed, skipping", resource_type.value, resource_id)
            section[resource_id] = resource_uuid
            stats.skipped += 1
            continue

        is_platform_default = resource.get("orgId") is None
        data = resolve_to_resource_ids(clean_resource(resource), ledger)
        if is_platform_default:
            data[PLATFORM_DEFAULT_KEY] = True

        path = write_resource_file(resources_dir, resource_type, resource_id, data)
        logger.info(
            "%s %s/%s → %s",
            "🔒" if is_platform_default else "✨" if is_new else "📝",
            resource_type.value,
            resource_id,
            path.name,
        )

        section[resource_id] = resource_uuid
        if is_new:
            stats.created += 1
        else:
            stats.updated += 1

    ledger.replace_section(resource_type, section)
    return stats

