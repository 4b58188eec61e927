"""
Audit log — append-only run history.

Every push, pull, and cleanup writes one entry to an NDJSON
(newline-delimited JSON) file next to the ledger:
``.vapi-audit.<env>.ndjson``. Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

AUDIT_FILE_TEMPLATE = ".vapi-audit.{env}.ndjson"


def default_audit_path(project_root: Path, environment: str) -> Path:
    return project_root / AUDIT_FILE_TEMPLATE.format(env=environment)


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    operation_type: str = ""       # push, pull, cleanup
    environment: str = ""

    status: str = ""               # ok, partial, failed
    created: int = 0
    updated: int = 0
    linked: int = 0
    deleted: int = 0
    blocked: int = 0
    warnings: int = 0

    errors: list[str] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit log writer.

    Each call to write() appends a single JSON line to the log file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an audit entry to the log."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.operation_type, entry.operation_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit log: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]
