"""
State file persistence — atomic read/write for the StateLedger.

The ledger is stored as JSON in ``.vapi-state.<env>.json`` at the
project root. Writes are atomic (write to temp file, then rename) so a
crash mid-write leaves the previous ledger intact.

A corrupt file degrades to an empty ledger unless strict loading is
requested. Remote resources are not lost in that case, only their
id mapping, so the next push would create duplicates.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from vapi_gitops.core.models.state import StateLedger

logger = logging.getLogger(__name__)

STATE_FILE_TEMPLATE = ".vapi-state.{env}.json"


class LedgerCorruptError(Exception):
    """Raised by strict loading when the ledger file cannot be parsed."""


def default_state_path(project_root: Path, environment: str) -> Path:
    """Get the ledger path for an environment."""
    return project_root / STATE_FILE_TEMPLATE.format(env=environment)


def load_ledger(path: Path, strict: bool = False) -> StateLedger:
    """Load the ledger from a JSON file.

    Args:
        path: Path to the ledger file.
        strict: Raise instead of falling back to an empty ledger when
            the file exists but cannot be parsed.

    Returns:
        StateLedger with every type section present.

    Raises:
        LedgerCorruptError: Only when ``strict`` is set.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return StateLedger()

    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        ledger = StateLedger.model_validate(data)
        logger.debug("Loaded state from %s (%d entries)", path, ledger.total)
        return ledger
    except (OSError, ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        if strict:
            raise LedgerCorruptError(f"Cannot load state from {path}: {e}") from e
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
        return StateLedger()


def save_ledger(ledger: StateLedger, path: Path) -> None:
    """Save the ledger to a JSON file (atomic write).

    Uses write-to-temp-then-rename to prevent corruption.

    Args:
        ledger: The ledger to save.
        path: Target path for the ledger file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    data = ledger.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # Atomic write: temp file in same directory, then rename
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".vapi-state_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
            logger.debug("State saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save state to %s: %s", path, e)
        raise
