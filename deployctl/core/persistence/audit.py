"""
Deployment ledger — append-only record of executor runs.

Every deploy writes one NDJSON line under the target's data folder, so
what was deployed, with which tags, and how the migration went can be
read back on the host after the CI logs are gone.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "deployments.ndjson"


class AuditEntry(BaseModel):
    """A single deployment record."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""

    project: str = ""
    environment: str = ""
    topology: str = ""

    first_deployment: bool = False
    deployed_services: list[str] = Field(default_factory=list)
    tags: dict[str, str | None] = Field(default_factory=dict)
    migration: str = ""

    status: str = ""               # ok, failed
    duration_ms: int = 0
    error: str | None = None


class AuditWriter:
    """Append-only ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist. Write failures are logged,
    never raised: the ledger must not fail a deployment.
    """

    def __init__(self, path: Path | None = None, data_folder: Path | None = None):
        if path is not None:
            self._path = path
        elif data_folder is not None:
            self._path = data_folder / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(DEFAULT_AUDIT_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry to the ledger."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s", entry.operation_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
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
            logger.error("Failed to read audit ledger: %s", e)

        return entries
