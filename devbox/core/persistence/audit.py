"""
Run history: one NDJSON line per provisioning run in ``.state/audit.ndjson``.

Lines are only ever appended. A line that no longer parses is skipped
when reading, so one bad write cannot hide the rest of the history.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

AUDIT_FILE = Path(".state") / "audit.ndjson"


class AuditEntry(BaseModel):
    """Summary of one run as recorded in the ledger."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""

    steps: list[str] = Field(default_factory=list)
    connected: bool = False
    dry_run: bool = False

    status: str = ""
    actions_total: int = 0
    actions_succeeded: int = 0
    actions_skipped: int = 0
    actions_failed: int = 0
    duration_ms: int = 0

    errors: list[str] = Field(default_factory=list)


class AuditWriter:
    """Appends to and reads back the run ledger.

    Pass either an explicit ``path`` or the config ``root`` the ledger
    lives under.
    """

    def __init__(self, path: Path | None = None, root: Path | None = None):
        if path is None:
            path = (root or Path()) / AUDIT_FILE
        self.path = path

    def write(self, entry: AuditEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry.model_dump_json() + "\n")
        logger.debug("Audit entry %s appended to %s", entry.run_id, self.path)

    def read_all(self) -> list[AuditEntry]:
        """Every entry, oldest first."""
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []

        entries: list[AuditEntry] = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                entries.append(AuditEntry.model_validate_json(line))
            except ValidationError:
                logger.warning("%s:%d is not a valid audit entry, skipping", self.path, number)
        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]
