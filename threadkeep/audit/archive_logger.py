"""Append-only audit log for the archiver.

Writes ArchiveAuditEntry records as JSON Lines (one JSON object per line):
every archived thread, every created task and every history reset.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from threadkeep.schemas.archive import ArchiveAuditEntry

logger = logging.getLogger(__name__)


class ArchiveAuditLog:
    """Append-only JSONL audit log.

    Usage::

        audit = ArchiveAuditLog("/path/to/archive_audit.jsonl")
        audit.log_thread_archived("CVS Work", thread_id, subject)

        entries = audit.read_entries(since=some_datetime)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: ArchiveAuditEntry) -> None:
        with self._path.open("a") as f:
            f.write(entry.model_dump_json() + "\n")
        logger.debug("Archive audit: %s destination=%s thread=%s", entry.action, entry.destination, entry.thread_id)

    def log_thread_archived(
        self, destination: str, thread_id: str, subject: str, *, replaced: bool = False
    ) -> ArchiveAuditEntry:
        entry = ArchiveAuditEntry(
            timestamp=datetime.now(UTC),
            action="thread_archived",
            destination=destination,
            thread_id=thread_id,
            subject=subject,
            detail="replaced" if replaced else "inserted",
        )
        self.log(entry)
        return entry

    def log_task_created(
        self, destination: str, thread_id: str, subject: str, title: str
    ) -> ArchiveAuditEntry:
        entry = ArchiveAuditEntry(
            timestamp=datetime.now(UTC),
            action="task_created",
            destination=destination,
            thread_id=thread_id,
            subject=subject,
            detail=title,
        )
        self.log(entry)
        return entry

    def log_history_reset(self, destination: str) -> ArchiveAuditEntry:
        entry = ArchiveAuditEntry(
            timestamp=datetime.now(UTC),
            action="history_reset",
            destination=destination,
        )
        self.log(entry)
        return entry

    def read_entries(
        self,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[ArchiveAuditEntry]:
        """Read audit entries, oldest first.

        Args:
            since: Only return entries after this timestamp.
            limit: Keep only the newest ``limit`` entries after filtering.
        """
        if not self._path.exists():
            return []

        entries: list[ArchiveAuditEntry] = []
        with self._path.open() as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = ArchiveAuditEntry.model_validate_json(line)
                if since and entry.timestamp <= since:
                    continue
                entries.append(entry)

        if limit is not None:
            entries = entries[-limit:]
        return entries
