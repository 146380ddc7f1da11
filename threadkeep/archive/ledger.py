"""Processed-message ledger: which messages were archived into which section.

The ledger is one JSON object, ``{destination_key: {message_id: true}}``,
stored under a single property. It is read whole and rewritten whole, so two
overlapping runs against the same store lose each other's updates; runs
must not overlap.

Entries only grow, except through ``reset``, which drops one destination.
"""

import json
import logging

from threadkeep.schemas.archive import EmailThread, ResetResult
from threadkeep.storage.properties import PropertyStore

logger = logging.getLogger(__name__)

LEDGER_PROPERTY_KEY = "processedEmailDataByTab"


def destination_key(title: str) -> str:
    return title.lower()


class ProcessedLedger:
    """Gate that decides whether a thread has anything new for a destination.

    Usage::

        ledger = ProcessedLedger(props)
        if ledger.has_unprocessed("CVS Work", thread):
            ...  # archive the thread
            ledger.mark_processed("CVS Work", thread)
    """

    def __init__(self, store: PropertyStore) -> None:
        self._store = store
        self._data: dict[str, dict[str, bool]] = self._read()

    def _read(self) -> dict[str, dict[str, bool]]:
        raw = self._store.get(LEDGER_PROPERTY_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Could not parse processed-message ledger, starting fresh: %s", exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Processed-message ledger is not an object, starting fresh")
            return {}
        return data

    def _write(self) -> None:
        self._store.set(LEDGER_PROPERTY_KEY, json.dumps(self._data))

    def processed_ids(self, destination: str) -> set[str]:
        return set(self._data.get(destination_key(destination), {}))

    def has_unprocessed(self, destination: str, thread: EmailThread) -> bool:
        """True if any message of the thread is missing from the destination's entry."""
        seen = self._data.get(destination_key(destination), {})
        return any(mid not in seen for mid in thread.message_ids)

    def mark_processed(self, destination: str, thread: EmailThread) -> None:
        """Record every message of the thread and persist the ledger.

        Call only after the thread's block has been written.
        """
        entry = self._data.setdefault(destination_key(destination), {})
        for mid in thread.message_ids:
            entry[mid] = True
        self._write()

    def reset(self, destination: str) -> ResetResult:
        """Drop a destination's history so all its threads are reprocessed."""
        # Other destinations may have changed in the store since load.
        self._data = self._read()
        key = destination_key(destination)
        if key not in self._data:
            return ResetResult(destination=destination, success=False, message="No history found.")
        del self._data[key]
        self._write()
        logger.info("Cleared processed-message history for %s", destination)
        return ResetResult(destination=destination, success=True, message="History cleared.")
