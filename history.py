import logging
import threading

from config import HISTORY_LIMIT, STORAGE_KEYS
from models import HistoryEntry, load_items, new_id, now_iso

logger = logging.getLogger(__name__)


class HistoryStore:
    """Capped, most-recent-first log of past artist analyses.

    Names are unique case-insensitively: recording an artist that is already
    present moves it to the front with the new data instead of adding a
    second entry. Every change is written straight through to *store*; the
    in-memory list only changes once the write succeeded.
    """

    def __init__(self, store, limit=HISTORY_LIMIT):
        self._store = store
        self._key = STORAGE_KEYS["history"]
        self.limit = limit
        self._lock = threading.Lock()
        self._entries = load_items(self._store.read(self._key, []), HistoryEntry, "history")

    def _commit(self, entries):
        self._store.write(self._key, [e.model_dump(mode="json") for e in entries])
        self._entries = entries

    def entries(self):
        """Return a snapshot of the history, newest first."""
        with self._lock:
            return list(self._entries)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def get(self, entry_id):
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        return None

    def record(self, result):
        """Add *result* to the front of the history.

        Existing entries with the same name are dropped before the new one is
        prepended, then the list is cut to ``limit``.
        """
        entry = HistoryEntry(id=new_id(), captured_at=now_iso(), result=result)
        key = result.name.lower()
        with self._lock:
            kept = [entry] + [e for e in self._entries if e.name.lower() != key]
            evicted = kept[self.limit:]
            self._commit(kept[:self.limit])
        for old in evicted:
            logger.info("History full, evicted %s", old.name)
        logger.info("Recorded analysis for %s", result.name)
        return entry

    def remove(self, entry_id):
        """Delete an entry by id. Unknown ids are ignored."""
        with self._lock:
            kept = [e for e in self._entries if e.id != entry_id]
            if len(kept) == len(self._entries):
                return False
            self._commit(kept)
        return True

    def select(self, entry_id):
        """Return the stored result for replay, or None if it is gone.

        Selecting does not move the entry.
        """
        entry = self.get(entry_id)
        return entry.result if entry else None

    def clear(self):
        with self._lock:
            self._commit([])
