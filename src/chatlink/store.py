"""
Ordered message store — the client-side conversation log.

- Upsert by id: an entry whose id is already present replaces the stored one in place.
- New ids are appended when they are not older than the tail, otherwise
  inserted at their timestamp position (binary search).
- A new entry whose content equals the previous insert's and arrives within
  `duplicate_window` seconds of it is dropped.
"""

import bisect
import logging
import time
from typing import Callable, Iterable, Iterator, Optional

from chatlink.models.log import LogEntry

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_WINDOW_S = 0.1


class MessageStore:
    def __init__(
        self,
        duplicate_window: float = DEFAULT_DUPLICATE_WINDOW_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._duplicate_window = duplicate_window
        self._clock = clock
        self._entries: list[LogEntry] = []
        self._ids: set[str] = set()
        self._last_insert: Optional[tuple[str, float]] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._ids

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> Optional[LogEntry]:
        if entry_id not in self._ids:
            return None
        return self._entries[self._index_of(entry_id)]

    def upsert(self, entry: LogEntry, suppress_duplicates: bool = True) -> bool:
        """Insert or replace `entry`. Returns False only when dropped as a near-duplicate.

        With `suppress_duplicates=False` the entry is inserted unchecked and does not
        count as the previous insert, so a later entry with the same content still lands.
        """
        if entry.id in self._ids:
            self._entries[self._index_of(entry.id)] = entry
            return True
        if not suppress_duplicates:
            self._insert(entry)
            return True

        now = self._clock()
        if self._last_insert is not None:
            last_content, last_at = self._last_insert
            if entry.content == last_content and now - last_at < self._duplicate_window:
                logger.debug("Duplicate content within %.3fs, skipping %s", self._duplicate_window, entry.id)
                return False

        self._last_insert = (entry.content, now)
        self._insert(entry)
        return True

    def seed(self, entries: Iterable[LogEntry]) -> int:
        """Bulk insert durable history. Same ordering and upsert rules, no duplicate suppression."""
        count = 0
        for entry in entries:
            if entry.id in self._ids:
                self._entries[self._index_of(entry.id)] = entry
            else:
                self._insert(entry)
            count += 1
        return count

    def remove(self, entry_id: str) -> bool:
        if entry_id not in self._ids:
            return False
        del self._entries[self._index_of(entry_id)]
        self._ids.discard(entry_id)
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._ids.clear()
        self._last_insert = None

    def _insert(self, entry: LogEntry) -> None:
        self._ids.add(entry.id)
        if not self._entries or entry.timestamp >= self._entries[-1].timestamp:
            self._entries.append(entry)
            return
        # Out of order (history, cached entries, reconnect delivery); ties keep arrival order
        pos = bisect.bisect_right(self._entries, entry.timestamp, key=lambda e: e.timestamp)
        self._entries.insert(pos, entry)

    def _index_of(self, entry_id: str) -> int:
        for i, existing in enumerate(self._entries):
            if existing.id == entry_id:
                return i
        raise KeyError(entry_id)
