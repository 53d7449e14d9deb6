"""
Expiration priority queue: a binary min-heap of cache keys ordered by expiry.

Entries know their own position in the heap (``heap_index``), which lets an
overwritten key be tombstoned in O(log n) without searching the heap. A
tombstone carries the sentinel expiry ``TOMBSTONE`` and is sifted to the
root, where the next sweep pops and discards it.
"""
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .core import DataCategory

# Sorts before every real timestamp, so tombstones surface at the root.
TOMBSTONE = float("-inf")


@dataclass(eq=False)
class ExpirationEntry:
    """One scheduled expiry for ``key`` in ``category``."""
    key: str
    category: DataCategory
    expires_at: float
    heap_index: int = -1

    @property
    def is_tombstoned(self) -> bool:
        return self.expires_at == TOMBSTONE


class ExpirationQueue:
    """
    Min-heap on ``expires_at``.

    Only the root is ever removed. ``swap`` keeps ``heap_index`` in sync on
    both entries, ``pop`` sets the removed entry's index to -1.

    Not thread-safe; the owning cache serializes access.
    """

    def __init__(self):
        self._entries: List[ExpirationEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ExpirationEntry]:
        """Iterate in heap (array) order, not expiry order."""
        return iter(list(self._entries))

    def less(self, i: int, j: int) -> bool:
        return self._entries[i].expires_at < self._entries[j].expires_at

    def swap(self, i: int, j: int) -> None:
        entries = self._entries
        entries[i], entries[j] = entries[j], entries[i]
        entries[i].heap_index = i
        entries[j].heap_index = j

    def push(self, entry: ExpirationEntry) -> None:
        entry.heap_index = len(self._entries)
        self._entries.append(entry)
        self._sift_up(entry.heap_index)

    def pop(self) -> ExpirationEntry:
        """
        Remove and return the entry with the earliest expiry.

        Raises:
            IndexError: If the queue is empty
        """
        if not self._entries:
            raise IndexError("pop from empty expiration queue")
        last = len(self._entries) - 1
        self.swap(0, last)
        entry = self._entries.pop()
        entry.heap_index = -1
        if self._entries:
            self._sift_down(0)
        return entry

    def peek(self) -> Optional[ExpirationEntry]:
        return self._entries[0] if self._entries else None

    def invalidate(self, entry: ExpirationEntry) -> None:
        """
        Tombstone an entry that is still in the heap.

        Lowering the key to ``TOMBSTONE`` can only violate the heap property
        upward, so one sift-up restores it.
        """
        if entry.heap_index < 0 or entry.is_tombstoned:
            return
        entry.expires_at = TOMBSTONE
        self._sift_up(entry.heap_index)

    def _sift_up(self, i: int) -> None:
        while i > 0:
            parent = (i - 1) // 2
            if not self.less(i, parent):
                break
            self.swap(i, parent)
            i = parent

    def _sift_down(self, i: int) -> None:
        n = len(self._entries)
        while True:
            left = 2 * i + 1
            if left >= n:
                break
            smallest = left
            right = left + 1
            if right < n and self.less(right, left):
                smallest = right
            if not self.less(smallest, i):
                break
            self.swap(i, smallest)
            i = smallest
