from __future__ import annotations

from typing import List, Optional

from studio_core.buffer import PixelBuffer


class HistoryStack:
    """
    Bounded list of buffer snapshots with a cursor.

    Snapshots are stored as given and must not be mutated afterwards; the
    editor always produces a fresh buffer per edit. Pushing while the cursor is
    not at the tail drops the redo branch. When full, the oldest snapshot is
    evicted and the cursor shifts down with it.
    """

    def __init__(self, initial: PixelBuffer, limit: int = 20):
        if limit < 1:
            raise ValueError("history limit must be >= 1")
        self._limit = int(limit)
        self._entries: List[PixelBuffer] = [initial]
        self._cursor = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> PixelBuffer:
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, snapshot: PixelBuffer) -> None:
        del self._entries[self._cursor + 1:]
        self._entries.append(snapshot)
        if len(self._entries) > self._limit:
            del self._entries[0]
        self._cursor = len(self._entries) - 1

    def undo(self) -> Optional[PixelBuffer]:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> Optional[PixelBuffer]:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor]
