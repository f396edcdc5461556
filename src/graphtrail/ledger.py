"""History ledger: the undo and redo stacks.

The ledger only stores entries. It never calls effect callbacks; that is
the manager's job. Every entry lives on exactly one stack: the undo stack
holds applied entries, the redo stack holds reverted ones. Both stacks are
ordered oldest first, with the top at the end.
"""

from __future__ import annotations

import logging
from typing import Literal

from .constants import DEFAULT_MAX_HISTORY_SIZE
from .entries import HistoryEntry
from .listeners import ListenerRegistry

logger = logging.getLogger(__name__)

StackName = Literal["undo", "redo"]


class HistoryLedger:
    """Undo/redo stacks plus the listeners that watch them."""

    def __init__(
        self,
        max_size: int | None = DEFAULT_MAX_HISTORY_SIZE,
        listeners: ListenerRegistry | None = None,
    ):
        """Initialize an empty ledger.

        Args:
            max_size: Maximum undo depth; oldest entries are dropped beyond it.
                      None keeps every entry.
            listeners: Registry to notify on changes (a new one if omitted)
        """
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be >= 1 or None, got {max_size}")
        self.max_size = max_size
        self.listeners = listeners if listeners is not None else ListenerRegistry()
        self._undo: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []

    # --- Recording ---

    def push(self, entry: HistoryEntry) -> None:
        """Record a new applied entry.

        Clears the redo stack: a new edit discards the reverted future.
        """
        self._undo.append(entry)
        if self._redo:
            logger.debug(f"Discarding {len(self._redo)} redo entries")
        self._redo = []

        if self.max_size is not None:
            while len(self._undo) > self.max_size:
                dropped = self._undo.pop(0)
                logger.debug(f"History full, dropped oldest entry {dropped.id}")

        logger.debug(f"Recorded {entry.kind.value}: {entry.description}")
        self.listeners.notify()

    def clear(self) -> None:
        """Forget all history."""
        self._undo = []
        self._redo = []
        self.listeners.notify()

    # --- Stack primitives used by the manager ---
    # These do not notify: the manager fires listeners only once a
    # transition has actually committed.

    def pop_undo(self) -> HistoryEntry:
        return self._undo.pop()

    def pop_redo(self) -> HistoryEntry:
        return self._redo.pop()

    def push_undo(self, entry: HistoryEntry) -> None:
        self._undo.append(entry)

    def push_redo(self, entry: HistoryEntry) -> None:
        self._redo.append(entry)

    # --- Queries ---

    def can_undo(self) -> bool:
        return len(self._undo) > 0

    def can_redo(self) -> bool:
        return len(self._redo) > 0

    def peek_last_undo(self) -> str | None:
        """Description of the entry undo() would revert, if any."""
        if not self._undo:
            return None
        return self._undo[-1].description

    def peek_last_redo(self) -> str | None:
        """Description of the entry redo() would re-apply, if any."""
        if not self._redo:
            return None
        return self._redo[-1].description

    def undo_snapshot(self) -> list[HistoryEntry]:
        """Copy of the undo stack, oldest first."""
        return list(self._undo)

    def redo_snapshot(self) -> list[HistoryEntry]:
        """Copy of the redo stack, oldest first."""
        return list(self._redo)

    @property
    def position(self) -> int:
        """Current position in history (number of applied entries)."""
        return len(self._undo)

    @property
    def total_size(self) -> int:
        return len(self._undo) + len(self._redo)

    def distance_from_top(self, stack: StackName, entry_id: str) -> int | None:
        """How many steps reach *entry_id*, counting the top entry as 1.

        Returns None if the entry is not on that stack.
        """
        entries = self._undo if stack == "undo" else self._redo
        for distance, entry in enumerate(reversed(entries), start=1):
            if entry.id == entry_id:
                return distance
        return None
