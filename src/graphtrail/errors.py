"""Exceptions raised by the history engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .entries import HistoryEntry

Direction = Literal["undo", "redo"]


class HistoryError(Exception):
    """Base class for history engine errors."""


class CallbackFailure(HistoryError):
    """An effect callback raised while undoing or redoing an entry.

    The entry is back on the stack it was popped from; the original
    exception is available as ``__cause__``.
    """

    def __init__(self, entry: HistoryEntry, direction: Direction):
        self.entry = entry
        self.direction = direction
        super().__init__(f"{direction.capitalize()} failed for '{entry.description}' ({entry.id})")


class EntryNotFound(HistoryError, KeyError):
    """A jump target id is not on the stack it was looked up in."""

    def __init__(self, entry_id: str, stack: Literal["undo", "redo"]):
        self.entry_id = entry_id
        self.stack = stack
        super().__init__(f"Entry {entry_id} not found on the {stack} stack")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])


class PartialSequenceFailure(HistoryError):
    """A jump stopped partway; the completed steps are not rolled back."""

    def __init__(
        self,
        direction: Direction,
        requested: int,
        completed: int,
        failed_entry: HistoryEntry,
    ):
        self.direction = direction
        self.requested = requested
        self.completed = completed
        self.failed_entry = failed_entry
        super().__init__(
            f"{direction.capitalize()} sequence stopped after {completed}/{requested} steps "
            f"at '{failed_entry.description}' ({failed_entry.id})"
        )


class HistoryBusy(HistoryError):
    """Another undo/redo/record operation is in flight (reject policy)."""
