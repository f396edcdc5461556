"""Graph history manager - undo/redo over the history ledger.

Tracks entity creation, deletion and edits, relationship changes and node
positions. The manager pops an entry, asks the effect callbacks to apply
the inverse (undo) or the original change (redo), and only moves the entry
to the other stack once the callback has finished. A failing callback
leaves the stacks exactly as they were.

Concurrency: one asyncio.Lock serialises record, undo, redo, clear, whole
jumps and whole batch blocks. With the "queue" policy a second request waits
its turn; with "reject" it raises HistoryBusy straight away. The task holding
the lock may re-enter it, so an editor can mutate and record inside one
`exclusive()` section.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, AsyncIterator, assert_never

from .callbacks import HistoryCallbacks
from .constants import BUSY_POLICIES, DEFAULT_BUSY_POLICY, DEFAULT_MAX_HISTORY_SIZE
from .entries import (
    BatchOperationEntry,
    EntityCreateEntry,
    EntityDeleteEntry,
    EntityEditEntry,
    HistoryEntry,
    NodePositionChangeEntry,
    RelationshipCreateEntry,
    RelationshipDeleteEntry,
    RelationshipEditEntry,
    batch_entry,
    entity_create_entry,
    entity_delete_entry,
    entity_edit_entry,
    node_position_change_entry,
    relationship_create_entry,
    relationship_delete_entry,
    relationship_edit_entry,
)
from .errors import CallbackFailure, Direction, EntryNotFound, HistoryBusy, PartialSequenceFailure
from .ledger import HistoryLedger
from .listeners import Listener, ListenerRegistry

if TYPE_CHECKING:
    from .models import Connection, Entity
    from .settings import HistorySettings

logger = logging.getLogger(__name__)


async def _settle(result: Any) -> None:
    """Await a callback result if it is awaitable (plain functions are allowed)."""
    if inspect.isawaitable(result):
        await result


class GraphHistoryManager:
    """Undo/redo history for one graph editing session.

    Usage::

        history = GraphHistoryManager(document)
        history.add_listener(refresh_toolbar)

        # after the editor has created and rendered an entity
        await history.record_entity_create(entity)

        await history.undo()   # calls document.on_entity_delete(entity.id)
        await history.redo()   # calls document.on_entity_restore(entity)
    """

    def __init__(
        self,
        callbacks: HistoryCallbacks,
        max_history_size: int | None = DEFAULT_MAX_HISTORY_SIZE,
        busy_policy: str = DEFAULT_BUSY_POLICY,
    ):
        if not isinstance(callbacks, HistoryCallbacks):
            raise TypeError(
                f"{type(callbacks).__name__} does not implement HistoryCallbacks"
            )
        if busy_policy not in BUSY_POLICIES:
            raise ValueError(
                f"busy_policy must be one of {', '.join(BUSY_POLICIES)}, got {busy_policy!r}"
            )
        self._callbacks = callbacks
        self._busy_policy = busy_policy
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        # Open batch buffer of the current task only
        self._pending_batch: ContextVar[list[HistoryEntry] | None] = ContextVar(
            f"graphtrail_batch_{id(self)}", default=None
        )
        self.ledger = HistoryLedger(max_size=max_history_size, listeners=ListenerRegistry())

    @classmethod
    def from_settings(
        cls, callbacks: HistoryCallbacks, settings: HistorySettings
    ) -> GraphHistoryManager:
        return cls(
            callbacks,
            max_history_size=settings.max_history_size,
            busy_policy=settings.busy_policy,
        )

    # --- Listeners ---

    def add_listener(self, listener: Listener) -> None:
        """Add a listener for history changes."""
        self.ledger.listeners.add_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        self.ledger.listeners.remove_listener(listener)

    # --- Mutual exclusion ---

    @property
    def busy(self) -> bool:
        """True while a record/undo/redo/batch or exclusive section is in flight."""
        return self._lock.locked()

    @asynccontextmanager
    async def exclusive(self, operation: str = "edit") -> AsyncIterator[None]:
        """Hold the history lock for a whole mutate-then-record sequence.

        Callers that change the graph themselves enter this first, so an
        in-flight undo can never interleave with their edit. Under the
        "reject" policy HistoryBusy is raised before the block runs.

        Usage::

            async with history.exclusive("create entity"):
                document.add_entity(entity)
                await history.record_entity_create(entity)
        """
        async with self._exclusive(operation):
            yield

    @asynccontextmanager
    async def _exclusive(self, operation: str) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if self._owner is not None and self._owner is task:
            # Re-entered by the task that already holds the lock
            yield
            return
        if self._busy_policy == "reject" and self._lock.locked():
            raise HistoryBusy(f"Cannot {operation}: another history operation is in progress")
        async with self._lock:
            self._owner = task
            try:
                yield
            finally:
                self._owner = None

    # --- Recording ---

    async def record(self, entry: HistoryEntry) -> HistoryEntry:
        """Record an already-applied change.

        Inside a ``batch()`` block opened by the same task the entry is
        collected into the batch instead of going on the undo stack.
        """
        pending = self._pending_batch.get()
        # Tasks spawned inside a batch inherit the context but not the lock
        if pending is not None and self._owner is asyncio.current_task():
            pending.append(entry)
            return entry
        async with self._exclusive("record"):
            self.ledger.push(entry)
        return entry

    async def record_entity_create(
        self, entity: Entity, description: str | None = None
    ) -> EntityCreateEntry:
        return await self.record(entity_create_entry(entity, description))

    async def record_entity_delete(
        self, entity: Entity, description: str | None = None
    ) -> EntityDeleteEntry:
        return await self.record(entity_delete_entry(entity, description))

    async def record_entity_edit(
        self, previous: Entity, updated: Entity, description: str | None = None
    ) -> EntityEditEntry:
        return await self.record(entity_edit_entry(previous, updated, description))

    async def record_relationship_create(
        self, connection: Connection, description: str | None = None
    ) -> RelationshipCreateEntry:
        return await self.record(relationship_create_entry(connection, description))

    async def record_relationship_delete(
        self, connection: Connection, description: str | None = None
    ) -> RelationshipDeleteEntry:
        return await self.record(relationship_delete_entry(connection, description))

    async def record_relationship_edit(
        self, previous: Connection, updated: Connection, description: str | None = None
    ) -> RelationshipEditEntry:
        return await self.record(relationship_edit_entry(previous, updated, description))

    async def record_node_position_change(
        self, previous_positions: dict, positions: dict, description: str | None = None
    ) -> NodePositionChangeEntry:
        return await self.record(
            node_position_change_entry(previous_positions, positions, description)
        )

    @asynccontextmanager
    async def batch(self, description: str) -> AsyncIterator[list[HistoryEntry]]:
        """Collect every record made inside the block into one undo step.

        The history lock is held for the whole block. Only records made by
        the task that opened the batch are collected; other tasks wait (or
        get HistoryBusy) until it closes. Nothing is recorded if the block
        raises or records nothing.

        Usage::

            async with history.batch("Deleted 3 entities"):
                for entity in selected:
                    await history.record_entity_delete(entity)
        """
        async with self._exclusive("batch"):
            buffer: list[HistoryEntry] = []
            token = self._pending_batch.set(buffer)
            try:
                yield buffer
            finally:
                self._pending_batch.reset(token)
            if buffer:
                # Lands in the enclosing batch if there is one
                await self.record(batch_entry(buffer, description))

    async def clear(self) -> None:
        """Clear all history."""
        async with self._exclusive("clear"):
            self.ledger.clear()

    # --- Queries ---

    def can_undo(self) -> bool:
        return self.ledger.can_undo()

    def can_redo(self) -> bool:
        return self.ledger.can_redo()

    def last_undo_description(self) -> str | None:
        return self.ledger.peek_last_undo()

    def last_redo_description(self) -> str | None:
        return self.ledger.peek_last_redo()

    def undo_stack(self) -> list[HistoryEntry]:
        """Applied entries for display, oldest first."""
        return self.ledger.undo_snapshot()

    def redo_stack(self) -> list[HistoryEntry]:
        """Reverted entries for display, oldest first."""
        return self.ledger.redo_snapshot()

    @property
    def position(self) -> int:
        return self.ledger.position

    @property
    def total_size(self) -> int:
        return self.ledger.total_size

    # --- Single step ---

    async def undo(self) -> bool:
        """Undo the last operation.

        Returns:
            True if an entry was undone, False if there was nothing to undo.

        Raises:
            CallbackFailure: The callback raised; the entry stays on the undo stack.
        """
        async with self._exclusive("undo"):
            return await self._undo_step()

    async def redo(self) -> bool:
        """Redo the last undone operation.

        Returns:
            True if an entry was redone, False if there was nothing to redo.

        Raises:
            CallbackFailure: The callback raised; the entry stays on the redo stack.
        """
        async with self._exclusive("redo"):
            return await self._redo_step()

    async def _undo_step(self) -> bool:
        if not self.ledger.can_undo():
            return False
        entry = self.ledger.pop_undo()
        try:
            await self._apply(entry, "undo")
        except Exception as e:
            # Never reverted, so it is still applied
            self.ledger.push_undo(entry)
            logger.error(f"Undo failed for '{entry.description}': {e}")
            raise CallbackFailure(entry, "undo") from e
        except BaseException:
            self.ledger.push_undo(entry)
            raise
        self.ledger.push_redo(entry)
        logger.info(f"Undid: {entry.description}")
        self.ledger.listeners.notify()
        return True

    async def _redo_step(self) -> bool:
        if not self.ledger.can_redo():
            return False
        entry = self.ledger.pop_redo()
        try:
            await self._apply(entry, "redo")
        except Exception as e:
            self.ledger.push_redo(entry)
            logger.error(f"Redo failed for '{entry.description}': {e}")
            raise CallbackFailure(entry, "redo") from e
        except BaseException:
            self.ledger.push_redo(entry)
            raise
        self.ledger.push_undo(entry)
        logger.info(f"Redid: {entry.description}")
        self.ledger.listeners.notify()
        return True

    # --- Jump to entry ---

    async def undo_to_entry(self, entry_id: str) -> int:
        """Undo every entry from the top of the undo stack down to *entry_id*.

        The target itself is undone too. Steps run one at a time, each
        callback finishing before the next starts.

        Returns:
            Number of entries undone.

        Raises:
            EntryNotFound: *entry_id* is not on the undo stack (nothing changes).
            PartialSequenceFailure: A step failed; earlier steps stay undone.
        """
        async with self._exclusive("undo"):
            steps = self.ledger.distance_from_top("undo", entry_id)
            if steps is None:
                raise EntryNotFound(entry_id, "undo")
            return await self._run_sequence("undo", steps)

    async def redo_to_entry(self, entry_id: str) -> int:
        """Redo every entry from the top of the redo stack down to *entry_id*.

        Returns:
            Number of entries redone.

        Raises:
            EntryNotFound: *entry_id* is not on the redo stack (nothing changes).
            PartialSequenceFailure: A step failed; earlier steps stay redone.
        """
        async with self._exclusive("redo"):
            steps = self.ledger.distance_from_top("redo", entry_id)
            if steps is None:
                raise EntryNotFound(entry_id, "redo")
            return await self._run_sequence("redo", steps)

    async def _run_sequence(self, direction: Direction, steps: int) -> int:
        step = self._undo_step if direction == "undo" else self._redo_step
        for completed in range(steps):
            try:
                await step()
            except CallbackFailure as e:
                logger.warning(
                    f"{direction.capitalize()} jump stopped after {completed}/{steps} steps"
                )
                raise PartialSequenceFailure(direction, steps, completed, e.entry) from e
        logger.info(f"{direction.capitalize()} jump completed: {steps} step(s)")
        return steps

    # --- Effect dispatch ---

    async def _apply(self, entry: HistoryEntry, direction: Direction) -> None:
        if direction == "undo":
            await self._apply_backward(entry)
        else:
            await self._apply_forward(entry)

    async def _apply_backward(self, entry: HistoryEntry) -> None:
        """Run the callback that reverses *entry*."""
        cb = self._callbacks
        match entry:
            case EntityCreateEntry():
                await _settle(cb.on_entity_delete(entry.backward_payload))
            case EntityDeleteEntry():
                await _settle(cb.on_entity_restore(entry.backward_payload))
            case EntityEditEntry():
                await _settle(cb.on_entity_update(entry.backward_payload))
            case RelationshipCreateEntry():
                await _settle(cb.on_connection_delete(entry.backward_payload))
            case RelationshipDeleteEntry():
                await _settle(cb.on_connection_restore(entry.backward_payload))
            case RelationshipEditEntry():
                await _settle(cb.on_connection_update(entry.backward_payload))
            case NodePositionChangeEntry():
                await _settle(cb.on_node_position_change(entry.backward_payload))
            case BatchOperationEntry():
                await self._apply_batch(entry, "undo")
            case _:
                assert_never(entry)

    async def _apply_forward(self, entry: HistoryEntry) -> None:
        """Run the callback that re-applies *entry*.

        Re-creating something that an undo removed goes through the restore
        path so it comes back with its original id.
        """
        cb = self._callbacks
        match entry:
            case EntityCreateEntry():
                await _settle(cb.on_entity_restore(entry.forward_payload))
            case EntityDeleteEntry():
                await _settle(cb.on_entity_delete(entry.forward_payload))
            case EntityEditEntry():
                await _settle(cb.on_entity_update(entry.forward_payload))
            case RelationshipCreateEntry():
                await _settle(cb.on_connection_restore(entry.forward_payload))
            case RelationshipDeleteEntry():
                await _settle(cb.on_connection_delete(entry.forward_payload))
            case RelationshipEditEntry():
                await _settle(cb.on_connection_update(entry.forward_payload))
            case NodePositionChangeEntry():
                await _settle(cb.on_node_position_change(entry.forward_payload))
            case BatchOperationEntry():
                await self._apply_batch(entry, "redo")
            case _:
                assert_never(entry)

    async def _apply_batch(self, batch: BatchOperationEntry, direction: Direction) -> None:
        """Apply sub-operations as one unit.

        Undo walks them newest first, redo oldest first. If one fails, the
        ones already applied are reversed again before the error propagates.
        """
        steps = batch.backward_payload if direction == "undo" else batch.forward_payload
        opposite: Direction = "redo" if direction == "undo" else "undo"
        applied: list[HistoryEntry] = []
        for sub in steps:
            try:
                await self._apply(sub, direction)
            except Exception:
                for done in reversed(applied):
                    try:
                        await self._apply(done, opposite)
                    except Exception:
                        logger.exception(
                            f"Could not roll back '{done.description}' in batch "
                            f"'{batch.description}'; graph may be inconsistent"
                        )
                raise
            applied.append(sub)
