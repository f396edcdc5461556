"""HistoryCallbacks: effect callback protocol for the history manager."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import Connection, Entity, PositionMap


@runtime_checkable
class HistoryCallbacks(Protocol):
    """
    Port for performing the actual graph mutations during undo and redo.

    Implemented by whatever owns the live entities, connections and the
    rendering surface. The history manager only decides *which* method to
    call with *which* snapshot; it never touches the graph itself.

    Every method is awaited to completion before the manager updates its
    stacks. Raising from a method means the effect did not happen.
    """

    async def on_entity_create(self, entity: Entity) -> None:
        """Create *entity* as a brand-new node."""
        ...

    async def on_entity_delete(self, entity_id: str) -> None:
        """Remove the entity with *entity_id* from the graph."""
        ...

    async def on_entity_restore(self, entity: Entity) -> None:
        """Bring back a previously removed entity with its original id."""
        ...

    async def on_entity_update(self, entity: Entity) -> None:
        """Replace the stored entity with this snapshot."""
        ...

    async def on_connection_create(self, connection: Connection) -> None:
        """Create *connection* as a brand-new edge."""
        ...

    async def on_connection_delete(self, connection_id: str) -> None:
        """Remove the connection with *connection_id*."""
        ...

    async def on_connection_restore(self, connection: Connection) -> None:
        """Bring back a previously removed connection with its original id."""
        ...

    async def on_connection_update(self, connection: Connection) -> None:
        """Replace the stored connection with this snapshot."""
        ...

    async def on_node_position_change(self, positions: PositionMap) -> None:
        """Move each listed node to its position; other nodes stay put."""
        ...
