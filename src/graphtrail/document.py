"""In-memory graph document.

Holds the live entities, connections and node positions of one editing
session and implements HistoryCallbacks, so a GraphHistoryManager can
undo and redo edits against it.

Includes indices for O(1) lookups:
- _outgoing: entity ID -> IDs of connections from it
- _incoming: entity ID -> IDs of connections to it
"""

from __future__ import annotations

import logging

from .models import Connection, Entity, NodePosition, PositionMap, copy_positions

logger = logging.getLogger(__name__)


class GraphDocument:
    """Entities, connections and layout for a single graph view."""

    def __init__(self) -> None:
        self.entities: dict[str, Entity] = {}
        self.connections: dict[str, Connection] = {}
        self.positions: PositionMap = {}

        self._outgoing: dict[str, set[str]] = {}
        self._incoming: dict[str, set[str]] = {}
        # Layout of removed nodes, put back when the node is restored
        self._parked_positions: PositionMap = {}

    # --- Lookups ---

    def get_entity(self, entity_id: str) -> Entity:
        """Return the entity or raise KeyError."""
        try:
            return self.entities[entity_id]
        except KeyError:
            raise KeyError(f"Entity not found: {entity_id}") from None

    def get_connection(self, connection_id: str) -> Connection:
        """Return the connection or raise KeyError."""
        try:
            return self.connections[connection_id]
        except KeyError:
            raise KeyError(f"Connection not found: {connection_id}") from None

    def connections_for(self, entity_id: str) -> list[Connection]:
        """All connections with the entity at either end."""
        ids = self._outgoing.get(entity_id, set()) | self._incoming.get(entity_id, set())
        return [self.connections[cid] for cid in sorted(ids)]

    def snapshot(self) -> dict:
        """Plain-data view of the whole document, for comparison and export."""
        return {
            "entities": {
                eid: e.model_dump(mode="json") for eid, e in sorted(self.entities.items())
            },
            "connections": {
                cid: c.model_dump(mode="json") for cid, c in sorted(self.connections.items())
            },
            "positions": {
                nid: p.model_dump(mode="json") for nid, p in sorted(self.positions.items())
            },
        }

    # --- Direct mutations (used by the editor) ---

    def add_entity(self, entity: Entity, position: NodePosition | None = None) -> Entity:
        if entity.id in self.entities:
            raise ValueError(f"Entity already exists: {entity.id}")
        self.entities[entity.id] = entity.model_copy(deep=True)
        if position is not None:
            self.positions[entity.id] = position.model_copy()
        else:
            parked = self._parked_positions.pop(entity.id, None)
            if parked is not None:
                self.positions[entity.id] = parked
        return self.entities[entity.id]

    def remove_entity(self, entity_id: str) -> Entity:
        """Remove an entity that has no connections left."""
        entity = self.get_entity(entity_id)
        dangling = self.connections_for(entity_id)
        if dangling:
            raise ValueError(
                f"Entity {entity_id} still has {len(dangling)} connection(s); remove them first"
            )
        del self.entities[entity_id]
        self._outgoing.pop(entity_id, None)
        self._incoming.pop(entity_id, None)
        position = self.positions.pop(entity_id, None)
        if position is not None:
            self._parked_positions[entity_id] = position
        return entity

    def replace_entity(self, entity: Entity) -> Entity:
        """Overwrite an existing entity with a new snapshot (same id)."""
        self.get_entity(entity.id)
        self.entities[entity.id] = entity.model_copy(deep=True)
        return self.entities[entity.id]

    def add_connection(self, connection: Connection) -> Connection:
        if connection.id in self.connections:
            raise ValueError(f"Connection already exists: {connection.id}")
        for endpoint in (connection.from_entity_id, connection.to_entity_id):
            if endpoint not in self.entities:
                raise ValueError(
                    f"Connection {connection.id} references missing entity {endpoint}"
                )
        stored = connection.model_copy(deep=True)
        self.connections[stored.id] = stored
        self._outgoing.setdefault(stored.from_entity_id, set()).add(stored.id)
        self._incoming.setdefault(stored.to_entity_id, set()).add(stored.id)
        return stored

    def remove_connection(self, connection_id: str) -> Connection:
        connection = self.get_connection(connection_id)
        del self.connections[connection_id]
        self._outgoing.get(connection.from_entity_id, set()).discard(connection_id)
        self._incoming.get(connection.to_entity_id, set()).discard(connection_id)
        return connection

    def replace_connection(self, connection: Connection) -> Connection:
        """Overwrite an existing connection, re-indexing if its endpoints moved."""
        for endpoint in (connection.from_entity_id, connection.to_entity_id):
            if endpoint not in self.entities:
                raise ValueError(
                    f"Connection {connection.id} references missing entity {endpoint}"
                )
        self.remove_connection(connection.id)
        return self.add_connection(connection)

    def set_positions(self, positions: dict) -> PositionMap:
        """Move the given nodes and return their previous positions.

        Nodes that had no position before are reported at (0, 0).
        """
        new_positions = copy_positions(positions)
        for node_id in new_positions:
            self.get_entity(node_id)
        previous: PositionMap = {}
        for node_id, pos in new_positions.items():
            previous[node_id] = self.positions.get(node_id, NodePosition(x=0.0, y=0.0))
            self.positions[node_id] = pos
        return previous

    # --- HistoryCallbacks ---

    async def on_entity_create(self, entity: Entity) -> None:
        self.add_entity(entity)

    async def on_entity_delete(self, entity_id: str) -> None:
        self.remove_entity(entity_id)

    async def on_entity_restore(self, entity: Entity) -> None:
        if entity.id in self.entities:
            logger.warning(f"Restoring entity {entity.id} that already exists; replacing it")
            self.replace_entity(entity)
            return
        self.add_entity(entity)

    async def on_entity_update(self, entity: Entity) -> None:
        self.replace_entity(entity)

    async def on_connection_create(self, connection: Connection) -> None:
        self.add_connection(connection)

    async def on_connection_delete(self, connection_id: str) -> None:
        self.remove_connection(connection_id)

    async def on_connection_restore(self, connection: Connection) -> None:
        if connection.id in self.connections:
            logger.warning(
                f"Restoring connection {connection.id} that already exists; replacing it"
            )
            self.replace_connection(connection)
            return
        self.add_connection(connection)

    async def on_connection_update(self, connection: Connection) -> None:
        self.replace_connection(connection)

    async def on_node_position_change(self, positions: PositionMap) -> None:
        for node_id, pos in positions.items():
            if node_id in self.entities:
                self.positions[node_id] = pos.model_copy()
            else:
                # Node is gone (e.g. deleted after the move); keep it for restore
                self._parked_positions[node_id] = pos.model_copy()
