"""Graph editor - applies edits to a document and records them in history.

Every public edit follows the same contract: mutate the document first,
then record an entry with complete before/after snapshots. The history
manager never reconstructs state on its own.

Each edit runs inside ``history.exclusive()``, so reading, mutating and
recording happen with no undo or redo in between. Under the "reject" busy
policy an edit raises HistoryBusy before touching the document.
"""

from __future__ import annotations

import logging
from typing import Any

from .document import GraphDocument
from .manager import GraphHistoryManager
from .models import Connection, Entity, NodePosition, copy_positions
from .settings import HistorySettings, load_settings

logger = logging.getLogger(__name__)


def _merge_properties(target: dict[str, Any], changes: dict[str, Any] | None) -> None:
    """Apply property changes in place; a None value removes the key."""
    for key, value in (changes or {}).items():
        if value is None:
            target.pop(key, None)
        else:
            target[key] = value


class GraphEditor:
    """Main entry point for editing one graph with undo/redo.

    The document is also the history's effect callback implementation, so
    undo and redo land on the same graph the editor mutates.
    """

    def __init__(
        self,
        document: GraphDocument | None = None,
        settings: HistorySettings | None = None,
    ):
        self.document = document if document is not None else GraphDocument()
        self.settings = settings if settings is not None else load_settings()
        self.history = GraphHistoryManager.from_settings(self.document, self.settings)

    # --- Entities ---

    async def create_entity(
        self,
        label: str,
        entity_type: str | None = None,
        properties: dict[str, Any] | None = None,
        position: NodePosition | tuple[float, float] | None = None,
        entity_id: str | None = None,
    ) -> Entity:
        """Create an entity at *position* (default origin) and record it."""
        fields: dict[str, Any] = {"label": label, "properties": properties or {}}
        if entity_type:
            fields["type"] = entity_type
        if entity_id:
            fields["id"] = entity_id
        entity = Entity(**fields)

        if position is None:
            position = NodePosition(x=0.0, y=0.0)
        elif not isinstance(position, NodePosition):
            position = NodePosition(x=position[0], y=position[1])

        async with self.history.exclusive("create entity"):
            created = self.document.add_entity(entity, position=position)
            await self.history.record_entity_create(created)
        logger.debug(f"Created entity {created.id} ({created.label})")
        return created

    async def update_entity(
        self,
        entity_id: str,
        label: str | None = None,
        entity_type: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> Entity:
        """Edit an entity. Properties are merged; a None value removes the key."""
        async with self.history.exclusive("update entity"):
            previous = self.document.get_entity(entity_id).model_copy(deep=True)
            updated = previous.model_copy(deep=True)
            if label is not None:
                updated.label = label
            if entity_type is not None:
                updated.type = entity_type
            _merge_properties(updated.properties, properties)

            if updated == previous:
                logger.debug(f"No changes for entity {entity_id}; nothing recorded")
                return previous

            stored = self.document.replace_entity(updated)
            await self.history.record_entity_edit(previous, stored)
        return stored

    async def delete_entity(self, entity_id: str) -> Entity:
        """Delete an entity together with its connections, as one undo step."""
        return (await self.delete_entities([entity_id]))[0]

    async def delete_entities(self, entity_ids: list[str]) -> list[Entity]:
        """Delete several entities and every connection touching them.

        Recorded as one batch: a single undo restores the entities first,
        then their connections.
        """
        async with self.history.exclusive("delete entities"):
            # Validate up front so a bad id leaves the graph untouched
            entities = [self.document.get_entity(eid) for eid in dict.fromkeys(entity_ids)]
            if len(entities) == 1:
                description = f"Deleted entity: {entities[0].label}"
            else:
                description = f"Deleted {len(entities)} entities"

            deleted: list[Entity] = []
            async with self.history.batch(description):
                for entity in entities:
                    for connection in self.document.connections_for(entity.id):
                        self.document.remove_connection(connection.id)
                        await self.history.record_relationship_delete(connection)
                    removed = self.document.remove_entity(entity.id)
                    await self.history.record_entity_delete(removed)
                    deleted.append(removed)
        return deleted

    # --- Connections ---

    async def create_connection(
        self,
        from_entity_id: str,
        to_entity_id: str,
        relationship: str,
        label: str | None = None,
        properties: dict[str, Any] | None = None,
        connection_id: str | None = None,
    ) -> Connection:
        fields: dict[str, Any] = {
            "from_entity_id": from_entity_id,
            "to_entity_id": to_entity_id,
            "relationship": relationship,
            "label": label,
            "properties": properties or {},
        }
        if connection_id:
            fields["id"] = connection_id
        async with self.history.exclusive("create connection"):
            created = self.document.add_connection(Connection(**fields))
            await self.history.record_relationship_create(created)
        return created

    async def update_connection(
        self,
        connection_id: str,
        relationship: str | None = None,
        label: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> Connection:
        """Edit a connection. Properties are merged; a None value removes the key."""
        async with self.history.exclusive("update connection"):
            previous = self.document.get_connection(connection_id).model_copy(deep=True)
            updated = previous.model_copy(deep=True)
            if relationship is not None:
                updated.relationship = relationship
            if label is not None:
                updated.label = label
            _merge_properties(updated.properties, properties)

            if updated == previous:
                return previous

            stored = self.document.replace_connection(updated)
            await self.history.record_relationship_edit(previous, stored)
        return stored

    async def delete_connection(self, connection_id: str) -> Connection:
        async with self.history.exclusive("delete connection"):
            removed = self.document.remove_connection(connection_id)
            await self.history.record_relationship_delete(removed)
        return removed

    # --- Layout ---

    async def move_nodes(self, positions: dict) -> int:
        """Move nodes (e.g. after a multi-select drag) and record the move.

        Only nodes whose position actually changed are recorded.

        Returns:
            Number of nodes moved.
        """
        requested = copy_positions(positions)
        async with self.history.exclusive("move nodes"):
            moved = {
                node_id: pos
                for node_id, pos in requested.items()
                if self.document.positions.get(node_id) != pos
            }
            if not moved:
                return 0
            previous = self.document.set_positions(moved)
            await self.history.record_node_position_change(previous, moved)
        return len(moved)

    # --- Reads ---

    def read_graph(self) -> dict:
        """Return the full graph plus history status."""
        graph = self.document.snapshot()
        graph["history"] = {
            "can_undo": self.history.can_undo(),
            "can_redo": self.history.can_redo(),
            "last_undo": self.history.last_undo_description(),
            "last_redo": self.history.last_redo_description(),
            "position": self.history.position,
            "total": self.history.total_size,
        }
        return graph
