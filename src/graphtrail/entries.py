"""History entries: one recorded, reversible edit operation per entry.

Each operation kind is its own model carrying only the payload that kind
needs. ``HistoryEntry`` is the discriminated union of all of them, so
dispatch code can ``match`` on the concrete class and a type checker will
flag a kind that has no case.

Snapshots are deep-copied when an entry is built. Later changes to the
caller's objects never leak into recorded history.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from .models import Connection, Entity, PositionMap, copy_positions, generate_id, utc_now


class HistoryOperationType(str, Enum):
    """Kinds of operations tracked in history."""

    ENTITY_CREATE = "entity_create"
    ENTITY_DELETE = "entity_delete"
    ENTITY_EDIT = "entity_edit"
    RELATIONSHIP_CREATE = "relationship_create"
    RELATIONSHIP_DELETE = "relationship_delete"
    RELATIONSHIP_EDIT = "relationship_edit"
    NODE_POSITION_CHANGE = "node_position_change"
    BATCH_OPERATION = "batch_operation"


class BaseEntry(BaseModel):
    """Fields every history entry carries."""

    id: str = Field(default_factory=generate_id)
    timestamp: datetime = Field(default_factory=utc_now)
    description: str

    @property
    def forward_payload(self) -> Any:
        """Data handed to the redo callback."""
        raise NotImplementedError

    @property
    def backward_payload(self) -> Any:
        """Data handed to the undo callback."""
        raise NotImplementedError

    def to_summary(self) -> dict:
        """Return the fields a history panel displays."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
        }


class EntityCreateEntry(BaseEntry):
    kind: Literal[HistoryOperationType.ENTITY_CREATE] = HistoryOperationType.ENTITY_CREATE
    entity: Entity

    @property
    def forward_payload(self) -> Entity:
        return self.entity

    @property
    def backward_payload(self) -> str:
        return self.entity.id


class EntityDeleteEntry(BaseEntry):
    kind: Literal[HistoryOperationType.ENTITY_DELETE] = HistoryOperationType.ENTITY_DELETE
    entity: Entity

    @property
    def forward_payload(self) -> str:
        return self.entity.id

    @property
    def backward_payload(self) -> Entity:
        return self.entity


class EntityEditEntry(BaseEntry):
    kind: Literal[HistoryOperationType.ENTITY_EDIT] = HistoryOperationType.ENTITY_EDIT
    previous: Entity
    updated: Entity

    @property
    def forward_payload(self) -> Entity:
        return self.updated

    @property
    def backward_payload(self) -> Entity:
        return self.previous


class RelationshipCreateEntry(BaseEntry):
    kind: Literal[HistoryOperationType.RELATIONSHIP_CREATE] = (
        HistoryOperationType.RELATIONSHIP_CREATE
    )
    connection: Connection

    @property
    def forward_payload(self) -> Connection:
        return self.connection

    @property
    def backward_payload(self) -> str:
        return self.connection.id


class RelationshipDeleteEntry(BaseEntry):
    kind: Literal[HistoryOperationType.RELATIONSHIP_DELETE] = (
        HistoryOperationType.RELATIONSHIP_DELETE
    )
    connection: Connection

    @property
    def forward_payload(self) -> str:
        return self.connection.id

    @property
    def backward_payload(self) -> Connection:
        return self.connection


class RelationshipEditEntry(BaseEntry):
    kind: Literal[HistoryOperationType.RELATIONSHIP_EDIT] = (
        HistoryOperationType.RELATIONSHIP_EDIT
    )
    previous: Connection
    updated: Connection

    @property
    def forward_payload(self) -> Connection:
        return self.updated

    @property
    def backward_payload(self) -> Connection:
        return self.previous


class NodePositionChangeEntry(BaseEntry):
    """Position change for the nodes moved in one action (may be several)."""

    kind: Literal[HistoryOperationType.NODE_POSITION_CHANGE] = (
        HistoryOperationType.NODE_POSITION_CHANGE
    )
    previous_positions: PositionMap
    positions: PositionMap

    @property
    def forward_payload(self) -> PositionMap:
        return self.positions

    @property
    def backward_payload(self) -> PositionMap:
        return self.previous_positions


class BatchOperationEntry(BaseEntry):
    """Several entries undone and redone as one step.

    Sub-operations are stored oldest first.
    """

    kind: Literal[HistoryOperationType.BATCH_OPERATION] = (
        HistoryOperationType.BATCH_OPERATION
    )
    sub_operations: list[HistoryEntry] = Field(default_factory=list)

    @property
    def forward_payload(self) -> list[HistoryEntry]:
        return list(self.sub_operations)

    @property
    def backward_payload(self) -> list[HistoryEntry]:
        return list(reversed(self.sub_operations))


HistoryEntry = Annotated[
    Union[
        EntityCreateEntry,
        EntityDeleteEntry,
        EntityEditEntry,
        RelationshipCreateEntry,
        RelationshipDeleteEntry,
        RelationshipEditEntry,
        NodePositionChangeEntry,
        BatchOperationEntry,
    ],
    Field(discriminator="kind"),
]

BatchOperationEntry.model_rebuild()


# --- Entry factories ---
# Each factory snapshots its inputs so the entry owns its own copies.


def entity_create_entry(entity: Entity, description: str | None = None) -> EntityCreateEntry:
    return EntityCreateEntry(
        description=description or f"Created entity: {entity.label}",
        entity=entity.model_copy(deep=True),
    )


def entity_delete_entry(entity: Entity, description: str | None = None) -> EntityDeleteEntry:
    return EntityDeleteEntry(
        description=description or f"Deleted entity: {entity.label}",
        entity=entity.model_copy(deep=True),
    )


def entity_edit_entry(
    previous: Entity, updated: Entity, description: str | None = None
) -> EntityEditEntry:
    return EntityEditEntry(
        description=description or f"Edited entity: {updated.label}",
        previous=previous.model_copy(deep=True),
        updated=updated.model_copy(deep=True),
    )


def relationship_create_entry(
    connection: Connection, description: str | None = None
) -> RelationshipCreateEntry:
    return RelationshipCreateEntry(
        description=description or f"Created relationship: {connection.relationship}",
        connection=connection.model_copy(deep=True),
    )


def relationship_delete_entry(
    connection: Connection, description: str | None = None
) -> RelationshipDeleteEntry:
    return RelationshipDeleteEntry(
        description=description or f"Deleted relationship: {connection.relationship}",
        connection=connection.model_copy(deep=True),
    )


def relationship_edit_entry(
    previous: Connection, updated: Connection, description: str | None = None
) -> RelationshipEditEntry:
    return RelationshipEditEntry(
        description=description or f"Edited relationship: {updated.relationship}",
        previous=previous.model_copy(deep=True),
        updated=updated.model_copy(deep=True),
    )


def node_position_change_entry(
    previous_positions: dict,
    positions: dict,
    description: str | None = None,
) -> NodePositionChangeEntry:
    return NodePositionChangeEntry(
        description=description or f"Moved {len(positions)} node(s)",
        previous_positions=copy_positions(previous_positions),
        positions=copy_positions(positions),
    )


def batch_entry(sub_operations: list[HistoryEntry], description: str) -> BatchOperationEntry:
    return BatchOperationEntry(
        description=description,
        sub_operations=[entry.model_copy(deep=True) for entry in sub_operations],
    )
