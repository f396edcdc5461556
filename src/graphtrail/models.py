"""Graph data models shared by the document, editor and history entries.

Uses Pydantic v2 for validation, ULID for sortable unique IDs.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from ulid import ULID

from .constants import DEFAULT_ENTITY_TYPE


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class Entity(BaseModel):
    """A node in the graph: a person, organization, location, etc."""

    id: str = Field(default_factory=generate_id)
    type: str = DEFAULT_ENTITY_TYPE
    label: str
    properties: dict[str, Any] = Field(default_factory=dict)
    file_path: str | None = None  # note backing this entity, if any

    def to_summary(self) -> dict:
        """Return a compact summary of this entity."""
        return {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "property_count": len(self.properties),
        }


class Connection(BaseModel):
    """A directed, labeled edge between two entities."""

    id: str = Field(default_factory=generate_id)
    from_entity_id: str
    to_entity_id: str
    relationship: str  # verb phrase: "works_for", "owns", etc.
    label: str | None = None  # human-readable, falls back to relationship
    properties: dict[str, Any] = Field(default_factory=dict)
    file_path: str | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.relationship

    def to_summary(self) -> dict:
        """Return a compact summary of this connection."""
        return {
            "id": self.id,
            "from_entity_id": self.from_entity_id,
            "to_entity_id": self.to_entity_id,
            "relationship": self.relationship,
            "label": self.display_label,
        }

    def touches(self, entity_id: str) -> bool:
        """Check if either endpoint is the given entity."""
        return entity_id in (self.from_entity_id, self.to_entity_id)


class NodePosition(BaseModel):
    """Rendered position of a node on the graph surface."""

    x: float
    y: float


PositionMap = dict[str, NodePosition]


def copy_positions(positions: dict[str, Any]) -> PositionMap:
    """Copy a position mapping, accepting NodePosition, dicts or (x, y) pairs."""
    result: PositionMap = {}
    for node_id, pos in positions.items():
        if isinstance(pos, NodePosition):
            result[node_id] = pos.model_copy()
        elif isinstance(pos, dict):
            result[node_id] = NodePosition(**pos)
        else:
            x, y = pos
            result[node_id] = NodePosition(x=x, y=y)
    return result
