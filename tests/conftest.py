"""Shared test fixtures and helpers for graphtrail tests."""

import asyncio

import pytest

from graphtrail.document import GraphDocument
from graphtrail.editor import GraphEditor
from graphtrail.manager import GraphHistoryManager
from graphtrail.models import Connection, Entity
from graphtrail.settings import HistorySettings


class RecordingCallbacks:
    """HistoryCallbacks fake that records every call in order.

    Failures can be injected per method (``fail_methods``) or per payload
    id (``fail_ids``); the call is still recorded before it raises.
    """

    def __init__(self):
        self.calls: list[tuple[str, object]] = []
        self.fail_methods: dict[str, Exception] = {}
        self.fail_ids: dict[str, Exception] = {}

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def _handle(self, name: str, payload) -> None:
        self.calls.append((name, payload))
        if name in self.fail_methods:
            raise self.fail_methods[name]
        key = payload if isinstance(payload, str) else getattr(payload, "id", None)
        if key in self.fail_ids:
            raise self.fail_ids[key]

    async def on_entity_create(self, entity):
        await self._handle("on_entity_create", entity)

    async def on_entity_delete(self, entity_id):
        await self._handle("on_entity_delete", entity_id)

    async def on_entity_restore(self, entity):
        await self._handle("on_entity_restore", entity)

    async def on_entity_update(self, entity):
        await self._handle("on_entity_update", entity)

    async def on_connection_create(self, connection):
        await self._handle("on_connection_create", connection)

    async def on_connection_delete(self, connection_id):
        await self._handle("on_connection_delete", connection_id)

    async def on_connection_restore(self, connection):
        await self._handle("on_connection_restore", connection)

    async def on_connection_update(self, connection):
        await self._handle("on_connection_update", connection)

    async def on_node_position_change(self, positions):
        await self._handle("on_node_position_change", positions)


class GatedCallbacks(RecordingCallbacks):
    """Callbacks that block until ``gate`` is set, to keep an operation in flight."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def _handle(self, name, payload):
        self.entered.set()
        await self.gate.wait()
        await super()._handle(name, payload)


class GatedDocument(GraphDocument):
    """Document whose entity deletes block until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def on_entity_delete(self, entity_id):
        self.entered.set()
        await self.gate.wait()
        await super().on_entity_delete(entity_id)


# --- Fixtures ---


@pytest.fixture
def callbacks():
    """Provide a fresh recording callback fake."""
    return RecordingCallbacks()


@pytest.fixture
def history(callbacks):
    """Provide a GraphHistoryManager wired to the recording fake."""
    return GraphHistoryManager(callbacks)


@pytest.fixture
def document():
    return GraphDocument()


@pytest.fixture
def editor(document):
    """Provide a GraphEditor with default settings (independent of env vars)."""
    return GraphEditor(document, settings=HistorySettings())


# --- Helper Functions (not fixtures) ---


def make_entity(id: str, label: str | None = None, **properties) -> Entity:
    """Helper to create a test entity."""
    return Entity(id=id, label=label or id.upper(), type="Person", properties=properties)


def make_connection(id: str, from_id: str, to_id: str, relationship: str = "knows") -> Connection:
    """Helper to create a test connection."""
    return Connection(id=id, from_entity_id=from_id, to_entity_id=to_id, relationship=relationship)
