"""Tests for GraphHistoryManager single-step undo/redo."""

import pytest

from graphtrail.entries import EntityCreateEntry, NodePositionChangeEntry, RelationshipCreateEntry
from graphtrail.errors import CallbackFailure
from graphtrail.manager import GraphHistoryManager
from graphtrail.models import NodePosition

from conftest import RecordingCallbacks, make_connection, make_entity


class TestConstruction:
    def test_rejects_object_without_callbacks(self):
        with pytest.raises(TypeError, match="HistoryCallbacks"):
            GraphHistoryManager(object())

    def test_rejects_unknown_busy_policy(self, callbacks):
        with pytest.raises(ValueError, match="busy_policy"):
            GraphHistoryManager(callbacks, busy_policy="drop")


class TestEmptyStacks:
    @pytest.mark.asyncio
    async def test_undo_on_fresh_manager_is_noop(self, history, callbacks):
        assert await history.undo() is False
        assert callbacks.calls == []

    @pytest.mark.asyncio
    async def test_redo_on_fresh_manager_is_noop(self, history, callbacks):
        assert await history.redo() is False
        assert callbacks.calls == []


class TestDispatch:
    """Each kind calls the matching callback in each direction."""

    @pytest.mark.asyncio
    async def test_entity_create(self, history, callbacks):
        alice = make_entity("a", "Alice")
        await history.record_entity_create(alice)

        await history.undo()
        await history.redo()

        assert callbacks.calls == [
            ("on_entity_delete", "a"),
            ("on_entity_restore", alice),
        ]

    @pytest.mark.asyncio
    async def test_entity_delete(self, history, callbacks):
        alice = make_entity("a", "Alice")
        await history.record_entity_delete(alice)

        await history.undo()
        await history.redo()

        assert callbacks.calls == [
            ("on_entity_restore", alice),
            ("on_entity_delete", "a"),
        ]

    @pytest.mark.asyncio
    async def test_entity_edit(self, history, callbacks):
        before = make_entity("a", "Alice")
        after = make_entity("a", "Alicia")
        await history.record_entity_edit(before, after)

        await history.undo()
        await history.redo()

        assert callbacks.calls == [
            ("on_entity_update", before),
            ("on_entity_update", after),
        ]

    @pytest.mark.asyncio
    async def test_relationship_kinds(self, history, callbacks):
        conn = make_connection("c1", "a", "b")
        edited = make_connection("c1", "a", "b", "owns")
        await history.record_relationship_create(conn)
        await history.record_relationship_edit(conn, edited)
        await history.record_relationship_delete(edited)

        for _ in range(3):
            await history.undo()
        for _ in range(3):
            await history.redo()

        assert callbacks.calls == [
            ("on_connection_restore", edited),
            ("on_connection_update", conn),
            ("on_connection_delete", "c1"),
            ("on_connection_restore", conn),
            ("on_connection_update", edited),
            ("on_connection_delete", "c1"),
        ]

    @pytest.mark.asyncio
    async def test_node_position_change(self, history, callbacks):
        await history.record_node_position_change(
            {"a": (0, 0), "b": (5, 5)},
            {"a": (10, 0), "b": (15, 5)},
        )

        await history.undo()
        await history.redo()

        assert callbacks.calls == [
            ("on_node_position_change", {"a": NodePosition(x=0, y=0), "b": NodePosition(x=5, y=5)}),
            ("on_node_position_change", {"a": NodePosition(x=10, y=0), "b": NodePosition(x=15, y=5)}),
        ]

    @pytest.mark.asyncio
    async def test_plain_function_callbacks_are_accepted(self):
        """Callbacks may be plain functions instead of coroutines."""

        class SyncCallbacks(RecordingCallbacks):
            def on_node_position_change(self, positions):
                self.calls.append(("on_node_position_change", positions))

        callbacks = SyncCallbacks()
        history = GraphHistoryManager(callbacks)
        await history.record_node_position_change({"a": (0, 0)}, {"a": (1, 1)})

        assert await history.undo() is True
        assert callbacks.names() == ["on_node_position_change"]


class TestStateTransitions:
    @pytest.mark.asyncio
    async def test_undo_moves_entry_to_redo_stack(self, history):
        entry = await history.record_entity_create(make_entity("a"))

        assert await history.undo() is True

        assert not history.can_undo()
        assert [e.id for e in history.redo_stack()] == [entry.id]

    @pytest.mark.asyncio
    async def test_redo_moves_entry_back(self, history):
        entry = await history.record_entity_create(make_entity("a"))
        await history.undo()

        assert await history.redo() is True

        assert [e.id for e in history.undo_stack()] == [entry.id]
        assert not history.can_redo()

    @pytest.mark.asyncio
    async def test_record_discards_redo(self, history):
        await history.record_entity_create(make_entity("a"))
        await history.undo()
        assert history.can_redo()

        await history.record_entity_create(make_entity("b"))

        assert not history.can_redo()

    @pytest.mark.asyncio
    async def test_n_records_then_n_undos_empties_undo(self, history, callbacks):
        for i in range(5):
            await history.record_entity_create(make_entity(f"e{i}"))

        for _ in range(5):
            assert await history.undo() is True

        assert not history.can_undo()
        assert await history.undo() is False
        # Undone newest first
        assert [p for _, p in callbacks.calls] == ["e4", "e3", "e2", "e1", "e0"]


class TestConcreteScenario:
    """create(A), create(B), edit(A) then undo/undo/redo/record."""

    @pytest.mark.asyncio
    async def test_scenario(self, history, callbacks):
        a = make_entity("a", "A")
        b = make_entity("b", "B")
        p0 = make_entity("a", "A", role="analyst")
        p1 = make_entity("a", "A", role="lead")

        e1 = await history.record_entity_create(a)
        e2 = await history.record_entity_create(b)
        e3 = await history.record_entity_edit(p0, p1)

        await history.undo()
        assert callbacks.calls[-1] == ("on_entity_update", p0)
        assert history.can_undo()
        assert history.can_redo()
        assert history.redo_stack()[-1].id == e3.id

        await history.undo()
        assert callbacks.calls[-1] == ("on_entity_delete", "b")
        assert [e.id for e in history.undo_stack()] == [e1.id]

        assert history.last_redo_description() == e2.description
        await history.redo()
        assert callbacks.calls[-1] == ("on_entity_restore", b)
        assert history.redo_stack()[-1].id == e3.id

        await history.record_entity_create(make_entity("c", "C"))
        assert not history.can_redo()


class TestCallbackFailure:
    @pytest.mark.asyncio
    async def test_failed_undo_keeps_entry_on_undo_stack(self, history, callbacks):
        entry = await history.record_entity_create(make_entity("a"))
        callbacks.fail_methods["on_entity_delete"] = RuntimeError("disk full")

        with pytest.raises(CallbackFailure) as exc_info:
            await history.undo()

        assert exc_info.value.entry.id == entry.id
        assert exc_info.value.direction == "undo"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert [e.id for e in history.undo_stack()] == [entry.id]
        assert not history.can_redo()

    @pytest.mark.asyncio
    async def test_failed_redo_keeps_entry_on_redo_stack(self, history, callbacks):
        entry = await history.record_entity_create(make_entity("a"))
        await history.undo()
        callbacks.fail_methods["on_entity_restore"] = OSError("locked")

        with pytest.raises(CallbackFailure):
            await history.redo()

        assert [e.id for e in history.redo_stack()] == [entry.id]
        assert not history.can_undo()

    @pytest.mark.asyncio
    async def test_failure_does_not_notify(self, history, callbacks):
        await history.record_entity_create(make_entity("a"))
        notified = []
        history.add_listener(lambda: notified.append(1))
        callbacks.fail_methods["on_entity_delete"] = RuntimeError("nope")

        with pytest.raises(CallbackFailure):
            await history.undo()

        assert notified == []

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self, history, callbacks):
        await history.record_entity_create(make_entity("a"))
        callbacks.fail_methods["on_entity_delete"] = RuntimeError("transient")
        with pytest.raises(CallbackFailure):
            await history.undo()

        del callbacks.fail_methods["on_entity_delete"]

        assert await history.undo() is True
        assert history.can_redo()


class TestNotifications:
    @pytest.mark.asyncio
    async def test_fires_on_record_undo_redo_clear(self, history):
        notified = []
        history.add_listener(lambda: notified.append(1))

        await history.record_entity_create(make_entity("a"))
        await history.undo()
        await history.redo()
        await history.clear()

        assert len(notified) == 4

    @pytest.mark.asyncio
    async def test_noop_undo_does_not_fire(self, history):
        notified = []
        history.add_listener(lambda: notified.append(1))

        await history.undo()

        assert notified == []

    @pytest.mark.asyncio
    async def test_broken_listener_does_not_break_undo(self, history):
        def broken():
            raise RuntimeError("UI gone")

        await history.record_entity_create(make_entity("a"))
        history.add_listener(broken)

        assert await history.undo() is True
        assert history.can_redo()

    @pytest.mark.asyncio
    async def test_remove_listener(self, history):
        notified = []

        def listener():
            notified.append(1)

        history.add_listener(listener)
        history.remove_listener(listener)
        await history.record_entity_create(make_entity("a"))

        assert notified == []


class TestQueries:
    @pytest.mark.asyncio
    async def test_descriptions_and_sizes(self, history):
        await history.record_entity_create(make_entity("a", "Alice"))
        await history.record_relationship_create(make_connection("c1", "a", "a", "self"))
        await history.undo()

        assert history.last_undo_description() == "Created entity: Alice"
        assert history.last_redo_description() == "Created relationship: self"
        assert history.position == 1
        assert history.total_size == 2

    @pytest.mark.asyncio
    async def test_max_history_size(self, callbacks):
        history = GraphHistoryManager(callbacks, max_history_size=3)
        for i in range(5):
            await history.record_entity_create(make_entity(f"e{i}"))

        assert [e.entity.id for e in history.undo_stack()] == ["e2", "e3", "e4"]

    @pytest.mark.asyncio
    async def test_record_helpers_return_their_entry(self, history):
        conn = make_connection("c1", "a", "b")

        created = await history.record_entity_create(make_entity("a"))
        linked = await history.record_relationship_create(conn)
        moved = await history.record_node_position_change({"a": (0, 0)}, {"a": (1, 1)})

        assert isinstance(created, EntityCreateEntry)
        assert isinstance(linked, RelationshipCreateEntry)
        assert isinstance(moved, NodePositionChangeEntry)
        assert [e.id for e in history.undo_stack()] == [created.id, linked.id, moved.id]
