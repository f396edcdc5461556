"""Edit scripts: replay a JSON list of edits against a GraphEditor.

A script is a list of steps. Entities and connections are referred to by
script-local ``ref`` names; any recording step may carry a ``mark`` that
``undo_to`` / ``redo_to`` can jump to later::

    [
      {"op": "create_entity", "ref": "alice", "label": "Alice", "type": "Person"},
      {"op": "create_entity", "ref": "acme", "label": "ACME", "type": "Company"},
      {"op": "create_connection", "ref": "job", "from": "alice", "to": "acme",
       "relationship": "works_for", "mark": "hired"},
      {"op": "move", "positions": {"alice": [10, 20], "acme": [200, 20]}},
      {"op": "undo_to", "mark": "hired"},
      {"op": "redo"}
    ]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .editor import GraphEditor

logger = logging.getLogger(__name__)


class ScriptError(ValueError):
    """A script step is malformed or refers to something unknown."""

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(f"Step {index}: {message}")


def load_script(path: Path) -> list[dict]:
    """Read a script file.

    Raises:
        ValueError: If the file is not a JSON list of objects
    """
    try:
        steps = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(steps, list) or not all(isinstance(s, dict) for s in steps):
        raise ValueError(f"{path} must contain a JSON list of step objects")
    return steps


class ScriptRunner:
    """Runs script steps one at a time against an editor."""

    def __init__(self, editor: GraphEditor):
        self.editor = editor
        self.refs: dict[str, str] = {}  # script ref -> entity/connection id
        self.marks: dict[str, str] = {}  # mark name -> history entry id
        self.log: list[dict] = []  # one result per step

    def _resolve(self, index: int, ref: Any) -> str:
        if not isinstance(ref, str):
            raise ScriptError(index, f"expected a ref name, got {ref!r}")
        # Unknown refs are passed through so raw ids work too
        return self.refs.get(ref, ref)

    def _mark(self, index: int, name: str) -> str:
        try:
            return self.marks[name]
        except KeyError:
            raise ScriptError(index, f"unknown mark {name!r}") from None

    async def run(self, steps: list[dict]) -> list[dict]:
        for index, step in enumerate(steps):
            result = await self.run_step(index, step)
            self.log.append(result)
        return self.log

    async def run_step(self, index: int, step: dict) -> dict:
        op = step.get("op")
        editor = self.editor
        history = editor.history
        top_before = history.undo_stack()[-1].id if history.can_undo() else None
        result: dict[str, Any] = {"step": index, "op": op}

        if op == "create_entity":
            if "label" not in step:
                raise ScriptError(index, "create_entity needs a label")
            entity = await editor.create_entity(
                step["label"],
                entity_type=step.get("type"),
                properties=step.get("properties"),
                position=tuple(step["position"]) if "position" in step else None,
            )
            self.refs[step.get("ref", entity.id)] = entity.id
            result["id"] = entity.id

        elif op == "update_entity":
            entity = await editor.update_entity(
                self._resolve(index, step.get("ref")),
                label=step.get("label"),
                entity_type=step.get("type"),
                properties=step.get("properties"),
            )
            result["id"] = entity.id

        elif op == "delete_entity":
            refs = step.get("refs") or [step.get("ref")]
            deleted = await editor.delete_entities([self._resolve(index, r) for r in refs])
            result["deleted"] = [e.id for e in deleted]

        elif op == "create_connection":
            for key in ("from", "to", "relationship"):
                if key not in step:
                    raise ScriptError(index, f"create_connection needs '{key}'")
            connection = await editor.create_connection(
                self._resolve(index, step["from"]),
                self._resolve(index, step["to"]),
                step["relationship"],
                label=step.get("label"),
                properties=step.get("properties"),
            )
            self.refs[step.get("ref", connection.id)] = connection.id
            result["id"] = connection.id

        elif op == "update_connection":
            connection = await editor.update_connection(
                self._resolve(index, step.get("ref")),
                relationship=step.get("relationship"),
                label=step.get("label"),
                properties=step.get("properties"),
            )
            result["id"] = connection.id

        elif op == "delete_connection":
            connection = await editor.delete_connection(self._resolve(index, step.get("ref")))
            result["deleted"] = [connection.id]

        elif op == "move":
            positions = step.get("positions")
            if not isinstance(positions, dict):
                raise ScriptError(index, "move needs a 'positions' object")
            result["moved"] = await editor.move_nodes(
                {self._resolve(index, ref): pos for ref, pos in positions.items()}
            )

        elif op == "undo":
            result["changed"] = await history.undo()

        elif op == "redo":
            result["changed"] = await history.redo()

        elif op == "undo_to":
            result["steps"] = await history.undo_to_entry(self._mark(index, step.get("mark")))

        elif op == "redo_to":
            result["steps"] = await history.redo_to_entry(self._mark(index, step.get("mark")))

        elif op == "clear_history":
            await history.clear()

        else:
            raise ScriptError(index, f"unknown op {op!r}")

        # A step that recorded something can be marked for later jumps
        if "mark" in step and op not in ("undo_to", "redo_to"):
            top_after = history.undo_stack()[-1].id if history.can_undo() else None
            if top_after is None or top_after == top_before:
                raise ScriptError(index, f"step recorded nothing to mark as {step['mark']!r}")
            self.marks[step["mark"]] = top_after

        logger.debug(f"Step {index} ({op}) done")
        return result
