"""MCP server exposing one graph editing session with undo/redo."""

import asyncio
import json
import logging
import sys
import traceback

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .editor import GraphEditor
from .settings import load_settings
from .timeutil import format_relative_time

# --- Logging setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger("graphtrail")

# --- Initialize session ---
# History lives only as long as this process
editor = GraphEditor(settings=load_settings())

server = Server("graphtrail")

_PROPERTIES_SCHEMA = {
    "type": "object",
    "description": "Property values; set a key to null to remove it",
}


def _text(payload) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def _history_status() -> dict:
    history = editor.history
    return {
        "can_undo": history.can_undo(),
        "can_redo": history.can_redo(),
        "last_undo": history.last_undo_description(),
        "last_redo": history.last_redo_description(),
    }


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available MCP tools."""
    return [
        Tool(
            name="create_entity",
            description="Create an entity (graph node). Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "label": {"type": "string", "description": "Display name"},
                    "type": {
                        "type": "string",
                        "description": "Entity type, e.g. Person, Company, Address",
                    },
                    "properties": _PROPERTIES_SCHEMA,
                    "x": {"type": "number"},
                    "y": {"type": "number"},
                },
                "required": ["label"],
            },
        ),
        Tool(
            name="update_entity",
            description="Edit an entity's label, type or properties. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "label": {"type": "string"},
                    "type": {"type": "string"},
                    "properties": _PROPERTIES_SCHEMA,
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="delete_entity",
            description=(
                "Delete one or more entities and all their connections. "
                "Undone as a single step."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "ids": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["ids"],
            },
        ),
        Tool(
            name="create_connection",
            description="Create a directed, labeled connection between two entities. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "from": {"type": "string", "description": "Source entity ID"},
                    "to": {"type": "string", "description": "Target entity ID"},
                    "relationship": {
                        "type": "string",
                        "description": "Verb phrase, e.g. works_for, owns",
                    },
                    "label": {"type": "string"},
                    "properties": _PROPERTIES_SCHEMA,
                },
                "required": ["from", "to", "relationship"],
            },
        ),
        Tool(
            name="update_connection",
            description="Edit a connection's relationship, label or properties. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "relationship": {"type": "string"},
                    "label": {"type": "string"},
                    "properties": _PROPERTIES_SCHEMA,
                },
                "required": ["id"],
            },
        ),
        Tool(
            name="delete_connection",
            description="Delete a connection. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string"}},
                "required": ["id"],
            },
        ),
        Tool(
            name="move_nodes",
            description="Move one or more nodes. Recorded as a single undo step.",
            inputSchema={
                "type": "object",
                "properties": {
                    "positions": {
                        "type": "object",
                        "description": "Map of entity ID to {x, y}",
                        "additionalProperties": {
                            "type": "object",
                            "properties": {"x": {"type": "number"}, "y": {"type": "number"}},
                            "required": ["x", "y"],
                        },
                    },
                },
                "required": ["positions"],
            },
        ),
        Tool(
            name="read_graph",
            description="Return all entities, connections, positions and undo/redo status.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="undo",
            description="Undo the most recent edit.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="redo",
            description="Redo the most recently undone edit.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="undo_to_entry",
            description=(
                "Undo every edit back to and including the given history entry "
                "(an ID from get_history's undo list)."
            ),
            inputSchema={
                "type": "object",
                "properties": {"entry_id": {"type": "string"}},
                "required": ["entry_id"],
            },
        ),
        Tool(
            name="redo_to_entry",
            description=(
                "Redo every undone edit up to and including the given history entry "
                "(an ID from get_history's redo list)."
            ),
            inputSchema={
                "type": "object",
                "properties": {"entry_id": {"type": "string"}},
                "required": ["entry_id"],
            },
        ),
        Tool(
            name="get_history",
            description="List undo and redo entries, newest first.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="clear_history",
            description="Forget all undo/redo history. The graph itself is unchanged.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def _entry_rows(entries) -> list[dict]:
    rows = []
    for entry in reversed(entries):
        row = entry.to_summary()
        row["age"] = format_relative_time(entry.timestamp)
        rows.append(row)
    return rows


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    logger.info(f"Tool call: {name}")
    logger.debug(f"Arguments: {arguments}")
    history = editor.history
    try:
        if name == "create_entity":
            position = None
            if "x" in arguments and "y" in arguments:
                position = (arguments["x"], arguments["y"])
            entity = await editor.create_entity(
                arguments["label"],
                entity_type=arguments.get("type"),
                properties=arguments.get("properties"),
                position=position,
            )
            return _text(entity.model_dump(mode="json"))

        elif name == "update_entity":
            entity = await editor.update_entity(
                arguments["id"],
                label=arguments.get("label"),
                entity_type=arguments.get("type"),
                properties=arguments.get("properties"),
            )
            return _text(entity.model_dump(mode="json"))

        elif name == "delete_entity":
            deleted = await editor.delete_entities(arguments["ids"])
            return [TextContent(type="text", text=f"Deleted {len(deleted)} entities")]

        elif name == "create_connection":
            connection = await editor.create_connection(
                arguments["from"],
                arguments["to"],
                arguments["relationship"],
                label=arguments.get("label"),
                properties=arguments.get("properties"),
            )
            return _text(connection.model_dump(mode="json"))

        elif name == "update_connection":
            connection = await editor.update_connection(
                arguments["id"],
                relationship=arguments.get("relationship"),
                label=arguments.get("label"),
                properties=arguments.get("properties"),
            )
            return _text(connection.model_dump(mode="json"))

        elif name == "delete_connection":
            await editor.delete_connection(arguments["id"])
            return [TextContent(type="text", text="Deleted 1 connection")]

        elif name == "move_nodes":
            moved = await editor.move_nodes(arguments["positions"])
            return [TextContent(type="text", text=f"Moved {moved} node(s)")]

        elif name == "read_graph":
            return _text(editor.read_graph())

        elif name == "undo":
            description = history.last_undo_description()
            changed = await history.undo()
            return _text({"undone": description if changed else None, **_history_status()})

        elif name == "redo":
            description = history.last_redo_description()
            changed = await history.redo()
            return _text({"redone": description if changed else None, **_history_status()})

        elif name == "undo_to_entry":
            steps = await history.undo_to_entry(arguments["entry_id"])
            return _text({"steps": steps, **_history_status()})

        elif name == "redo_to_entry":
            steps = await history.redo_to_entry(arguments["entry_id"])
            return _text({"steps": steps, **_history_status()})

        elif name == "get_history":
            return _text({
                "redo": _entry_rows(history.redo_stack()),
                "undo": _entry_rows(history.undo_stack()),
                **_history_status(),
            })

        elif name == "clear_history":
            await history.clear()
            return [TextContent(type="text", text="History cleared")]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except Exception as e:
        logger.error(f"Tool {name} failed: {e}")
        logger.error(traceback.format_exc())
        return [TextContent(type="text", text=f"Error: {e}")]


def main():
    """Entry point for the MCP server."""
    logger.info(
        f"Graphtrail MCP Server starting (max_history={editor.settings.max_history_size}, "
        f"busy_policy={editor.settings.busy_policy})"
    )
    try:
        asyncio.run(_run_server())
    except Exception as e:
        logger.error(f"Server crashed: {e}")
        logger.error(traceback.format_exc())
        raise


async def _run_server():
    """Run the MCP server."""
    async with stdio_server() as (read, write):
        await server.run(read, write, server.create_initialization_options())


if __name__ == "__main__":
    main()
