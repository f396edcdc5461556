"""CLI for replaying graph edit scripts and inspecting their history."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .constants import ENV_BUSY_POLICY, ENV_MAX_HISTORY
from .editor import GraphEditor
from .errors import HistoryError
from .panel import HistoryPanel, render_history_panel
from .script import ScriptRunner, load_script
from .settings import load_settings

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log history operations to stderr")
@click.pass_context
def cli(ctx, verbose):
    """Graphtrail - graph editing with undo/redo history."""
    ctx.ensure_object(dict)
    _configure_logging(verbose)


def _render_graph(editor: GraphEditor) -> None:
    document = editor.document

    entities = Table(title=f"Entities ({len(document.entities)})")
    entities.add_column("ID", style="dim")
    entities.add_column("Type", style="cyan")
    entities.add_column("Label")
    entities.add_column("Position", style="dim")
    for entity in document.entities.values():
        pos = document.positions.get(entity.id)
        entities.add_row(
            entity.id[-8:],
            escape(entity.type),
            escape(entity.label),
            f"({pos.x:g}, {pos.y:g})" if pos else "-",
        )
    console.print(entities)

    connections = Table(title=f"Connections ({len(document.connections)})")
    connections.add_column("ID", style="dim")
    connections.add_column("From")
    connections.add_column("Relationship", style="cyan")
    connections.add_column("To")
    for conn in document.connections.values():
        connections.add_row(
            conn.id[-8:],
            escape(document.entities[conn.from_entity_id].label),
            escape(conn.display_label),
            escape(document.entities[conn.to_entity_id].label),
        )
    console.print(connections)


@cli.command()
@click.argument("script", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--no-panel", is_flag=True, help="Do not print the history panel")
@click.pass_context
def replay(ctx, script, as_json, no_panel):
    """Replay an edit script and show the resulting graph and history."""
    try:
        steps = load_script(script)
        editor = GraphEditor(settings=load_settings())
        runner = ScriptRunner(editor)
        asyncio.run(runner.run(steps))
    except (HistoryError, ValueError, KeyError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        ctx.exit(1)

    if as_json:
        output = editor.read_graph()
        output["steps"] = runner.log
        output["panel"] = [
            {
                "section": row.section,
                "id": row.entry_id,
                "type": row.kind.value if row.kind else None,
                "description": row.description,
                "timestamp": row.timestamp.isoformat() if row.timestamp else None,
                "action": row.action,
            }
            for row in HistoryPanel(editor.history).rows()
        ]
        click.echo(json.dumps(output, indent=2, default=str))
        return

    _render_graph(editor)
    if not no_panel:
        console.print()
        render_history_panel(editor.history, console)


@cli.command("settings")
@click.pass_context
def show_settings(ctx):
    """Show the effective history settings."""
    try:
        settings = load_settings()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        ctx.exit(1)

    max_size = settings.max_history_size
    console.print(f"max history: [bold]{max_size if max_size else 'unbounded'}[/bold] ({ENV_MAX_HISTORY})")
    console.print(f"busy policy: [bold]{settings.busy_policy}[/bold] ({ENV_BUSY_POLICY})")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
