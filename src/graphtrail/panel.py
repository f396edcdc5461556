"""History panel: the rows a "jump to here" history list shows.

Layout, top to bottom:
- redo stack, newest first (dimmed, clicking redoes up to that row)
- the current-state marker
- undo stack, newest first (clicking undoes down to and including that row)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .entries import HistoryEntry, HistoryOperationType
from .manager import GraphHistoryManager
from .timeutil import format_entry_time

HISTORY_ICONS: dict[HistoryOperationType, str] = {
    HistoryOperationType.ENTITY_CREATE: "➕",
    HistoryOperationType.ENTITY_DELETE: "🗑",
    HistoryOperationType.ENTITY_EDIT: "✏️",
    HistoryOperationType.RELATIONSHIP_CREATE: "🔗",
    HistoryOperationType.RELATIONSHIP_DELETE: "✂️",
    HistoryOperationType.RELATIONSHIP_EDIT: "✎",
    HistoryOperationType.NODE_POSITION_CHANGE: "↔️",
    HistoryOperationType.BATCH_OPERATION: "📦",
}

Section = Literal["redo", "current", "undo"]


@dataclass(frozen=True)
class PanelRow:
    """One line of the history panel."""

    section: Section
    entry_id: str | None = None
    kind: HistoryOperationType | None = None
    description: str = ""
    timestamp: datetime | None = None

    @property
    def icon(self) -> str:
        if self.kind is None:
            return "▶"
        return HISTORY_ICONS.get(self.kind, "•")

    @property
    def action(self) -> str | None:
        """What clicking the row does: "undo_to", "redo_to" or nothing."""
        if self.section == "undo":
            return "undo_to"
        if self.section == "redo":
            return "redo_to"
        return None


def _row(section: Section, entry: HistoryEntry) -> PanelRow:
    return PanelRow(
        section=section,
        entry_id=entry.id,
        kind=entry.kind,
        description=entry.description,
        timestamp=entry.timestamp,
    )


class HistoryPanel:
    """Read model over a history manager, plus the click action."""

    def __init__(self, history: GraphHistoryManager):
        self.history = history

    def rows(self) -> list[PanelRow]:
        """Panel rows in display order. Empty when there is no history."""
        undo_stack = self.history.undo_stack()
        redo_stack = self.history.redo_stack()
        if not undo_stack and not redo_stack:
            return []

        rows = [_row("redo", e) for e in reversed(redo_stack)]
        rows.append(PanelRow(section="current", description="current state"))
        rows.extend(_row("undo", e) for e in reversed(undo_stack))
        return rows

    async def activate(self, row: PanelRow) -> int:
        """Jump to the clicked row. Returns the number of steps taken."""
        if row.action == "undo_to":
            return await self.history.undo_to_entry(row.entry_id)
        if row.action == "redo_to":
            return await self.history.redo_to_entry(row.entry_id)
        return 0


def render_history_panel(
    history: GraphHistoryManager,
    console: Console | None = None,
    now: datetime | None = None,
) -> None:
    """Print the history panel as a rich table."""
    console = console or Console()
    rows = HistoryPanel(history).rows()
    if not rows:
        console.print("[dim]No history yet[/dim]")
        return

    table = Table(title="Edit history")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Action")
    table.add_column("When", style="dim")
    table.add_column("ID", style="dim")

    for index, row in enumerate(rows):
        if row.section == "current":
            table.add_row("", "[bold reverse] ▶ current state [/bold reverse]", "", "")
            continue
        text = f"{row.icon} {escape(row.description)}"
        if row.section == "redo":
            text = f"[dim]{text}[/dim]"
        table.add_row(
            str(index),
            text,
            format_entry_time(row.timestamp, now) if row.timestamp else "",
            row.entry_id[-8:] if row.entry_id else "",
        )

    console.print(table)
