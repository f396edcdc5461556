"""Graphtrail - undo/redo edit history for node/edge graphs."""

from .callbacks import HistoryCallbacks
from .document import GraphDocument
from .editor import GraphEditor
from .entries import HistoryEntry, HistoryOperationType
from .errors import CallbackFailure, EntryNotFound, HistoryBusy, HistoryError, PartialSequenceFailure
from .manager import GraphHistoryManager
from .models import Connection, Entity, NodePosition

__version__ = "0.1.0"

__all__ = [
    "CallbackFailure",
    "Connection",
    "Entity",
    "EntryNotFound",
    "GraphDocument",
    "GraphEditor",
    "GraphHistoryManager",
    "HistoryBusy",
    "HistoryCallbacks",
    "HistoryEntry",
    "HistoryError",
    "HistoryOperationType",
    "NodePosition",
    "PartialSequenceFailure",
]
