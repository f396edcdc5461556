"""Change notification for history listeners.

UI code subscribes here instead of polling the history manager.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ListenerRegistry:
    """Zero-argument listeners fired after every ledger mutation."""

    def __init__(self) -> None:
        # dict keeps registration order and ignores duplicates
        self._listeners: dict[Listener, None] = {}

    def add_listener(self, listener: Listener) -> None:
        self._listeners[listener] = None

    def remove_listener(self, listener: Listener) -> None:
        """Unsubscribe a listener. Unknown listeners are ignored."""
        self._listeners.pop(listener, None)

    def __len__(self) -> int:
        return len(self._listeners)

    def notify(self) -> None:
        """Call every listener.

        A failing listener is logged and skipped; it never stops the
        remaining listeners or the operation that triggered the notification.
        """
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception(f"History listener {listener!r} failed")
