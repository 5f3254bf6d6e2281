"""
compound_manager/events.py - Notification sink.

The engine announces state changes through any object with an
emit(event, payload) method. EventBus is the in-process implementation:
handlers are registered per event name and called synchronously in
registration order. Emission is fire-and-forget; a failing handler is
logged and never interrupts the engine or the remaining handlers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

EVENT_COLLAPSE = "collapse"
EVENT_EXPAND = "expand"
EVENT_LAYOUT_RESET_REQUIRED = "layoutResetRequired"

Handler = Callable[[dict[str, Any]], None]


@runtime_checkable
class NotificationSink(Protocol):
    def emit(self, event: str, payload: dict[str, Any]) -> None: ...


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def register(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def unregister(self, event: str, handler: Handler) -> None:
        if handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception:
                logger.exception("Error in '%s' handler %r", event, handler)
