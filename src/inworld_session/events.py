"""
Event hooks — ordered subscriber lists.

Handlers run in registration order. A handler that raises is logged and the
remaining handlers still run: the session must survive a faulty subscriber.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventHook:
    def __init__(self, name: str):
        self.name = name
        self._handlers: list[Callable[..., Any]] = []

    def add(self, handler: Callable[..., Any]) -> Callable[[], None]:
        """Add a handler. Returns a cleanup function."""
        self._handlers.append(handler)

        def remove() -> None:
            self.remove(handler)
        return remove

    def remove(self, handler: Callable[..., Any]) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def fire(self, *args: Any) -> None:
        for handler in list(self._handlers):
            try:
                handler(*args)
            except Exception:
                logger.exception(f"Handler for {self.name} failed")

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"EventHook({self.name!r}, handlers={len(self._handlers)})"
