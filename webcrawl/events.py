from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List

from loguru import logger

PROGRESS = "progress"
PAGE_CRAWLED = "page_crawled"
ERROR = "error"
COMPLETE = "complete"

EVENTS = (PROGRESS, PAGE_CRAWLED, ERROR, COMPLETE)

Handler = Callable[..., Any]


class EventBus:
    """Publish/subscribe fan-out for crawl events.

    Any number of handlers may observe each event. Handlers can be plain
    functions or coroutine functions; a failing handler is logged and does
    not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {name: [] for name in EVENTS}

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        if event not in self._handlers:
            raise ValueError(f"Unknown event {event!r}; expected one of {', '.join(EVENTS)}")
        self._handlers[event].append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def emit(self, event: str, *args: Any) -> None:
        # Copy so handlers may unsubscribe while being called
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler {getattr(handler, '__name__', handler)!r} failed for event {event!r}")
