"""Event bus carrying ``ClientEvent`` notifications out of the client.

The client publishes truncation warnings, retries, errors and stream
lifecycle events here.  Subscribers observe them; nothing they do can change
what the client returns or raises.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import Counter, deque
from typing import Any, Callable

from resilient_llm.types import ClientEvent, EventType

_logger = logging.getLogger(__name__)

# Subscribing with this key receives every event type
WILDCARD = "*"

# Most recent events kept for inspection
HISTORY_SIZE = 200

Handler = Callable[[ClientEvent], Any]


class EventBus:
    """Async fan-out of client events to sync or async handlers.

    Handlers for one event run concurrently.  A handler that raises is
    logged and skipped; ``publish()`` itself never raises because of one.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._history: deque[ClientEvent] = deque(maxlen=HISTORY_SIZE)
        self._counts: Counter[str] = Counter()

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Register *handler* for *event_type*, or for everything with ``"*"``."""
        self._handlers.setdefault(_key(event_type), []).append(handler)

    async def publish(
        self,
        event_type: EventType,
        data: dict[str, Any] | None = None,
    ) -> ClientEvent:
        """Wrap *data* in a ClientEvent, deliver it and return it."""
        event = ClientEvent(type=event_type, data=dict(data or {}))
        await self.emit(event)
        return event

    async def emit(self, event: ClientEvent) -> None:
        key = _key(event.type)
        self._history.append(event)
        self._counts[key] += 1

        handlers = self._handlers.get(key, []) + self._handlers.get(WILDCARD, [])
        if handlers:
            await asyncio.gather(*(_deliver(h, event) for h in handlers))

    def count(self, event_type: EventType | str) -> int:
        """How many events of *event_type* were published on this bus."""
        return self._counts[_key(event_type)]

    @property
    def history(self) -> list[ClientEvent]:
        """The most recent events, oldest first."""
        return list(self._history)


def _key(event_type: EventType | str) -> str:
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type)


async def _deliver(handler: Handler, event: ClientEvent) -> None:
    try:
        result = handler(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        _logger.exception(
            "Event handler %s failed on %s",
            getattr(handler, "__name__", handler),
            event.type.value,
        )
