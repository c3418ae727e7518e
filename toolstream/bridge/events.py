"""Fan-out of run events to SSE subscribers."""

from __future__ import annotations

import asyncio
import json
import logging

from toolstream.runners.models import Event

log = logging.getLogger("toolstream.bridge")


def format_sse(event: str, data: dict[str, object]) -> bytes:
    """One SSE message: `event:` name and single-line JSON `data:`."""
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n".encode("utf-8")


class EventBroadcaster:
    """Copies every published event to each subscriber's queue.

    `publish` never blocks, so it can be used directly as a run's event sink.
    A subscriber that falls `max_backlog` events behind is dropped.
    """

    def __init__(self, max_backlog: int = 10_000):
        self.max_backlog = max_backlog
        self._subscribers: set[asyncio.Queue[Event | None]] = set()

    def subscribe(self) -> asyncio.Queue[Event | None]:
        queue: asyncio.Queue[Event | None] = asyncio.Queue(maxsize=self.max_backlog)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event | None]) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: Event) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                log.warning("Dropping slow event subscriber")
                self._subscribers.discard(queue)
                self._close_queue(queue)

    def close(self) -> None:
        """End every subscription."""
        for queue in list(self._subscribers):
            self._close_queue(queue)
        self._subscribers.clear()

    @staticmethod
    def _close_queue(queue: asyncio.Queue[Event | None]) -> None:
        # Make room for the end-of-stream marker.
        while queue.full():
            queue.get_nowait()
        queue.put_nowait(None)
