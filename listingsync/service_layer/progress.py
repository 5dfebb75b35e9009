# listingsync/service_layer/progress.py
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from ..domain.types import TOTAL_STEPS, ProgressCallback, ProgressEvent

log = logging.getLogger(__name__)


class BroadcastRegistry:
    """
    Fan-out of JSON-able payloads to live listeners (SSE streams).

    Each subscriber owns an asyncio.Queue bound to the loop it subscribed from.
    publish() never blocks: a full queue drops the payload for that listener only.
    """

    def __init__(self, name: str, maxsize: int = 256) -> None:
        self.name = name
        self.maxsize = maxsize
        self._lock = threading.Lock()
        self._subs: dict[asyncio.Queue, asyncio.AbstractEventLoop] = {}

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        loop = asyncio.get_running_loop()
        with self._lock:
            self._subs[q] = loop
        log.debug("%s: subscriber added (%d total)", self.name, self.subscriber_count)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        with self._lock:
            self._subs.pop(q, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, payload: Any) -> int:
        with self._lock:
            targets = list(self._subs.items())

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        delivered = 0
        for q, loop in targets:
            if loop is current:
                if self._put(q, payload):
                    delivered += 1
            elif loop.is_closed():
                self.unsubscribe(q)
            else:
                loop.call_soon_threadsafe(self._put, q, payload)
                delivered += 1
        return delivered

    def _put(self, q: asyncio.Queue, payload: Any) -> bool:
        try:
            q.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            log.warning("%s: subscriber queue full, dropping message", self.name)
            return False


class ProgressTracker:
    """Step counter for one run. Callback failures are logged, never raised."""

    def __init__(self, on_progress: ProgressCallback | None = None, total: int = TOTAL_STEPS) -> None:
        self.on_progress = on_progress
        self.total = total
        self.step = 0
        self.events: list[ProgressEvent] = []

    def advance(self, message: str) -> ProgressEvent:
        self.step += 1
        event = ProgressEvent(step=self.step, total=self.total, message=message)
        self.events.append(event)
        log.info("Progress %d/%d: %s", event.step, event.total, message)
        if self.on_progress is not None:
            try:
                self.on_progress(event)
            except Exception:
                log.exception("progress callback failed at step %d", event.step)
        return event


def broadcast_progress(registry: BroadcastRegistry, source: str) -> ProgressCallback:
    def _emit(event: ProgressEvent) -> None:
        registry.publish({"source": source, **event.as_dict()})

    return _emit
