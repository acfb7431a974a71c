"""
    In-process publish/subscribe for the live photo wall.

    Each subscriber owns a bounded buffer. ``publish`` only enqueues, so a
    slow connection never holds up the uploader or the other subscribers;
    a subscriber whose buffer is full is dropped and has to reconnect and
    reload the catalog. Events are never replayed.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
from uuid import uuid4
import asyncio
import logging
import threading
import time

log = logging.getLogger(__name__)

HELLO = "hello"

@dataclass(frozen=True)
class BroadcastEvent:
    name: str
    payload: Any


def epoch_ms() -> int:
    return int(time.time() * 1000)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscriber:
    """One live connection waiting for broadcast events."""

    def __init__(self, buffer_size: int, on_drop: Optional[Callable[["Subscriber"], None]] = None):
        self.id = uuid4().hex
        self.registered_at = datetime.now(timezone.utc)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)
        self._loop = _running_loop()
        self._lock = threading.Lock()
        self._on_drop = on_drop
        self._closed = False
        self._wakeup = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    def offer(self, event: BroadcastEvent) -> bool:
        """Buffers an event without blocking; False if the subscriber is gone."""
        if self._closed:
            return False
        if self._loop is not None and _running_loop() is not self._loop:
            try:
                self._loop.call_soon_threadsafe(self._enqueue, event)
            except RuntimeError:
                # loop already closed
                self.close()
                return False
            return True
        return self._enqueue(event)

    def close(self):
        if self._loop is not None and _running_loop() is not self._loop:
            try:
                self._loop.call_soon_threadsafe(self._mark_closed)
                return
            except RuntimeError:
                pass
        self._mark_closed()

    async def events(self, keepalive: Optional[float] = None) -> AsyncIterator[Optional[BroadcastEvent]]:
        """
            Yields buffered events until the subscriber is closed.

            Yields ``None`` whenever ``keepalive`` seconds pass without an
            event, so the transport can write a heartbeat.
        """
        while not self._closed:
            try:
                if keepalive is None:
                    event = await self._next()
                else:
                    event = await asyncio.wait_for(self._next(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield None
                continue
            if event is None:
                break
            yield event

    async def _next(self) -> Optional[BroadcastEvent]:
        while True:
            if self._closed:
                return None
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._wakeup.clear()
            await self._wakeup.wait()

    def _enqueue(self, event: BroadcastEvent) -> bool:
        with self._lock:
            if self._closed:
                return False
            try:
                self._queue.put_nowait(event)
            except asyncio.QueueFull:
                overflowed = True
            else:
                overflowed = False
        if overflowed:
            log.warning("Subscriber %s buffer full, dropping it", self.id)
            self._mark_closed()
            if self._on_drop is not None:
                self._on_drop(self)
            return False
        self._wakeup.set()
        return True

    def _mark_closed(self):
        self._closed = True
        self._wakeup.set()


class SubscriberRegistry:
    """Thread-safe set of live subscribers, in registration order."""

    def __init__(self):
        self._subscribers: Dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    def add(self, subscriber: Subscriber):
        with self._lock:
            self._subscribers[subscriber.id] = subscriber

    def discard(self, subscriber: Subscriber) -> bool:
        with self._lock:
            return self._subscribers.pop(subscriber.id, None) is not None

    def snapshot(self) -> List[Subscriber]:
        with self._lock:
            return list(self._subscribers.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)


class BroadcastBus:
    """Fan-out of named events to every subscriber registered at publish time."""

    def __init__(self, buffer_size: int = 32):
        self.buffer_size = buffer_size
        self._registry = SubscriberRegistry()

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)

    def subscribe(self) -> Subscriber:
        subscriber = Subscriber(self.buffer_size, on_drop=self._drop)
        # buffered before registration so that it is always the first event
        subscriber.offer(BroadcastEvent(HELLO, {"ok": True, "ts": epoch_ms()}))
        self._registry.add(subscriber)
        log.info("Subscriber %s connected (%d live)", subscriber.id, len(self._registry))
        return subscriber

    def unsubscribe(self, subscriber: Subscriber):
        subscriber.close()
        if self._registry.discard(subscriber):
            log.info("Subscriber %s disconnected (%d live)", subscriber.id, len(self._registry))

    def publish(self, name: str, payload: Any) -> int:
        """Offers the event to every current subscriber; returns how many took it."""
        event = BroadcastEvent(name, payload)
        delivered = 0
        for subscriber in self._registry.snapshot():
            if subscriber.offer(event):
                delivered += 1
            else:
                self._drop(subscriber)
        log.debug("Published %s to %d subscribers", name, delivered)
        return delivered

    def close(self):
        for subscriber in self._registry.snapshot():
            self.unsubscribe(subscriber)

    def _drop(self, subscriber: Subscriber):
        subscriber.close()
        if self._registry.discard(subscriber):
            log.info("Dropped subscriber %s", subscriber.id)
