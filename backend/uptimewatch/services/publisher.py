"""Update publisher - pushes monitor collection snapshots to subscribers.

Delivery is best effort: a subscriber that cannot take a snapshot is dropped
on the spot, without retries and without holding up the others. Slow
consumers are not waited on; a full queue counts as a failed delivery.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from ..config import settings
from ..schemas.monitor import Monitor
from .state_store import StateStore

logger = logging.getLogger(__name__)

Snapshot = List[Dict[str, Any]]

# Snapshots a queue subscriber may fall behind by before it is dropped
MAX_PENDING_SNAPSHOTS = 16


class SubscriberClosed(Exception):
    """Delivery attempted on a closed subscriber."""


def to_snapshot(monitors: List[Monitor]) -> Snapshot:
    """Wire form of a monitor collection."""
    return [m.to_dict() for m in monitors]


class Subscriber:
    """Something that can receive snapshots."""

    async def deliver(self, snapshot: Snapshot):
        raise NotImplementedError

    async def close(self):
        pass


class Subscription(Subscriber):
    """Queue-backed subscriber, consumed as an async iterator of snapshots."""

    def __init__(self, max_pending: int = MAX_PENDING_SNAPSHOTS):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def deliver(self, snapshot: Snapshot):
        if self._closed:
            raise SubscriberClosed()
        self._queue.put_nowait(snapshot)

    async def close(self):
        if self._closed:
            return
        self._closed = True
        # Wake up a consumer blocked in __anext__
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    def __aiter__(self):
        return self

    async def __anext__(self) -> Snapshot:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        snapshot = await self._queue.get()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot


class WebSocketSubscriber(Subscription):
    """Queues snapshots for a WebSocket; `pump()` sends them as JSON text.

    Delivery only enqueues, so a peer that stops reading fills its own queue
    and gets dropped instead of blocking the publisher.
    """

    def __init__(self, websocket: WebSocket, max_pending: int = MAX_PENDING_SNAPSHOTS):
        super().__init__(max_pending=max_pending)
        self.websocket = websocket

    async def pump(self):
        """Send queued snapshots until closed or the socket fails."""
        try:
            async for snapshot in self:
                await self.websocket.send_text(json.dumps(snapshot, default=str))
        except Exception as e:
            logger.debug(f"WebSocket send failed: {e!r}")
            await self.close()


class UpdatePublisher:
    """Broadcasts the full monitor collection to all current subscribers."""

    def __init__(self, store: StateStore, delivery_timeout: Optional[float] = None):
        self.store = store
        self.delivery_timeout = delivery_timeout or settings.publish_timeout_seconds
        self.subscribers: Set[Subscriber] = set()
        self._lock = asyncio.Lock()
        # Orders store reads with deliveries so no subscriber sees an older collection after a newer one
        self._publish_lock = asyncio.Lock()

    async def _initial_snapshot(self) -> Snapshot:
        return to_snapshot(await self.store.read())

    async def subscribe(self, max_pending: int = MAX_PENDING_SNAPSHOTS) -> Subscription:
        """New queue subscriber, primed with the current state."""
        subscription = Subscription(max_pending=max_pending)
        await self.attach(subscription, send_initial=True)
        return subscription

    async def attach(self, subscriber: Subscriber, send_initial: bool = False):
        """Register a subscriber for future publishes."""
        async with self._publish_lock:
            if send_initial:
                await self._deliver(subscriber, await self._initial_snapshot())
            await self._add(subscriber)

    async def _deliver(self, subscriber: Subscriber, snapshot: Snapshot):
        await asyncio.wait_for(subscriber.deliver(snapshot), self.delivery_timeout)

    async def _add(self, subscriber: Subscriber):
        async with self._lock:
            self.subscribers.add(subscriber)
        logger.info(f"Subscriber added. Total subscribers: {len(self.subscribers)}")

    async def unsubscribe(self, subscriber: Subscriber):
        """Remove a subscriber and close it."""
        async with self._lock:
            self.subscribers.discard(subscriber)
        await subscriber.close()
        logger.info(f"Subscriber removed. Total subscribers: {len(self.subscribers)}")

    async def publish(self, monitors: List[Monitor]):
        """Send the collection to every subscriber, dropping failed ones."""
        if not self.subscribers:
            return

        snapshot = to_snapshot(monitors)

        # Copy the set to avoid modification during iteration
        async with self._lock:
            subscribers = list(self.subscribers)

        failed = []
        for subscriber in subscribers:
            try:
                await self._deliver(subscriber, snapshot)
            except asyncio.TimeoutError:
                logger.warning(f"Subscriber did not accept snapshot within {self.delivery_timeout}s")
                failed.append(subscriber)
            except Exception as e:
                logger.debug(f"Failed to deliver to subscriber: {e!r}")
                failed.append(subscriber)

        if failed:
            async with self._lock:
                for subscriber in failed:
                    self.subscribers.discard(subscriber)
            for subscriber in failed:
                await subscriber.close()
            logger.info(f"Dropped {len(failed)} subscribers. Total subscribers: {len(self.subscribers)}")

    async def publish_latest(self) -> List[Monitor]:
        """Publish the collection as currently held by the store.

        Reading and delivering happen under one lock, so concurrent callers
        deliver in the order they read.
        """
        async with self._publish_lock:
            monitors = await self.store.read()
            await self.publish(monitors)
        return monitors

    @property
    def subscriber_count(self) -> int:
        """Return the number of active subscribers."""
        return len(self.subscribers)
