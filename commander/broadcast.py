# commander/broadcast.py
"""
Ops Commander Broadcast Hub
- Set of connected event-stream observers guarded by one asyncio.Lock
- publish() writes the same frame to every observer, in publish order
- A failed write drops that observer only
- Periodic comment-only heartbeat so proxies keep idle streams open

Observers are written to without waiting: each one has a bounded outbox that
its HTTP response drains. An outbox that is full (a client that stopped
reading) counts as a write failure. There is no replay and no buffering
beyond that outbox.
"""

from __future__ import annotations

import uuid
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional, Set

from commander.metrics import BROADCAST_MESSAGES, OBSERVERS_GAUGE
from commander.models import BroadcastMessage, MessageType
from commander.utils.time_utils import monotonic_ts

LOG = logging.getLogger("commander.broadcast")

HEARTBEAT_FRAME = ": heartbeat\n\n"
CONNECTED_FRAME = ": connected\n\n"


class ObserverGone(Exception):
    """Raised by Observer.write when the observer can no longer take frames."""


# -----------------------------------------------------------------------------
# Observer
# -----------------------------------------------------------------------------
class Observer:
    def __init__(self, queue_size: int = 100):
        self.id = uuid.uuid4().hex
        self.connected_at = monotonic_ts()
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.alive = True

    def __repr__(self):
        return f"<Observer id={self.id[:8]}>"

    def write(self, frame: str):
        if not self.alive:
            raise ObserverGone(self.id)
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            raise ObserverGone(self.id)

    def close(self):
        if not self.alive:
            return
        self.alive = False
        # wake the reader; make room for the end marker if needed
        if self.outbox.full():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        """Frames in write order until the observer is closed."""
        while True:
            frame = await self.outbox.get()
            if frame is None:
                return
            yield frame


# -----------------------------------------------------------------------------
# Hub
# -----------------------------------------------------------------------------
class BroadcastHub:
    def __init__(self, heartbeat_interval: float = 15.0, queue_size: int = 100):
        self.heartbeat_interval = heartbeat_interval
        self.queue_size = queue_size
        self._observers: Set[Observer] = set()
        self._lock = asyncio.Lock()
        self._running = False
        self._heartbeat_task: Optional[asyncio.Task] = None

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    # -------------------------
    # Registration
    # -------------------------
    async def subscribe(self) -> Observer:
        observer = Observer(queue_size=self.queue_size)
        observer.write(CONNECTED_FRAME)
        async with self._lock:
            self._observers.add(observer)
            OBSERVERS_GAUGE.set(len(self._observers))
        LOG.info("Observer connected %s (total=%d)", observer, len(self._observers))
        return observer

    async def unsubscribe(self, observer: Observer):
        self.discard(observer)

    def discard(self, observer: Observer):
        """
        Remove without taking the lock; callable from a cancelled stream's
        teardown. _fanout never yields while iterating the set.
        """
        removed = observer in self._observers
        self._observers.discard(observer)
        OBSERVERS_GAUGE.set(len(self._observers))
        observer.close()
        if removed:
            LOG.info("Observer disconnected %s after %.1fs (total=%d)",
                     observer, monotonic_ts() - observer.connected_at, len(self._observers))

    # -------------------------
    # Publish
    # -------------------------
    async def publish(self, message: BroadcastMessage) -> int:
        """Deliver to every connected observer; returns how many took the frame."""
        sent = await self._fanout(message.to_frame())
        BROADCAST_MESSAGES.labels(type=message.type.value).inc()
        return sent

    async def broadcast(self, type_: MessageType, payload: Dict[str, Any]) -> int:
        return await self.publish(BroadcastMessage(type_, dict(payload)))

    async def heartbeat(self) -> int:
        return await self._fanout(HEARTBEAT_FRAME)

    async def _fanout(self, frame: str) -> int:
        sent = 0
        async with self._lock:
            stale = []
            for observer in self._observers:
                try:
                    observer.write(frame)
                    sent += 1
                except ObserverGone:
                    stale.append(observer)
            for observer in stale:
                self._observers.discard(observer)
                observer.close()
                LOG.info("Dropped unwritable observer %s", observer)
            if stale:
                OBSERVERS_GAUGE.set(len(self._observers))
        return sent

    # -------------------------
    # Heartbeat loop
    # -------------------------
    async def _heartbeat_loop(self):
        LOG.info("Broadcast heartbeat loop started (interval=%ss)", self.heartbeat_interval)
        try:
            while self._running:
                await asyncio.sleep(self.heartbeat_interval)
                await self.heartbeat()
        finally:
            LOG.info("Broadcast heartbeat loop stopped")

    # -------------------------
    # Lifecycle
    # -------------------------
    async def start(self):
        if self._running:
            return
        self._running = True
        self._heartbeat_task = asyncio.get_running_loop().create_task(
            self._heartbeat_loop(), name="commander-heartbeat"
        )
        LOG.info("BroadcastHub started")

    async def stop(self):
        if not self._running:
            return
        self._running = False
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
        async with self._lock:
            for observer in self._observers:
                observer.close()
            self._observers.clear()
            OBSERVERS_GAUGE.set(0)
        LOG.info("BroadcastHub stopped")
