# commander/watcher.py
"""
Lifecycle Watcher
-----------------
Subscribes to pod changes for the fleet's selector and republishes each one
as a K8S_EVENT on the broadcast hub.

Two states. WATCHING holds the subscription; whenever it ends (error,
server-side timeout or clean close) the watcher goes to RECONNECTING, waits
a fixed backoff and subscribes again from "now". Events that happen during
the gap are not replayed.
"""

from __future__ import annotations

import enum
import asyncio
import logging
from typing import Any, Dict, Optional

from commander.errors import OrchestrationError, WatchSubscriptionEnded
from commander.metrics import WATCH_RESTARTS
from commander.models import LifecycleEvent

LOG = logging.getLogger("commander.watcher")

_SKIPPED_EVENT_TYPES = ("BOOKMARK",)


class WatcherState(str, enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


def normalize_event(raw: Dict[str, Any]) -> Optional[LifecycleEvent]:
    """Turn a raw watch event into a LifecycleEvent; None for events observers don't care about."""
    kind = raw.get("type")
    if kind in _SKIPPED_EVENT_TYPES:
        return None
    if kind == "ERROR":
        raise OrchestrationError(f"watch error event: {raw.get('raw_object') or raw.get('object')}")
    pod = raw.get("object")
    if pod is None or getattr(pod, "metadata", None) is None:
        return None
    return LifecycleEvent.from_watch(kind, pod)


class LifecycleWatcher:
    def __init__(self, orchestrator, hub, label_selector: str, backoff: float = 5.0, watch_timeout: int = 300):
        self.orchestrator = orchestrator
        self.hub = hub
        self.label_selector = label_selector
        self.backoff = backoff
        self.watch_timeout = watch_timeout
        self.state = WatcherState.IDLE
        self.restarts = 0
        self.events_seen = 0
        self._task: Optional[asyncio.Task] = None

    async def run(self):
        """Watch forever; only cancellation ends this coroutine."""
        while True:
            self.state = WatcherState.WATCHING
            try:
                await self._watch_once()
                raise WatchSubscriptionEnded("stream closed by server")
            except asyncio.CancelledError:
                raise
            except WatchSubscriptionEnded as e:
                LOG.info("Pod watch ended (%s); resubscribing in %ss", e, self.backoff)
            except Exception as e:
                LOG.warning("Pod watch failed (%s); resubscribing in %ss", e, self.backoff)
            self.state = WatcherState.RECONNECTING
            self.restarts += 1
            WATCH_RESTARTS.inc()
            await asyncio.sleep(self.backoff)

    async def _watch_once(self):
        LOG.info("Watching pods selector=%s", self.label_selector)
        async for raw in self.orchestrator.watch_pods(self.label_selector, timeout_seconds=self.watch_timeout):
            event = normalize_event(raw)
            if event is None:
                continue
            self.events_seen += 1
            await self.hub.publish(event.to_message())

    # -------------------------
    # Lifecycle
    # -------------------------
    def start(self):
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self.run(), name="commander-pod-watcher")

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = WatcherState.STOPPED
