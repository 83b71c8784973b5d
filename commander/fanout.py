# commander/fanout.py
"""
Fan-out Coordinator
-------------------
Applies a stress toggle locally, then tells every sibling to do the same via
POST /api/sync. Sibling dispatches are detached tasks: the caller never waits
for them, failures are logged and counted, and nothing is retried.

Fan-out is one level deep. The receiving side (``sync``) only touches its own
simulator, so a sync can never trigger another round of dispatches.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Set

import aiohttp

from commander.errors import OrchestrationError, SyncDispatchFailure
from commander.metrics import SYNC_DISPATCH, SYNC_RECEIVED
from commander.models import MessageType, Replica

LOG = logging.getLogger("commander.fanout")

SyncSender = Callable[[Replica, bool], Awaitable[None]]


@dataclass
class FanoutReport:
    """
    Running tally for one propagation round. ``propagated_to`` and
    ``failures`` are filled in by the detached dispatches as they finish.
    """
    active: bool
    targets: int = 0
    propagated_to: int = 0
    failures: int = 0
    error: Optional[str] = None
    _tasks: List[asyncio.Task] = field(default_factory=list, repr=False)

    @property
    def pending(self) -> int:
        return self.targets - self.propagated_to - self.failures

    async def settled(self) -> "FanoutReport":
        """Wait for every dispatch of this round. Not used on the request path."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        return self


class FanoutCoordinator:
    def __init__(
        self,
        simulator,
        directory,
        hub,
        sync_port: int = 8080,
        sync_path: str = "/api/sync",
        timeout: float = 5.0,
        sender: Optional[SyncSender] = None,
    ):
        self.simulator = simulator
        self.directory = directory
        self.hub = hub
        self.sync_port = sync_port
        self.sync_path = sync_path
        self.timeout = timeout
        self._send = sender or self._post_sync
        self._inflight: Set[asyncio.Task] = set()

    # -------------------------
    # Initiating side
    # -------------------------
    async def set_stress_and_propagate(self, active: bool) -> FanoutReport:
        active = bool(active)
        self.simulator.set_stress(active)
        report = FanoutReport(active=active)

        try:
            replicas = await self.directory.list_replicas()
        except OrchestrationError as e:
            LOG.error("Fan-out failed: could not list replicas: %s", e)
            report.error = str(e)
            return report

        loop = asyncio.get_running_loop()
        for replica in replicas:
            if not replica.address:
                continue
            report.targets += 1
            task = loop.create_task(self._dispatch(replica, active, report), name=f"commander-sync-{replica.name}")
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            report._tasks.append(task)

        await self.hub.broadcast(MessageType.SYSTEM_ALERT, {
            "level": "warning" if active else "success",
            "msg": "🔥 STRESS: SYNCING ALL PODS..." if active else "🧊 COOLING DOWN ALL PODS...",
        })
        LOG.info("Stress=%s fan-out dispatched to %d replicas", active, report.targets)
        return report

    async def _dispatch(self, replica: Replica, active: bool, report: FanoutReport):
        try:
            await self._send(replica, active)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = e if isinstance(e, SyncDispatchFailure) else SyncDispatchFailure(replica.name, str(e) or e.__class__.__name__)
            report.failures += 1
            SYNC_DISPATCH.labels(outcome="failure").inc()
            LOG.error("Failed to sync %s: %s", replica.name, failure.reason)
            return
        report.propagated_to += 1
        SYNC_DISPATCH.labels(outcome="success").inc()
        LOG.debug("Synced %s (stress=%s)", replica.name, active)

    async def _post_sync(self, replica: Replica, active: bool):
        url = f"http://{replica.address}:{self.sync_port}{self.sync_path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as sess:
                async with sess.post(url, json={"active": active}) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        raise SyncDispatchFailure(replica.name, f"HTTP {resp.status}: {body[:200]}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SyncDispatchFailure(replica.name, str(e) or e.__class__.__name__) from e

    # -------------------------
    # Receiving side
    # -------------------------
    def sync(self, active: bool) -> bool:
        """Apply a sibling's command locally. Always acknowledged; never re-propagated."""
        SYNC_RECEIVED.inc()
        LOG.info("📡 Received Sync Command: Stress=%s", bool(active))
        self.simulator.set_stress(bool(active))
        return True

    # -------------------------
    # Shutdown
    # -------------------------
    async def cancel_inflight(self):
        tasks = list(self._inflight)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
