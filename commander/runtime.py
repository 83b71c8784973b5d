# commander/runtime.py
"""
Per-process owned state: the components of one replica wired together.
Created once by the app factory and stored on ``app.state.runtime``.
"""

from __future__ import annotations

import random
import logging
from typing import Optional

from commander.broadcast import BroadcastHub
from commander.chaos import ChaosTrigger
from commander.config import Settings
from commander.errors import OrchestrationError
from commander.fanout import FanoutCoordinator
from commander.orchestrator import KubeOrchestrator
from commander.replicas import ReplicaDirectory
from commander.simulator import ResourceSimulator
from commander.watcher import LifecycleWatcher

LOG = logging.getLogger("commander.runtime")


class CommanderRuntime:
    def __init__(self, settings: Settings, orchestrator=None, rng: Optional[random.Random] = None, sync_sender=None):
        self.settings = settings
        self.orchestrator = orchestrator or KubeOrchestrator(
            settings.namespace,
            read_timeout=settings.watch_read_timeout,
        )
        self.simulator = ResourceSimulator(
            burn_ms=settings.burn_ms,
            period_ms=settings.burn_period_ms,
            safety_seconds=settings.safety_seconds,
        )
        self.hub = BroadcastHub(
            heartbeat_interval=settings.heartbeat_interval,
            queue_size=settings.observer_queue_size,
        )
        self.directory = ReplicaDirectory(self.orchestrator, settings.label_selector)
        self.fanout = FanoutCoordinator(
            self.simulator,
            self.directory,
            self.hub,
            sync_port=settings.sync_port,
            sync_path=settings.sync_path,
            timeout=settings.sync_timeout,
            sender=sync_sender,
        )
        self.watcher = LifecycleWatcher(
            self.orchestrator,
            self.hub,
            settings.label_selector,
            backoff=settings.watch_backoff,
            watch_timeout=settings.watch_timeout_seconds,
        )
        self.chaos = ChaosTrigger(self.directory, self.orchestrator, self.hub, rng=rng)
        self.started = False

    async def start(self):
        if self.started:
            return
        LOG.info("🚀 Commander starting in namespace %s (pod=%s selector=%s)",
                 self.settings.namespace, self.settings.pod_name, self.settings.label_selector)
        try:
            self.orchestrator.initialize()
        except OrchestrationError:
            # endpoints report the error per call; the watcher keeps retrying
            LOG.exception("Kubernetes client initialization failed")
        await self.hub.start()
        self.watcher.start()
        self.started = True

    async def stop(self):
        if not self.started:
            return
        LOG.info("Commander shutting down")
        await self.watcher.stop()
        await self.fanout.cancel_inflight()
        self.simulator.shutdown()
        await self.hub.stop()
        self.started = False
