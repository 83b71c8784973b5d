# commander/simulator.py
"""
Resource Simulator
------------------
Owns this replica's stress flag. While active, a periodic task keeps the CPU
busy for a short burst then yields back to the event loop, and a one-shot
safety timer switches stress off again so a forgotten toggle cannot burn a
node indefinitely.

Invariant: the burn task and the safety timer exist iff ``active`` is True.
"""

from __future__ import annotations

import math
import time
import random
import asyncio
import logging
from typing import Optional

from commander.metrics import STRESS_GAUGE, STRESS_TRANSITIONS

LOG = logging.getLogger("commander.simulator")


class ResourceSimulator:
    def __init__(self, burn_ms: int = 50, period_ms: int = 20, safety_seconds: float = 300.0):
        self.burn_seconds = burn_ms / 1000.0
        self.period_seconds = period_ms / 1000.0
        self.safety_seconds = safety_seconds
        self._active = False
        self._burn_task: Optional[asyncio.Task] = None
        self._safety_timer: Optional[asyncio.TimerHandle] = None
        # bookkeeping exposed for status/tests
        self.transitions = 0
        self.safety_arms = 0
        self.safety_expirations = 0

    @property
    def active(self) -> bool:
        return self._active

    def set_stress(self, active: bool) -> bool:
        """
        Move to the requested state. Returns True when a transition happened,
        False when ``active`` already matched (no-op).
        Must be called from the event loop thread.
        """
        active = bool(active)
        if active == self._active:
            return False
        if active:
            self._activate()
        else:
            self._deactivate()
        self.transitions += 1
        return True

    def shutdown(self):
        """Drop stress on process teardown."""
        if self._active:
            self.set_stress(False)

    # -------------------------
    # Transitions
    # -------------------------
    def _activate(self):
        loop = asyncio.get_running_loop()
        self._cancel_pair()
        self._active = True
        self._burn_task = loop.create_task(self._burn_loop(), name="commander-stress-burn")
        self._safety_timer = loop.call_later(self.safety_seconds, self._on_safety_timeout)
        self.safety_arms += 1
        STRESS_GAUGE.set(1)
        STRESS_TRANSITIONS.labels(direction="on").inc()
        LOG.warning("Stress mode ON (burn=%.0fms every %.0fms, auto-off in %.0fs)",
                    self.burn_seconds * 1000, self.period_seconds * 1000, self.safety_seconds)

    def _deactivate(self):
        self._active = False
        self._cancel_pair()
        STRESS_GAUGE.set(0)
        STRESS_TRANSITIONS.labels(direction="off").inc()
        LOG.info("Stress mode OFF")

    def _cancel_pair(self):
        # cancelling an already-fired timer or finished task is harmless
        if self._safety_timer is not None:
            self._safety_timer.cancel()
            self._safety_timer = None
        if self._burn_task is not None:
            self._burn_task.cancel()
            self._burn_task = None

    def _on_safety_timeout(self):
        self._safety_timer = None
        if self._active:
            self.safety_expirations += 1
            LOG.warning("Stress safety timer expired after %.0fs; cooling down", self.safety_seconds)
            self.set_stress(False)

    # -------------------------
    # Burn loop
    # -------------------------
    async def _burn_loop(self):
        try:
            while True:
                deadline = time.monotonic() + self.burn_seconds
                while time.monotonic() < deadline:
                    math.sqrt(random.random())
                await asyncio.sleep(self.period_seconds)
        except asyncio.CancelledError:
            LOG.debug("Burn loop cancelled")
            raise
