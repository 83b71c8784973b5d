# commander/chaos.py
"""
Chaos Trigger: delete one random, not-already-terminating replica.
The CHAOS_EVENT goes out before the delete call so observers see the intent
even when the deletion itself fails.
"""

from __future__ import annotations

import random
import logging
from typing import Optional

from commander.errors import NoEligibleReplica
from commander.metrics import KILL_COUNTER
from commander.models import MessageType, ReplicaPhase

LOG = logging.getLogger("commander.chaos")


class ChaosTrigger:
    def __init__(self, directory, orchestrator, hub, rng: Optional[random.Random] = None):
        self.directory = directory
        self.orchestrator = orchestrator
        self.hub = hub
        self._rng = rng or random.Random()

    async def kill_random_replica(self) -> str:
        """
        Returns the deleted pod's name.
        Raises NoEligibleReplica (no delete issued) or OrchestrationError.
        """
        replicas = await self.directory.list_replicas()
        eligible = [r for r in replicas if r.phase is not ReplicaPhase.TERMINATING]
        if not eligible:
            LOG.warning("Chaos kill requested but no eligible replica among %d", len(replicas))
            raise NoEligibleReplica()

        victim = self._rng.choice(eligible)
        await self.hub.broadcast(MessageType.CHAOS_EVENT, {
            "msg": f"💀 ASSASSINATION ORDERED: {victim.name}",
            "target": victim.name,
        })
        await self.orchestrator.delete_pod(victim.name)
        KILL_COUNTER.inc()
        LOG.warning("Chaos: deleted pod %s", victim.name, extra={"pod": victim.name})
        return victim.name
