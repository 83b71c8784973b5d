# commander/replicas.py
"""
Replica Directory: who is in the fleet right now.
Every call asks the orchestrator again; nothing is cached between calls.
"""

from __future__ import annotations

import logging
from typing import List

from commander.models import Replica

LOG = logging.getLogger("commander.replicas")


class ReplicaDirectory:
    def __init__(self, orchestrator, label_selector: str):
        self.orchestrator = orchestrator
        self.label_selector = label_selector

    async def list_replicas(self) -> List[Replica]:
        """Snapshot of same-role replicas. Raises OrchestrationError; never returns a partial list."""
        pods = await self.orchestrator.list_pods(self.label_selector)
        replicas = [Replica.from_pod(p) for p in pods]
        LOG.debug("Directory listed %d replicas for %s", len(replicas), self.label_selector)
        return replicas
