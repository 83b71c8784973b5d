# commander/api/control.py
"""
Control endpoints
-----------------
GET  /api/status  local stress flag + fleet snapshot
POST /api/stress  operator toggle; applies locally then fans out
POST /api/sync    sibling-to-sibling only; applies locally, never fans out
POST /api/kill    delete a random healthy replica

Only status and kill can fail (500 ``{"error": ...}``). The stress toggle
always reports the local result, whatever happened during fan-out.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from commander.api.deps import get_runtime
from commander.errors import ChaosError, OrchestrationError
from commander.models import KillResponse, StressRequest, StressResponse, SyncAck
from commander.runtime import CommanderRuntime

LOG = logging.getLogger("commander.api.control")

router = APIRouter(prefix="/api", tags=["control"])


@router.get("/status")
async def get_status(runtime: CommanderRuntime = Depends(get_runtime)):
    try:
        replicas = await runtime.directory.list_replicas()
    except OrchestrationError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {
        "stress_active": runtime.simulator.active,
        "pods": [r.to_status() for r in replicas],
    }


@router.post("/stress", response_model=StressResponse)
async def set_stress(req: StressRequest, runtime: CommanderRuntime = Depends(get_runtime)):
    await runtime.fanout.set_stress_and_propagate(req.active)
    return StressResponse(status=req.active)


@router.post("/sync", response_model=SyncAck)
async def sync_stress(req: StressRequest, runtime: CommanderRuntime = Depends(get_runtime)):
    runtime.fanout.sync(req.active)
    return SyncAck(ack=True)


@router.post("/kill", response_model=KillResponse)
async def kill_replica(runtime: CommanderRuntime = Depends(get_runtime)):
    try:
        victim = await runtime.chaos.kill_random_replica()
    except (ChaosError, OrchestrationError) as e:
        LOG.error("Chaos kill failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})
    return KillResponse(killed=victim)
