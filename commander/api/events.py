# commander/api/events.py
"""GET /api/events: server-sent events stream fed by the broadcast hub."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from commander.api.deps import get_runtime
from commander.runtime import CommanderRuntime

LOG = logging.getLogger("commander.api.events")

router = APIRouter(prefix="/api", tags=["events"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/events")
async def stream_events(runtime: CommanderRuntime = Depends(get_runtime)):
    hub = runtime.hub

    async def _stream():
        # registered only once the response body is being sent
        observer = await hub.subscribe()
        try:
            async for frame in observer.frames():
                yield frame
        finally:
            # client went away or the hub shut down
            hub.discard(observer)

    return StreamingResponse(_stream(), media_type="text/event-stream", headers=_SSE_HEADERS)
