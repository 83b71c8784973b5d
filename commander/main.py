# commander/main.py
"""
Ops Commander: FastAPI application entrypoint

Responsibilities:
 - configure logging, CORS and exception handlers
 - build the per-process CommanderRuntime and keep it on app.state
 - include the control and event-stream routers
 - startup/shutdown: Kubernetes client, broadcast heartbeat, pod watcher
 - /metrics scrape endpoint and liveness/readiness probes
 - uvicorn CLI entrypoint
"""

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from commander import __version__
from commander.api import control, events
from commander.config import Settings, load_settings
from commander.metrics import render_latest
from commander.runtime import CommanderRuntime
from commander.utils.logger import configure_logging

LOG = logging.getLogger("commander.main")

APP_TITLE = "Ops Commander"
APP_DESC = "Stress fan-out, pod lifecycle stream and chaos kills for the commander fleet"


def create_app(settings: Optional[Settings] = None, orchestrator=None, rng=None, sync_sender=None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(app_name="ops-commander", level=settings.log_level, json=settings.log_json)

    app = FastAPI(title=APP_TITLE, version=__version__, description=APP_DESC)
    app.state.settings = settings
    app.state.runtime = CommanderRuntime(settings, orchestrator=orchestrator, rng=rng, sync_sender=sync_sender)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(control.router)
    app.include_router(events.router)

    # -------------------------
    # Exception handlers
    # -------------------------
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        LOG.exception("Unhandled exception on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "internal_server_error"})

    # -------------------------
    # Metrics & health
    # -------------------------
    @app.get("/metrics", tags=["metrics"])
    async def prometheus_scrape():
        body, content_type = render_latest()
        return Response(content=body, media_type=content_type)

    @app.get("/health/live", tags=["health"])
    async def liveness_probe():
        return PlainTextResponse("OK", status_code=200)

    @app.get("/health/ready", tags=["health"])
    async def readiness_probe():
        runtime: CommanderRuntime = app.state.runtime
        checks = {
            "pod": settings.pod_name,
            "started": runtime.started,
            "kubernetes": runtime.orchestrator.initialized,
            "watcher": runtime.watcher.state.value,
            "observers": runtime.hub.observer_count,
            "stress_active": runtime.simulator.active,
        }
        ok = runtime.started and runtime.orchestrator.initialized
        return JSONResponse(status_code=200 if ok else 503, content=checks)

    # -------------------------
    # Startup / Shutdown events
    # -------------------------
    @app.on_event("startup")
    async def _startup_event():
        await app.state.runtime.start()
        LOG.info("Commander API running on %s:%d in %s", settings.host, settings.port, settings.namespace)

    @app.on_event("shutdown")
    async def _shutdown_event():
        await app.state.runtime.stop()

    return app


# -------------------------
# Uvicorn runner / CLI
# -------------------------
def run_uvicorn(host: str, port: int, log_level: str = "info"):
    # the app is built inside the server process, not at import time
    uvicorn.run("commander.main:create_app", factory=True, host=host, port=int(port), workers=1, log_level=log_level)


def main(argv=None):
    import argparse
    settings: Settings = load_settings()
    parser = argparse.ArgumentParser(prog="ops-commander")
    sub = parser.add_subparsers(dest="command")
    run = sub.add_parser("run", help="Run API server (uvicorn)")
    run.add_argument("--host", default=settings.host)
    run.add_argument("--port", type=int, default=settings.port)
    args = parser.parse_args(argv)
    if args.command in (None, "run"):
        host = getattr(args, "host", settings.host)
        port = getattr(args, "port", settings.port)
        run_uvicorn(host, port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
