"""
Ops Commander Pytest Configuration
----------------------------------

Centralized fixtures and fakes for all tests.

Features:
 - FakeOrchestrator: in-memory pod list, recorded deletes, scripted watch
 - Pod builders on real kubernetes V1Pod models
 - Settings with millisecond-scale timers
 - Logging config to keep CI output clean
"""

import asyncio
import datetime
import logging
from typing import Any, Dict, List, Optional

import pytest
from kubernetes.client import V1ObjectMeta, V1Pod, V1PodStatus

from commander.config import Settings
from commander.errors import OrchestrationError

# -----------------------------------------------------------------------------
# Logging setup for tests
# -----------------------------------------------------------------------------
LOG = logging.getLogger("commander.tests")
LOG.setLevel(logging.WARNING)


@pytest.fixture(autouse=True, scope="session")
def silence_external_lib_logs():
    """Reduce log noise from asyncio, FastAPI and HTTPX during test runs."""
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    logging.getLogger("fastapi").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    yield


# -----------------------------------------------------------------------------
# Pod builders
# -----------------------------------------------------------------------------
def make_pod(name: str, phase: Optional[str] = "Running", ip: Optional[str] = None, terminating: bool = False) -> V1Pod:
    return V1Pod(
        metadata=V1ObjectMeta(
            name=name,
            labels={"app": "commander-api"},
            deletion_timestamp=datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc) if terminating else None,
        ),
        status=V1PodStatus(phase=phase, pod_ip=ip),
    )


# -----------------------------------------------------------------------------
# Fake orchestrator
# -----------------------------------------------------------------------------
class FakeOrchestrator:
    """
    Stands in for KubeOrchestrator.

    - ``pods``: returned by list_pods (or ``list_error`` is raised)
    - ``deleted``: names passed to delete_pod (``delete_error`` raised after recording)
    - ``watch_script``: one entry per subscription; each entry is either an
      Exception to raise immediately or a list of raw events to yield before
      the stream closes. When the script runs out, the watch blocks forever.
    """
    def __init__(self, pods: Optional[List[V1Pod]] = None):
        self.pods = list(pods or [])
        self.list_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.deleted: List[str] = []
        self.list_calls = 0
        self.watch_script: List[Any] = []
        self.watch_calls = 0
        self.initialized = False

    def initialize(self):
        self.initialized = True

    async def list_pods(self, label_selector: str):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.pods)

    async def delete_pod(self, name: str):
        self.deleted.append(name)
        if self.delete_error is not None:
            raise self.delete_error

    async def watch_pods(self, label_selector: str, timeout_seconds: int = 300):
        self.watch_calls += 1
        if not self.watch_script:
            await asyncio.Event().wait()
            return
        step = self.watch_script.pop(0)
        if isinstance(step, Exception):
            raise step
        for raw in step:
            yield raw


@pytest.fixture
def pods() -> List[V1Pod]:
    return [
        make_pod("commander-api-a", ip="10.0.0.1"),
        make_pod("commander-api-b", ip="10.0.0.2"),
        make_pod("commander-api-c", ip="10.0.0.3"),
    ]


@pytest.fixture
def orchestrator(pods) -> FakeOrchestrator:
    return FakeOrchestrator(pods)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        namespace="ops-commander",
        pod_name="commander-api-a",
        burn_ms=1,
        burn_period_ms=5,
        safety_seconds=30,
        heartbeat_interval=0.05,
        watch_backoff=0.01,
        sync_timeout=0.5,
        log_json=False,
    )


@pytest.fixture
def watch_error() -> OrchestrationError:
    return OrchestrationError("connection reset by peer")


def watch_event(kind: str, pod: V1Pod) -> Dict[str, Any]:
    return {"type": kind, "object": pod}
