"""
KubeOrchestrator adapter tests: executor offloading, error wrapping and the
async watch iterator, against a fake CoreV1Api.
"""

import time
import asyncio

import pytest
from kubernetes.client import V1PodList
from kubernetes.client.rest import ApiException
from urllib3.exceptions import ReadTimeoutError

from commander import orchestrator as orch_mod
from commander.broadcast import BroadcastHub
from commander.errors import OrchestrationError
from commander.orchestrator import KubeOrchestrator
from commander.watcher import LifecycleWatcher

from conftest import make_pod, watch_event


class FakeCoreV1:
    def __init__(self, pods=None, error=None):
        self.pods = pods or []
        self.error = error
        self.calls = []

    def list_namespaced_pod(self, namespace, **kwargs):
        self.calls.append(("list", namespace, kwargs))
        if self.error:
            raise self.error
        return V1PodList(items=self.pods)

    def delete_namespaced_pod(self, name, namespace, **kwargs):
        self.calls.append(("delete", name, namespace))
        if self.error:
            raise self.error


IDLE = object()


class FakeWatch:
    """
    Replaces kubernetes.watch.Watch. ``script`` holds one entry per opened
    stream: a list of events, optionally ending with IDLE (block for the read
    timeout, then raise ReadTimeoutError) or an exception to raise. With the
    script exhausted every stream idles.
    """
    instances = []
    script = []
    streams = []

    def __init__(self):
        self.stopped = False
        FakeWatch.instances.append(self)

    def stream(self, func, *args, **kwargs):
        FakeWatch.streams.append((func, args, dict(kwargs)))
        step = FakeWatch.script.pop(0) if FakeWatch.script else [IDLE]
        read_timeout = kwargs["_request_timeout"][1]

        def _gen():
            for item in step:
                if item is IDLE:
                    time.sleep(read_timeout)
                    raise ReadTimeoutError(None, "/api/v1/pods", "Read timed out.")
                if isinstance(item, Exception):
                    raise item
                yield item
        return _gen()

    def stop(self):
        self.stopped = True


def _versioned(name, rv):
    pod = make_pod(name)
    pod.metadata.resource_version = rv
    return pod


@pytest.fixture
def fake_watch(monkeypatch):
    FakeWatch.instances = []
    FakeWatch.script = []
    FakeWatch.streams = []
    monkeypatch.setattr(orch_mod.k8s_watch, "Watch", FakeWatch)
    return FakeWatch


@pytest.mark.asyncio
async def test_list_pods_passes_selector_and_namespace():
    api = FakeCoreV1(pods=[make_pod("a"), make_pod("b")])
    orch = KubeOrchestrator("ops-commander", core_v1=api)

    pods = await orch.list_pods("app=commander-api")

    assert [p.metadata.name for p in pods] == ["a", "b"]
    assert api.calls == [("list", "ops-commander", {"label_selector": "app=commander-api"})]


@pytest.mark.asyncio
async def test_api_exception_becomes_orchestration_error():
    api = FakeCoreV1(error=ApiException(status=403, reason="Forbidden"))
    orch = KubeOrchestrator("ops-commander", core_v1=api)

    with pytest.raises(OrchestrationError, match="403 Forbidden"):
        await orch.list_pods("app=commander-api")
    with pytest.raises(OrchestrationError, match="403 Forbidden"):
        await orch.delete_pod("a")


@pytest.mark.asyncio
async def test_transport_error_becomes_orchestration_error():
    api = FakeCoreV1(error=ConnectionRefusedError("connection refused"))
    orch = KubeOrchestrator("ops-commander", core_v1=api)

    with pytest.raises(OrchestrationError, match="connection refused"):
        await orch.delete_pod("a")


@pytest.mark.asyncio
async def test_watch_yields_events_then_ends(fake_watch):
    api = FakeCoreV1()
    orch = KubeOrchestrator("ops-commander", core_v1=api, read_timeout=2.0, connect_timeout=3.0)
    fake_watch.script = [[watch_event("ADDED", make_pod("a")), watch_event("DELETED", make_pod("a"))]]

    seen = [e["type"] async for e in orch.watch_pods("app=commander-api", timeout_seconds=30)]

    assert seen == ["ADDED", "DELETED"]
    assert fake_watch.instances[0].stopped is True
    func, args, kwargs = fake_watch.streams[0]
    assert func == api.list_namespaced_pod
    assert args == ("ops-commander",)
    assert kwargs == {
        "label_selector": "app=commander-api",
        "timeout_seconds": 30,
        "_request_timeout": (3.0, 2.0),
    }


@pytest.mark.asyncio
async def test_idle_read_timeout_reopens_from_last_resource_version(fake_watch):
    orch = KubeOrchestrator("ops-commander", core_v1=FakeCoreV1(), read_timeout=0.05)
    fake_watch.script = [
        [watch_event("ADDED", _versioned("a", "10")), IDLE],
        [watch_event("MODIFIED", _versioned("a", "11"))],
    ]

    seen = [e["type"] async for e in orch.watch_pods("app=commander-api", timeout_seconds=30)]

    # one subscription as far as the caller can tell
    assert seen == ["ADDED", "MODIFIED"]
    assert len(fake_watch.streams) == 2
    assert "resource_version" not in fake_watch.streams[0][2]
    assert fake_watch.streams[1][2]["resource_version"] == "10"


@pytest.mark.asyncio
async def test_watch_failure_is_wrapped(fake_watch):
    orch = KubeOrchestrator("ops-commander", core_v1=FakeCoreV1())
    fake_watch.script = [[watch_event("ADDED", make_pod("a")), ApiException(status=410, reason="Gone")]]

    seen = []
    with pytest.raises(OrchestrationError, match="410 Gone"):
        async for e in orch.watch_pods("app=commander-api"):
            seen.append(e["type"])

    assert seen == ["ADDED"]
    assert fake_watch.instances[0].stopped is True


def test_stopped_watcher_does_not_hold_process_exit(fake_watch):
    # every stream is quiet: reads only return by timing out
    orch = KubeOrchestrator("ops-commander", core_v1=FakeCoreV1(), read_timeout=0.2)
    stopped_at = {}

    async def _run():
        watcher = LifecycleWatcher(orch, BroadcastHub(heartbeat_interval=10), "app=commander-api",
                                   backoff=0.01, watch_timeout=300)
        watcher.start()
        await asyncio.sleep(0.3)
        await watcher.stop()
        stopped_at["t"] = time.monotonic()

    asyncio.run(_run())
    exit_delay = time.monotonic() - stopped_at["t"]

    assert exit_delay < 1.0
    assert len(fake_watch.streams) >= 2


def test_initialize_failure_raises(monkeypatch):
    from kubernetes.config.config_exception import ConfigException

    def _fail(*a, **k):
        raise ConfigException("no config")

    monkeypatch.setattr(orch_mod.k8s_config, "load_incluster_config", _fail)
    monkeypatch.setattr(orch_mod.k8s_config, "load_kube_config", _fail)
    orch = KubeOrchestrator("ops-commander")

    with pytest.raises(OrchestrationError, match="kubernetes config unavailable"):
        orch.initialize()
    assert orch.initialized is False
