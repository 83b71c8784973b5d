# commander/orchestrator.py
"""
Kubernetes boundary
-------------------
Thin async facade over the official ``kubernetes`` client: list pods by
selector, delete a pod by name, and stream pod watch events.

The client is synchronous, so every call is pushed onto the event loop's
thread executor; a hung API call only blocks the coroutine awaiting it.
All client/transport failures are re-raised as OrchestrationError.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from kubernetes import client as k8s_client, config as k8s_config, watch as k8s_watch
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import ReadTimeoutError

from commander.errors import OrchestrationError
from commander.utils.common import run_in_executor
from commander.utils.time_utils import monotonic_ts

LOG = logging.getLogger("commander.orchestrator")

_STREAM_END = object()


def _describe(exc: Exception) -> str:
    if isinstance(exc, ApiException):
        return f"{exc.status} {exc.reason}".strip()
    return str(exc) or exc.__class__.__name__


class KubeOrchestrator:
    """
    Pod operations scoped to one namespace.
    ``initialize()`` must run before use; it prefers in-cluster config and
    falls back to the local kubeconfig.
    """
    def __init__(self, namespace: str, core_v1: Optional[Any] = None, read_timeout: float = 5.0, connect_timeout: float = 5.0):
        self.namespace = namespace
        self.read_timeout = read_timeout
        self.connect_timeout = connect_timeout
        self._core_v1 = core_v1
        self._initialized = core_v1 is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self):
        if self._initialized:
            return
        try:
            try:
                k8s_config.load_incluster_config()
                LOG.info("Loaded in-cluster Kubernetes config")
            except ConfigException:
                k8s_config.load_kube_config()
                LOG.info("Loaded kubeconfig for Kubernetes client")
        except (ConfigException, OSError) as e:
            raise OrchestrationError(f"kubernetes config unavailable: {e}") from e
        self._core_v1 = k8s_client.CoreV1Api()
        self._initialized = True

    def _api(self):
        if not self._initialized:
            # a failed startup load is retried on the next call
            self.initialize()
        return self._core_v1

    # -------------------------
    # List / delete
    # -------------------------
    async def list_pods(self, label_selector: str) -> List[Any]:
        api = self._api()
        try:
            resp = await run_in_executor(api.list_namespaced_pod, self.namespace, label_selector=label_selector)
        except Exception as e:
            LOG.warning("list pods failed (ns=%s selector=%s): %s", self.namespace, label_selector, _describe(e))
            raise OrchestrationError(_describe(e)) from e
        return list(resp.items or [])

    async def delete_pod(self, name: str):
        api = self._api()
        try:
            await run_in_executor(api.delete_namespaced_pod, name, self.namespace)
        except Exception as e:
            LOG.warning("delete pod %s failed: %s", name, _describe(e))
            raise OrchestrationError(_describe(e)) from e

    # -------------------------
    # Watch
    # -------------------------
    async def watch_pods(self, label_selector: str, timeout_seconds: int = 300) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield raw watch events ``{"type": ..., "object": V1Pod}`` until the
        server closes the stream or ``timeout_seconds`` elapse. The first
        request starts from the current state; no resource version is carried
        in from a previous call.

        Each read blocks an executor thread for at most ``read_timeout``
        seconds. A quiet stream that hits the read timeout is reopened from
        the last seen resource version, so a cancelled watch frees its
        thread within one read timeout.
        """
        api = self._api()
        watcher = k8s_watch.Watch()
        deadline = monotonic_ts() + timeout_seconds
        resource_version: Optional[str] = None
        try:
            while True:
                remaining = round(deadline - monotonic_ts())
                if remaining <= 0:
                    return
                kwargs: Dict[str, Any] = {
                    "label_selector": label_selector,
                    "timeout_seconds": remaining,
                    "_request_timeout": (self.connect_timeout, self.read_timeout),
                }
                if resource_version:
                    kwargs["resource_version"] = resource_version
                stream = watcher.stream(api.list_namespaced_pod, self.namespace, **kwargs)
                while True:
                    try:
                        event = await run_in_executor(next, stream, _STREAM_END)
                    except ReadTimeoutError:
                        LOG.debug("watch idle for %ss; reopening at rv=%s", self.read_timeout, resource_version)
                        break
                    except Exception as e:
                        raise OrchestrationError(f"watch failed: {_describe(e)}") from e
                    if event is _STREAM_END:
                        return
                    resource_version = _resource_version(event) or resource_version
                    yield event
        finally:
            watcher.stop()


def _resource_version(event: Dict[str, Any]) -> Optional[str]:
    metadata = getattr(event.get("object"), "metadata", None)
    return getattr(metadata, "resource_version", None)
