# commander/metrics.py
"""
Ops Commander metrics
---------------------
Prometheus metric definitions on a dedicated registry, plus the exposition
helper used by GET /metrics. Default process/platform/GC collectors are
registered so the scrape carries the usual runtime series.

Metric names keep the ``app_`` prefix the Grafana dashboards already query.
"""

from __future__ import annotations

from typing import Tuple

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.exposition import CONTENT_TYPE_LATEST

PROM_REGISTRY = CollectorRegistry(auto_describe=True)
ProcessCollector(registry=PROM_REGISTRY)
PlatformCollector(registry=PROM_REGISTRY)
GCCollector(registry=PROM_REGISTRY)

# Stress
STRESS_GAUGE = Gauge("app_stress_mode_active", "Stress mode active", registry=PROM_REGISTRY)
STRESS_TRANSITIONS = Counter("app_stress_transitions_total", "Stress state transitions", ["direction"], registry=PROM_REGISTRY)

# Fan-out
SYNC_DISPATCH = Counter("app_sync_dispatch_total", "Sync commands dispatched to siblings", ["outcome"], registry=PROM_REGISTRY)
SYNC_RECEIVED = Counter("app_sync_received_total", "Sync commands received from siblings", registry=PROM_REGISTRY)

# Chaos
KILL_COUNTER = Counter("app_chaos_pods_killed_total", "Pods killed", registry=PROM_REGISTRY)

# Broadcast / watch
OBSERVERS_GAUGE = Gauge("app_broadcast_observers", "Connected event stream observers", registry=PROM_REGISTRY)
BROADCAST_MESSAGES = Counter("app_broadcast_messages_total", "Messages published to observers", ["type"], registry=PROM_REGISTRY)
WATCH_RESTARTS = Counter("app_watch_restarts_total", "Pod watch resubscriptions", registry=PROM_REGISTRY)


def render_latest() -> Tuple[bytes, str]:
    """Return (body, content_type) for a Prometheus scrape."""
    return generate_latest(PROM_REGISTRY), CONTENT_TYPE_LATEST


def sample(name: str, labels=None) -> float:
    """Current value of a sample on the service registry (0.0 when absent)."""
    value = PROM_REGISTRY.get_sample_value(name, labels or {})
    return value if value is not None else 0.0
