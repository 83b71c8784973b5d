# commander/models.py
"""
Domain types shared by the coordination components:
replica snapshots, normalized lifecycle events and broadcast messages.
"""

from __future__ import annotations

import enum
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel

from commander.utils.common import json_dumps
from commander.utils.time_utils import iso_now, to_iso, utc_now


class ReplicaPhase(str, enum.Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    TERMINATING = "Terminating"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


_RAW_PHASES = {p.value: p for p in ReplicaPhase if p is not ReplicaPhase.TERMINATING}


def derive_phase(raw_phase: Optional[str], deletion_requested: bool) -> ReplicaPhase:
    """A pending deletion wins over whatever phase the kubelet reports."""
    if deletion_requested:
        return ReplicaPhase.TERMINATING
    return _RAW_PHASES.get(raw_phase or "", ReplicaPhase.UNKNOWN)


@dataclass(frozen=True)
class Replica:
    name: str
    address: Optional[str]
    phase: ReplicaPhase

    @classmethod
    def from_pod(cls, pod: Any) -> "Replica":
        """Build a snapshot from a kubernetes V1Pod."""
        metadata = pod.metadata
        status = pod.status
        return cls(
            name=metadata.name,
            address=getattr(status, "pod_ip", None) if status is not None else None,
            phase=derive_phase(
                getattr(status, "phase", None) if status is not None else None,
                metadata.deletion_timestamp is not None,
            ),
        )

    def to_status(self) -> Dict[str, str]:
        return {"name": self.name, "status": self.phase.value}


class MessageType(str, enum.Enum):
    SYSTEM_ALERT = "SYSTEM_ALERT"
    K8S_EVENT = "K8S_EVENT"
    CHAOS_EVENT = "CHAOS_EVENT"


@dataclass(frozen=True)
class BroadcastMessage:
    type: MessageType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=iso_now)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.type.value, "timestamp": self.timestamp}
        body.update(self.payload)
        return body

    def to_frame(self) -> str:
        """Server-sent events frame."""
        return f"data: {json_dumps(self.to_dict())}\n\n"


@dataclass(frozen=True)
class LifecycleEvent:
    event_kind: str
    replica_name: str
    phase: ReplicaPhase
    observed_at: datetime.datetime = field(default_factory=utc_now)

    @classmethod
    def from_watch(cls, event_kind: str, pod: Any) -> "LifecycleEvent":
        replica = Replica.from_pod(pod)
        return cls(event_kind=event_kind, replica_name=replica.name, phase=replica.phase)

    def to_message(self) -> BroadcastMessage:
        return BroadcastMessage(
            MessageType.K8S_EVENT,
            {
                "k8s_type": self.event_kind,
                "pod": self.replica_name,
                "status": self.phase.value,
                "observed_at": to_iso(self.observed_at),
            },
        )


# -------------------------
# HTTP schemas
# -------------------------
class StressRequest(BaseModel):
    active: bool


class StressResponse(BaseModel):
    status: bool


class SyncAck(BaseModel):
    ack: bool = True


class KillResponse(BaseModel):
    killed: str
