# commander/errors.py
"""Error taxonomy for the coordination subsystem."""


class CommanderError(Exception):
    """Base error for Ops Commander."""


class OrchestrationError(CommanderError):
    """Transport or API failure while listing, deleting or watching pods."""


class ChaosError(CommanderError):
    """A chaos action could not be carried out."""


class NoEligibleReplica(ChaosError):
    """Every replica is already terminating (or none exist)."""

    def __init__(self, message: str = "No healthy pods!"):
        super().__init__(message)


class SyncDispatchFailure(CommanderError):
    """A single sibling could not be reached during fan-out. Logged, never propagated."""

    def __init__(self, replica: str, reason: str):
        super().__init__(f"sync to {replica} failed: {reason}")
        self.replica = replica
        self.reason = reason


class WatchSubscriptionEnded(CommanderError):
    """The pod watch stream closed; the watcher resubscribes."""
