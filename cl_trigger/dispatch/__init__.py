"""Trigger dispatch to CI repositories."""

from .coordinator import (
    DispatchCoordinator,
    DispatchError,
    DispatchOutcome,
    ErrorList,
    UnknownRevisionError,
)
from .sink import DeliveryError, DispatchSink, GitHubDispatchSink


__all__ = [
    # Coordinator
    "DispatchCoordinator",
    "DispatchError",
    "DispatchOutcome",
    "ErrorList",
    "UnknownRevisionError",
    # Sinks
    "DeliveryError",
    "DispatchSink",
    "GitHubDispatchSink",
]
