"""Domain-specific exception types."""

from __future__ import annotations


class HeartbeatError(Exception):
    """Base class for liveness engine failures."""


class MalformedTransitionError(HeartbeatError, ValueError):
    """Raised when a queue payload cannot be decoded into a transition."""


class UnexpectedTargetStateError(HeartbeatError, ValueError):
    """Raised when a scheduled transition targets a state the engine never schedules."""


class DeviceStoreError(HeartbeatError, RuntimeError):
    """Raised when the device record store rejects or fails a write."""


class ConfigLookupError(HeartbeatError, RuntimeError):
    """Raised when configuration variables cannot be fetched."""


class CredentialLookupError(HeartbeatError, RuntimeError):
    """Raised when an API key role check cannot be completed."""


__all__ = [
    "ConfigLookupError",
    "CredentialLookupError",
    "DeviceStoreError",
    "HeartbeatError",
    "MalformedTransitionError",
    "UnexpectedTargetStateError",
]
