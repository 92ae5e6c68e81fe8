"""
Exception taxonomy for the collector.

Every failure raised by collector code derives from CollectorError so the
cycle loop can contain them at a single boundary. Only DiscoveryExhausted and
ScanInvocationError are fatal; the rest are scoped to one device or one store
operation.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for all collector errors."""


class DiscoveryExhausted(CollectorError):
    """No matching device was found after the maximum number of scans."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"No devices discovered after {attempts} attempts")
        self.attempts = attempts


class ScanInvocationError(CollectorError):
    """The network scan tool could not be run (missing, denied, or failed)."""


class SessionError(CollectorError):
    """A device session could not be established for an address."""

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"Session for {address} failed: {reason}")
        self.address = address
        self.reason = reason


class DeviceError(CollectorError):
    """A metadata or telemetry fetch against an established session failed."""


class StoreError(CollectorError):
    """A MongoDB read or write failed."""
