"""
Tapo P110 adapter over the ``tapo`` client library.

The collector never speaks the plug protocol itself. This module narrows the
library to three calls (connect, get_metadata, get_telemetry) and converts
any library failure into the collector's SessionError / DeviceError types so
the scheduler can contain it per device.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from tapo import ApiClient

from collector.src.errors import DeviceError, SessionError
from collector.src.models import DeviceMetadata, TelemetrySnapshot

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_S: int = 10
"""Per-request timeout handed to the tapo ApiClient."""


class DeviceSession(Protocol):
    """An authenticated handle to one plug."""

    address: str

    async def get_metadata(self) -> DeviceMetadata:
        """Fetch label, hardware id, and relay state."""
        ...

    async def get_telemetry(self) -> TelemetrySnapshot:
        """Fetch the current power reading."""
        ...


class Connector(Protocol):
    """Opens a DeviceSession for an address."""

    async def connect(self, address: str) -> DeviceSession:
        """Authenticate against the plug at *address*."""
        ...


class TapoSession:
    """DeviceSession backed by a tapo ``PlugEnergyMonitoringHandler``.

    Args:
        address: IPv4 address of the plug.
        handler: Handler returned by ``ApiClient.p110()``.
    """

    def __init__(self, address: str, handler: Any) -> None:
        self.address = address
        self._handler = handler

    async def get_metadata(self) -> DeviceMetadata:
        """Fetch device info and map it to DeviceMetadata.

        Raises:
            DeviceError: The request failed or the response was unusable.
        """
        try:
            info = await self._handler.get_device_info()
            return DeviceMetadata(
                label=info.nickname,
                hardware_id=info.device_id,
                device_on=info.device_on,
                model=info.model,
            )
        except Exception as exc:
            raise DeviceError(f"get_device_info on {self.address} failed: {exc}") from exc

    async def get_telemetry(self) -> TelemetrySnapshot:
        """Fetch current power plus the device clock.

        Raises:
            DeviceError: The request failed or the response was unusable.
        """
        try:
            power = await self._handler.get_current_power()
            usage = await self._handler.get_energy_usage()
            local_time: datetime | None = usage.local_time
            return TelemetrySnapshot(
                current_power=int(power.current_power),
                local_time=local_time,
            )
        except Exception as exc:
            raise DeviceError(f"energy read on {self.address} failed: {exc}") from exc


class TapoConnector:
    """Connector that authenticates plugs with Tapo account credentials.

    Args:
        username: Tapo account e-mail.
        password: Tapo account password.
        timeout_s: Per-request timeout for the underlying client.
    """

    def __init__(
        self,
        username: str,
        password: str,
        timeout_s: int = REQUEST_TIMEOUT_S,
    ) -> None:
        self._username = username
        self._password = password
        self._timeout_s = timeout_s

    async def connect(self, address: str) -> TapoSession:
        """Open a P110 session for *address*.

        Each address gets its own ApiClient so one handshake never shares
        state with another.

        Raises:
            SessionError: Authentication or handshake failed.
        """
        try:
            client = ApiClient(self._username, self._password, timeout_s=self._timeout_s)
            handler = await client.p110(address)
        except Exception as exc:
            raise SessionError(address, str(exc) or type(exc).__name__) from exc
        logger.debug("Session established for %s", address)
        return TapoSession(address, handler)
