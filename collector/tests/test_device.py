"""
Tests for the Tapo adapter.

The tapo ApiClient and its P110 handler are mocked; the tests check the
mapping into DeviceMetadata / TelemetrySnapshot and that library failures
surface as SessionError or DeviceError.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from collector.src.device import TapoConnector, TapoSession
from collector.src.errors import DeviceError, SessionError


def _make_handler() -> MagicMock:
    handler = MagicMock()
    handler.get_device_info = AsyncMock(
        return_value=SimpleNamespace(
            nickname="P110-alice-kitchen-fridge",
            device_id="80223ABCDEF",
            device_on=True,
            model="P110",
        )
    )
    handler.get_current_power = AsyncMock(
        return_value=SimpleNamespace(current_power=42)
    )
    handler.get_energy_usage = AsyncMock(
        return_value=SimpleNamespace(local_time=datetime(2026, 10, 19, 12, 0, 0))
    )
    return handler


class TestTapoSession:
    """Metadata and telemetry mapping."""

    @pytest.mark.asyncio
    async def test_get_metadata_maps_device_info(self) -> None:
        session = TapoSession("192.168.1.21", _make_handler())

        metadata = await session.get_metadata()

        assert metadata.label == "P110-alice-kitchen-fridge"
        assert metadata.hardware_id == "80223ABCDEF"
        assert metadata.device_on is True
        assert metadata.model == "P110"

    @pytest.mark.asyncio
    async def test_get_telemetry_maps_power_and_clock(self) -> None:
        session = TapoSession("192.168.1.21", _make_handler())

        telemetry = await session.get_telemetry()

        assert telemetry.current_power == 42
        assert telemetry.local_time == datetime(2026, 10, 19, 12, 0, 0)

    @pytest.mark.asyncio
    async def test_metadata_failure_raises_device_error(self) -> None:
        handler = _make_handler()
        handler.get_device_info = AsyncMock(side_effect=RuntimeError("SessionTimeout"))
        session = TapoSession("192.168.1.21", handler)

        with pytest.raises(DeviceError) as exc_info:
            await session.get_metadata()
        assert "192.168.1.21" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_telemetry_failure_raises_device_error(self) -> None:
        handler = _make_handler()
        handler.get_current_power = AsyncMock(side_effect=OSError("unreachable"))
        session = TapoSession("192.168.1.21", handler)

        with pytest.raises(DeviceError):
            await session.get_telemetry()


class TestTapoConnector:
    """Session creation through ApiClient.p110()."""

    @pytest.mark.asyncio
    async def test_connect_returns_session_bound_to_address(self) -> None:
        handler = _make_handler()
        client = MagicMock()
        client.p110 = AsyncMock(return_value=handler)

        with patch("collector.src.device.ApiClient", return_value=client) as mock_cls:
            session = await TapoConnector("owner@example.com", "pw").connect("10.0.0.5")

        mock_cls.assert_called_once_with("owner@example.com", "pw", timeout_s=10)
        client.p110.assert_awaited_once_with("10.0.0.5")
        assert session.address == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_handshake_failure_raises_session_error(self) -> None:
        client = MagicMock()
        client.p110 = AsyncMock(side_effect=RuntimeError("InvalidCredentials"))

        with patch("collector.src.device.ApiClient", return_value=client):
            with pytest.raises(SessionError) as exc_info:
                await TapoConnector("owner@example.com", "bad").connect("10.0.0.5")

        assert exc_info.value.address == "10.0.0.5"
        assert "InvalidCredentials" in exc_info.value.reason
