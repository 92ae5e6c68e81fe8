"""
Pydantic models for device metadata, identities, and persisted records.

DeviceMetadata and TelemetrySnapshot are the adapter's view of what a plug
reports. DeviceIdentity is the structured form of a plug's nickname, and
DeviceRecord / TelemetryRecord mirror the documents stored in the Device and
Data collections.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class DeviceMetadata(BaseModel):
    """Self-reported device information.

    Attributes:
        label: Nickname set in the Tapo app (``model-user-room-appliance``).
        hardware_id: The plug's own device identifier.
        device_on: Whether the relay is currently switched on.
        model: Hardware model string reported by the plug.
    """

    label: str
    hardware_id: str
    device_on: bool
    model: str = ""


class TelemetrySnapshot(BaseModel):
    """Instantaneous power reading.

    Attributes:
        current_power: Current power draw in the device's native unit.
        local_time: Timestamp as reported by the device clock.
    """

    current_power: int
    local_time: datetime | None = None


class Sample(BaseModel):
    """Metadata and telemetry fetched from one session in one cycle."""

    metadata: DeviceMetadata
    telemetry: TelemetrySnapshot


class DeviceIdentity(BaseModel):
    """Composite identity parsed from a device label.

    A label that does not parse yields an identity with every field empty.
    """

    model_config = ConfigDict(frozen=True)

    model: str = ""
    user: str = ""
    room: str = ""
    appliance: str = ""

    @property
    def is_complete(self) -> bool:
        """True when the label parsed into four non-empty segments."""
        return all((self.model, self.user, self.room, self.appliance))

    def key(self) -> dict[str, str]:
        """Return the (user, room, appliance) store filter."""
        return {"user": self.user, "room": self.room, "appliance": self.appliance}


class DeviceRecord(BaseModel):
    """A durable device document from the Device collection.

    Attributes:
        id: Store-assigned ObjectId, as a hex string.
        model: Plug model segment of the label.
        user: User segment of the label.
        room: Room segment of the label.
        appliance: Appliance segment of the label.
    """

    id: str
    model: str
    user: str
    room: str
    appliance: str


class TelemetryRecord(BaseModel):
    """An append-only telemetry document from the Data collection."""

    device_id: str
    power: int
    status: bool
    synthetic: bool
    time: datetime
