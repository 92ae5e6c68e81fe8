"""
Append-only telemetry writer for the Data collection.

One insert_one per sampled device; no batching and no cross-device
transaction, so a failed write only ever affects its own device.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from collector.src.errors import StoreError
from collector.src.models import TelemetryRecord

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection

logger = logging.getLogger(__name__)


def to_millis(ts: datetime) -> datetime:
    """Normalise *ts* to UTC and truncate to millisecond precision.

    Naive datetimes are taken to be UTC already.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    else:
        ts = ts.astimezone(UTC)
    return ts.replace(microsecond=ts.microsecond - ts.microsecond % 1000)


class TelemetryWriter:
    """Writes TelemetryRecords to the Data collection.

    Args:
        data: The Data collection.
    """

    def __init__(self, data: AsyncCollection) -> None:
        self._data = data

    async def write(
        self,
        device_id: str,
        status: bool,
        power: int,
        timestamp: datetime,
        synthetic: bool = False,
    ) -> TelemetryRecord:
        """Append one telemetry document.

        Args:
            device_id: Durable id of the owning DeviceRecord.
            status: Relay on/off state.
            power: Instantaneous power reading.
            timestamp: Capture time.
            synthetic: Whether this is placeholder rather than real data.

        Returns:
            The record as written.

        Raises:
            StoreError: The id is malformed or the insert failed.
        """
        record = TelemetryRecord(
            device_id=device_id,
            power=power,
            status=status,
            synthetic=synthetic,
            time=to_millis(timestamp),
        )
        try:
            oid = ObjectId(device_id)
        except InvalidId as exc:
            raise StoreError(f"Invalid device id {device_id!r}") from exc

        try:
            result = await self._data.insert_one(
                {
                    "power": record.power,
                    "device_id": oid,
                    "status": record.status,
                    "synthetic": record.synthetic,
                    "time": record.time,
                }
            )
        except PyMongoError as exc:
            raise StoreError(f"Telemetry insert for {device_id} failed: {exc}") from exc

        logger.debug("Inserted data with ID: %s", result.inserted_id)
        return record
