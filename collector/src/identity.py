"""
Device identity parsing and durable record resolution.

A plug's nickname encodes ``<model>-<user>-<room>-<appliance>``. resolve()
turns that into a DeviceIdentity without ever failing. IdentityResolver then
finds or creates the matching Device document in one atomic upsert keyed on
(user, room, appliance), so repeated or concurrent resolution of the same
device never creates a second record.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from collector.src.errors import StoreError
from collector.src.models import DeviceIdentity, DeviceRecord

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection

logger = logging.getLogger(__name__)

LABEL_SEPARATOR = "-"
LABEL_SEGMENTS = 4


def resolve(label: str) -> DeviceIdentity:
    """Parse a device label into its composite identity.

    Args:
        label: Raw nickname, e.g. ``"P110-alice-kitchen-fridge"``.

    Returns:
        The parsed identity, or an all-empty identity when the label does
        not split into exactly four non-empty segments.
    """
    parts = label.split(LABEL_SEPARATOR)
    if len(parts) != LABEL_SEGMENTS or not all(parts):
        return DeviceIdentity()
    model, user, room, appliance = parts
    return DeviceIdentity(model=model, user=user, room=room, appliance=appliance)


def _to_record(doc: dict[str, Any]) -> DeviceRecord:
    return DeviceRecord(
        id=str(doc["_id"]),
        model=doc.get("plugmodel", ""),
        user=doc.get("user", ""),
        room=doc.get("room", ""),
        appliance=doc.get("appliance", ""),
    )


class IdentityResolver:
    """Find-or-create Device documents by composite key.

    Args:
        devices: The Device collection (with the unique key index).
    """

    def __init__(self, devices: AsyncCollection) -> None:
        self._devices = devices

    async def ensure_record(self, identity: DeviceIdentity) -> DeviceRecord:
        """Return the record for *identity*, inserting it on first sight.

        An existing record is returned unmodified: ``$setOnInsert`` only
        applies when the upsert creates the document. If two upserts race on
        the same key the loser gets a DuplicateKeyError from the unique
        index and re-reads the winner's document.

        Args:
            identity: Parsed device identity.

        Returns:
            The durable DeviceRecord for the identity's key.

        Raises:
            StoreError: The store could not be read or written.
        """
        key = identity.key()
        try:
            doc = await self._devices.find_one_and_update(
                key,
                {"$setOnInsert": {"plugmodel": identity.model, **key}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            logger.debug("Concurrent insert for %s, re-reading", key)
            try:
                doc = await self._devices.find_one(key)
            except PyMongoError as exc:
                raise StoreError(f"Device lookup for {key} failed: {exc}") from exc
        except PyMongoError as exc:
            raise StoreError(f"Device upsert for {key} failed: {exc}") from exc

        if doc is None:
            raise StoreError(f"Device upsert for {key} returned no document")
        return _to_record(doc)
