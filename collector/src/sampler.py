"""
Single-device sampling: metadata, then live telemetry.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from collector.src.errors import CollectorError, DeviceError
from collector.src.models import Sample

if TYPE_CHECKING:
    from collector.src.device import DeviceSession

logger = logging.getLogger(__name__)


async def sample(session: DeviceSession) -> Sample:
    """Fetch metadata and a telemetry snapshot from one session.

    The two fetches are sequential; a failure in either aborts only this
    device's sample.

    Args:
        session: An established device session.

    Returns:
        The combined Sample.

    Raises:
        DeviceError: Either fetch failed.
    """
    try:
        metadata = await session.get_metadata()
        telemetry = await session.get_telemetry()
    except CollectorError:
        raise
    except Exception as exc:
        raise DeviceError(f"Sampling {session.address} failed: {exc}") from exc

    logger.debug(
        "Sampled %s: label=%s hardware_id=%s power=%s local_time=%s",
        session.address,
        metadata.label,
        metadata.hardware_id,
        telemetry.current_power,
        telemetry.local_time,
    )
    return Sample(metadata=metadata, telemetry=telemetry)
