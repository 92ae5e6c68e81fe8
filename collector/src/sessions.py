"""
Concurrent session establishment.

Opens one device session per discovered address at startup. Every address
produces exactly one SessionOutcome, in input order, whether the connect
succeeded or not; a failed handshake never affects other addresses.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from collector.src.errors import SessionError

if TYPE_CHECKING:
    from collector.src.device import Connector, DeviceSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionOutcome:
    """Result of connecting to one address: a session or the error."""

    address: str
    session: DeviceSession | None = None
    error: SessionError | None = None

    @property
    def ok(self) -> bool:
        return self.session is not None


async def create_sessions(
    addresses: Sequence[str],
    connector: Connector,
) -> tuple[SessionOutcome, ...]:
    """Connect to every address concurrently.

    Args:
        addresses: Addresses to connect to, in the order outcomes are wanted.
        connector: Opens a session per address.

    Returns:
        One SessionOutcome per address, same order and length as *addresses*.
    """
    results = await asyncio.gather(
        *(connector.connect(address) for address in addresses),
        return_exceptions=True,
    )

    outcomes: list[SessionOutcome] = []
    for address, result in zip(addresses, results, strict=True):
        if isinstance(result, BaseException):
            if isinstance(result, SessionError):
                error = result
            elif isinstance(result, Exception):
                error = SessionError(address, str(result) or type(result).__name__)
            else:
                raise result
            logger.warning("Failed to create session for %s: %s", address, error.reason)
            outcomes.append(SessionOutcome(address=address, error=error))
        else:
            outcomes.append(SessionOutcome(address=address, session=result))

    logger.info(
        "Sessions created for %d/%d devices",
        sum(1 for o in outcomes if o.ok),
        len(outcomes),
    )
    return tuple(outcomes)
