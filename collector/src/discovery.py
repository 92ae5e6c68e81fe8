"""
LAN discovery of Tapo plugs via arp-scan.

Runs ``arp-scan -l`` as an async subprocess, keeps the lines whose hardware
address starts with a known Tapo prefix, and returns the matching IPv4
addresses. Designed around two distinct failure modes:

- An empty scan is retried after a fixed delay, up to a bounded number of
  attempts, then raises DiscoveryExhausted.
- A scan that cannot run at all (tool missing, permission denied, non-zero
  exit) raises ScanInvocationError immediately and is never retried.

The scan itself sits behind the Scanner protocol so a privileged host scan,
a container scan, or a test fake can be swapped in.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

from collector.src.errors import DiscoveryExhausted, ScanInvocationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_ATTEMPTS: int = 5
"""Scans attempted before discovery gives up."""

RETRY_DELAY_S: float = 5.0
"""Fixed delay between consecutive empty scans."""

CONTAINER_ARP_SCAN: str = "/usr/sbin/arp-scan"
"""Absolute arp-scan path inside the container image."""


# ---------------------------------------------------------------------------
# Scan capability
# ---------------------------------------------------------------------------


class Scanner(Protocol):
    """Anything that can produce line-oriented arp-scan style output."""

    async def scan(self) -> str:
        """Run one scan and return its stdout."""
        ...


class ArpScanner:
    """Runs arp-scan over the local network as an async subprocess.

    Args:
        command: Full argv to execute.
    """

    def __init__(self, command: list[str]) -> None:
        self.command = command

    async def scan(self) -> str:
        """Run the scan command and return decoded stdout.

        Raises:
            ScanInvocationError: The tool is missing, not permitted, or
                exited non-zero.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ScanInvocationError(
                f"Could not run {self.command[0]}: {exc}"
            ) from exc

        stdout_bytes, stderr_bytes = await proc.communicate()
        if proc.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace")
            raise ScanInvocationError(
                f"{' '.join(self.command)} failed (rc={proc.returncode}): {stderr[:500]}"
            )
        return stdout_bytes.decode("utf-8", errors="replace")


class PrivilegedArpScanner(ArpScanner):
    """Host scan through ``sudo``, for bare-metal deployments."""

    def __init__(self) -> None:
        super().__init__(["sudo", "arp-scan", "-l"])


class ContainerArpScanner(ArpScanner):
    """Direct scan inside a container that already holds NET_RAW."""

    def __init__(self) -> None:
        super().__init__([CONTAINER_ARP_SCAN, "-l"])


def scanner_for(use_docker: bool) -> ArpScanner:
    """Select the scan capability from the USE_DOCKER flag."""
    return ContainerArpScanner() if use_docker else PrivilegedArpScanner()


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------


def parse_scan_output(output: str, prefixes: Iterable[str]) -> set[str]:
    """Extract addresses whose hardware id starts with a known prefix.

    Each arp-scan result line is ``<ip> <mac> <vendor...>``. Header and
    footer lines never carry a MAC in the second field, so they drop out.

    Args:
        output: Raw scan stdout.
        prefixes: Lower-case hardware address prefixes to accept.

    Returns:
        The set of matching addresses (possibly empty).
    """
    wanted = tuple(p.lower() for p in prefixes)
    addresses: set[str] = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        if parts[1].lower().startswith(wanted):
            addresses.add(parts[0])
    return addresses


# ---------------------------------------------------------------------------
# Discoverer
# ---------------------------------------------------------------------------


class Discoverer:
    """Bounded-retry discovery over a Scanner.

    Args:
        scanner: Scan capability to invoke.
        prefixes: Hardware address prefixes identifying a plug.
        max_attempts: Number of scans before giving up.
        retry_delay_s: Seconds to wait after an empty scan.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        scanner: Scanner,
        prefixes: Iterable[str],
        *,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay_s: float = RETRY_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._scanner = scanner
        self._prefixes = tuple(prefixes)
        self._max_attempts = max_attempts
        self._retry_delay_s = retry_delay_s
        self._sleep = sleep

    async def discover(self) -> set[str]:
        """Scan until at least one plug is found.

        Returns:
            Non-empty set of discovered addresses.

        Raises:
            DiscoveryExhausted: Every attempt returned no matching line.
            ScanInvocationError: The scan tool could not be run.
        """
        for attempt in range(1, self._max_attempts + 1):
            output = await self._scanner.scan()
            addresses = parse_scan_output(output, self._prefixes)
            if addresses:
                logger.info(
                    "Discovered %d device(s) on attempt %d: %s",
                    len(addresses),
                    attempt,
                    sorted(addresses),
                )
                return addresses

            if attempt < self._max_attempts:
                logger.warning(
                    "No devices found (attempt %d/%d), retrying in %.1fs",
                    attempt,
                    self._max_attempts,
                    self._retry_delay_s,
                )
                await self._sleep(self._retry_delay_s)

        logger.error("Maximum attempts reached without discovering any devices")
        raise DiscoveryExhausted(self._max_attempts)
