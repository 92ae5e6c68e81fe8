"""
Collector daemon entrypoint.

Startup sequence:
1. Load CollectorSettings from the environment (exit 2 when invalid).
2. Discover plugs on the LAN with bounded retry (exit 1 when exhausted or
   when arp-scan cannot run).
3. Open one Tapo session per discovered address, concurrently.
4. Connect to MongoDB and ensure indexes (exit 3 when unreachable).
5. Run the CycleScheduler until SIGTERM/SIGINT (exit 0).

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from pydantic import ValidationError

from collector.src.errors import DiscoveryExhausted, ScanInvocationError, StoreError

if TYPE_CHECKING:
    from collector.src.config import CollectorSettings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DISCOVERY_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_STORE_UNAVAILABLE = 3


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the collector.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        level: Root log level name.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def _redacted_uri(uri: str) -> str:
    """Strip credentials from a MongoDB URI, keeping scheme and hosts."""
    parts = urlsplit(uri)
    hosts = parts.netloc.rsplit("@", 1)[-1]
    return f"{parts.scheme}://{hosts}{parts.path}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: CollectorSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    The MongoDB URI is logged without credentials and passwords are logged
    only as fingerprints.

    Args:
        settings: A CollectorSettings instance.
    """
    logger.info(
        "Collector starting with config: "
        "mongodb_uri=%s, mongodb_database=%s, tapo_username=%s, "
        "tapo_password_masked=%s, mongodb_password_masked=%s, "
        "use_docker=%s, mac_prefixes=%s, discovery_max_attempts=%s, "
        "discovery_retry_delay_s=%s, cycle_timeout_s=%s, cycle_delay_s=%s, "
        "device_timeout_s=%s, synthetic_data=%s, health_path=%s",
        _redacted_uri(settings.mongodb_uri),
        settings.mongodb_database,
        settings.tapo_username,
        _masked_token(settings.tapo_password),
        _masked_token(settings.mongodb_password),
        settings.use_docker,
        settings.mac_prefixes,
        settings.discovery_max_attempts,
        settings.discovery_retry_delay_s,
        settings.cycle_timeout_s,
        settings.cycle_delay_s,
        settings.device_timeout_s,
        settings.synthetic_data,
        settings.health_path,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def load_settings() -> CollectorSettings | None:
    """Load settings, logging validation errors instead of raising."""
    from collector.src.config import CollectorSettings

    try:
        return CollectorSettings()
    except ValidationError as exc:
        logger.error("Invalid or missing configuration: %s", exc)
        return None


async def async_main(settings: CollectorSettings) -> int:
    """Async entrypoint: discover, connect, and run the polling loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.

    Args:
        settings: Validated collector settings.

    Returns:
        The process exit code.
    """
    from collector.src.device import TapoConnector
    from collector.src.discovery import Discoverer, scanner_for
    from collector.src.health import HealthWriter
    from collector.src.identity import IdentityResolver
    from collector.src.scheduler import CycleScheduler
    from collector.src.sessions import create_sessions
    from collector.src.store import Store, create_client
    from collector.src.writer import TelemetryWriter

    discoverer = Discoverer(
        scanner_for(settings.use_docker),
        settings.mac_prefixes,
        max_attempts=settings.discovery_max_attempts,
        retry_delay_s=settings.discovery_retry_delay_s,
    )
    logger.info("Starting IP discovery")
    try:
        addresses = await discoverer.discover()
    except (DiscoveryExhausted, ScanInvocationError) as exc:
        logger.error("Discovery failed: %s", exc)
        return EXIT_DISCOVERY_FAILED

    connector = TapoConnector(settings.tapo_username, settings.tapo_password)
    sessions = await create_sessions(sorted(addresses), connector)

    client = create_client(
        settings.mongodb_uri,
        username=settings.mongodb_username,
        password=settings.mongodb_password,
    )
    try:
        store = Store(client[settings.mongodb_database])
        try:
            await store.ping()
            await store.ensure_indexes()
        except StoreError as exc:
            logger.error("MongoDB unavailable: %s", exc)
            return EXIT_STORE_UNAVAILABLE

        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda: _handle_signal(shutdown_event),
            )

        scheduler = CycleScheduler(
            sessions,
            IdentityResolver(store.devices),
            TelemetryWriter(store.data),
            cycle_timeout_s=settings.cycle_timeout_s,
            cycle_delay_s=settings.cycle_delay_s,
            device_timeout_s=settings.device_timeout_s,
            synthetic=settings.synthetic_data,
            health=HealthWriter(
                settings.health_path,
                sessions_active=sum(1 for s in sessions if s.ok),
            ),
        )
        try:
            await scheduler.run_forever(shutdown_event)
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
    finally:
        await client.close()

    logger.info("Shutdown complete")
    return EXIT_OK


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the collector daemon."""
    configure_logging()
    settings = load_settings()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(settings.log_level)
    log_config_summary(settings)
    sys.exit(asyncio.run(async_main(settings)))


if __name__ == "__main__":
    main()
