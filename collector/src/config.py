"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Connection strings and credentials come only from the environment or a
.env file; a missing required variable fails startup.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

DEFAULT_MAC_PREFIXES: list[str] = ["30:de:4b:36", "78:8c:b5:7"]
"""Hardware address prefixes assigned to TP-Link Tapo plugs."""


class CollectorSettings(BaseSettings):
    """Collector configuration.

    Attributes:
        mongodb_uri: MongoDB connection string.
        mongodb_database: Database holding the Device and Data collections.
        mongodb_username: Optional store user when not embedded in the URI.
        mongodb_password: Optional store password when not embedded in the URI.
        tapo_username: Tapo cloud account e-mail used to authenticate plugs.
        tapo_password: Tapo cloud account password.
        use_docker: Run the container arp-scan binary instead of ``sudo``.
        log_level: Root log level name.
        mac_prefixes: Hardware address prefixes that identify a plug.
        discovery_max_attempts: Scans before discovery gives up.
        discovery_retry_delay_s: Seconds between empty scans.
        cycle_timeout_s: Budget for one pass over all devices.
        cycle_delay_s: Idle time between cycles.
        device_timeout_s: Budget for one device within a cycle (0 disables).
        synthetic_data: Flag every written record as synthetic.
        health_path: Health JSON file path.
    """

    mongodb_uri: str
    mongodb_database: str = "TAICare"
    mongodb_username: str | None = None
    mongodb_password: str | None = None
    tapo_username: str
    tapo_password: str
    use_docker: bool = False
    log_level: str = "INFO"
    mac_prefixes: Annotated[list[str], NoDecode] = DEFAULT_MAC_PREFIXES
    discovery_max_attempts: int = 5
    discovery_retry_delay_s: float = 5.0
    cycle_timeout_s: float = 30.0
    cycle_delay_s: float = 5.0
    device_timeout_s: float = 10.0
    synthetic_data: bool = False
    health_path: str = "/data/health.json"

    @field_validator("mac_prefixes", mode="before")
    @classmethod
    def split_mac_prefixes(cls, v: object) -> object:
        """Accept a comma-separated string and normalise to lower case."""
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, list):
            prefixes = [str(p).strip().lower() for p in v if str(p).strip()]
            if not prefixes:
                raise ValueError("MAC_PREFIXES must contain at least one prefix")
            return prefixes
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate the log level against the standard level names."""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name (got: '{v}')")
        return level

    @field_validator("mongodb_uri")
    @classmethod
    def mongodb_uri_must_have_scheme(cls, v: str) -> str:
        """Validate that the connection string is a MongoDB URI."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MONGODB_URI must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("discovery_max_attempts")
    @classmethod
    def max_attempts_must_be_positive(cls, v: int) -> int:
        """Validate that discovery scans at least once."""
        if v < 1:
            raise ValueError("DISCOVERY_MAX_ATTEMPTS must be >= 1")
        return v

    @field_validator("cycle_timeout_s")
    @classmethod
    def cycle_timeout_must_be_positive(cls, v: float) -> float:
        """Validate the cycle budget."""
        if v <= 0:
            raise ValueError("CYCLE_TIMEOUT_S must be > 0")
        return v

    @field_validator("discovery_retry_delay_s", "cycle_delay_s", "device_timeout_s")
    @classmethod
    def durations_must_be_non_negative(cls, v: float) -> float:
        """Validate that delays and the device budget are non-negative."""
        if v < 0:
            raise ValueError("delays and timeouts must be >= 0")
        return v

    @model_validator(mode="after")
    def _device_timeout_within_cycle(self) -> "CollectorSettings":
        """The per-device budget is nested inside the cycle budget."""
        if self.device_timeout_s > self.cycle_timeout_s:
            raise ValueError("DEVICE_TIMEOUT_S must not exceed CYCLE_TIMEOUT_S")
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
