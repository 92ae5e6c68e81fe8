"""
Collector package for the smart-plug telemetry pipeline.

Discovers Tapo P110 plugs on the local network, samples power telemetry from
each device on a fixed cadence, and persists it to MongoDB under a stable
per-device identity.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
