# power_guard/__init__.py
"""
Power Guard: UPS watchdog with a metrics exporter.

Daemon that:
- polls a UPS through the NUT line protocol (upsd, TCP 3493),
- detects on-battery / on-line transitions,
- shuts the host down once a time, charge or runtime threshold is crossed,
- exposes the latest reading as OpenMetrics text or JSON over HTTP.

Configured via a YAML file plus POWER_GUARD_* environment variables
(see settings.py).
"""

__version__ = "0.1.0"
