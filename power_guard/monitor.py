from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import PowerGuardError
from .models import MetricsRecord, StatusSnapshot
from .settings import Settings
from .shutdown import ShutdownExecutor
from .store import MetricsStore
from .ups_client import UpsClient

logger = logging.getLogger("power-guard.monitor")


class PowerState(str, enum.Enum):
    ON_LINE = "on_line"
    ON_BATTERY = "on_battery"
    SHUTDOWN_SCHEDULED = "shutdown_scheduled"
    TERMINATED = "terminated"


@dataclass
class MonitorState:
    on_battery_since: Optional[float] = None
    shutdown_scheduled: bool = False


class UpsMonitor:
    """
    Poll loop and battery/shutdown state machine.

    Runs on its own thread, one cycle at a time. A failed read skips the
    cycle; a fired trigger runs the shutdown executor and ends the loop.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[UpsClient] = None,
        store: Optional[MetricsStore] = None,
        executor: Optional[ShutdownExecutor] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.client = client or UpsClient(
            host=settings.ups.host,
            port=settings.ups.port,
            name=settings.ups.name,
            username=settings.ups.username,
            password=settings.ups.password,
            strict_numeric=settings.ups.strict_numeric,
        )
        self.store = store
        self.executor = executor or ShutdownExecutor(
            command=settings.shutdown.shutdown_command,
            grace_period=settings.shutdown.shutdown_grace_period,
            sleep=sleep,
        )
        self.state = MonitorState()
        self.power_state = PowerState.ON_LINE

        self._clock = clock
        self._wall_clock = wall_clock
        self._sleep = sleep

    # ─────────────────────────────────────────────
    # Loop
    # ─────────────────────────────────────────────

    def run(self) -> None:
        logger.info(
            "Starting UPS monitor for %s@%s:%s",
            self.settings.ups.name,
            self.settings.ups.host,
            self.settings.ups.port,
        )
        self.print_ups_info()

        while True:
            try:
                self.monitor_cycle()
            except PowerGuardError as exc:
                logger.error("Monitor cycle error: %s", exc)

            if self.state.shutdown_scheduled:
                break

            self._sleep(self.settings.monitoring.poll_interval)

        self.power_state = PowerState.TERMINATED
        logger.info("UPS monitor stopped after shutdown sequence.")

    def print_ups_info(self) -> None:
        logger.info("Attempting to connect to UPS and retrieve variables...")
        try:
            variables = self.client.list_variables()
        except PowerGuardError as exc:
            logger.warning("Failed to list UPS variables: %s", exc)
            return

        logger.info("Connected successfully")
        logger.debug("UPS variables:")
        for var in variables:
            logger.debug("  %s: %s", var.name, var.value)

    def monitor_cycle(self) -> None:
        status = self.client.get_status()
        logger.debug("UPS Status: %s", status)

        self.update_battery_state(status)
        self.publish_metrics(status)

        if self.should_shutdown(status):
            self.power_state = PowerState.SHUTDOWN_SCHEDULED
            self.executor.execute(self.state)

    # ─────────────────────────────────────────────
    # State machine
    # ─────────────────────────────────────────────

    def update_battery_state(self, status: StatusSnapshot) -> None:
        if status.on_battery:
            if self.state.on_battery_since is None:
                self.state.on_battery_since = self._clock()
                self.power_state = PowerState.ON_BATTERY
                logger.warning("UPS switched to battery power!")
                self.log_battery_status(status)
        elif self.state.on_battery_since is not None:
            logger.info("UPS back on line power")
            self.state.on_battery_since = None
            self.power_state = PowerState.ON_LINE

    def on_battery_duration(self) -> Optional[int]:
        if self.state.on_battery_since is None:
            return None
        return int(self._clock() - self.state.on_battery_since)

    def log_battery_status(self, status: StatusSnapshot) -> None:
        logger.info(
            "Battery status - Charge: %s%%, Runtime: %d minutes",
            status.battery_charge,
            status.battery_runtime // 60,
        )
        cfg = self.settings.shutdown
        if cfg.enabled:
            logger.info("Shutdown thresholds:")
            logger.info("  - After %d seconds on battery", cfg.on_battery_seconds)
            logger.info("  - Below %s%% charge", cfg.battery_percent_threshold)
            logger.info("  - Below %d seconds runtime", cfg.runtime_threshold)

    def should_shutdown(self, status: StatusSnapshot) -> bool:
        cfg = self.settings.shutdown
        if not cfg.enabled or self.state.shutdown_scheduled:
            return False
        if not status.on_battery:
            return False

        elapsed = self.on_battery_duration()
        if elapsed is not None:
            if elapsed >= cfg.on_battery_seconds:
                logger.error(
                    "UPS on battery for %d seconds (threshold: %d), triggering shutdown",
                    elapsed,
                    cfg.on_battery_seconds,
                )
                return True

            remaining = cfg.on_battery_seconds - elapsed
            if remaining % 60 == 0 or remaining <= 30:
                logger.warning("Time until shutdown: %d seconds", remaining)

        if status.battery_charge <= cfg.battery_percent_threshold:
            logger.error(
                "Battery charge %s%% below threshold %s%%, triggering shutdown",
                status.battery_charge,
                cfg.battery_percent_threshold,
            )
            return True

        if status.battery_runtime <= cfg.runtime_threshold:
            logger.error(
                "Battery runtime %d seconds below threshold %d, triggering shutdown",
                status.battery_runtime,
                cfg.runtime_threshold,
            )
            return True

        return False

    # ─────────────────────────────────────────────
    # Metrics
    # ─────────────────────────────────────────────

    def publish_metrics(self, status: StatusSnapshot) -> None:
        if self.store is None:
            return

        captured_at = self._wall_clock()
        record = MetricsRecord(
            ups_name=self.settings.ups.name,
            ups_host=self.settings.ups.host,
            battery_charge_percent=status.battery_charge,
            battery_runtime_seconds=status.battery_runtime,
            ups_status=status.ups_status,
            on_battery=status.on_battery,
            last_update=int(captured_at),
            on_battery_duration_seconds=self.on_battery_duration(),
            output_power_watts=status.output_power,
        )
        self.store.publish(record, captured_at=captured_at)
