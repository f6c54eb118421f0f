from __future__ import annotations

from typing import Iterator

from prometheus_client.core import CollectorRegistry, GaugeMetricFamily, InfoMetricFamily, Metric
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST, generate_latest

from .models import MetricsRecord

CONTENT_TYPE = CONTENT_TYPE_LATEST

LABELS = ["ups_name", "ups_host"]


class UpsCollector:
    """
    Exposes one published record as gauge families plus a `ups_status` info
    family. Duration and output power are left out while they are unknown.
    """

    def __init__(self, record: MetricsRecord) -> None:
        self.record = record

    def _gauge(self, name: str, help_text: str, value: float, unit: str = "") -> GaugeMetricFamily:
        family = GaugeMetricFamily(name, help_text, labels=LABELS, unit=unit)
        family.add_metric([self.record.ups_name, self.record.ups_host], value)
        return family

    def collect(self) -> Iterator[Metric]:
        record = self.record

        yield self._gauge(
            "ups_battery_charge_ratio",
            "Battery charge level as a ratio (0.0 to 1.0).",
            record.battery_charge_percent / 100.0,
            unit="ratio",
        )
        yield self._gauge(
            "ups_battery_runtime_seconds",
            "Estimated battery runtime in seconds.",
            record.battery_runtime_seconds,
            unit="seconds",
        )
        yield self._gauge(
            "ups_on_battery",
            "Whether UPS is running on battery (1 = on battery, 0 = on line power).",
            1 if record.on_battery else 0,
        )

        if record.on_battery_duration_seconds is not None:
            yield self._gauge(
                "ups_on_battery_duration_seconds",
                "Duration in seconds that UPS has been on battery.",
                record.on_battery_duration_seconds,
                unit="seconds",
            )

        if record.output_power_watts is not None:
            yield self._gauge(
                "ups_output_power_watts",
                "Current UPS output power in watts.",
                record.output_power_watts,
                unit="watts",
            )

        yield self._gauge(
            "ups_last_update_timestamp_seconds",
            "Unix timestamp of last successful UPS status update.",
            record.last_update,
            unit="seconds",
        )

        status = InfoMetricFamily("ups_status", "UPS status information.", labels=LABELS)
        status.add_metric([record.ups_name, record.ups_host], {"status": record.ups_status})
        yield status


def render(record: MetricsRecord) -> str:
    """OpenMetrics text for one record, terminated by `# EOF`."""
    registry = CollectorRegistry()
    registry.register(UpsCollector(record))
    return generate_latest(registry).decode("utf-8")
