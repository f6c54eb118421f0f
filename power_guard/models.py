from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StatusSnapshot(BaseModel):
    """
    One poll's worth of UPS state, read from upsd.

    Built fresh every cycle and never mutated; the next poll replaces it.
    """

    model_config = ConfigDict(frozen=True)

    battery_charge: float = Field(..., description="battery.charge, percent 0-100")
    battery_runtime: int = Field(..., ge=0, description="battery.runtime, seconds")
    ups_status: str = Field(..., description="Raw ups.status tokens, e.g. 'OL CHRG' or 'OB DISCHRG'")
    on_battery: bool = Field(..., description="True if ups.status carries OB or DISCHRG")
    output_power: Optional[float] = Field(default=None, description="output.power in watts, if reported")

    def __str__(self) -> str:
        return (
            f"Charge: {self.battery_charge}%, Runtime: {self.battery_runtime}s, "
            f"Status: {self.ups_status}, On Battery: {self.on_battery}"
        )


class UpsVariable(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class MetricsRecord(BaseModel):
    """
    Published copy of the latest reading, as served on /metrics.
    """

    model_config = ConfigDict(frozen=True)

    ups_name: str
    ups_host: str
    battery_charge_percent: float
    battery_runtime_seconds: int
    ups_status: str
    on_battery: bool
    last_update: int = Field(..., description="Unix seconds of capture")
    on_battery_duration_seconds: Optional[int] = None
    output_power_watts: Optional[float] = None


class JsonMetricsResponse(BaseModel):
    status: str = "ok"
    timestamp: int
    metrics: MetricsRecord
