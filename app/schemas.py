"""Pydantic schemas for readings and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class WaterQuality(str, Enum):
    """Water quality bands derived from the dissolved-solids value."""

    excellent = "Excellent"
    good = "Good"
    fair = "Fair"
    poor = "Poor"
    unacceptable = "Unacceptable"
    unknown = "Unknown"


_WATER_QUALITY_BANDS = (
    (300, WaterQuality.excellent),
    (600, WaterQuality.good),
    (900, WaterQuality.fair),
    (1200, WaterQuality.poor),
)


def classify_water_quality(tds_value: Optional[float]) -> WaterQuality:
    if not tds_value:
        return WaterQuality.unknown
    for upper_bound, quality in _WATER_QUALITY_BANDS:
        if tds_value < upper_bound:
            return quality
    return WaterQuality.unacceptable


class Reading(BaseModel):
    """A persisted telemetry sample with its server-assigned identity and arrival time."""

    model_config = ConfigDict(extra="ignore")

    id: str
    temperature: Optional[float] = Field(default=None, ge=-50, le=100, description="Water temperature in °C.")
    tds_value: Optional[float] = Field(
        default=None,
        ge=0,
        le=10000,
        alias="TDS_Value",
        description="Total dissolved solids in ppm.",
    )
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    speed: float = Field(default=0.0, ge=0, le=50, description="Speed over ground in knots.")
    timestamp: datetime

    @field_validator("speed", mode="before")
    @classmethod
    def _default_missing_speed(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def location(self) -> str:
        if self.latitude and self.longitude:
            return f"{self.latitude:.6f}, {self.longitude:.6f}"
        return "Unknown"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def water_quality(self) -> WaterQuality:
        return classify_water_quality(self.tds_value)


DERIVED_READING_FIELDS = frozenset({"location", "water_quality"})


class ReadingList(BaseModel):
    """A page of readings ordered newest-first."""

    count: int = Field(..., ge=0)
    readings: List[Reading] = Field(default_factory=list)


class MetricStats(BaseModel):
    count: int = Field(default=0, ge=0)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    mean_value: Optional[float] = None


class ReadingSummary(BaseModel):
    """Aggregate view over the most recent readings."""

    reading_count: int = Field(..., ge=0)
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    temperature: MetricStats = Field(default_factory=MetricStats)
    tds_value: MetricStats = Field(default_factory=MetricStats, alias="TDS_Value")
    speed: MetricStats = Field(default_factory=MetricStats)
    water_quality_counts: Dict[WaterQuality, int] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class IngestStatus(str, Enum):
    """Terminal states of a single inbound message."""

    broadcast = "broadcast"
    rejected = "rejected"
    failed = "failed"


class IngestResponse(BaseModel):
    """Outcome reported by the HTTP ingest endpoint."""

    status: IngestStatus
    reading: Optional[Reading] = None
    recipients: int = Field(default=0, ge=0)


class HealthStatus(BaseModel):
    status: str
    store: str
    environment: str
    connections: int = Field(..., ge=0)
