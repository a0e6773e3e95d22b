"""Aggregation logic for stored readings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Optional

from app.schemas import MetricStats, Reading, ReadingSummary, WaterQuality


@dataclass
class _RunningStats:
    count: int = 0
    total: float = 0.0
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    def add(self, value: Optional[float]) -> None:
        if value is None:
            return
        self.count += 1
        self.total += value
        if self.min_value is None or value < self.min_value:
            self.min_value = value
        if self.max_value is None or value > self.max_value:
            self.max_value = value

    def to_model(self) -> MetricStats:
        return MetricStats(
            count=self.count,
            min_value=self.min_value,
            max_value=self.max_value,
            mean_value=self.total / self.count if self.count else None,
        )


@dataclass
class _SummaryState:
    reading_count: int = 0
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    temperature: _RunningStats = field(default_factory=_RunningStats)
    tds_value: _RunningStats = field(default_factory=_RunningStats)
    speed: _RunningStats = field(default_factory=_RunningStats)
    water_quality_counts: Dict[WaterQuality, int] = field(default_factory=dict)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def summarize(self, readings: Iterable[Reading]) -> ReadingSummary:
        state = _SummaryState()

        for reading in readings:
            state.reading_count += 1
            if state.first_timestamp is None or reading.timestamp < state.first_timestamp:
                state.first_timestamp = reading.timestamp
            if state.last_timestamp is None or reading.timestamp > state.last_timestamp:
                state.last_timestamp = reading.timestamp

            state.temperature.add(reading.temperature)
            state.tds_value.add(reading.tds_value)
            state.speed.add(reading.speed)

            quality = reading.water_quality
            state.water_quality_counts[quality] = state.water_quality_counts.get(quality, 0) + 1

        return ReadingSummary(
            reading_count=state.reading_count,
            first_timestamp=state.first_timestamp,
            last_timestamp=state.last_timestamp,
            temperature=state.temperature.to_model(),
            tds_value=state.tds_value.to_model(),
            speed=state.speed.to_model(),
            water_quality_counts=dict(state.water_quality_counts),
        )
