"""
Plain data types exchanged between pipeline components.

Everything here serializes to JSON through ``to_dict()``; nothing here talks
to storage.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class SampleStatus(str, Enum):
    OK = "OK"
    ZERO_RESULTS = "ZERO_RESULTS"
    OVER_LIMIT = "OVER_LIMIT"
    DENIED = "DENIED"
    INVALID = "INVALID"
    UNKNOWN = "UNKNOWN"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def hour_label(hour: int) -> str:
    return f"{hour:02d}:00"


@dataclass
class RouteProfile:
    route_id: int
    name: str
    origin: str
    destination: str
    waypoints: List[dict] = field(default_factory=list)
    origin_coords: Optional[tuple] = None
    destination_coords: Optional[tuple] = None
    status: str = "active"


@dataclass(frozen=True)
class TrafficSample:
    """
    One observation of a route's travel time.

    Density is derived from the two durations and cannot be set directly;
    use ``with_density`` to rescale the observed duration instead.
    """
    route_id: int
    timestamp: datetime
    free_flow_duration_sec: float
    observed_duration_sec: float
    distance_meters: float
    status: SampleStatus = SampleStatus.OK

    @property
    def density(self) -> float:
        if not self.free_flow_duration_sec or self.free_flow_duration_sec <= 0:
            return 0.0
        return clamp(self.observed_duration_sec / self.free_flow_duration_sec - 1)

    @property
    def is_ok(self) -> bool:
        return self.status == SampleStatus.OK

    def with_density(self, density: float) -> "TrafficSample":
        observed = self.free_flow_duration_sec * (1 + clamp(density))
        return replace(self, observed_duration_sec=observed)

    def to_dict(self) -> dict:
        return {
            "route_id": self.route_id,
            "timestamp": self.timestamp.isoformat(),
            "density": round(self.density, 4),
            "free_flow_duration_sec": self.free_flow_duration_sec,
            "observed_duration_sec": self.observed_duration_sec,
            "distance_meters": self.distance_meters,
            "status": self.status.value,
        }


@dataclass
class TrafficSummary:
    average_density: float = 0.0
    peak_hours: List[str] = field(default_factory=list)
    low_hours: List[str] = field(default_factory=list)
    weekday_avg: float = 0.0
    weekend_avg: float = 0.0
    trend: Trend = Trend.STABLE

    def to_dict(self) -> dict:
        d = asdict(self)
        d["trend"] = self.trend.value
        return d


@dataclass
class TrafficPrediction:
    date: date
    hour: int
    predicted_density: float
    confidence: float

    @property
    def hour_bucket(self) -> str:
        return hour_label(self.hour)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "hour_bucket": self.hour_bucket,
            "predicted_density": round(self.predicted_density, 4),
            "confidence": round(self.confidence, 2),
        }


@dataclass
class DailyBreakdown:
    date: date
    samples: int
    average_density: float
    peak_density: float

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "samples": self.samples,
            "average_density": self.average_density,
            "peak_density": self.peak_density,
        }


@dataclass
class WeeklyRollup:
    route_id: int
    route_name: str
    week_start: datetime
    week_end: datetime
    total_samples: int
    average_density: float
    peak_density: float
    low_density: float
    average_speed_kmh: float
    peak_hours: List[str]
    low_hours: List[str]
    weekday_avg: float
    weekend_avg: float
    trend: Trend
    daily_breakdown: List[DailyBreakdown]

    def to_dict(self) -> dict:
        return {
            "route_id": self.route_id,
            "route_name": self.route_name,
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "total_samples": self.total_samples,
            "average_density": self.average_density,
            "peak_density": self.peak_density,
            "low_density": self.low_density,
            "average_speed_kmh": self.average_speed_kmh,
            "peak_hours": list(self.peak_hours),
            "low_hours": list(self.low_hours),
            "weekday_avg": self.weekday_avg,
            "weekend_avg": self.weekend_avg,
            "trend": self.trend.value,
            "daily_breakdown": [d.to_dict() for d in self.daily_breakdown],
        }


@dataclass
class BookingDailyCount:
    date: date
    count: int
    day_of_week: int  # 0 = Sunday

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "count": self.count, "day_of_week": self.day_of_week}


@dataclass
class BookingForecast:
    date: date
    predicted_count: int
    confidence: float
    day_of_week: int

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "predicted_count": self.predicted_count,
            "confidence": self.confidence,
            "day_of_week": self.day_of_week,
        }


@dataclass
class MigrationStatus:
    is_ready: bool
    source_configured: bool
    destination_configured: bool
    destination_connected: bool
    errors: List[str] = field(default_factory=list)
    destination_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MigrationResult:
    success: bool
    total_records: int = 0
    processed_records: int = 0
    batches_processed: int = 0
    duration_ms: int = 0
    errors: List[str] = field(default_factory=list)
    ready: bool = True

    def to_dict(self) -> dict:
        return asdict(self)
