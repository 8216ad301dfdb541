"""
Normalized data model shared by every provider adapter.

All providers are mapped into SI units before anything else sees them:
temperatures in °C, wind in m/s, pressure in hPa, visibility in km.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TypedDict

from zeus_meteo.errors import InvalidReading

# Accepted physical range for a reading's temperature (°C)
MIN_VALID_TEMP_C = -90.0
MAX_VALID_TEMP_C = 60.0


class Coordinates(TypedDict, total=False):
    name: str
    country: str
    country_code: str
    latitude: float
    longitude: float
    timezone: str


@dataclass(frozen=True)
class NormalizedReading:
    """One provider's snapshot of conditions at a place and time."""
    source: str
    timestamp: str  # ISO instant
    temperature: float
    description: str = "unknown"
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[float] = None
    visibility: Optional[float] = None
    clouds: Optional[float] = None
    uv_index: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DailyForecastPoint:
    """One calendar day's aggregate for the 7/15-day views."""
    date: str  # YYYY-MM-DD
    temperature_max: float
    temperature_min: float
    description: str
    weather_code: int
    precipitation: float
    wind_max: float
    source: str = "unknown"
    estimated: bool = False

    def __post_init__(self):
        if self.temperature_max < self.temperature_min:
            raise InvalidReading(
                self.source,
                f"{self.date}: max {self.temperature_max} < min {self.temperature_min}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SourceFailure:
    """Why one adapter produced nothing for a request."""
    source: str
    reason: str
    unsupported: bool = False


@dataclass
class DailyForecastResult:
    """Daily forecast plus where it came from: live, fallback or estimated."""
    forecast: List[DailyForecastPoint]
    source: str  # "live" | "fallback" | "estimated"
    provider: str = "unknown"
    location: Optional[str] = None
    failures: List[SourceFailure] = field(default_factory=list)

    @property
    def is_estimated(self) -> bool:
        return self.source == "estimated"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forecast": [point.to_dict() for point in self.forecast],
            "source": self.source,
            "provider": self.provider,
            "location": self.location,
            "failures": [{"source": f.source, "reason": f.reason} for f in self.failures],
        }


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 instant into an aware datetime.

    A trailing 'Z' is accepted and naive values are treated as UTC.
    Raises ValueError when the string is not ISO-8601.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_reading(reading: NormalizedReading) -> NormalizedReading:
    """
    Check the reading invariants.

    Returns:
        The same reading when it is valid

    Raises:
        InvalidReading: temperature missing, non-finite or outside
            [-90, 60] °C, or timestamp not an ISO instant
    """
    temp = reading.temperature
    if temp is None or isinstance(temp, bool) or not isinstance(temp, (int, float)):
        raise InvalidReading(reading.source, f"temperature missing or not numeric ({temp!r})")
    if not math.isfinite(temp):
        raise InvalidReading(reading.source, f"temperature not finite ({temp!r})")
    if not MIN_VALID_TEMP_C <= temp <= MAX_VALID_TEMP_C:
        raise InvalidReading(reading.source, f"temperature {temp}°C out of range")

    try:
        parse_timestamp(reading.timestamp)
    except (AttributeError, TypeError, ValueError):
        raise InvalidReading(reading.source, f"timestamp not ISO-8601 ({reading.timestamp!r})")

    return reading


def is_valid_reading(reading: NormalizedReading) -> bool:
    try:
        validate_reading(reading)
    except InvalidReading:
        return False
    return True


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
