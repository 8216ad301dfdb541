"""
Synthetic weather for Zeus Meteo

MockWeatherSource is an opt-in adapter (ZEUS_ENABLE_MOCK_SOURCE) used for
demos and offline development. synthesize_daily_forecast is also the last
link of the daily-forecast chain when every real provider failed.

Every value produced here is labelled: readings carry the "MockSource"
source name, daily points carry estimated=True. The random source is always
injected so runs can be made reproducible with a seed.
"""

import logging
import math
import random
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from zeus_meteo.conditions import (
    MAINLY_CLEAR, OVERCAST, PARTLY_CLOUDY, condition_to_wmo_code,
)
from zeus_meteo.models import DailyForecastPoint, NormalizedReading
from zeus_meteo.providers.base import WeatherSource

logger = logging.getLogger(__name__)

SYNTHETIC_PROVIDER = "Synthetic"
MOCK_DESCRIPTIONS = [PARTLY_CLOUDY, MAINLY_CLEAR, OVERCAST]

# Seasonal baseline: annual mean and half-amplitude (°C), warmest near day 200
BASELINE_MEAN_C = 15.0
BASELINE_AMPLITUDE_C = 10.0
WARMEST_DAY_NORTH = 200


def seasonal_baseline(day: date, latitude: Optional[float] = None) -> float:
    """
    Plausible mean temperature for a calendar day.

    The southern hemisphere (negative latitude) is shifted half a year.
    """
    phase = day.timetuple().tm_yday - WARMEST_DAY_NORTH
    if latitude is not None and latitude < 0:
        phase -= 182
    return BASELINE_MEAN_C + BASELINE_AMPLITUDE_C * math.cos(2 * math.pi * phase / 365.0)


def synthesize_daily_forecast(
    days: int = 7,
    rng: Optional[random.Random] = None,
    start: Optional[date] = None,
    latitude: Optional[float] = None,
    source: str = SYNTHETIC_PROVIDER,
) -> List[DailyForecastPoint]:
    """
    Build a bounded pseudo-forecast around the seasonal baseline.

    Highs land 2-7 °C above the baseline and lows 2-7 °C below it, so
    temperature_max >= temperature_min always holds.
    """
    rng = rng or random.Random()
    start = start or datetime.now(timezone.utc).date()

    points: List[DailyForecastPoint] = []
    for i in range(max(1, days)):
        day = start + timedelta(days=i)
        baseline = seasonal_baseline(day, latitude)
        label = rng.choice(MOCK_DESCRIPTIONS)
        points.append(DailyForecastPoint(
            date=day.isoformat(),
            temperature_max=round(baseline + rng.uniform(2.0, 7.0), 1),
            temperature_min=round(baseline - rng.uniform(2.0, 7.0), 1),
            description=label,
            weather_code=condition_to_wmo_code(label),
            precipitation=round(rng.uniform(0.0, 3.0), 1),
            wind_max=round(rng.uniform(1.0, 8.0), 1),
            source=source,
            estimated=True,
        ))

    logger.info(f"[synthesize_daily_forecast] Generated {len(points)} estimated days from {start.isoformat()}")
    return points


class MockWeatherSource(WeatherSource):
    """Random but physically plausible readings for any location."""

    name = "MockSource"
    supports_forecast = True
    supports_7day_forecast = True

    def __init__(self, rng: Optional[random.Random] = None, clock=None):
        super().__init__(client=None, timeout=0.0)
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _reading(self, when: datetime, base: float) -> NormalizedReading:
        rng = self.rng
        temp = base + rng.random() * 5
        return NormalizedReading(
            source=self.name,
            timestamp=when.isoformat(),
            temperature=round(temp, 1),
            description=rng.choice(MOCK_DESCRIPTIONS),
            feels_like=round(temp - 1 + rng.random(), 1),
            humidity=round(60 + rng.random() * 20, 1),
            pressure=round(1013 + rng.random() * 10, 1),
            wind_speed=round(rng.random() * 10, 1),
            wind_direction=round(rng.random() * 360, 1),
            visibility=10.0,
            clouds=round(rng.random() * 100, 1),
        )

    async def _fetch_current(self, location: str) -> NormalizedReading:
        logger.info(f"[MockWeatherSource] Generating current reading for '{location}'")
        return self._reading(self.clock(), 22.0)

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        now = self.clock().replace(minute=0, second=0, microsecond=0)
        readings = []
        for hour in range(max(1, days) * 24):
            when = now + timedelta(hours=hour)
            readings.append(self._reading(when, seasonal_baseline(when.date()) - 2.5))
        return readings

    async def _fetch_daily(self, location: str, days: int) -> List[DailyForecastPoint]:
        return synthesize_daily_forecast(days, rng=self.rng, start=self.clock().date(), source=self.name)
