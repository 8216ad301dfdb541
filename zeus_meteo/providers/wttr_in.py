"""
wttr.in Provider for Zeus Meteo

wttr.in serves World Weather Online data as JSON (format=j1), no key needed.
The location is geocoded and passed as "lat,lon" so the name ambiguity of
the free-text endpoint does not leak into the result.

Quirks handled here:
- observation_time is a 12-hour UTC clock ("10:30 PM")
- hourly "time" is HMM on a 24-hour clock ("0", "300", "2100")
- wind arrives in km/h
- only three forecast days are published, so no 7-day view
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from zeus_meteo.conditions import wwo_code_to_condition
from zeus_meteo.models import NormalizedReading
from zeus_meteo.providers.base import KMH_TO_MS, WeatherSource, optional_float
from zeus_meteo.providers.geocoding import Geocoder

logger = logging.getLogger(__name__)


def observation_timestamp(observation_time: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Turn wttr.in's "hh:mm AM/PM" UTC observation time into an ISO instant.

    The date is today's UTC date; an observation that would land in the
    future belongs to the previous day.
    """
    now = now or datetime.now(timezone.utc)
    if not observation_time:
        return now.isoformat()
    clock = datetime.strptime(observation_time.strip().upper(), "%I:%M %p")
    stamp = now.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)
    if stamp > now:
        stamp -= timedelta(days=1)
    return stamp.isoformat()


def hourly_timestamp(date_str: str, hmm: str) -> str:
    """wttr.in hourly slots are "0", "300", ... "2100" (HMM, 24-hour)."""
    value = int(hmm or 0)
    return f"{date_str}T{value // 100:02d}:{value % 100:02d}:00"


class WttrInSource(WeatherSource):
    """Adapter for wttr.in (current + 3-day hourly)."""

    name = "WttrIn"
    supports_forecast = True
    supports_7day_forecast = False
    BASE_URL = "https://wttr.in/{query}"
    MAX_FORECAST_DAYS = 3

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None, geocoder: Optional[Geocoder] = None):
        super().__init__(client=client, timeout=timeout)
        self.geocoder = geocoder or Geocoder(client=client, timeout=self.timeout)

    async def _report(self, location: str) -> Dict[str, Any]:
        coords = await self.geocoder.get_coordinates(location)
        query = f"{coords['latitude']:.4f},{coords['longitude']:.4f}"
        logger.info(f"[WttrInSource] Fetching report for {coords['name']} ({query})")
        return await self._get_json(self.BASE_URL.format(query=query), params={"format": "j1"})

    async def _fetch_current(self, location: str) -> NormalizedReading:
        data = await self._report(location)
        return self.format_current(data["current_condition"][0])

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        data = await self._report(location)
        readings: List[NormalizedReading] = []
        for day in data["weather"][:max(1, min(days, self.MAX_FORECAST_DAYS))]:
            for slot in day.get("hourly", []):
                readings.append(self.format_hourly(day["date"], slot))
        logger.info(f"[WttrInSource] Retrieved {len(readings)} hourly records")
        return readings

    def _reading(self, block: Dict[str, Any], timestamp: str) -> NormalizedReading:
        return NormalizedReading(
            source=self.name,
            timestamp=timestamp,
            temperature=float(block["temp_C"] if "temp_C" in block else block["tempC"]),
            description=wwo_code_to_condition(block.get("weatherCode")),
            feels_like=optional_float(block.get("FeelsLikeC")),
            humidity=optional_float(block.get("humidity")),
            pressure=optional_float(block.get("pressure")),
            wind_speed=optional_float(block.get("windspeedKmph"), scale=KMH_TO_MS),
            wind_direction=optional_float(block.get("winddirDegree")),
            visibility=optional_float(block.get("visibility")),
            clouds=optional_float(block.get("cloudcover")),
            uv_index=optional_float(block.get("uvIndex")),
        )

    def format_current(self, current: Dict[str, Any], now: Optional[datetime] = None) -> NormalizedReading:
        return self._reading(current, observation_timestamp(current.get("observation_time"), now))

    def format_hourly(self, date_str: str, slot: Dict[str, Any]) -> NormalizedReading:
        return self._reading(slot, hourly_timestamp(date_str, slot.get("time", "0")))
