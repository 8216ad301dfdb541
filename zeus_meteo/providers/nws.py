"""
National Weather Service (NWS) Provider for Zeus Meteo

Fetches official US government forecasts from api.weather.gov. Coverage is
US territory only; elsewhere the /points lookup answers 404 and the
adapter reports itself unavailable.

Flow:
1. /points/{lat},{lon} resolves the forecast office grid
2. forecastHourly -> current conditions and hourly readings
3. forecast (12-hour day/night periods) -> daily high/low

Values arrive in Fahrenheit and mph with compass wind directions and are
converted to °C, m/s and degrees here.
"""

import logging
import re
from collections import OrderedDict
from typing import Any, Dict, List, Optional, TypedDict

import httpx

from zeus_meteo.conditions import condition_to_wmo_code, text_to_condition
from zeus_meteo.config import DEFAULT_USER_AGENT
from zeus_meteo.models import DailyForecastPoint, NormalizedReading
from zeus_meteo.providers.base import (
    KMH_TO_MS, MPH_TO_MS, WeatherSource, fahrenheit_to_celsius, optional_float,
)
from zeus_meteo.providers.geocoding import Geocoder

logger = logging.getLogger(__name__)

COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]
COMPASS_DEGREES = {point: i * 22.5 for i, point in enumerate(COMPASS_POINTS)}

_NUMBER = re.compile(r"\d+(?:\.\d+)?")


class NWSPeriod(TypedDict, total=False):
    name: str
    startTime: str
    isDaytime: bool
    temperature: int
    temperatureUnit: str
    windSpeed: str
    windDirection: str
    shortForecast: str
    relativeHumidity: Dict[str, Any]


def parse_wind_speed(text: Optional[str]) -> Optional[float]:
    """
    Parse an NWS wind string ("5 mph", "10 to 15 mph", "20 km/h") to m/s.

    Ranges use their upper bound. Returns None when nothing numeric is found.
    """
    if not text:
        return None
    numbers = [float(n) for n in _NUMBER.findall(text)]
    if not numbers:
        return None
    scale = KMH_TO_MS if "km" in text.lower() else MPH_TO_MS
    return round(max(numbers) * scale, 2)


def compass_to_degrees(direction: Optional[str]) -> Optional[float]:
    if not direction:
        return None
    return COMPASS_DEGREES.get(direction.strip().upper())


def period_temperature_c(period: NWSPeriod) -> float:
    temp = float(period["temperature"])
    if period.get("temperatureUnit", "F").upper() == "F":
        temp = fahrenheit_to_celsius(temp)
    return round(temp, 1)


class NWSSource(WeatherSource):
    """Adapter for api.weather.gov (US only)."""

    name = "USNWS"
    supports_forecast = True
    supports_7day_forecast = True
    POINTS_URL = "https://api.weather.gov/points/{lat:.4f},{lon:.4f}"
    DEFAULT_TIMEOUT = 15.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None, geocoder: Optional[Geocoder] = None,
                 user_agent: str = DEFAULT_USER_AGENT):
        super().__init__(client=client, timeout=timeout)
        self.geocoder = geocoder or Geocoder(client=client, timeout=self.timeout)
        # Required User-Agent per NWS API policy
        self.HEADERS = {
            "User-Agent": user_agent,
            "Accept": "application/geo+json",
        }

    async def _grid_urls(self, location: str) -> Dict[str, str]:
        coords = await self.geocoder.get_coordinates(location)
        url = self.POINTS_URL.format(lat=coords["latitude"], lon=coords["longitude"])
        logger.info(f"[NWSSource] Resolving gridpoint for {coords['name']}")
        data = await self._get_json(url)
        props = data["properties"]
        return {"hourly": props["forecastHourly"], "daily": props["forecast"]}

    async def _periods(self, url: str) -> List[NWSPeriod]:
        data = await self._get_json(url)
        periods = data["properties"]["periods"]
        if not periods:
            raise ValueError("no forecast periods in response")
        logger.info(f"[NWSSource] Retrieved {len(periods)} forecast periods")
        return periods

    async def _fetch_current(self, location: str) -> NormalizedReading:
        urls = await self._grid_urls(location)
        periods = await self._periods(urls["hourly"])
        return self.format_period(periods[0])

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        urls = await self._grid_urls(location)
        periods = await self._periods(urls["hourly"])
        return [self.format_period(p) for p in periods[:max(1, days) * 24]]

    async def _fetch_daily(self, location: str, days: int) -> List[DailyForecastPoint]:
        urls = await self._grid_urls(location)
        periods = await self._periods(urls["daily"])
        return self.pair_periods(periods)[:max(1, days)]

    def format_period(self, period: NWSPeriod) -> NormalizedReading:
        humidity = (period.get("relativeHumidity") or {}).get("value")
        return NormalizedReading(
            source=self.name,
            timestamp=period["startTime"],
            temperature=period_temperature_c(period),
            description=text_to_condition(period.get("shortForecast")),
            humidity=optional_float(humidity),
            wind_speed=parse_wind_speed(period.get("windSpeed")),
            wind_direction=compass_to_degrees(period.get("windDirection")),
        )

    def pair_periods(self, periods: List[NWSPeriod]) -> List[DailyForecastPoint]:
        """
        Merge day/night periods into calendar days.

        Daytime periods give the high and the description, night periods the
        low. A day with only one half (e.g. "Tonight" first) uses that
        temperature for both ends. NWS publishes precipitation as a
        probability only, so precipitation is reported as 0.0.
        """
        days: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for period in periods:
            date_str = period["startTime"][:10]
            day = days.setdefault(date_str, {"high": None, "low": None, "text": None, "wind": []})
            temp = period_temperature_c(period)
            if period.get("isDaytime", True):
                day["high"] = temp
                day["text"] = period.get("shortForecast")
            else:
                day["low"] = temp
                if day["text"] is None:
                    day["text"] = period.get("shortForecast")
            wind = parse_wind_speed(period.get("windSpeed"))
            if wind is not None:
                day["wind"].append(wind)

        points: List[DailyForecastPoint] = []
        for date_str, day in days.items():
            high = day["high"] if day["high"] is not None else day["low"]
            low = day["low"] if day["low"] is not None else day["high"]
            if high is None:
                continue
            high, low = max(high, low), min(high, low)
            label = text_to_condition(day["text"])
            points.append(DailyForecastPoint(
                date=date_str,
                temperature_max=high,
                temperature_min=low,
                description=label,
                weather_code=condition_to_wmo_code(label),
                precipitation=0.0,
                wind_max=max(day["wind"]) if day["wind"] else 0.0,
                source=self.name,
            ))
        return points
