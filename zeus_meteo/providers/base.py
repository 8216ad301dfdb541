"""
Common adapter contract for every weather provider.

An adapter exposes three operations over a free-text location:
- get_current_weather(location)       -> NormalizedReading
- get_forecast(location, days)        -> List[NormalizedReading]
- get_7day_forecast(location)         -> List[DailyForecastPoint]

Capability flags (supports_forecast, supports_7day_forecast) tell the
orchestrator what it may ask for. Whatever goes wrong inside an adapter
leaves it as SourceUnavailable (or OperationNotSupported); no other
exception type crosses this boundary.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from zeus_meteo.errors import OperationNotSupported, WeatherError
from zeus_meteo.models import DailyForecastPoint, NormalizedReading
from zeus_meteo.resilience import to_source_unavailable

logger = logging.getLogger(__name__)

KMH_TO_MS = 1 / 3.6
MPH_TO_MS = 0.44704


async def fetch_json(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    GET a URL and decode the JSON body.

    Uses the shared client when one is given, otherwise opens a short-lived
    one. Non-2xx responses raise httpx.HTTPStatusError.
    """
    if client is not None:
        resp = await client.get(url, params=params, headers=headers, timeout=timeout)
    else:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            resp = await own_client.get(url, params=params, headers=headers)

    logger.debug(f"[fetch_json] GET {url} -> {resp.status_code}")
    resp.raise_for_status()
    return resp.json()


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32) * 5 / 9


def optional_float(value: Any, scale: float = 1.0) -> Optional[float]:
    """Float conversion that keeps None (and garbage) as None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value) * scale
    except (TypeError, ValueError):
        return None


class WeatherSource:
    """
    Base class for provider adapters.

    Subclasses implement the _fetch_* hooks; the public methods wrap them so
    transport and parse errors come out as SourceUnavailable.
    """

    name = "unknown"
    supports_forecast = True
    supports_7day_forecast = False
    DEFAULT_TIMEOUT = 10.0
    HEADERS: Dict[str, str] = {}

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.timeout = timeout if timeout is not None else self.DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                        headers: Optional[Dict[str, str]] = None) -> Any:
        merged = dict(self.HEADERS)
        if headers:
            merged.update(headers)
        return await fetch_json(url, params=params, headers=merged or None,
                                timeout=self.timeout, client=self.client)

    # --- public contract -------------------------------------------------

    async def get_current_weather(self, location: str) -> NormalizedReading:
        try:
            return await self._fetch_current(location)
        except WeatherError:
            raise
        except Exception as e:
            raise to_source_unavailable(self.name, e) from e

    async def get_forecast(self, location: str, days: int = 3) -> List[NormalizedReading]:
        if not self.supports_forecast:
            raise OperationNotSupported(self.name, "get_forecast")
        try:
            return await self._fetch_forecast(location, days)
        except WeatherError:
            raise
        except Exception as e:
            raise to_source_unavailable(self.name, e) from e

    async def get_daily_forecast(self, location: str, days: int = 7) -> List[DailyForecastPoint]:
        if not self.supports_7day_forecast:
            raise OperationNotSupported(self.name, "get_7day_forecast")
        try:
            return await self._fetch_daily(location, days)
        except WeatherError:
            raise
        except Exception as e:
            raise to_source_unavailable(self.name, e) from e

    async def get_7day_forecast(self, location: str) -> List[DailyForecastPoint]:
        return await self.get_daily_forecast(location, 7)

    # --- hooks -----------------------------------------------------------

    async def _fetch_current(self, location: str) -> NormalizedReading:
        raise OperationNotSupported(self.name, "get_current_weather")

    async def _fetch_forecast(self, location: str, days: int) -> List[NormalizedReading]:
        raise OperationNotSupported(self.name, "get_forecast")

    async def _fetch_daily(self, location: str, days: int) -> List[DailyForecastPoint]:
        raise OperationNotSupported(self.name, "get_7day_forecast")
