"""
Open-Meteo geocoding, shared by every adapter that needs coordinates.

Providers such as Open-Meteo, Met Norway and the NWS only accept latitude
and longitude, so free-text locations are resolved here first. Results are
memoized in the agent's ResultCache when one is attached.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from zeus_meteo.errors import SourceUnavailable, WeatherError
from zeus_meteo.models import Coordinates
from zeus_meteo.providers.base import fetch_json
from zeus_meteo.resilience import to_source_unavailable

logger = logging.getLogger(__name__)


class Geocoder:
    """Resolve free-text place names with the Open-Meteo geocoding API."""

    name = "Geocoding"
    BASE_URL = "https://geocoding-api.open-meteo.com/v1/search"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        language: str = "en",
        cache=None,
    ):
        self.client = client
        self.timeout = timeout
        self.language = language
        self.cache = cache

    async def get_coordinates(self, location: str) -> Coordinates:
        """
        Resolve a place name to coordinates.

        Returns:
            Coordinates dict (name, country, country_code, latitude, longitude)

        Raises:
            SourceUnavailable: network failure or no match for the name
        """
        query = (location or "").strip()
        if not query:
            raise SourceUnavailable(self.name, "empty location")

        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.make_key("geocode", {"name": query.lower(), "language": self.language})
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"[Geocoder] Cache hit for '{query}'")
                return cached

        params = {"name": query, "count": 3, "language": self.language, "format": "json"}

        try:
            data = await fetch_json(self.BASE_URL, params=params, timeout=self.timeout, client=self.client)
            results = data.get("results") or []
            if not results:
                raise SourceUnavailable(self.name, f"location not found: {query}")
            coords = self._format_result(results[0])
        except WeatherError:
            raise
        except Exception as e:
            raise to_source_unavailable(self.name, e) from e

        logger.info(f"[Geocoder] '{query}' -> {coords['name']}, {coords.get('country', '?')} "
                    f"({coords['latitude']:.4f}, {coords['longitude']:.4f})")

        if cache_key is not None:
            self.cache.set(cache_key, coords)
        return coords

    @staticmethod
    def _format_result(result: Dict[str, Any]) -> Coordinates:
        coords: Coordinates = {
            "name": result["name"],
            "country": result.get("country", ""),
            "country_code": result.get("country_code", ""),
            "latitude": float(result["latitude"]),
            "longitude": float(result["longitude"]),
        }
        if result.get("timezone"):
            coords["timezone"] = result["timezone"]
        return coords
