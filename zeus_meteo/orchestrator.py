"""
Source Orchestrator for Zeus Meteo

Fans a request out to every registered adapter and keeps whatever valid
readings come back:

1. Build location variants ("Madrid, Spain" -> "Madrid";
   "New York City" -> "New York")
2. For each adapter in registration order, try the variants in order and
   stop at the first valid reading
3. Record a failure only when every variant failed; keep going
4. Under a request deadline, adapters reached after it passes are recorded
   as failures; readings already accepted are kept
5. Raise NoDataAvailable when nothing at all came back

Calls are sequential so the outcome is reproducible for a fixed adapter set.

Daily forecasts walk a fallback chain of the 7-day-capable adapters and end
with a synthetic, clearly labelled estimate.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from zeus_meteo.errors import (
    NoDataAvailable, OperationNotSupported, SourceUnavailable, WeatherError,
)
from zeus_meteo.models import (
    DailyForecastPoint, DailyForecastResult, NormalizedReading, SourceFailure, validate_reading,
)
from zeus_meteo.providers.base import WeatherSource
from zeus_meteo.providers.mock import SYNTHETIC_PROVIDER, synthesize_daily_forecast

logger = logging.getLogger(__name__)

FORECAST_MODE_DAYS = 3

_TRAILING_CLAUSE = re.compile(r"\s*,[^,]*$")
_TRAILING_WORD = re.compile(r"\s+\S+$")

LIVE = "live"
FALLBACK = "fallback"
ESTIMATED = "estimated"


@dataclass
class CollectionResult:
    """Readings accepted for one request and the adapters that gave none."""
    readings: List[NormalizedReading]
    failures: List[SourceFailure] = field(default_factory=list)


def location_variants(location: str) -> List[str]:
    """
    Spellings of a location to try, most specific first.

    original -> trailing comma-clause stripped -> trailing word stripped.
    Empty and duplicate variants are dropped, order preserved.
    """
    original = (location or "").strip()
    candidates = [
        original,
        _TRAILING_CLAUSE.sub("", original),
        _TRAILING_WORD.sub("", original).rstrip(" ,"),
    ]

    variants: List[str] = []
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


class SourceOrchestrator:
    """Sequential multi-source fan-out with per-adapter retry by location variant."""

    def __init__(
        self,
        sources: Sequence[WeatherSource],
        rng: Optional[random.Random] = None,
        geocoder=None,
    ):
        self.sources = list(sources)
        self.rng = rng or random.Random()
        self.geocoder = geocoder
        logger.info(f"[SourceOrchestrator] Registered sources: {[s.name for s in self.sources]}")

    @property
    def source_names(self) -> List[str]:
        return [s.name for s in self.sources]

    def _record(self, failures: List[SourceFailure], source: WeatherSource, error: Exception) -> None:
        failure = SourceFailure(
            source=source.name,
            reason=str(error),
            unsupported=isinstance(error, OperationNotSupported),
        )
        failures.append(failure)
        if failure.unsupported:
            logger.info(f"[SourceOrchestrator] {source.name}: {failure.reason}")
        else:
            logger.warning(f"[SourceOrchestrator] {source.name} failed: {failure.reason}")

    async def _reading_from(self, source: WeatherSource, variant: str, use_forecast: bool) -> NormalizedReading:
        if use_forecast:
            readings = await source.get_forecast(variant, FORECAST_MODE_DAYS)
            if not readings:
                raise SourceUnavailable(source.name, "empty forecast")
            reading = readings[0]
        else:
            reading = await source.get_current_weather(variant)
        return validate_reading(reading)

    async def _query_source(
        self, source: WeatherSource, variants: List[str], use_forecast: bool
    ) -> Tuple[Optional[NormalizedReading], Optional[WeatherError]]:
        last_error: Optional[WeatherError] = None
        for variant in variants:
            try:
                reading = await self._reading_from(source, variant, use_forecast)
            except OperationNotSupported as e:
                return None, e
            except WeatherError as e:
                logger.debug(f"[SourceOrchestrator] {source.name} rejected '{variant}': {e}")
                last_error = e
                continue
            if variant != variants[0]:
                logger.info(f"[SourceOrchestrator] {source.name} answered for variant '{variant}'")
            return reading, None
        return None, last_error

    async def collect_readings(self, location: str, use_forecast: bool = False,
                               timeout: Optional[float] = None) -> CollectionResult:
        """
        Gather one valid reading per adapter.

        With a timeout, each adapter only gets the time left before the
        request deadline; adapters still pending when it passes are recorded
        as failures and the readings already accepted are kept.

        Raises:
            NoDataAvailable: no adapter produced a valid reading
        """
        variants = location_variants(location)
        failures: List[SourceFailure] = []

        if not variants:
            raise NoDataAvailable(location, "empty location")

        mode = "forecast" if use_forecast else "current"
        logger.info(f"[SourceOrchestrator] Collecting {mode} readings for '{location}' (variants: {variants})")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        expired = False

        readings: List[NormalizedReading] = []
        for source in self.sources:
            if deadline is not None and not expired and loop.time() >= deadline:
                expired = True
            if expired:
                self._record(failures, source, SourceUnavailable(
                    source.name, f"skipped, request deadline of {timeout:g}s reached"))
                continue

            remaining = deadline - loop.time() if deadline is not None else None
            try:
                reading, error = await asyncio.wait_for(
                    self._query_source(source, variants, use_forecast), timeout=remaining)
            except asyncio.TimeoutError:
                expired = True
                reading, error = None, SourceUnavailable(
                    source.name, f"no answer within the request deadline of {timeout:g}s")

            if reading is not None:
                readings.append(reading)
                logger.info(f"[SourceOrchestrator] {source.name}: {reading.temperature:.1f}°C, {reading.description}")
            else:
                self._record(failures, source, error or SourceUnavailable(source.name))

        logger.info(f"[SourceOrchestrator] {len(readings)}/{len(self.sources)} sources answered")

        if not readings:
            if expired:
                reason = f"request deadline of {timeout:g}s exceeded"
            else:
                reason = f"all {len(self.sources)} sources failed"
            raise NoDataAvailable(location, reason, failures=failures)
        return CollectionResult(readings=readings, failures=failures)

    async def _latitude(self, location: str) -> Optional[float]:
        if self.geocoder is None:
            return None
        try:
            coords = await self.geocoder.get_coordinates(location)
        except WeatherError as e:
            logger.debug(f"[SourceOrchestrator] No coordinates for estimate: {e}")
            return None
        return coords.get("latitude")

    async def get_daily_forecast(self, location: str, days: int = 7) -> DailyForecastResult:
        """
        Daily forecast from the first chain link that answers.

        source is "live" for the first 7-day-capable adapter, "fallback" for
        later ones and "estimated" for the synthetic last resort.
        """
        variants = location_variants(location)
        failures: List[SourceFailure] = []
        chain = [s for s in self.sources if s.supports_7day_forecast]

        for position, source in enumerate(chain):
            points: List[DailyForecastPoint] = []
            last_error: Optional[WeatherError] = None
            for variant in variants:
                try:
                    points = await source.get_daily_forecast(variant, days)
                except OperationNotSupported as e:
                    last_error = e
                    break
                except WeatherError as e:
                    last_error = e
                    continue
                if points:
                    break
                last_error = SourceUnavailable(source.name, "empty daily forecast")

            if points:
                label = LIVE if position == 0 else FALLBACK
                logger.info(f"[SourceOrchestrator] Daily forecast from {source.name} ({label}, {len(points)} days)")
                return DailyForecastResult(forecast=points[:days], source=label,
                                           provider=source.name, location=location, failures=failures)
            self._record(failures, source, last_error or SourceUnavailable(source.name))

        logger.warning(f"[SourceOrchestrator] Daily chain exhausted for '{location}', synthesizing estimate")
        latitude = await self._latitude(variants[0]) if variants else None
        points = synthesize_daily_forecast(days, rng=self.rng, latitude=latitude)
        return DailyForecastResult(forecast=points, source=ESTIMATED,
                                   provider=SYNTHETIC_PROVIDER, location=location, failures=failures)

    async def get_7day_forecast(self, location: str) -> DailyForecastResult:
        return await self.get_daily_forecast(location, 7)
