"""
WeatherAgent: the request context for Zeus Meteo

Built once at startup (WeatherAgent.from_settings) and shared by every
request. It owns:
- the adapters discovered from configuration (a missing key drops one)
- the shared httpx client
- the ResultCache and its sweep task
- the SourceOrchestrator and the ReportRenderer
- the per-session registry used for last-request-wins cancellation

Flow of analyze_weather:
cache lookup -> orchestrator (each adapter bounded by the time left before
the request deadline) -> ensemble -> report renderer -> cache write
(skipped when the request was superseded)
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from zeus_meteo.cache import ResultCache
from zeus_meteo.config import Settings
from zeus_meteo.ensemble import EnsembleResult, build_ensemble
from zeus_meteo.models import Coordinates, DailyForecastResult, NormalizedReading, SourceFailure
from zeus_meteo.orchestrator import SourceOrchestrator
from zeus_meteo.providers import (
    Geocoder,
    MetNorwaySource,
    MockWeatherSource,
    NWSSource,
    OpenMeteoSource,
    OpenWeatherMapSource,
    WeatherAPISource,
    WeatherSource,
    WttrInSource,
)
from zeus_meteo.report import GroqBackend, OllamaBackend, ReportBackend, ReportRenderer

logger = logging.getLogger(__name__)


@dataclass
class WeatherAnalysis:
    """Everything one analysis produced."""
    location: str
    date: str
    readings: List[NormalizedReading]
    ensemble: EnsembleResult
    report: str
    failures: List[SourceFailure] = field(default_factory=list)
    use_forecast: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "date": self.date,
            "use_forecast": self.use_forecast,
            "readings": [r.to_dict() for r in self.readings],
            "ensemble": self.ensemble.to_dict(),
            "report": self.report,
            "failures": [{"source": f.source, "reason": f.reason} for f in self.failures],
        }


def discover_sources(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    geocoder: Optional[Geocoder] = None,
    rng: Optional[random.Random] = None,
) -> List[WeatherSource]:
    """Adapters in registration order; keyed adapters only when their key is set."""
    geocoder = geocoder or Geocoder(client=client)
    sources: List[WeatherSource] = [
        OpenMeteoSource(client=client, geocoder=geocoder),
        MetNorwaySource(client=client, geocoder=geocoder, user_agent=settings.user_agent),
        NWSSource(client=client, geocoder=geocoder, user_agent=settings.user_agent),
        WttrInSource(client=client, geocoder=geocoder),
    ]

    if settings.openweather_api_key:
        sources.append(OpenWeatherMapSource(settings.openweather_api_key, client=client))
    else:
        logger.info("[discover_sources] OPENWEATHER_API_KEY not set, skipping OpenWeatherMap")

    if settings.weatherapi_key:
        sources.append(WeatherAPISource(settings.weatherapi_key, client=client))
    else:
        logger.info("[discover_sources] WEATHERAPI_KEY not set, skipping WeatherAPI")

    if settings.enable_mock_source:
        logger.warning("[discover_sources] Mock source enabled: readings include synthetic data")
        sources.append(MockWeatherSource(rng=rng))

    return sources


def build_backends(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> List[ReportBackend]:
    backends: List[ReportBackend] = []
    if settings.groq_api_key:
        backends.append(GroqBackend(settings.groq_api_key, model=settings.groq_model, client=client))
    backends.append(OllamaBackend(settings.ollama_url, model=settings.ollama_model, client=client))
    return backends


class WeatherAgent:
    """Entry points for collaborators (HTTP layer, CLI)."""

    def __init__(
        self,
        orchestrator: SourceOrchestrator,
        renderer: ReportRenderer,
        cache: ResultCache,
        geocoder: Geocoder,
        request_timeout: float = 45.0,
        client: Optional[httpx.AsyncClient] = None,
        owns_client: bool = False,
    ):
        self.orchestrator = orchestrator
        self.renderer = renderer
        self.cache = cache
        self.geocoder = geocoder
        self.request_timeout = request_timeout
        self.client = client
        self._owns_client = owns_client
        self._sessions: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
        clock=None,
    ) -> "WeatherAgent":
        """Wire the agent from configuration."""
        settings = settings or Settings.from_env()
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(follow_redirects=True, headers={"User-Agent": settings.user_agent})

        cache = ResultCache(
            ttl_seconds=settings.cache_duration_seconds,
            max_entries=settings.cache_max_entries,
            sweep_interval=settings.cache_sweep_seconds,
            clock=clock,
        )
        geocoder = Geocoder(client=client, cache=cache)
        rng = rng or random.Random()
        sources = discover_sources(settings, client=client, geocoder=geocoder, rng=rng)
        orchestrator = SourceOrchestrator(sources, rng=rng, geocoder=geocoder)
        renderer = ReportRenderer(build_backends(settings, client=client))

        logger.info(f"[WeatherAgent] Ready with {len(sources)} sources: {orchestrator.source_names}")
        return cls(
            orchestrator=orchestrator,
            renderer=renderer,
            cache=cache,
            geocoder=geocoder,
            request_timeout=settings.request_timeout_seconds,
            client=client,
            owns_client=owns_client,
        )

    # --- lifecycle -------------------------------------------------------

    def start(self) -> None:
        self.cache.start()

    async def aclose(self) -> None:
        for task in list(self._sessions.values()):
            task.cancel()
        self._sessions.clear()
        await self.cache.aclose()
        if self._owns_client and self.client is not None:
            await self.client.aclose()
        logger.info("[WeatherAgent] Closed")

    async def __aenter__(self) -> "WeatherAgent":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- analysis --------------------------------------------------------

    @staticmethod
    def _analysis_key(cache: ResultCache, location: str, date: str, use_forecast: bool) -> str:
        return cache.make_key("analyze", {
            "location": location.strip().lower(),
            "date": date,
            "forecast": use_forecast,
        })

    def _is_current(self, session_id: Optional[str]) -> bool:
        if session_id is None:
            return True
        return self._sessions.get(session_id) is asyncio.current_task()

    async def _run_analysis(self, location: str, date: str, use_forecast: bool,
                            session_id: Optional[str]) -> WeatherAnalysis:
        key = self._analysis_key(self.cache, location, date, use_forecast)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"[WeatherAgent] Cache hit for '{location}' ({date})")
            return cached

        collected = await self.orchestrator.collect_readings(
            location, use_forecast=use_forecast, timeout=self.request_timeout)
        readings = collected.readings
        failures = collected.failures
        ensemble = build_ensemble(readings)
        report = await self.renderer.generate_report(readings, location, date, ensemble)
        analysis = WeatherAnalysis(
            location=location,
            date=date,
            readings=readings,
            ensemble=ensemble,
            report=report,
            failures=failures,
            use_forecast=use_forecast,
        )

        if self._is_current(session_id):
            self.cache.set(key, analysis)
        else:
            logger.info(f"[WeatherAgent] Session {session_id} superseded, result not cached")
        return analysis

    async def analyze(self, location: str, date: Optional[str] = None, use_forecast: bool = False,
                      session_id: Optional[str] = None) -> WeatherAnalysis:
        """
        Run (or reuse) a full analysis.

        With a session_id, a newer call for the same session cancels this one;
        the superseded caller sees asyncio.CancelledError.

        Raises:
            NoDataAvailable: no source answered before the deadline
        """
        date = date or datetime.now().strftime("%Y-%m-%d")
        if session_id is None:
            return await self._run_analysis(location, date, use_forecast, None)

        previous = self._sessions.get(session_id)
        if previous is not None and not previous.done():
            logger.info(f"[WeatherAgent] Session {session_id}: cancelling previous search")
            previous.cancel()

        task = asyncio.ensure_future(self._run_analysis(location, date, use_forecast, session_id))
        self._sessions[session_id] = task
        try:
            return await task
        finally:
            if self._sessions.get(session_id) is task:
                del self._sessions[session_id]

    async def analyze_weather(self, location: str, date: Optional[str] = None, use_forecast: bool = False,
                              session_id: Optional[str] = None) -> str:
        """Top-level entry point: the report text for a location and date."""
        analysis = await self.analyze(location, date, use_forecast, session_id)
        return analysis.report

    async def get_daily_forecast(self, location: str, days: int = 7) -> DailyForecastResult:
        """Daily forecast; estimated results are not cached so live data can replace them."""
        key = self.cache.make_key("daily", {"location": location.strip().lower(), "days": days})
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = await self.orchestrator.get_daily_forecast(location, days)
        if not result.is_estimated:
            self.cache.set(key, result)
        return result

    async def get_7day_forecast(self, location: str) -> DailyForecastResult:
        return await self.get_daily_forecast(location, 7)

    async def get_15day_forecast(self, location: str) -> DailyForecastResult:
        return await self.get_daily_forecast(location, 15)

    async def get_coordinates(self, location: str) -> Coordinates:
        return await self.geocoder.get_coordinates(location)

    @staticmethod
    def save_report(report: str, path: Union[str, Path]) -> Path:
        """Write a report to disk as UTF-8 text, creating parent folders."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(report, encoding="utf-8")
        logger.info(f"[WeatherAgent] Report saved to {target}")
        return target
