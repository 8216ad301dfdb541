"""
Tests for the WeatherAgent request context

These tests verify that:
1. analyze_weather returns a report with the ensemble section
2. Repeated requests inside the TTL are served from the cache
3. The request deadline keeps readings from sources that answered in time,
   and maps to NoDataAvailable only when none did
4. A newer request in the same session cancels the older one, and the
   cancelled request never writes to the cache
5. Estimated daily forecasts are not cached

Run with: python -m pytest tests/test_agent.py -v
"""

import asyncio
import random

import pytest

from zeus_meteo.agent import WeatherAgent, discover_sources
from zeus_meteo.cache import ResultCache
from zeus_meteo.config import Settings
from zeus_meteo.errors import NoDataAvailable, SourceUnavailable
from zeus_meteo.orchestrator import SourceOrchestrator
from zeus_meteo.providers import Geocoder
from zeus_meteo.report import ENSEMBLE_HEADER, ReportRenderer
from fakes import GEOCODE_MADRID, FakeClock, FakeSource, make_day, mock_client

DATE = "2026-10-19"


def build_agent(sources, request_timeout=45.0, clock=None):
    cache = ResultCache(ttl_seconds=600, clock=clock or FakeClock())
    orchestrator = SourceOrchestrator(sources, rng=random.Random(0))
    return WeatherAgent(orchestrator, ReportRenderer(), cache, Geocoder(), request_timeout=request_timeout)


class TestAnalyze:

    @pytest.mark.asyncio
    async def test_report_has_ensemble_section(self):
        agent = build_agent([FakeSource("OpenMeteo"), FakeSource("USNWS")])
        report = await agent.analyze_weather("Madrid", DATE)

        assert report.startswith("WEATHER REPORT")
        assert ENSEMBLE_HEADER in report
        assert "Sources: 2 (OpenMeteo, USNWS)" in report

    @pytest.mark.asyncio
    async def test_analysis_carries_failures(self):
        broken = FakeSource("WeatherAPI", error=SourceUnavailable("WeatherAPI", "HTTP 401"))
        agent = build_agent([FakeSource("OpenMeteo"), broken])
        analysis = await agent.analyze("Madrid", DATE)

        assert [r.source for r in analysis.readings] == ["OpenMeteo"]
        assert [f.source for f in analysis.failures] == ["WeatherAPI"]
        data = analysis.to_dict()
        assert data["ensemble"]["source_count"] == 1
        assert data["failures"][0]["source"] == "WeatherAPI"

    @pytest.mark.asyncio
    async def test_second_call_is_a_cache_hit(self):
        source = FakeSource("OpenMeteo")
        agent = build_agent([source])

        first = await agent.analyze_weather("Madrid", DATE)
        second = await agent.analyze_weather("  MADRID ", DATE)

        assert first == second
        assert len(source.calls) == 1
        assert agent.cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self):
        clock = FakeClock()
        source = FakeSource("OpenMeteo")
        agent = build_agent([source], clock=clock)

        await agent.analyze("Madrid", DATE)
        clock.advance(600)
        await agent.analyze("Madrid", DATE)
        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_forecast_and_current_are_cached_apart(self):
        source = FakeSource("OpenMeteo")
        agent = build_agent([source])
        await agent.analyze("Madrid", DATE)
        await agent.analyze("Madrid", DATE, use_forecast=True)
        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_no_data(self):
        agent = build_agent([FakeSource("OpenMeteo", accept=set())])
        with pytest.raises(NoDataAvailable):
            await agent.analyze_weather("Atlantis", DATE)
        assert agent.cache.size == 0

    @pytest.mark.asyncio
    async def test_request_deadline(self):
        agent = build_agent([FakeSource("OpenMeteo", delay=1.0)], request_timeout=0.05)
        with pytest.raises(NoDataAvailable, match=r"request deadline of 0\.05s exceeded"):
            await agent.analyze_weather("Madrid", DATE)
        assert agent.cache.size == 0

    @pytest.mark.asyncio
    async def test_slow_source_does_not_discard_fast_readings(self):
        agent = build_agent([FakeSource("OpenMeteo"), FakeSource("MetNorway", delay=2.0)], request_timeout=0.3)
        analysis = await agent.analyze("Madrid", DATE)

        assert [r.source for r in analysis.readings] == ["OpenMeteo"]
        assert [f.source for f in analysis.failures] == ["MetNorway"]
        assert "deadline" in analysis.failures[0].reason
        assert "Sources: 1 (OpenMeteo)" in analysis.report

    @pytest.mark.asyncio
    async def test_overlapping_requests_report_their_own_failures(self):
        gate = asyncio.Event()
        open_meteo = FakeSource("OpenMeteo", gate=gate, gated={"Madrid"})
        weather_api = FakeSource("WeatherAPI", accept={"Madrid"})
        agent = build_agent([open_meteo, weather_api])

        madrid = asyncio.ensure_future(agent.analyze("Madrid", DATE))
        await asyncio.sleep(0.01)
        paris = await agent.analyze("Paris", DATE)
        gate.set()
        madrid_analysis = await madrid

        assert [f.source for f in paris.failures] == ["WeatherAPI"]
        assert madrid_analysis.failures == []
        assert [r.source for r in madrid_analysis.readings] == ["OpenMeteo", "WeatherAPI"]


class TestSessions:

    @pytest.mark.asyncio
    async def test_newer_request_supersedes_older(self):
        gate = asyncio.Event()
        source = FakeSource("OpenMeteo", gate=gate)
        agent = build_agent([source])

        older = asyncio.ensure_future(agent.analyze("Madrid", DATE, session_id="s1"))
        await asyncio.sleep(0.01)
        newer = asyncio.ensure_future(agent.analyze("Paris", DATE, session_id="s1"))
        await asyncio.sleep(0.01)
        gate.set()

        analysis = await newer
        assert analysis.location == "Paris"
        with pytest.raises(asyncio.CancelledError):
            await older

        assert agent.cache.get(WeatherAgent._analysis_key(agent.cache, "Madrid", DATE, False)) is None
        assert agent.cache.get(WeatherAgent._analysis_key(agent.cache, "Paris", DATE, False)) is not None
        assert agent._sessions == {}

    @pytest.mark.asyncio
    async def test_other_sessions_are_untouched(self):
        gate = asyncio.Event()
        agent = build_agent([FakeSource("OpenMeteo", gate=gate)])

        first = asyncio.ensure_future(agent.analyze("Madrid", DATE, session_id="s1"))
        second = asyncio.ensure_future(agent.analyze("Paris", DATE, session_id="s2"))
        await asyncio.sleep(0.01)
        gate.set()

        results = await asyncio.gather(first, second)
        assert [a.location for a in results] == ["Madrid", "Paris"]
        assert agent.cache.size == 2


class TestDaily:

    @pytest.mark.asyncio
    async def test_live_forecast_is_cached(self):
        source = FakeSource("OpenMeteo", supports_7day_forecast=True, daily=[make_day(), make_day("2026-10-20")])
        agent = build_agent([source])

        first = await agent.get_7day_forecast("Madrid")
        second = await agent.get_7day_forecast("Madrid")

        assert first.source == "live"
        assert second is first
        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_estimated_forecast_is_not_cached(self):
        agent = build_agent([FakeSource("WttrIn")])
        first = await agent.get_15day_forecast("Atlantis")
        second = await agent.get_15day_forecast("Atlantis")

        assert first.is_estimated and second.is_estimated
        assert len(first.forecast) == 15
        assert agent.cache.size == 0


class TestWiring:

    def test_discovery_order_and_keys(self):
        settings = Settings(openweather_api_key="owm-key", weatherapi_key=None, enable_mock_source=True)
        names = [s.name for s in discover_sources(settings)]
        assert names == ["OpenMeteo", "MetNorway", "USNWS", "WttrIn", "OpenWeatherMap", "MockSource"]

    def test_keyless_discovery(self):
        names = [s.name for s in discover_sources(Settings())]
        assert names == ["OpenMeteo", "MetNorway", "USNWS", "WttrIn"]

    @pytest.mark.asyncio
    async def test_from_settings(self):
        settings = Settings(weatherapi_key="wa-key", groq_api_key="gsk", cache_max_entries=5)
        agent = WeatherAgent.from_settings(settings, rng=random.Random(0))
        try:
            assert agent.orchestrator.source_names[-1] == "WeatherAPI"
            assert [b.name for b in agent.renderer.backends] == ["Groq", "Ollama"]
            assert agent.cache.max_entries == 5
            assert agent.request_timeout == 45.0
        finally:
            await agent.aclose()
        assert agent.client.is_closed

    @pytest.mark.asyncio
    async def test_context_manager_runs_sweep(self):
        async with mock_client({}) as client:
            async with WeatherAgent.from_settings(Settings(), client=client) as agent:
                assert agent.cache.running
            assert not agent.cache.running
            # A client passed in belongs to the caller
            assert not client.is_closed

    @pytest.mark.asyncio
    async def test_get_coordinates_is_memoized(self):
        requests = []
        async with mock_client({"geocoding-api.open-meteo.com/v1/search": GEOCODE_MADRID}, requests) as client:
            agent = WeatherAgent.from_settings(Settings(), client=client)
            first = await agent.get_coordinates("Madrid")
            second = await agent.get_coordinates("madrid")
            await agent.aclose()

        assert first["country"] == "Spain"
        assert second == first
        assert len(requests) == 1


class TestSaveReport:

    def test_writes_utf8(self, tmp_path):
        target = tmp_path / "reports" / "madrid.txt"
        path = WeatherAgent.save_report("Temperatura: 21.4°C\n", target)
        assert path == target
        assert target.read_text(encoding="utf-8") == "Temperatura: 21.4°C\n"
