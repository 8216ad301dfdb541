"""
Tests for the Source Orchestrator

These tests verify that:
1. Location variants are built and tried in order
2. A failing adapter never stops the others
3. NoDataAvailable is raised only when every adapter failed
4. The daily chain labels its result live / fallback / estimated
5. A request deadline keeps the readings accepted before it passed
6. Overlapping requests never see each other's failures

Run with: python -m pytest tests/test_orchestrator.py -v
"""

import asyncio
import logging
import random

import pytest

from zeus_meteo.errors import NoDataAvailable, SourceUnavailable
from zeus_meteo.orchestrator import SourceOrchestrator, location_variants
from fakes import FakeSource, make_day, make_reading

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


class TestLocationVariants:

    @pytest.mark.parametrize("location,expected", [
        ("Madrid, Spain", ["Madrid, Spain", "Madrid"]),
        ("New York City", ["New York City", "New York"]),
        ("Paris", ["Paris"]),
        ("  Paris  ", ["Paris"]),
        ("Springfield, Illinois, USA", ["Springfield, Illinois, USA", "Springfield, Illinois"]),
        ("   ", []),
        ("", []),
    ])
    def test_variants(self, location, expected):
        variants = location_variants(location)
        assert variants == expected

    def test_no_duplicates(self):
        variants = location_variants("San Francisco, CA")
        assert len(variants) == len(set(variants))


class TestCollectReadings:

    @pytest.mark.asyncio
    async def test_every_source_answers(self):
        sources = [FakeSource("OpenMeteo"), FakeSource("MetNorway"), FakeSource("WttrIn")]
        result = await SourceOrchestrator(sources).collect_readings("Madrid")

        assert [r.source for r in result.readings] == ["OpenMeteo", "MetNorway", "WttrIn"]
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_variant_fallback(self):
        picky = FakeSource("OpenWeatherMap", accept={"Madrid"})
        result = await SourceOrchestrator([picky]).collect_readings("Madrid, Spain")

        assert len(result.readings) == 1
        assert picky.calls == ["Madrid, Spain", "Madrid"]

    @pytest.mark.asyncio
    async def test_stops_at_first_working_variant(self):
        source = FakeSource("OpenMeteo")
        await SourceOrchestrator([source]).collect_readings("Madrid, Spain")
        assert source.calls == ["Madrid, Spain"]

    @pytest.mark.asyncio
    async def test_all_sources_fail(self):
        sources = [
            FakeSource("OpenMeteo", error=SourceUnavailable("OpenMeteo", "HTTP 500")),
            FakeSource("MetNorway", accept=set()),
        ]
        with pytest.raises(NoDataAvailable) as excinfo:
            await SourceOrchestrator(sources).collect_readings("Atlantis")

        assert excinfo.value.location == "Atlantis"
        assert "alternate name" in str(excinfo.value)
        assert "all 2 sources failed" in str(excinfo.value)
        assert [f.source for f in excinfo.value.failures] == ["OpenMeteo", "MetNorway"]

    @pytest.mark.asyncio
    async def test_empty_location(self):
        source = FakeSource("OpenMeteo")
        with pytest.raises(NoDataAvailable):
            await SourceOrchestrator([source]).collect_readings("   ")
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_partial_failure_is_recorded(self):
        sources = [
            FakeSource("OpenMeteo"),
            FakeSource("WeatherAPI", error=SourceUnavailable("WeatherAPI", "WEATHERAPI_KEY not configured")),
            FakeSource("WttrIn"),
        ]
        result = await SourceOrchestrator(sources).collect_readings("Madrid")

        assert [r.source for r in result.readings] == ["OpenMeteo", "WttrIn"]
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.source == "WeatherAPI"
        assert "not configured" in failure.reason
        assert not failure.unsupported

    @pytest.mark.asyncio
    async def test_non_engine_errors_are_contained(self):
        sources = [FakeSource("Broken", error=ValueError("unexpected payload")), FakeSource("OpenMeteo")]
        result = await SourceOrchestrator(sources).collect_readings("Madrid")

        assert [r.source for r in result.readings] == ["OpenMeteo"]
        assert result.failures[0].source == "Broken"

    @pytest.mark.asyncio
    async def test_invalid_reading_is_discarded(self):
        sources = [
            FakeSource("Glitchy", reading=make_reading(source="Glitchy", temperature=75.0)),
            FakeSource("OpenMeteo"),
        ]
        result = await SourceOrchestrator(sources).collect_readings("Madrid")

        assert [r.source for r in result.readings] == ["OpenMeteo"]
        assert "out of range" in result.failures[0].reason

    @pytest.mark.asyncio
    async def test_forecast_mode_unsupported(self):
        no_forecast = FakeSource("CurrentOnly", supports_forecast=False)
        orchestrator = SourceOrchestrator([no_forecast, FakeSource("OpenMeteo")])
        result = await orchestrator.collect_readings("Madrid", use_forecast=True)

        assert [r.source for r in result.readings] == ["OpenMeteo"]
        assert no_forecast.calls == []
        assert result.failures[0].unsupported

    @pytest.mark.asyncio
    async def test_forecast_mode_uses_first_reading(self):
        forecast = [
            make_reading(source="OpenMeteo", temperature=11.0, timestamp="2026-10-19T00:00:00Z"),
            make_reading(source="OpenMeteo", temperature=14.0, timestamp="2026-10-19T01:00:00Z"),
        ]
        orchestrator = SourceOrchestrator([FakeSource("OpenMeteo", forecast=forecast)])
        result = await orchestrator.collect_readings("Madrid", use_forecast=True)
        assert [r.temperature for r in result.readings] == [11.0]

    @pytest.mark.asyncio
    async def test_empty_forecast_is_a_failure(self):
        orchestrator = SourceOrchestrator([FakeSource("OpenMeteo", forecast=[])])
        with pytest.raises(NoDataAvailable):
            await orchestrator.collect_readings("Madrid", use_forecast=True)

    @pytest.mark.asyncio
    async def test_same_sources_same_readings(self):
        orchestrator = SourceOrchestrator([FakeSource("OpenMeteo"), FakeSource("USNWS")])
        first = await orchestrator.collect_readings("Madrid")
        second = await orchestrator.collect_readings("Madrid")
        assert first == second


class TestRequestDeadline:

    @pytest.mark.asyncio
    async def test_fast_readings_survive_a_slow_source(self):
        fast = FakeSource("OpenMeteo")
        slow = FakeSource("MetNorway", delay=2.0)
        later = FakeSource("WttrIn")
        result = await SourceOrchestrator([fast, slow, later]).collect_readings("Madrid", timeout=0.2)

        assert [r.source for r in result.readings] == ["OpenMeteo"]
        assert [f.source for f in result.failures] == ["MetNorway", "WttrIn"]
        assert "request deadline of 0.2s" in result.failures[0].reason
        assert "skipped" in result.failures[1].reason
        assert later.calls == []

    @pytest.mark.asyncio
    async def test_nothing_before_deadline(self):
        sources = [FakeSource("OpenMeteo", delay=1.0), FakeSource("WttrIn")]
        with pytest.raises(NoDataAvailable, match=r"request deadline of 0\.05s exceeded") as excinfo:
            await SourceOrchestrator(sources).collect_readings("Madrid", timeout=0.05)
        assert [f.source for f in excinfo.value.failures] == ["OpenMeteo", "WttrIn"]

    @pytest.mark.asyncio
    async def test_no_timeout_waits_for_every_source(self):
        sources = [FakeSource("OpenMeteo", delay=0.05), FakeSource("WttrIn")]
        result = await SourceOrchestrator(sources).collect_readings("Madrid")
        assert [r.source for r in result.readings] == ["OpenMeteo", "WttrIn"]


class TestOverlappingRequests:

    @pytest.mark.asyncio
    async def test_each_call_keeps_its_own_failures(self):
        gate = asyncio.Event()
        open_meteo = FakeSource("OpenMeteo", gate=gate, gated={"Madrid"})
        weather_api = FakeSource("WeatherAPI", accept={"Madrid"})
        orchestrator = SourceOrchestrator([open_meteo, weather_api])

        madrid = asyncio.ensure_future(orchestrator.collect_readings("Madrid"))
        await asyncio.sleep(0.01)
        paris = await orchestrator.collect_readings("Paris")
        gate.set()
        madrid_result = await madrid

        assert [f.source for f in paris.failures] == ["WeatherAPI"]
        assert madrid_result.failures == []
        assert [r.source for r in madrid_result.readings] == ["OpenMeteo", "WeatherAPI"]


class TestDailyForecast:

    @pytest.mark.asyncio
    async def test_primary_answers_live(self):
        days = [make_day("2026-10-19"), make_day("2026-10-20")]
        primary = FakeSource("OpenMeteo", supports_7day_forecast=True, daily=days)
        result = await SourceOrchestrator([primary]).get_7day_forecast("Madrid")

        assert result.source == "live"
        assert result.provider == "OpenMeteo"
        assert result.forecast == days

    @pytest.mark.asyncio
    async def test_secondary_answers_fallback(self):
        primary = FakeSource("OpenMeteo", supports_7day_forecast=True,
                             error=SourceUnavailable("OpenMeteo", "HTTP 503"))
        secondary = FakeSource("MetNorway", supports_7day_forecast=True,
                               daily=[make_day(source="MetNorway")])
        orchestrator = SourceOrchestrator([primary, secondary])
        result = await orchestrator.get_7day_forecast("Madrid")

        assert result.source == "fallback"
        assert result.provider == "MetNorway"
        assert [f.source for f in result.failures] == ["OpenMeteo"]

    @pytest.mark.asyncio
    async def test_non_capable_sources_are_skipped(self):
        current_only = FakeSource("WttrIn", supports_7day_forecast=False)
        capable = FakeSource("OpenMeteo", supports_7day_forecast=True, daily=[make_day()])
        result = await SourceOrchestrator([current_only, capable]).get_7day_forecast("Madrid")

        assert current_only.calls == []
        # The first capable adapter is the primary even when registered second
        assert result.source == "live"

    @pytest.mark.asyncio
    async def test_chain_exhausted_is_estimated(self):
        failing = FakeSource("OpenMeteo", supports_7day_forecast=True, daily=[])
        orchestrator = SourceOrchestrator([failing], rng=random.Random(42))
        result = await orchestrator.get_daily_forecast("Atlantis", days=15)

        assert result.source == "estimated"
        assert result.is_estimated
        assert result.provider == "Synthetic"
        assert len(result.forecast) == 15
        assert all(p.estimated for p in result.forecast)
        assert all(p.temperature_max >= p.temperature_min for p in result.forecast)
        assert "empty daily forecast" in result.failures[0].reason

    @pytest.mark.asyncio
    async def test_no_capable_sources_is_estimated(self):
        orchestrator = SourceOrchestrator([FakeSource("WttrIn")], rng=random.Random(1))
        result = await orchestrator.get_7day_forecast("Madrid")
        assert result.source == "estimated"
        assert len(result.forecast) == 7

    @pytest.mark.asyncio
    async def test_days_are_truncated(self):
        days = [make_day(f"2026-10-{d:02d}") for d in range(19, 29)]
        primary = FakeSource("OpenMeteo", supports_7day_forecast=True, daily=days)
        result = await SourceOrchestrator([primary]).get_daily_forecast("Madrid", days=7)
        assert len(result.forecast) == 7
        assert result.forecast[-1].date == "2026-10-25"

    @pytest.mark.asyncio
    async def test_overlapping_requests_keep_their_failures(self):
        gate = asyncio.Event()
        primary = FakeSource("OpenMeteo", supports_7day_forecast=True, daily=[make_day()],
                             accept={"Madrid"}, gate=gate, gated={"Madrid"})
        secondary = FakeSource("MetNorway", supports_7day_forecast=True, daily=[make_day(source="MetNorway")])
        orchestrator = SourceOrchestrator([primary, secondary])

        madrid = asyncio.ensure_future(orchestrator.get_7day_forecast("Madrid"))
        await asyncio.sleep(0.01)
        paris = await orchestrator.get_7day_forecast("Paris")
        gate.set()
        madrid_result = await madrid

        assert paris.source == "fallback"
        assert [f.source for f in paris.failures] == ["OpenMeteo"]
        assert madrid_result.source == "live"
        assert madrid_result.failures == []
