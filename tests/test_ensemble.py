"""
Tests for the Weighted Ensemble Engine

These tests verify that:
1. The source weight table is reproduced exactly
2. Weighted averages skip null fields per field
3. min_temp <= avg_temp <= max_temp with the fixed 2 °C margin
4. Trend, anomaly and confidence follow their rules
5. Recommendations and alerts fire in rule order

Run with: python -m pytest tests/test_ensemble.py -v
"""

import logging

import pytest

from zeus_meteo.ensemble import (
    build_ensemble,
    compute_confidence,
    compute_trend,
    detect_anomalies,
    get_source_weight,
    quality_score,
    weighted_mean,
)
from fakes import make_reading

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


def series(temps, sources=None, **fields):
    """Readings one hour apart."""
    readings = []
    for i, temp in enumerate(temps):
        source = sources[i] if sources else f"S{i + 1}"
        readings.append(make_reading(source=source, temperature=temp,
                                     timestamp=f"2026-10-19T{i:02d}:00:00+00:00", **fields))
    return readings


class TestWeights:

    def test_weight_table(self):
        assert get_source_weight("USNWS") == 1.2
        assert get_source_weight("OpenMeteo") == 1.1
        assert get_source_weight("MetNorway") == 1.1
        assert get_source_weight("WeatherAPI") == 1.0
        assert get_source_weight("OpenWeatherMap") == 1.0
        assert get_source_weight("WttrIn") == 0.9
        assert get_source_weight("MockSource") == 0.85
        assert get_source_weight("UnknownSource") == 1.0

    def test_weighted_average(self):
        result = build_ensemble([
            make_reading(source="OpenMeteo", temperature=20.0),
            make_reading(source="USNWS", temperature=22.0),
        ])
        expected = (20.0 * 1.1 + 22.0 * 1.2) / 2.3
        assert result.avg_temp == pytest.approx(expected, abs=0.01)

    def test_nulls_are_excluded_per_field(self):
        assert weighted_mean([50.0, None], [1.1, 1.2]) == pytest.approx(50.0)
        assert weighted_mean([None, None], [1.0, 1.0]) is None

        result = build_ensemble([
            make_reading(source="OpenMeteo", temperature=20.0, humidity=50.0),
            make_reading(source="USNWS", temperature=22.0, humidity=None, wind_speed=4.0),
        ])
        assert result.avg_humidity == pytest.approx(50.0)
        assert result.avg_wind == pytest.approx(4.0)
        assert result.avg_pressure is None


class TestRange:

    @pytest.mark.parametrize("temps", [
        [20.0],
        [-5.0, 0.0, 5.0],
        [20, 20.5, 19.8, 20.2, 20, 35],
        [59.0, -89.0],
    ])
    def test_min_avg_max_ordering(self, temps):
        result = build_ensemble(series(temps))
        assert result.min_temp <= result.avg_temp <= result.max_temp

    def test_fixed_margin(self):
        result = build_ensemble(series([18.0, 24.0]))
        assert result.min_temp == pytest.approx(16.0)
        assert result.max_temp == pytest.approx(26.0)

    def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            build_ensemble([])


class TestTrend:

    def test_rising(self):
        trend = compute_trend(series([10.0, 11.5, 13.0]))
        assert trend.direction == "rising"
        assert trend.change_deg == pytest.approx(3.0)

    def test_falling(self):
        assert compute_trend(series([13.0, 11.5, 10.0])).direction == "falling"

    @pytest.mark.parametrize("temps", [[10.0, 12.0], [12.0, 10.0], [10.0, 10.5, 11.0]])
    def test_stable_within_two_degrees(self, temps):
        assert compute_trend(series(temps)).direction == "stable"

    def test_sorted_by_timestamp_not_input_order(self):
        readings = series([10.0, 11.5, 13.0])
        trend = compute_trend(list(reversed(readings)))
        assert trend.direction == "rising"

    def test_single_reading_is_stable(self):
        trend = compute_trend(series([25.0]))
        assert trend.direction == "stable"
        assert trend.change_deg == 0

    def test_field_deltas(self):
        readings = [
            make_reading(temperature=10.0, timestamp="2026-10-19T00:00:00Z", humidity=80.0, wind_speed=2.0),
            make_reading(temperature=11.0, timestamp="2026-10-19T06:00:00Z", humidity=65.0, wind_speed=None),
        ]
        trend = compute_trend(readings)
        assert trend.humidity_trend == pytest.approx(-15.0)
        assert trend.wind_trend is None


class TestAnomaly:

    def test_outlier_flagged(self):
        anomaly = detect_anomalies(series([20, 20.5, 19.8, 20.2, 20, 35]))
        assert anomaly.is_anomaly
        assert anomaly.abnormal_sources == frozenset({"S6"})

    def test_consistent_readings(self):
        anomaly = detect_anomalies(series([20, 20.5, 19.8, 20.2]))
        assert not anomaly.is_anomaly
        assert anomaly.abnormal_sources == frozenset()

    def test_identical_readings(self):
        anomaly = detect_anomalies(series([15.0, 15.0, 15.0]))
        assert not anomaly.is_anomaly
        assert anomaly.std_dev == 0

    def test_variance_alert(self):
        result = build_ensemble(series([20, 20.5, 19.8, 20.2, 20, 35]))
        assert any(alert.startswith("Variance warning") and "S6" in alert for alert in result.alerts)


class TestConfidence:

    def test_three_consistent_sources(self):
        readings = [
            make_reading(source="OpenMeteo", temperature=20.0, humidity=60.0, pressure=1013.0),
            make_reading(source="MetNorway", temperature=20.5, humidity=62.0, pressure=1012.0),
            make_reading(source="USNWS", temperature=19.5, humidity=58.0, pressure=1014.0),
        ]
        confidence = compute_confidence(readings)
        logger.info(f"[TEST] confidence={confidence}")
        assert 50 < confidence <= 100

    def test_single_sparse_reading(self):
        # 15 (one source) + 30 (no spread) + 25/3 (temperature check only)
        assert compute_confidence([make_reading(temperature=20.0)]) == 53

    def test_quality_score(self):
        assert quality_score(make_reading(humidity=50.0, pressure=1000.0)) == 1.0
        assert quality_score(make_reading(humidity=120.0, pressure=1000.0)) == pytest.approx(2 / 3)
        assert quality_score(make_reading()) == pytest.approx(1 / 3)

    @pytest.mark.parametrize("temps", [[-80.0, 55.0], [20.0] * 10, [0.0, 40.0, -40.0]])
    def test_always_in_range(self, temps):
        assert 0 <= compute_confidence(series(temps)) <= 100


class TestAdvice:

    def test_default_recommendation(self):
        result = build_ensemble(series([20.0, 20.5], humidity=50.0, wind_speed=3.0))
        assert len(result.recommendations) == 1
        assert result.recommendations[0].startswith("Favorable conditions")
        assert result.alerts == ()

    def test_all_matching_rules_fire_in_order(self):
        result = build_ensemble(series([29.0, 31.0], humidity=90.0, wind_speed=16.0))
        recs = result.recommendations
        assert recs[0].startswith("High temperatures")
        assert recs[1].startswith("Strong wind")
        assert recs[2].startswith("High humidity")
        assert not any(r.startswith("Moderate wind") for r in recs)
        assert "Strong wind alert." in result.alerts

    def test_moderate_wind_and_cold(self):
        result = build_ensemble(series([5.0, 6.0], wind_speed=12.0))
        assert result.recommendations[0].startswith("Cool temperatures")
        assert result.recommendations[1].startswith("Moderate wind")

    def test_trend_advice(self):
        result = build_ensemble(series([16.0, 20.0]))
        assert any(r.startswith("Temperatures rising") for r in result.recommendations)

    def test_frost_and_storm_alerts(self):
        readings = series([-1.0, 1.0])
        readings.append(make_reading(source="S3", temperature=0.5, timestamp="2026-10-19T01:30:00Z",
                                     description="thunderstorm"))
        result = build_ensemble(readings)
        assert any(a.startswith("Frost alert") for a in result.alerts)
        assert any(a.startswith("Storm alert") for a in result.alerts)

    def test_extreme_heat(self):
        result = build_ensemble(series([36.0, 37.0]))
        assert any(a.startswith("Extreme heat") for a in result.alerts)


class TestResultShape:

    def test_descriptions_deduplicated_in_order(self):
        readings = [
            make_reading(source="A", description="rain"),
            make_reading(source="B", description="fog"),
            make_reading(source="C", description="rain"),
            make_reading(source="D", description="overcast"),
            make_reading(source="E", description="snow"),
        ]
        assert build_ensemble(readings).descriptions == ("rain", "fog", "overcast")

    def test_sources_and_dict(self):
        result = build_ensemble(series([20.0, 21.0], sources=["OpenMeteo", "WttrIn"]))
        assert result.source_count == 2
        assert result.sources == ("OpenMeteo", "WttrIn")
        data = result.to_dict()
        assert data["trend"]["direction"] == "stable"
        assert data["anomaly"]["abnormal_sources"] == []

    def test_same_input_same_output(self):
        readings = series([18.2, 19.7, 21.3], humidity=55.0, wind_speed=2.5, pressure=1010.0)
        assert build_ensemble(readings) == build_ensemble(list(readings))
