"""
Weighted Ensemble Engine for Zeus Meteo

Combines the readings of several providers into one estimate.

Key Features:
1. Weighted mean per field (nulls excluded from numerator and denominator)
2. Range with a fixed ±2 °C uncertainty margin
3. Trend over the timestamp-sorted readings
4. Outlier detection (flags readings > 2 stdev from the mean)
5. Confidence scoring (0-100) from source count, agreement and data quality
6. Rule-based recommendations and alerts

WEIGHTS (hand-assigned reliability):
- USNWS: 1.2 (official forecast office data, US only)
- OpenMeteo: 1.1
- MetNorway: 1.1 (ECMWF)
- WeatherAPI: 1.0
- OpenWeatherMap: 1.0
- WttrIn: 0.9
- MockSource: 0.85 (synthetic)

The confidence score is a heuristic, not a statistical confidence interval.
No I/O happens in this module.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from zeus_meteo.conditions import is_stormy
from zeus_meteo.models import NormalizedReading, parse_timestamp

logger = logging.getLogger(__name__)

SOURCE_WEIGHTS: Dict[str, float] = {
    "USNWS": 1.2,
    "OpenMeteo": 1.1,
    "MetNorway": 1.1,
    "WeatherAPI": 1.0,
    "OpenWeatherMap": 1.0,
    "WttrIn": 0.9,
    "MockSource": 0.85,
}
DEFAULT_WEIGHT = 1.0

RANGE_MARGIN_C = 2.0
TREND_THRESHOLD_C = 2.0
OUTLIER_STDEV_THRESHOLD = 2.0
MAX_DESCRIPTIONS = 3

# Confidence sub-scores
SOURCE_POINTS = 15
SOURCE_POINTS_CAP = 45
CONSISTENCY_POINTS = 30
CONSISTENCY_SPREAD_C = 20.0
QUALITY_POINTS = 25

# Plausibility ranges for the data-quality term
QUALITY_TEMP_RANGE = (-50.0, 60.0)
QUALITY_HUMIDITY_RANGE = (0.0, 100.0)
QUALITY_PRESSURE_RANGE = (900.0, 1100.0)

RISING = "rising"
FALLING = "falling"
STABLE = "stable"


def get_source_weight(source: str) -> float:
    """Reliability weight of a source name (1.0 for unknown sources)."""
    return SOURCE_WEIGHTS.get(source, DEFAULT_WEIGHT)


@dataclass(frozen=True)
class TrendResult:
    direction: str = STABLE
    change_deg: float = 0.0
    humidity_trend: Optional[float] = None
    wind_trend: Optional[float] = None


@dataclass(frozen=True)
class AnomalyResult:
    is_anomaly: bool = False
    mean: float = 0.0
    std_dev: float = 0.0
    abnormal_sources: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class EnsembleResult:
    """Result of reconciling a set of readings."""
    avg_temp: float
    min_temp: float
    max_temp: float
    avg_humidity: Optional[float]
    avg_wind: Optional[float]
    avg_pressure: Optional[float]
    descriptions: Tuple[str, ...]
    trend: TrendResult
    anomaly: AnomalyResult
    confidence: int
    recommendations: Tuple[str, ...]
    alerts: Tuple[str, ...]
    source_count: int = 0
    sources: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["descriptions"] = list(self.descriptions)
        data["recommendations"] = list(self.recommendations)
        data["alerts"] = list(self.alerts)
        data["sources"] = list(self.sources)
        data["anomaly"]["abnormal_sources"] = sorted(self.anomaly.abnormal_sources)
        return data


def weighted_mean(values: Sequence[Optional[float]], weights: Sequence[float]) -> Optional[float]:
    """
    Weighted mean ignoring None values.

    A None value drops its weight too; returns None when nothing is left.
    """
    pairs = [(v, w) for v, w in zip(values, weights) if v is not None]
    if not pairs:
        return None
    vals = np.array([p[0] for p in pairs], dtype=float)
    wts = np.array([p[1] for p in pairs], dtype=float)
    return float(np.average(vals, weights=wts))


def _in_range(value: Optional[float], bounds: Tuple[float, float]) -> bool:
    return value is not None and bounds[0] <= value <= bounds[1]


def quality_score(reading: NormalizedReading) -> float:
    """Fraction (0-1) of the plausibility checks a reading passes."""
    checks = (
        _in_range(reading.temperature, QUALITY_TEMP_RANGE),
        _in_range(reading.humidity, QUALITY_HUMIDITY_RANGE),
        _in_range(reading.pressure, QUALITY_PRESSURE_RANGE),
    )
    return sum(checks) / len(checks)


def _delta(first: Optional[float], last: Optional[float]) -> Optional[float]:
    if first is None or last is None:
        return None
    return round(last - first, 2)


def compute_trend(readings: Sequence[NormalizedReading]) -> TrendResult:
    """Last-minus-first change over the timestamp-sorted readings."""
    if len(readings) < 2:
        return TrendResult()

    ordered = sorted(readings, key=lambda r: parse_timestamp(r.timestamp))
    first, last = ordered[0], ordered[-1]
    change = last.temperature - first.temperature

    if change > TREND_THRESHOLD_C:
        direction = RISING
    elif change < -TREND_THRESHOLD_C:
        direction = FALLING
    else:
        direction = STABLE

    return TrendResult(
        direction=direction,
        change_deg=round(change, 2),
        humidity_trend=_delta(first.humidity, last.humidity),
        wind_trend=_delta(first.wind_speed, last.wind_speed),
    )


def detect_anomalies(readings: Sequence[NormalizedReading]) -> AnomalyResult:
    """Flag readings whose temperature is more than 2 population stdevs from the mean."""
    temps = np.array([r.temperature for r in readings], dtype=float)
    mean = float(np.mean(temps))
    std_dev = float(np.std(temps))

    abnormal = set()
    for reading, temp in zip(readings, temps):
        if std_dev > 0 and abs(temp - mean) > OUTLIER_STDEV_THRESHOLD * std_dev:
            abnormal.add(reading.source)
            logger.warning(f"[detect_anomalies] OUTLIER: {reading.source} = {temp:.1f}°C "
                           f"(mean {mean:.1f}°C, stdev {std_dev:.2f})")

    return AnomalyResult(
        is_anomaly=bool(abnormal),
        mean=round(mean, 2),
        std_dev=round(std_dev, 3),
        abnormal_sources=frozenset(abnormal),
    )


def compute_confidence(readings: Sequence[NormalizedReading]) -> int:
    """
    Heuristic 0-100 score.

    source term (max 45) + consistency term (max 30) + data-quality term (max 25)
    """
    temps = [r.temperature for r in readings]
    spread = max(temps) - min(temps)

    source_term = min(len(readings) * SOURCE_POINTS, SOURCE_POINTS_CAP)
    consistency_term = max(0.0, 1 - spread / CONSISTENCY_SPREAD_C) * CONSISTENCY_POINTS
    quality_term = float(np.mean([quality_score(r) for r in readings])) * QUALITY_POINTS

    score = round(source_term + consistency_term + quality_term)
    return int(max(0, min(100, score)))


def unique_descriptions(readings: Sequence[NormalizedReading], limit: int = MAX_DESCRIPTIONS) -> Tuple[str, ...]:
    seen: List[str] = []
    for reading in readings:
        if reading.description and reading.description not in seen:
            seen.append(reading.description)
        if len(seen) >= limit:
            break
    return tuple(seen)


def build_recommendations(avg_temp: float, avg_wind: Optional[float],
                          avg_humidity: Optional[float], trend: TrendResult) -> List[str]:
    recs = []
    if avg_temp > 25:
        recs.append("High temperatures: use sun protection and stay hydrated.")
    if avg_temp < 15:
        recs.append("Cool temperatures: wear warm clothing.")
    if avg_wind is not None:
        if avg_wind > 15:
            recs.append("Strong wind: secure loose objects and avoid exposed areas.")
        elif avg_wind > 10:
            recs.append("Moderate wind: take care with outdoor activities.")
    if avg_humidity is not None and avg_humidity > 85:
        recs.append("High humidity: expect a muggy feel and possible condensation.")
    if trend.direction == RISING:
        recs.append(f"Temperatures rising (+{trend.change_deg:.1f}°C over the period).")
    elif trend.direction == FALLING:
        recs.append(f"Temperatures falling ({trend.change_deg:.1f}°C over the period): keep an extra layer handy.")

    if not recs:
        recs.append("Favorable conditions for outdoor activities.")
    return recs


def build_alerts(avg_temp: float, raw_min: float, avg_wind: Optional[float],
                 anomaly: AnomalyResult, descriptions: Sequence[str]) -> List[str]:
    alerts = []
    if avg_temp >= 35:
        alerts.append("Extreme heat alert: avoid sun exposure during the central hours.")
    if raw_min <= 0:
        alerts.append("Frost alert: temperatures at or below 0°C.")
    if avg_wind is not None and avg_wind > 15:
        alerts.append("Strong wind alert.")
    if anomaly.is_anomaly:
        names = ", ".join(sorted(anomaly.abnormal_sources))
        alerts.append(f"Variance warning: {names} deviate more than 2 stdev from the ensemble mean.")
    if any(is_stormy(d) for d in descriptions):
        alerts.append("Storm alert: thunderstorms reported by at least one source.")
    return alerts


def build_ensemble(readings: Sequence[NormalizedReading]) -> EnsembleResult:
    """
    Reconcile validated readings into one EnsembleResult.

    Raises:
        ValueError: no readings were given
    """
    if not readings:
        raise ValueError("cannot build an ensemble from zero readings")

    readings = list(readings)
    weights = [get_source_weight(r.source) for r in readings]
    temps = [r.temperature for r in readings]

    avg_temp = weighted_mean(temps, weights)
    avg_humidity = weighted_mean([r.humidity for r in readings], weights)
    avg_wind = weighted_mean([r.wind_speed for r in readings], weights)
    avg_pressure = weighted_mean([r.pressure for r in readings], weights)

    raw_min, raw_max = min(temps), max(temps)
    trend = compute_trend(readings)
    anomaly = detect_anomalies(readings)
    descriptions = unique_descriptions(readings)
    confidence = compute_confidence(readings)

    result = EnsembleResult(
        avg_temp=round(avg_temp, 2),
        min_temp=round(raw_min - RANGE_MARGIN_C, 2),
        max_temp=round(raw_max + RANGE_MARGIN_C, 2),
        avg_humidity=round(avg_humidity, 1) if avg_humidity is not None else None,
        avg_wind=round(avg_wind, 2) if avg_wind is not None else None,
        avg_pressure=round(avg_pressure, 1) if avg_pressure is not None else None,
        descriptions=descriptions,
        trend=trend,
        anomaly=anomaly,
        confidence=confidence,
        recommendations=tuple(build_recommendations(avg_temp, avg_wind, avg_humidity, trend)),
        alerts=tuple(build_alerts(avg_temp, raw_min, avg_wind, anomaly, descriptions)),
        source_count=len(readings),
        sources=tuple(r.source for r in readings),
    )

    logger.info(f"[build_ensemble] {result.source_count} sources -> avg {result.avg_temp:.1f}°C "
                f"(range {result.min_temp:.1f}..{result.max_temp:.1f}), "
                f"trend {trend.direction}, confidence {confidence}")
    return result
