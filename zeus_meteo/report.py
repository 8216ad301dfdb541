"""
Report Renderer for Zeus Meteo

Turns readings plus the ensemble into the text handed back to callers.

Backends, tried in order:
1. GroqBackend   - OpenAI-compatible chat completions (only with GROQ_API_KEY)
2. OllamaBackend - local /api/generate endpoint at OLLAMA_URL
3. Deterministic template - always available

A failing backend raises RenderBackendUnavailable, which is logged and
never leaves this module. Whatever produced the narrative, the ensemble
summary is appended as a second, delimited section.
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import List, Optional, Sequence

import httpx

from zeus_meteo.ensemble import EnsembleResult, build_ensemble
from zeus_meteo.errors import RenderBackendUnavailable
from zeus_meteo.models import NormalizedReading

logger = logging.getLogger(__name__)

RULE = "=" * 45
ENSEMBLE_HEADER = "ZEUS METEO ENSEMBLE SUMMARY"
NARRATIVE_HEADER = "ZEUS METEO SMART ANALYSIS"

SYSTEM_PROMPT = (
    "You are an expert weather assistant. You write clear, accurate and useful "
    "reports. Always include a technical analysis and practical recommendations."
)


def _fmt(value: Optional[float], unit: str, digits: int = 1) -> str:
    if value is None:
        return "n/a"
    return f"{value:.{digits}f}{unit}"


def _plain_mean(values: Sequence[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def modal_description(descriptions: Sequence[str]) -> str:
    """
    Most frequent description.

    Ties go to the value whose last occurrence comes latest in the input.
    """
    if not descriptions:
        return "unknown"
    counts = Counter(descriptions)
    top = max(counts.values())
    for description in reversed(descriptions):
        if counts[description] == top:
            return description
    return descriptions[-1]


def reading_line(reading: NormalizedReading) -> str:
    parts = [
        f"{reading.source}: {reading.temperature:.1f}°C",
        reading.description,
        f"humidity {_fmt(reading.humidity, '%')}",
        f"wind {_fmt(reading.wind_speed, ' m/s')}",
    ]
    if reading.pressure is not None:
        parts.append(f"pressure {reading.pressure:.0f} hPa")
    return ", ".join(parts)


def build_prompt(readings: Sequence[NormalizedReading], location: str, date: str,
                 ensemble: Optional[EnsembleResult] = None) -> str:
    """Structured prompt: per-source lines plus the sections the report must have."""
    lines = "\n".join(reading_line(r) for r in readings)
    aggregate = ""
    if ensemble is not None:
        aggregate = (
            "AGGREGATED DATA:\n"
            f"- Weighted average temperature: {ensemble.avg_temp:.1f}°C "
            f"(range {ensemble.min_temp:.1f}°C - {ensemble.max_temp:.1f}°C)\n"
            f"- Average humidity: {_fmt(ensemble.avg_humidity, '%')}\n"
            f"- Wind speed: {_fmt(ensemble.avg_wind, ' m/s')}\n"
            f"- Trend: {ensemble.trend.direction}\n"
            f"- Source agreement (confidence): {ensemble.confidence}%\n\n"
        )

    return (
        f"Write a detailed weather report for {location} on {date}.\n\n"
        f"{aggregate}"
        f"DATA BY SOURCE:\n{lines}\n\n"
        "Include:\n"
        "1. Executive summary of the current weather\n"
        "2. Technical analysis of temperature, humidity, wind and pressure\n"
        "3. Trend prediction (stable, rising, falling)\n"
        "4. Specific recommendations for outdoor activities, clothing and health\n"
        "5. Alerts for extreme conditions (storms, extreme heat, intense cold)\n"
        "6. Forecast confidence based on how consistent the sources are\n\n"
        "Use markdown formatting and be specific with times and values."
    )


class ReportBackend(ABC):
    """A free-text generation service."""

    name = "backend"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 60.0):
        self.client = client
        self.timeout = timeout

    async def _post(self, url: str, payload: dict, headers: Optional[dict] = None) -> dict:
        if self.client is not None:
            resp = await self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Raises:
            RenderBackendUnavailable: unreachable, error status or empty answer
        """
        try:
            text = await self._generate(prompt)
        except RenderBackendUnavailable:
            raise
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            raise RenderBackendUnavailable(self.name, e) from e
        if not text or not text.strip():
            raise RenderBackendUnavailable(self.name, "empty response")
        return text.strip()

    @abstractmethod
    async def _generate(self, prompt: str) -> str:
        ...


class GroqBackend(ReportBackend):
    """Groq's OpenAI-compatible chat completions API."""

    name = "Groq"
    BASE_URL = "https://api.groq.com/openai/v1"

    def __init__(self, api_key: str, model: str = "llama-3.3-70b-versatile",
                 client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        super().__init__(client=client, timeout=timeout)
        self.api_key = api_key
        self.model = model

    async def _generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 1024,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post(f"{self.BASE_URL}/chat/completions", payload, headers)
        return data["choices"][0]["message"]["content"]


class OllamaBackend(ReportBackend):
    """Local Ollama server, non-streaming /api/generate."""

    name = "Ollama"

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "llama2",
                 client: Optional[httpx.AsyncClient] = None, timeout: float = 60.0):
        super().__init__(client=client, timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.model = model

    async def _generate(self, prompt: str) -> str:
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        data = await self._post(f"{self.base_url}/api/generate", payload)
        return data["response"]


def basic_recommendations(avg_temp: float, avg_wind: Optional[float],
                          avg_humidity: Optional[float]) -> List[str]:
    if avg_temp > 30:
        recs = ["Heat warning: drink water often", "Avoid direct sun exposure", "Wear light clothing"]
    elif avg_temp > 25:
        recs = ["Warm weather: sunscreen recommended", "Good for outdoor activities"]
    elif avg_temp > 15:
        recs = ["Pleasant weather", "Perfect for outdoor activities"]
    elif avg_temp > 5:
        recs = ["Cool: bring a light jacket", "Good for a walk"]
    else:
        recs = ["Very cold: dress warmly", "Avoid prolonged exposure"]

    if avg_wind is not None and avg_wind > 15:
        recs.append("Strong wind warning: take care")
    if avg_humidity is not None and avg_humidity > 80:
        recs.append("High humidity: may feel uncomfortable")
    return recs


def render_basic_report(readings: Sequence[NormalizedReading], location: str, date: str) -> str:
    """Fixed-section plain-text report from unweighted averages."""
    header = f"WEATHER REPORT\nDate: {date}\nLocation: {location}\n"
    if not readings:
        return header + "\nNo readings were available.\n"

    temps = [r.temperature for r in readings]
    avg_temp = sum(temps) / len(temps)
    avg_humidity = _plain_mean([r.humidity for r in readings])
    avg_wind = _plain_mean([r.wind_speed for r in readings])
    condition = modal_description([r.description for r in readings])

    sources: List[str] = []
    for r in readings:
        if r.source not in sources:
            sources.append(r.source)

    sections = [
        header,
        "TEMPERATURE",
        f"- Average: {avg_temp:.1f}°C",
        f"- Range: {min(temps):.1f}°C - {max(temps):.1f}°C",
        "",
        "WIND",
        f"- Average speed: {_fmt(avg_wind, ' m/s')}",
        "",
        "HUMIDITY",
        f"- Average: {_fmt(avg_humidity, '%')}",
        "",
        "CONDITIONS",
        f"- Prevailing: {condition}",
        "",
        "SOURCES CONSULTED",
        *[f"- {s}" for s in sources],
        "",
        "RECOMMENDATIONS",
        *[f"- {rec}" for rec in basic_recommendations(avg_temp, avg_wind, avg_humidity)],
    ]
    return "\n".join(sections) + "\n"


def wrap_narrative(narrative: str, readings: Sequence[NormalizedReading]) -> str:
    """Frame a backend narrative with a header and the per-source list."""
    source_lines = "\n".join(f"- {r.source}: {r.temperature:.1f}°C, {r.description}" for r in readings)
    return f"{NARRATIVE_HEADER}\n{RULE}\n\n{narrative}\n\nSOURCES PROCESSED\n{source_lines}\n"


def render_ensemble_section(ensemble: EnsembleResult) -> str:
    trend = ensemble.trend
    lines = [
        RULE,
        ENSEMBLE_HEADER,
        RULE,
        f"Sources: {ensemble.source_count} ({', '.join(ensemble.sources)})",
        f"Weighted temperature: {ensemble.avg_temp:.1f}°C "
        f"(range {ensemble.min_temp:.1f}°C - {ensemble.max_temp:.1f}°C)",
        f"Humidity: {_fmt(ensemble.avg_humidity, '%')}",
        f"Wind: {_fmt(ensemble.avg_wind, ' m/s')}",
        f"Pressure: {_fmt(ensemble.avg_pressure, ' hPa')}",
        f"Conditions: {', '.join(ensemble.descriptions) or 'unknown'}",
        f"Trend: {trend.direction} ({trend.change_deg:+.1f}°C)",
        f"Confidence: {ensemble.confidence}% (heuristic score from source count, agreement and data quality)",
    ]
    if ensemble.anomaly.is_anomaly:
        lines.append(f"Anomalous sources: {', '.join(sorted(ensemble.anomaly.abnormal_sources))} "
                     f"(mean {ensemble.anomaly.mean:.1f}°C, stdev {ensemble.anomaly.std_dev:.2f})")
    lines.append("")
    lines.append("Recommendations:")
    lines.extend(f"- {rec}" for rec in ensemble.recommendations)
    if ensemble.alerts:
        lines.append("")
        lines.append("Alerts:")
        lines.extend(f"! {alert}" for alert in ensemble.alerts)
    return "\n".join(lines) + "\n"


class ReportRenderer:
    """Narrative from the first working backend (or the template) plus the ensemble section."""

    def __init__(self, backends: Optional[Sequence[ReportBackend]] = None):
        self.backends = list(backends or [])
        self.last_backend: Optional[str] = None

    async def _narrative(self, readings: Sequence[NormalizedReading], location: str, date: str,
                         ensemble: Optional[EnsembleResult]) -> str:
        if readings:
            prompt = build_prompt(readings, location, date, ensemble)
            for backend in self.backends:
                try:
                    text = await backend.generate(prompt)
                except RenderBackendUnavailable as e:
                    logger.warning(f"[ReportRenderer] {e}")
                    continue
                logger.info(f"[ReportRenderer] Report generated with {backend.name}")
                self.last_backend = backend.name
                return wrap_narrative(text, readings)

        logger.info("[ReportRenderer] Using the basic template report")
        self.last_backend = "template"
        return render_basic_report(readings, location, date)

    async def generate_report(self, readings: Sequence[NormalizedReading], location: str, date: str,
                              ensemble: Optional[EnsembleResult] = None) -> str:
        """Never raises for backend trouble; the template is the floor."""
        if ensemble is None and readings:
            ensemble = build_ensemble(readings)

        body = await self._narrative(readings, location, date, ensemble)
        if ensemble is None:
            return body
        return f"{body}\n{render_ensemble_section(ensemble)}"
