"""
Configuration for Zeus Meteo

Values come from the environment (a .env file is loaded first). Provider
keys are optional: a missing key just removes that adapter from the
orchestrator's list.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Values shipped in .env templates that mean "not configured"
PLACEHOLDER_KEYS = {"", "tu_api_key_aqui", "your_api_key_here", "changeme"}

DEFAULT_USER_AGENT = "ZeusMeteo/1.0 github.com/zeus-meteo/zeus-meteo"


def _clean_key(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if value.lower() in PLACEHOLDER_KEYS:
        return None
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[config] {name}={raw!r} is not a number, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime settings for the agent and its collaborators."""
    openweather_api_key: Optional[str] = None
    weatherapi_key: Optional[str] = None
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama2"
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.3-70b-versatile"
    cache_duration_seconds: float = 600.0   # 10 minutes
    cache_max_entries: int = 100
    cache_sweep_seconds: float = 60.0
    request_timeout_seconds: float = 45.0
    enable_mock_source: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from environment variables (and .env)."""
        if load_env_file:
            load_dotenv()

        settings = cls(
            openweather_api_key=_clean_key(os.getenv("OPENWEATHER_API_KEY")),
            weatherapi_key=_clean_key(os.getenv("WEATHERAPI_KEY")),
            ollama_url=os.getenv("OLLAMA_URL") or cls.ollama_url,
            ollama_model=os.getenv("OLLAMA_MODEL") or cls.ollama_model,
            groq_api_key=_clean_key(os.getenv("GROQ_API_KEY")),
            groq_model=os.getenv("GROQ_MODEL") or cls.groq_model,
            cache_duration_seconds=_env_float("ZEUS_CACHE_DURATION_SECONDS", cls.cache_duration_seconds),
            cache_max_entries=_env_int("ZEUS_CACHE_MAX_ENTRIES", cls.cache_max_entries),
            cache_sweep_seconds=_env_float("ZEUS_CACHE_SWEEP_SECONDS", cls.cache_sweep_seconds),
            request_timeout_seconds=_env_float("ZEUS_REQUEST_TIMEOUT_SECONDS", cls.request_timeout_seconds),
            enable_mock_source=_env_bool("ZEUS_ENABLE_MOCK_SOURCE"),
            user_agent=os.getenv("ZEUS_USER_AGENT") or DEFAULT_USER_AGENT,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        logger.debug(
            f"[config] OpenWeatherMap key: {'set' if settings.openweather_api_key else 'missing'}, "
            f"WeatherAPI key: {'set' if settings.weatherapi_key else 'missing'}, "
            f"Groq key: {'set' if settings.groq_api_key else 'missing'}"
        )
        return settings
