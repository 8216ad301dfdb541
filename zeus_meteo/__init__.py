"""
Zeus Meteo: Multi-Source Weather Reconciliation Engine

Queries several free weather providers for the same place, tolerates the
ones that fail, normalizes what comes back and folds it into one weighted
ensemble estimate with a confidence score, trend and anomaly flags.

Architecture:
    providers/      - One adapter per external source:
                      * open_meteo.py      - Open-Meteo forecast API (WMO codes)
                      * met_no.py          - Met Norway locationforecast (ECMWF)
                      * nws.py             - US National Weather Service
                      * wttr_in.py         - wttr.in JSON feed
                      * openweathermap.py  - OpenWeatherMap (API key)
                      * weatherapi.py      - WeatherAPI.com (API key)
                      * mock.py            - Seedable synthetic source
                      * geocoding.py       - Open-Meteo geocoding (shared)
    orchestrator.py - Sequential fan-out with location-variant retries
    ensemble.py     - Weighted average, trend, anomaly and confidence
    report.py       - Text report (generation backend + template fallback)
    cache.py        - In-memory TTL cache with FIFO eviction
    agent.py        - WeatherAgent context object (entry points)

Entry Points:
    python -m zeus_meteo "Madrid"          - Analyze current conditions
    python -m zeus_meteo "Lima" --week     - 7-day daily forecast
"""

__version__ = "1.0.0"
__author__ = "Zeus Meteo"
