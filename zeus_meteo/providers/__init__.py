"""
Providers package for Zeus Meteo

Adapters in orchestrator registration order, with their ensemble weight:

1. Open-Meteo - GFS/ICON/GEM blend, no key - Weight: 1.1
2. Met.no - Norwegian Met Institute (ECMWF), no key - Weight: 1.1
3. NWS - api.weather.gov, US only, no key - Weight: 1.2
4. wttr.in - World Weather Online data, no key - Weight: 0.9
5. OpenWeatherMap - needs OPENWEATHER_API_KEY - Weight: 1.0
6. WeatherAPI.com - needs WEATHERAPI_KEY - Weight: 1.0
7. Mock - synthetic, opt-in only - Weight: 0.85
"""

from zeus_meteo.providers.base import (
    WeatherSource,
    fetch_json,
)

from zeus_meteo.providers.geocoding import (
    Geocoder,
)

from zeus_meteo.providers.open_meteo import (
    OpenMeteoSource,
)

from zeus_meteo.providers.met_no import (
    MetNorwaySource,
)

from zeus_meteo.providers.nws import (
    NWSSource,
    compass_to_degrees,
    parse_wind_speed,
)

from zeus_meteo.providers.wttr_in import (
    WttrInSource,
)

from zeus_meteo.providers.openweathermap import (
    OpenWeatherMapSource,
)

from zeus_meteo.providers.weatherapi import (
    WeatherAPISource,
)

from zeus_meteo.providers.mock import (
    MockWeatherSource,
    SYNTHETIC_PROVIDER,
    seasonal_baseline,
    synthesize_daily_forecast,
)

__all__ = [
    # Contract
    "WeatherSource",
    "fetch_json",
    "Geocoder",
    # Keyless providers
    "OpenMeteoSource",
    "MetNorwaySource",
    "NWSSource",
    "compass_to_degrees",
    "parse_wind_speed",
    "WttrInSource",
    # Keyed providers
    "OpenWeatherMapSource",
    "WeatherAPISource",
    # Synthetic
    "MockWeatherSource",
    "SYNTHETIC_PROVIDER",
    "seasonal_baseline",
    "synthesize_daily_forecast",
]
