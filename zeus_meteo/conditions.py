"""
Condition-code translation for Zeus Meteo

Every provider speaks its own enumeration:
- Open-Meteo:      WMO weather interpretation codes (0-99)
- Met Norway:      symbol codes ("partlycloudy_day", "heavyrainshowers_night")
- OpenWeatherMap:  numeric condition ids (2xx thunder ... 8xx clouds)
- WeatherAPI.com:  condition codes (1000-1282)
- wttr.in:         World Weather Online codes (113-395)
- NWS:             free-text short forecasts ("Chance Showers And Thunderstorms")

All of them collapse into one fixed vocabulary. Every function here is pure
and never raises: unknown or missing codes map to UNKNOWN.
"""

from typing import Dict, Optional

CLEAR_SKY = "clear sky"
MAINLY_CLEAR = "mainly clear"
PARTLY_CLOUDY = "partly cloudy"
OVERCAST = "overcast"
FOG = "fog"
LIGHT_DRIZZLE = "light drizzle"
DRIZZLE = "drizzle"
FREEZING_DRIZZLE = "freezing drizzle"
LIGHT_RAIN = "light rain"
RAIN = "rain"
HEAVY_RAIN = "heavy rain"
FREEZING_RAIN = "freezing rain"
LIGHT_SNOW = "light snow"
SNOW = "snow"
HEAVY_SNOW = "heavy snow"
SLEET = "sleet"
RAIN_SHOWERS = "rain showers"
HEAVY_RAIN_SHOWERS = "heavy rain showers"
SNOW_SHOWERS = "snow showers"
THUNDERSTORM = "thunderstorm"
THUNDERSTORM_HAIL = "thunderstorm with hail"
UNKNOWN = "unknown"

CONDITION_LABELS = (
    CLEAR_SKY, MAINLY_CLEAR, PARTLY_CLOUDY, OVERCAST, FOG,
    LIGHT_DRIZZLE, DRIZZLE, FREEZING_DRIZZLE,
    LIGHT_RAIN, RAIN, HEAVY_RAIN, FREEZING_RAIN,
    LIGHT_SNOW, SNOW, HEAVY_SNOW, SLEET,
    RAIN_SHOWERS, HEAVY_RAIN_SHOWERS, SNOW_SHOWERS,
    THUNDERSTORM, THUNDERSTORM_HAIL, UNKNOWN,
)

# WMO Weather interpretation codes
# Reference: https://open-meteo.com/en/docs
WMO_CODES: Dict[int, str] = {
    0: CLEAR_SKY,
    1: MAINLY_CLEAR,
    2: PARTLY_CLOUDY,
    3: OVERCAST,
    45: FOG,
    48: FOG,
    51: LIGHT_DRIZZLE,
    53: DRIZZLE,
    55: DRIZZLE,
    56: FREEZING_DRIZZLE,
    57: FREEZING_DRIZZLE,
    61: LIGHT_RAIN,
    63: RAIN,
    65: HEAVY_RAIN,
    66: FREEZING_RAIN,
    67: FREEZING_RAIN,
    71: LIGHT_SNOW,
    73: SNOW,
    75: HEAVY_SNOW,
    77: SNOW,
    80: RAIN_SHOWERS,
    81: RAIN_SHOWERS,
    82: HEAVY_RAIN_SHOWERS,
    85: SNOW_SHOWERS,
    86: SNOW_SHOWERS,
    95: THUNDERSTORM,
    96: THUNDERSTORM_HAIL,
    99: THUNDERSTORM_HAIL,
}

# Not a WMO code: marks a day whose condition is unknown
UNKNOWN_WMO_CODE = -1

# Representative WMO code per label, for providers that do not speak WMO
LABEL_TO_WMO: Dict[str, int] = {
    CLEAR_SKY: 0,
    MAINLY_CLEAR: 1,
    PARTLY_CLOUDY: 2,
    OVERCAST: 3,
    FOG: 45,
    LIGHT_DRIZZLE: 51,
    DRIZZLE: 53,
    FREEZING_DRIZZLE: 56,
    LIGHT_RAIN: 61,
    RAIN: 63,
    HEAVY_RAIN: 65,
    FREEZING_RAIN: 66,
    LIGHT_SNOW: 71,
    SNOW: 73,
    HEAVY_SNOW: 75,
    SLEET: 66,
    RAIN_SHOWERS: 80,
    HEAVY_RAIN_SHOWERS: 82,
    SNOW_SHOWERS: 85,
    THUNDERSTORM: 95,
    THUNDERSTORM_HAIL: 96,
}

# Met Norway symbol codes, without the _day/_night/_polartwilight suffix
METNO_SYMBOLS: Dict[str, str] = {
    "clearsky": CLEAR_SKY,
    "fair": MAINLY_CLEAR,
    "partlycloudy": PARTLY_CLOUDY,
    "cloudy": OVERCAST,
    "fog": FOG,
    "lightrain": LIGHT_RAIN,
    "rain": RAIN,
    "heavyrain": HEAVY_RAIN,
    "lightrainshowers": RAIN_SHOWERS,
    "rainshowers": RAIN_SHOWERS,
    "heavyrainshowers": HEAVY_RAIN_SHOWERS,
    "lightsleet": SLEET,
    "sleet": SLEET,
    "heavysleet": SLEET,
    "lightsleetshowers": SLEET,
    "sleetshowers": SLEET,
    "heavysleetshowers": SLEET,
    "lightsnow": LIGHT_SNOW,
    "snow": SNOW,
    "heavysnow": HEAVY_SNOW,
    "lightsnowshowers": SNOW_SHOWERS,
    "snowshowers": SNOW_SHOWERS,
    "heavysnowshowers": SNOW_SHOWERS,
}

# (WeatherAPI.com code, World Weather Online code, label)
# wttr.in reports the WWO column, WeatherAPI.com the first one.
_WEATHERAPI_WWO_TABLE = (
    (1000, 113, CLEAR_SKY),
    (1003, 116, PARTLY_CLOUDY),
    (1006, 119, OVERCAST),
    (1009, 122, OVERCAST),
    (1030, 143, FOG),
    (1063, 176, LIGHT_RAIN),
    (1066, 179, LIGHT_SNOW),
    (1069, 182, SLEET),
    (1072, 185, FREEZING_DRIZZLE),
    (1087, 200, THUNDERSTORM),
    (1114, 227, SNOW),
    (1117, 230, HEAVY_SNOW),
    (1135, 248, FOG),
    (1147, 260, FOG),
    (1150, 263, LIGHT_DRIZZLE),
    (1153, 266, LIGHT_DRIZZLE),
    (1168, 281, FREEZING_DRIZZLE),
    (1171, 284, FREEZING_DRIZZLE),
    (1180, 293, LIGHT_RAIN),
    (1183, 296, LIGHT_RAIN),
    (1186, 299, RAIN),
    (1189, 302, RAIN),
    (1192, 305, HEAVY_RAIN),
    (1195, 308, HEAVY_RAIN),
    (1198, 311, FREEZING_RAIN),
    (1201, 314, FREEZING_RAIN),
    (1204, 317, SLEET),
    (1207, 320, SLEET),
    (1210, 323, LIGHT_SNOW),
    (1213, 326, LIGHT_SNOW),
    (1216, 329, SNOW),
    (1219, 332, SNOW),
    (1222, 335, HEAVY_SNOW),
    (1225, 338, HEAVY_SNOW),
    (1237, 350, SLEET),
    (1240, 353, RAIN_SHOWERS),
    (1243, 356, HEAVY_RAIN_SHOWERS),
    (1246, 359, HEAVY_RAIN_SHOWERS),
    (1249, 362, SLEET),
    (1252, 365, SLEET),
    (1255, 368, SNOW_SHOWERS),
    (1258, 371, SNOW_SHOWERS),
    (1261, 374, SLEET),
    (1264, 377, SLEET),
    (1273, 386, THUNDERSTORM),
    (1276, 389, THUNDERSTORM),
    (1279, 392, THUNDERSTORM),
    (1282, 395, THUNDERSTORM),
)

WEATHERAPI_CODES: Dict[int, str] = {api: label for api, _, label in _WEATHERAPI_WWO_TABLE}
WWO_CODES: Dict[int, str] = {wwo: label for _, wwo, label in _WEATHERAPI_WWO_TABLE}

# Free-text keywords, checked in order (most specific first)
_TEXT_KEYWORDS = (
    ("hail", THUNDERSTORM_HAIL),
    ("thunder", THUNDERSTORM),
    ("freezing rain", FREEZING_RAIN),
    ("freezing drizzle", FREEZING_DRIZZLE),
    ("sleet", SLEET),
    ("ice pellets", SLEET),
    ("snow showers", SNOW_SHOWERS),
    ("heavy snow", HEAVY_SNOW),
    ("blizzard", HEAVY_SNOW),
    ("light snow", LIGHT_SNOW),
    ("snow", SNOW),
    ("heavy rain", HEAVY_RAIN),
    ("showers", RAIN_SHOWERS),
    ("light rain", LIGHT_RAIN),
    ("drizzle", DRIZZLE),
    ("rain", RAIN),
    ("fog", FOG),
    ("mist", FOG),
    ("haze", FOG),
    ("smoke", FOG),
    ("mostly cloudy", OVERCAST),
    ("overcast", OVERCAST),
    ("partly", PARTLY_CLOUDY),
    ("mostly sunny", MAINLY_CLEAR),
    ("mostly clear", MAINLY_CLEAR),
    ("cloudy", OVERCAST),
    ("sunny", CLEAR_SKY),
    ("clear", CLEAR_SKY),
    ("fair", MAINLY_CLEAR),
)


def _as_int(code) -> Optional[int]:
    if code is None or isinstance(code, bool):
        return None
    try:
        return int(code)
    except (TypeError, ValueError):
        return None


def wmo_code_to_condition(code) -> str:
    """Convert a WMO weather code to the canonical condition label."""
    value = _as_int(code)
    if value is None:
        return UNKNOWN
    return WMO_CODES.get(value, UNKNOWN)


def metno_symbol_to_condition(symbol: Optional[str]) -> str:
    """Convert a Met Norway symbol code ("rainshowers_day") to a label."""
    if not symbol or not isinstance(symbol, str):
        return UNKNOWN
    base = symbol.split("_")[0].lower()
    if "thunder" in base:
        return THUNDERSTORM
    return METNO_SYMBOLS.get(base, UNKNOWN)


def owm_id_to_condition(condition_id) -> str:
    """Convert an OpenWeatherMap condition id to a label."""
    value = _as_int(condition_id)
    if value is None:
        return UNKNOWN

    if 200 <= value < 300:
        return THUNDERSTORM
    if 300 <= value < 400:
        return LIGHT_DRIZZLE if value in (300, 310) else DRIZZLE
    if value == 500:
        return LIGHT_RAIN
    if value == 501:
        return RAIN
    if 502 <= value <= 504:
        return HEAVY_RAIN
    if value == 511:
        return FREEZING_RAIN
    if value in (520, 521):
        return RAIN_SHOWERS
    if value in (522, 531):
        return HEAVY_RAIN_SHOWERS
    if value == 600:
        return LIGHT_SNOW
    if value == 601:
        return SNOW
    if value == 602:
        return HEAVY_SNOW
    if 611 <= value <= 616:
        return SLEET
    if 620 <= value <= 622:
        return SNOW_SHOWERS
    if 700 <= value < 800:
        return FOG
    if value == 800:
        return CLEAR_SKY
    if value == 801:
        return MAINLY_CLEAR
    if value == 802:
        return PARTLY_CLOUDY
    if value in (803, 804):
        return OVERCAST
    return UNKNOWN


def weatherapi_code_to_condition(code) -> str:
    """Convert a WeatherAPI.com condition code to a label."""
    value = _as_int(code)
    if value is None:
        return UNKNOWN
    return WEATHERAPI_CODES.get(value, UNKNOWN)


def wwo_code_to_condition(code) -> str:
    """Convert a World Weather Online code (used by wttr.in) to a label."""
    value = _as_int(code)
    if value is None:
        return UNKNOWN
    return WWO_CODES.get(value, UNKNOWN)


def text_to_condition(text: Optional[str]) -> str:
    """
    Map a free-text forecast ("Slight Chance Rain Showers") to a label.

    The first matching keyword wins, so the more specific phrases are
    listed first.
    """
    if not text or not isinstance(text, str):
        return UNKNOWN
    lowered = text.lower()
    for keyword, label in _TEXT_KEYWORDS:
        if keyword in lowered:
            return label
    return UNKNOWN


def condition_to_wmo_code(label: str, default: int = UNKNOWN_WMO_CODE) -> int:
    """Representative WMO code for a label (UNKNOWN_WMO_CODE when it has none)."""
    return LABEL_TO_WMO.get(label, default)


def is_stormy(label: str) -> bool:
    return label in (THUNDERSTORM, THUNDERSTORM_HAIL)
