"""
Resilience helpers for Zeus Meteo

Adapters never retry on their own: a failed call is categorized, logged and
handed back to the orchestrator as SourceUnavailable. The orchestrator's
only retry is trying the next spelling of the location.

Features:
- Error categorization (timeout, rate_limit, api_error, parse_error)
- Uniform provider-failure translation for the adapter boundary
"""

import json
import logging
from enum import Enum
from typing import Tuple

import httpx

from zeus_meteo.errors import SourceUnavailable, WeatherError

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Categories of errors for tracking."""
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


# Exceptions an adapter may hit while calling or parsing a provider
PROVIDER_ERRORS = (
    httpx.HTTPError,
    json.JSONDecodeError,
    KeyError,
    IndexError,
    ValueError,
    TypeError,
    AttributeError,
)


def categorize_error(exception: BaseException) -> Tuple[ErrorType, str]:
    """
    Categorize an exception for logging purposes.

    Returns:
        Tuple of (ErrorType, error_message)
    """
    error_msg = str(exception)[:200]  # Truncate long messages

    if isinstance(exception, httpx.TimeoutException):
        return (ErrorType.TIMEOUT, f"Timeout: {error_msg or type(exception).__name__}")

    elif isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        if status == 429:
            return (ErrorType.RATE_LIMIT, "HTTP 429 Too Many Requests")
        elif status == 503:
            return (ErrorType.RATE_LIMIT, "HTTP 503 Service Unavailable (quota?)")
        else:
            return (ErrorType.API_ERROR, f"HTTP {status}")

    elif isinstance(exception, httpx.RequestError):
        return (ErrorType.API_ERROR, f"Request error: {error_msg or type(exception).__name__}")

    elif isinstance(exception, (json.JSONDecodeError, KeyError, IndexError, ValueError, TypeError, AttributeError)):
        return (ErrorType.PARSE_ERROR, f"Parse error: {type(exception).__name__}: {error_msg}")

    else:
        return (ErrorType.UNKNOWN, error_msg)


def to_source_unavailable(source: str, exception: BaseException) -> WeatherError:
    """
    Translate an exception raised inside an adapter into the boundary type.

    Engine errors (SourceUnavailable, InvalidReading, ...) pass through
    untouched; transport and parse errors become SourceUnavailable with
    the categorized message as the reason.
    """
    if isinstance(exception, WeatherError):
        return exception

    error_type, error_msg = categorize_error(exception)
    logger.warning(f"[{source}] {error_type.value} - {error_msg}")
    return SourceUnavailable(source, error_msg)
