"""
Error taxonomy for Zeus Meteo

Severity ladder:
- SourceUnavailable:        one provider failed (non-fatal, logged, skipped)
- OperationNotSupported:    provider has no such endpoint (non-fatal)
- InvalidReading:           a reading failed range/schema checks (discarded)
- NoDataAvailable:          every provider failed for a request (fatal)
- RenderBackendUnavailable: text generation backend down (recovered locally)
"""

from typing import Optional


class WeatherError(Exception):
    """Base class for every error raised by the reconciliation engine."""


class SourceUnavailable(WeatherError):
    """A provider could not deliver a usable result."""

    def __init__(self, source: str, cause: object = None):
        self.source = source
        self.cause = cause
        reason = str(cause) if cause is not None else "no usable result"
        super().__init__(f"{source} unavailable: {reason}")


class OperationNotSupported(SourceUnavailable, NotImplementedError):
    """The provider does not implement the requested operation."""

    def __init__(self, source: str, operation: str):
        self.operation = operation
        super().__init__(source, f"{operation} not supported")


class InvalidReading(WeatherError):
    """A reading or daily point failed validation."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid reading from {source}: {reason}")


class NoDataAvailable(WeatherError):
    """No provider returned a valid reading for the requested location."""

    SUGGESTION = (
        "Check the spelling or try an alternate name "
        "(English or local name, or the city without the country)."
    )

    def __init__(self, location: str, reason: Optional[str] = None, failures: Optional[list] = None):
        self.location = location
        self.reason = reason
        self.failures = list(failures or [])
        message = f"No weather data could be retrieved for '{location}'"
        if reason:
            message += f" ({reason})"
        super().__init__(f"{message}. {self.SUGGESTION}")


class RenderBackendUnavailable(WeatherError):
    """The free-text generation backend is unreachable or errored."""

    def __init__(self, backend: str, cause: object = None):
        self.backend = backend
        self.cause = cause
        super().__init__(f"Report backend {backend} unavailable: {cause}")
