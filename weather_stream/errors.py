"""
Error types raised by the weather stream components.
"""
from datetime import datetime
from typing import Optional


class WeatherStreamError(Exception):
    """Base class for all weather stream errors."""


# Upstream provider errors


class UpstreamError(WeatherStreamError):
    """Failure while talking to the weather provider."""

    retryable = True


class NetworkError(UpstreamError):
    def __init__(self, url: str, operation: str, cause: BaseException):
        self.url = url
        self.operation = operation
        self.cause = cause
        # The cause text is left out since it may contain query parameters
        super().__init__(
            f"Network error during {operation} {url}: {type(cause).__name__}"
        )


class HttpError(UpstreamError):
    def __init__(
        self,
        url: str,
        method: str,
        status_code: int,
        status_text: str,
        body: Optional[str] = None,
    ):
        self.url = url
        self.method = method
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"{method} {url} returned {status_code} {status_text}")


class RateLimitError(UpstreamError):
    def __init__(
        self,
        limit: int,
        remaining: int,
        reset_at: datetime,
        retry_after_seconds: Optional[int] = None,
    ):
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Rate limit exceeded ({remaining}/{limit} remaining, resets at "
            f"{reset_at.isoformat()})"
        )


class UpstreamTimeoutError(UpstreamError):
    def __init__(self, operation: str, timeout_ms: int):
        self.operation = operation
        self.timeout_ms = timeout_ms
        super().__init__(f"{operation} timed out after {timeout_ms}ms")


class InvalidResponseError(UpstreamError):
    """Response could not be parsed. Retrying will not help."""

    retryable = False

    def __init__(
        self,
        url: str,
        expected_schema: str,
        response_body: str,
        parse_error: BaseException,
    ):
        self.url = url
        self.expected_schema = expected_schema
        self.response_body = response_body
        self.parse_error = parse_error
        super().__init__(f"Invalid {expected_schema} from {url}: {parse_error}")


# Cache errors


class CacheError(WeatherStreamError):
    """Cache-internal condition. Callers treat these as a miss or skip caching."""


class CacheMissError(CacheError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Cache miss for key '{key}'")


class CacheExpiredError(CacheError):
    def __init__(self, key: str, cached_at: datetime, expires_at: datetime):
        self.key = key
        self.cached_at = cached_at
        self.expires_at = expires_at
        super().__init__(
            f"Cache entry '{key}' expired at {expires_at.isoformat()}"
        )


class CacheFullError(CacheError):
    def __init__(self, max_size: int, current_size: int):
        self.max_size = max_size
        self.current_size = current_size
        super().__init__(
            f"Cache is full ({current_size}/{max_size}) and nothing can be evicted"
        )


# Persistence, lookup and configuration errors


class FileSystemError(WeatherStreamError):
    def __init__(self, operation: str, path: str, error: BaseException):
        self.operation = operation
        self.path = path
        self.error = error
        super().__init__(f"{operation} failed for {path}: {error}")


class LocationNotFoundError(WeatherStreamError):
    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location '{location_id}' is not tracked")


class ConfigError(WeatherStreamError):
    def __init__(self, key: str, message: str):
        self.key = key
        self.message = message
        super().__init__(f"{key}: {message}")
