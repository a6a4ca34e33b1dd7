"""
Weather data provider using the OpenWeatherMap current-weather API.
"""
import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import requests
from pydantic import BaseModel, Field, ValidationError

from utils.metrics import provider_request_counter, provider_request_duration

from .config import WeatherApiConfig
from .errors import (
    HttpError,
    InvalidResponseError,
    NetworkError,
    RateLimitError,
    UpstreamTimeoutError,
)
from .models import Location, WeatherCondition, WeatherReading, create_weather_reading

logger = logging.getLogger(__name__)

KELVIN_OFFSET = 273.15
RATE_LIMIT_WINDOW = 60  # seconds


# Response schema


class _Coord(BaseModel):
    lon: float
    lat: float


class _WeatherEntry(BaseModel):
    id: int
    main: str
    description: str


class _Main(BaseModel):
    temp: float
    feels_like: float
    humidity: float
    pressure: Optional[float] = None


class _Wind(BaseModel):
    speed: float
    deg: Optional[float] = None


class _Rain(BaseModel):
    one_hour: Optional[float] = Field(None, alias="1h")


class OpenWeatherMapResponse(BaseModel):
    coord: _Coord
    weather: List[_WeatherEntry]
    main: _Main
    visibility: Optional[float] = None
    wind: _Wind
    rain: Optional[_Rain] = None
    name: str
    dt: int


def map_weather_condition(condition_id: int) -> WeatherCondition:
    """Map an OpenWeatherMap condition id to a weather condition."""
    if 200 <= condition_id < 300:
        return "stormy"
    if 300 <= condition_id < 600:
        return "rainy"
    if 600 <= condition_id < 700:
        return "snowy"
    if 700 <= condition_id < 800:
        return "foggy"
    if condition_id == 800:
        return "clear"
    return "cloudy"


class WeatherProvider:
    def __init__(self, config: WeatherApiConfig):
        self.config = config
        self.weather_url = f"{config.base_url.rstrip('/')}/weather"

    def get_current_weather(self, location: Location) -> WeatherReading:
        """
        Fetch the current weather for one location.

        Raises NetworkError, UpstreamTimeoutError, RateLimitError, HttpError or
        InvalidResponseError.
        """
        params = {
            "lat": location.coordinates.latitude,
            "lon": location.coordinates.longitude,
            "appid": self.config.api_key,
        }
        start_time = time.time()

        try:
            response = self._request(params)
        finally:
            provider_request_duration.observe(time.time() - start_time)

        if response.status_code == 429:
            provider_request_counter.labels(outcome="rate_limited").inc()
            raise RateLimitError(
                limit=self.config.max_requests_per_minute,
                remaining=0,
                reset_at=datetime.now(timezone.utc) + timedelta(seconds=RATE_LIMIT_WINDOW),
                retry_after_seconds=self._parse_retry_after(
                    response.headers.get("Retry-After")
                ),
            )

        if not response.ok:
            provider_request_counter.labels(outcome="http_error").inc()
            raise HttpError(
                url=self.weather_url,
                method="GET",
                status_code=response.status_code,
                status_text=response.reason or "",
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            provider_request_counter.labels(outcome="invalid_response").inc()
            raise InvalidResponseError(
                url=self.weather_url,
                expected_schema="OpenWeatherMapResponse",
                response_body="Failed to parse JSON",
                parse_error=e,
            )

        try:
            parsed = OpenWeatherMapResponse.model_validate(payload)
            reading = self._transform(parsed, location)
        except ValidationError as e:
            provider_request_counter.labels(outcome="invalid_response").inc()
            raise InvalidResponseError(
                url=self.weather_url,
                expected_schema="OpenWeatherMapResponse",
                response_body=json.dumps(payload),
                parse_error=e,
            )

        provider_request_counter.labels(outcome="success").inc()
        return reading

    def _request(self, params) -> requests.Response:
        timeout = self.config.timeout_ms / 1000.0
        try:
            return requests.get(self.weather_url, params=params, timeout=timeout)
        except requests.Timeout:
            provider_request_counter.labels(outcome="timeout").inc()
            logger.error(f"Weather API timeout after {self.config.timeout_ms}ms")
            raise UpstreamTimeoutError(
                operation=f"GET {self.weather_url}", timeout_ms=self.config.timeout_ms
            )
        except requests.RequestException as e:
            provider_request_counter.labels(outcome="network_error").inc()
            # Error text from requests can carry the full URL, including appid
            logger.error(f"Weather API error: {self._redact(str(e))}")
            raise NetworkError(url=self.weather_url, operation="GET", cause=e)

    def _redact(self, text: str) -> str:
        return text.replace(self.config.api_key, "***")

    def _parse_retry_after(self, value: Optional[str]) -> Optional[int]:
        """Retry-After in seconds, or None if absent or not an integer."""
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def _transform(
        self, response: OpenWeatherMapResponse, location: Location
    ) -> WeatherReading:
        condition_id = response.weather[0].id if response.weather else 800
        precipitation = 0.0
        if response.rain is not None and response.rain.one_hour is not None:
            precipitation = response.rain.one_hour

        return create_weather_reading(
            location=location,
            temperature=response.main.temp - KELVIN_OFFSET,
            feels_like=response.main.feels_like - KELVIN_OFFSET,
            humidity=response.main.humidity,
            condition=map_weather_condition(condition_id),
            wind_speed=response.wind.speed,
            wind_direction=response.wind.deg,
            precipitation=precipitation,
            pressure=response.main.pressure,
        )
