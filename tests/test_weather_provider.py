"""
Unit tests for the OpenWeatherMap provider.
"""
from unittest.mock import Mock, patch

import pytest
import requests

from weather_stream.config import WeatherApiConfig
from weather_stream.errors import (
    HttpError,
    InvalidResponseError,
    NetworkError,
    RateLimitError,
    UpstreamTimeoutError,
)
from weather_stream.models import create_location
from weather_stream.provider import WeatherProvider, map_weather_condition

API_KEY = "secret-api-key"


def owm_payload(**overrides):
    payload = {
        "coord": {"lon": 34.78, "lat": 32.08},
        "weather": [{"id": 500, "main": "Rain", "description": "light rain"}],
        "main": {"temp": 293.15, "feels_like": 294.65, "humidity": 72, "pressure": 1012},
        "visibility": 10000,
        "wind": {"speed": 4.1, "deg": 250},
        "rain": {"1h": 0.35},
        "name": "Tel Aviv",
        "dt": 1760000000,
    }
    payload.update(overrides)
    return payload


def make_response(status_code=200, payload=None, headers=None, reason="OK", text=""):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = reason
    response.text = text
    response.headers = headers or {}
    response.json.return_value = payload
    return response


class TestWeatherProviderInitialization:
    def test_provider_initialization(self):
        """Test provider builds the weather URL from config."""
        provider = WeatherProvider(WeatherApiConfig(api_key=API_KEY))
        assert provider.weather_url == "https://api.openweathermap.org/data/2.5/weather"

    def test_trailing_slash_in_base_url(self):
        """Test base URL normalisation."""
        config = WeatherApiConfig(api_key=API_KEY, base_url="http://localhost:9000/")
        assert WeatherProvider(config).weather_url == "http://localhost:9000/weather"


class TestConditionMapping:
    @pytest.mark.parametrize(
        "condition_id,expected",
        [
            (200, "stormy"),
            (299, "stormy"),
            (300, "rainy"),
            (511, "rainy"),
            (600, "snowy"),
            (701, "foggy"),
            (800, "clear"),
            (801, "cloudy"),
            (804, "cloudy"),
        ],
    )
    def test_map_weather_condition(self, condition_id, expected):
        """Test condition id ranges."""
        assert map_weather_condition(condition_id) == expected


class TestWeatherProviderFetch:
    def setup_method(self):
        """Setup test fixtures."""
        self.config = WeatherApiConfig(
            api_key=API_KEY, timeout_ms=2500, max_requests_per_minute=30
        )
        self.provider = WeatherProvider(self.config)
        self.location = create_location("Tel Aviv", 32.08, 34.78, country="IL")

    @patch("requests.get")
    def test_fetch_success(self, mock_get):
        """Test successful fetch and transformation."""
        mock_get.return_value = make_response(payload=owm_payload())

        reading = self.provider.get_current_weather(self.location)

        assert reading.location == self.location
        assert reading.temperature == pytest.approx(20.0)
        assert reading.feels_like == pytest.approx(21.5)
        assert reading.humidity == 72
        assert reading.wind_speed == 4.1
        assert reading.wind_direction == 250
        assert reading.precipitation == 0.35
        assert reading.pressure == 1012
        assert reading.condition == "rainy"

        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.openweathermap.org/data/2.5/weather"
        assert kwargs["params"] == {"lat": 32.08, "lon": 34.78, "appid": API_KEY}
        assert kwargs["timeout"] == 2.5

    @patch("requests.get")
    def test_fetch_optional_fields_absent(self, mock_get):
        """Test defaults when optional response fields are missing."""
        payload = owm_payload(
            weather=[],
            main={"temp": 273.15, "feels_like": 270.15, "humidity": 90},
            wind={"speed": 0},
        )
        del payload["rain"]
        mock_get.return_value = make_response(payload=payload)

        reading = self.provider.get_current_weather(self.location)

        assert reading.condition == "clear"
        assert reading.temperature == pytest.approx(0.0)
        assert reading.precipitation == 0.0
        assert reading.wind_direction is None
        assert reading.pressure is None

    @patch("requests.get")
    def test_rate_limited(self, mock_get):
        """Test 429 maps to RateLimitError."""
        mock_get.return_value = make_response(
            status_code=429, headers={"Retry-After": "17"}, reason="Too Many Requests"
        )

        with pytest.raises(RateLimitError) as exc_info:
            self.provider.get_current_weather(self.location)

        error = exc_info.value
        assert error.limit == 30
        assert error.remaining == 0
        assert error.retry_after_seconds == 17
        assert error.reset_at is not None
        assert error.retryable is True

    @patch("requests.get")
    def test_rate_limited_without_retry_after(self, mock_get):
        """Test missing Retry-After header."""
        mock_get.return_value = make_response(status_code=429)

        with pytest.raises(RateLimitError) as exc_info:
            self.provider.get_current_weather(self.location)
        assert exc_info.value.retry_after_seconds is None

    @patch("requests.get")
    def test_http_error(self, mock_get):
        """Test non-2xx status maps to HttpError."""
        mock_get.return_value = make_response(
            status_code=503, reason="Service Unavailable", text="upstream down"
        )

        with pytest.raises(HttpError) as exc_info:
            self.provider.get_current_weather(self.location)

        error = exc_info.value
        assert error.status_code == 503
        assert error.status_text == "Service Unavailable"
        assert error.body == "upstream down"
        assert error.method == "GET"
        assert error.retryable is True

    @patch("requests.get")
    def test_timeout(self, mock_get):
        """Test request timeout."""
        mock_get.side_effect = requests.Timeout("timed out")

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            self.provider.get_current_weather(self.location)
        assert exc_info.value.timeout_ms == 2500

    @patch("requests.get")
    def test_network_error(self, mock_get):
        """Test connection failures map to NetworkError."""
        mock_get.side_effect = requests.ConnectionError(
            f"Max retries exceeded with url: /weather?appid={API_KEY}"
        )

        with pytest.raises(NetworkError) as exc_info:
            self.provider.get_current_weather(self.location)

        error = exc_info.value
        assert isinstance(error.cause, requests.ConnectionError)
        assert API_KEY not in str(error)
        assert API_KEY not in error.url

    @patch("requests.get")
    def test_invalid_json(self, mock_get):
        """Test unparseable body."""
        response = make_response()
        response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = response

        with pytest.raises(InvalidResponseError) as exc_info:
            self.provider.get_current_weather(self.location)
        assert exc_info.value.retryable is False
        assert exc_info.value.expected_schema == "OpenWeatherMapResponse"

    @patch("requests.get")
    def test_schema_mismatch(self, mock_get):
        """Test a body missing required fields."""
        mock_get.return_value = make_response(payload={"cod": 200, "name": "Tel Aviv"})

        with pytest.raises(InvalidResponseError):
            self.provider.get_current_weather(self.location)

    @patch("requests.get")
    def test_out_of_range_reading_is_invalid_response(self, mock_get):
        """Test values the reading model rejects."""
        payload = owm_payload(
            main={"temp": 400.0, "feels_like": 400.0, "humidity": 50}
        )
        mock_get.return_value = make_response(payload=payload)

        with pytest.raises(InvalidResponseError):
            self.provider.get_current_weather(self.location)

    @patch("requests.get")
    def test_each_fetch_is_a_fresh_reading(self, mock_get):
        """Test two fetches never share identity."""
        mock_get.return_value = make_response(payload=owm_payload())

        first = self.provider.get_current_weather(self.location)
        second = self.provider.get_current_weather(self.location)

        assert first.id != second.id
        assert second.timestamp >= first.timestamp
