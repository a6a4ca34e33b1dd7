"""
Tests for environment-driven configuration.
"""
import pytest

from weather_stream.config import AppConfig, StorageConfig, StreamConfig, load_config
from weather_stream.errors import ConfigError

BASE_ENV = {"WEATHER_API_KEY": "test-key"}


class TestLoadConfig:
    def test_defaults(self):
        """Test defaults with only the required key set."""
        config = load_config(BASE_ENV)

        assert isinstance(config, AppConfig)
        assert config.api.api_key == "test-key"
        assert config.api.base_url == "https://api.openweathermap.org/data/2.5"
        assert config.api.timeout_ms == 5000
        assert config.api.max_requests_per_minute == 60
        assert config.cache.enabled is True
        assert config.cache.ttl_seconds == 300
        assert config.cache.max_size == 100
        assert config.storage.data_dir == "./data/weather"
        assert config.storage.auto_save_interval_seconds == 60
        assert config.stream.pull_interval_seconds == 30
        assert config.stream.max_concurrent_location == 5
        assert config.stream.buffer_size == 10

    def test_values_from_environment(self):
        """Test env vars are parsed into typed values."""
        env = dict(
            BASE_ENV,
            CACHE_ENABLED="false",
            CACHE_TTL_SECONDS="600",
            CACHE_MAX_SIZE="50",
            WEATHER_CACHE_DATA_DIR="/tmp/weather",
            WEATHER_STREAM_PULL_INTERVAL_SECONDS="15",
            WEATHER_STREAM_MAX_CONCURRENT_LOCATION="2",
            WEATHER_STREAM_BUFFER_SIZE="20",
        )
        config = load_config(env)

        assert config.cache.enabled is False
        assert config.cache.ttl_seconds == 600
        assert config.cache.max_size == 50
        assert config.storage.data_dir == "/tmp/weather"
        assert config.stream.pull_interval_seconds == 15
        assert config.stream.max_concurrent_location == 2
        assert config.stream.buffer_size == 20

    def test_reads_os_environ_by_default(self, monkeypatch):
        """Test process environment is used when no mapping is passed."""
        monkeypatch.setenv("WEATHER_API_KEY", "from-env")
        monkeypatch.setenv("CACHE_MAX_SIZE", "10")
        config = load_config()
        assert config.api.api_key == "from-env"
        assert config.cache.max_size == 10

    def test_missing_api_key(self):
        """Test the API key is required."""
        with pytest.raises(ConfigError) as exc_info:
            load_config({})
        assert exc_info.value.key == "WEATHER_API_KEY"

    @pytest.mark.parametrize(
        "var,value",
        [
            ("CACHE_TTL_SECONDS", "99"),
            ("CACHE_TTL_SECONDS", "4001"),
            ("CACHE_MAX_SIZE", "9"),
            ("CACHE_MAX_SIZE", "1001"),
            ("WEATHER_STREAM_PULL_INTERVAL_SECONDS", "9"),
            ("WEATHER_STREAM_PULL_INTERVAL_SECONDS", "3601"),
            ("WEATHER_STREAM_MAX_CONCURRENT_LOCATION", "0"),
            ("WEATHER_STREAM_MAX_CONCURRENT_LOCATION", "101"),
            ("WEATHER_STREAM_BUFFER_SIZE", "4"),
            ("WEATHER_STREAM_BUFFER_SIZE", "1001"),
            ("WEATHER_API_TIMEOUT_MS", "99"),
            ("WEATHER_API_MAX_REQUESTS_PER_MIN", "0"),
            ("WEATHER_AUTO_SAVE_INTERVAL_SECONDS", "5"),
            ("CACHE_MAX_SIZE", "lots"),
        ],
    )
    def test_invalid_values_name_the_variable(self, var, value):
        """Test out-of-range values raise ConfigError for that variable."""
        with pytest.raises(ConfigError) as exc_info:
            load_config(dict(BASE_ENV, **{var: value}))
        assert exc_info.value.key == var

    @pytest.mark.parametrize("value", ["0", "10", "3600"])
    def test_auto_save_interval_accepts_zero_and_range(self, value):
        """Test auto-save can be disabled with 0."""
        config = load_config(dict(BASE_ENV, WEATHER_AUTO_SAVE_INTERVAL_SECONDS=value))
        assert config.storage.auto_save_interval_seconds == int(value)


class TestConfigModels:
    def test_stream_config_bounds(self):
        """Test boundary values are accepted."""
        config = StreamConfig(
            pull_interval_seconds=10, max_concurrent_location=100, buffer_size=5
        )
        assert config.buffer_size == 5

    def test_storage_config_default(self):
        """Test storage defaults."""
        assert StorageConfig().data_dir == "./data/weather"
