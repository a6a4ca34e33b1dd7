"""
Environment-driven configuration for the weather stream.
"""
import os
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError


class WeatherApiConfig(BaseModel):
    api_key: str = Field(..., min_length=1)
    base_url: str = "https://api.openweathermap.org/data/2.5"
    timeout_ms: int = Field(5000, ge=100, le=60000)
    max_requests_per_minute: int = Field(60, ge=1, le=1000)


class CacheConfig(BaseModel):
    enabled: bool = True
    ttl_seconds: int = Field(300, ge=100, le=4000)
    max_size: int = Field(100, ge=10, le=1000)


class StorageConfig(BaseModel):
    data_dir: str = "./data/weather"
    auto_save_interval_seconds: int = 60

    @field_validator("auto_save_interval_seconds")
    @classmethod
    def validate_auto_save_interval(cls, v):
        """0 disables auto-save, otherwise 10 to 3600 seconds."""
        if v != 0 and not 10 <= v <= 3600:
            raise ValueError("Auto save interval must be 0 or between 10 and 3600 seconds")
        return v


class StreamConfig(BaseModel):
    pull_interval_seconds: int = Field(30, ge=10, le=3600)
    max_concurrent_location: int = Field(5, ge=1, le=100)
    buffer_size: int = Field(10, ge=5, le=1000)


class AppConfig(BaseModel):
    api: WeatherApiConfig
    cache: CacheConfig = CacheConfig()
    storage: StorageConfig = StorageConfig()
    stream: StreamConfig = StreamConfig()


# (section, field) -> environment variable
ENV_VARS: Dict[str, Dict[str, str]] = {
    "api": {
        "api_key": "WEATHER_API_KEY",
        "base_url": "WEATHER_API_BASE_URL",
        "timeout_ms": "WEATHER_API_TIMEOUT_MS",
        "max_requests_per_minute": "WEATHER_API_MAX_REQUESTS_PER_MIN",
    },
    "cache": {
        "enabled": "CACHE_ENABLED",
        "ttl_seconds": "CACHE_TTL_SECONDS",
        "max_size": "CACHE_MAX_SIZE",
    },
    "storage": {
        "data_dir": "WEATHER_CACHE_DATA_DIR",
        "auto_save_interval_seconds": "WEATHER_AUTO_SAVE_INTERVAL_SECONDS",
    },
    "stream": {
        "pull_interval_seconds": "WEATHER_STREAM_PULL_INTERVAL_SECONDS",
        "max_concurrent_location": "WEATHER_STREAM_MAX_CONCURRENT_LOCATION",
        "buffer_size": "WEATHER_STREAM_BUFFER_SIZE",
    },
}


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build the application config from environment variables.

    Unset variables fall back to the model defaults. Raises ConfigError
    naming the environment variable of the first invalid value.
    """
    if environ is None:
        environ = os.environ

    raw = {
        section: {
            field: environ[var] for field, var in fields.items() if var in environ
        }
        for section, fields in ENV_VARS.items()
    }

    try:
        return AppConfig(**raw)
    except ValidationError as e:
        error = e.errors()[0]
        loc = [str(part) for part in error["loc"]]
        key = ".".join(loc)
        if len(loc) == 2 and loc[0] in ENV_VARS:
            key = ENV_VARS[loc[0]].get(loc[1], key)
        raise ConfigError(key, error["msg"]) from e
