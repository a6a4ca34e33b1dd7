"""
Domain models for tracked locations and weather readings.
"""
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WeatherCondition = Literal["clear", "cloudy", "rainy", "snowy", "stormy", "foggy"]

WEATHER_CONDITIONS = ("clear", "cloudy", "rainy", "snowy", "stormy", "foggy")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    country: Optional[str] = None
    coordinates: Coordinates

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        """Reject names that are only whitespace."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name must contain at least one character")
        return stripped


class WeatherReading(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    location: Location
    temperature: float = Field(..., ge=-100, le=60)
    feels_like: float = Field(..., ge=-100, le=60)
    humidity: float = Field(..., ge=0, le=100)
    wind_speed: float = Field(..., ge=0)
    condition: WeatherCondition
    wind_direction: Optional[float] = Field(None, ge=0, le=360)
    precipitation: Optional[float] = Field(None, ge=0)
    pressure: Optional[float] = Field(None, ge=900, le=1100)
    timestamp: datetime


def create_location(
    name: str, latitude: float, longitude: float, country: Optional[str] = None
) -> Location:
    """Create a location with a freshly generated identity."""
    return Location(
        id=_new_id("loc"),
        name=name,
        country=country,
        coordinates=Coordinates(latitude=latitude, longitude=longitude),
    )


def create_weather_reading(
    location: Location,
    temperature: float,
    feels_like: float,
    humidity: float,
    condition: WeatherCondition,
    wind_speed: float,
    wind_direction: Optional[float] = None,
    precipitation: Optional[float] = None,
    pressure: Optional[float] = None,
) -> WeatherReading:
    """
    Create a reading stamped with the current time.

    Raises pydantic.ValidationError when a value is out of range.
    """
    return WeatherReading(
        id=_new_id("read"),
        location=location,
        temperature=temperature,
        feels_like=feels_like,
        humidity=humidity,
        condition=condition,
        wind_speed=wind_speed,
        wind_direction=wind_direction,
        precipitation=precipitation,
        pressure=pressure,
        timestamp=datetime.now(timezone.utc),
    )
