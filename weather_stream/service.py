"""
Weather service: cache-aside reads and tracked-location management.
"""
import logging
import time
from typing import List

from .cache import InMemoryCache
from .errors import (
    CacheError,
    CacheExpiredError,
    CacheMissError,
    FileSystemError,
    LocationNotFoundError,
)
from .logging_config import log_fetch
from .models import Location, WeatherReading
from .provider import WeatherProvider
from .storage import LocationStore

logger = logging.getLogger(__name__)


def cache_key(location: Location) -> str:
    return f"weather:{location.id}"


class WeatherService:
    def __init__(
        self, provider: WeatherProvider, cache: InMemoryCache, store: LocationStore
    ):
        self.provider = provider
        self.cache = cache
        self.store = store

    def get_current_weather(self, location: Location) -> WeatherReading:
        """
        Return the cached reading for a location, fetching it on a miss.

        Provider errors propagate unchanged.
        """
        key = cache_key(location)
        try:
            reading = self.cache.get(key)
            logger.debug(f"Cache hit for {key}")
            return reading
        except (CacheMissError, CacheExpiredError) as e:
            logger.debug(f"Cache {type(e).__name__} for {key}, fetching")

        return self._fetch_and_cache(location, task="get_current_weather")

    def refresh_weather(self, location: Location) -> WeatherReading:
        """Fetch a fresh reading, skipping the cache read but updating the cache."""
        return self._fetch_and_cache(location, task="refresh_weather")

    def _fetch_and_cache(self, location: Location, task: str) -> WeatherReading:
        start_time = time.time()
        reading = self.provider.get_current_weather(location)
        duration_ms = int((time.time() - start_time) * 1000)

        key = cache_key(location)
        try:
            self.cache.set(key, reading)
        except CacheError as e:
            logger.warning(f"Could not cache reading for {key}: {e}")

        log_fetch(
            logger,
            location.id,
            task,
            duration_ms,
            "success",
            f"Fetched weather for {location.name}",
        )
        return reading

    def add_location(self, location: Location) -> None:
        """Track a location. Adding an already tracked id is a no-op."""
        locations = self._load_locations()
        if any(loc.id == location.id for loc in locations):
            logger.info(f"Location {location.id} is already tracked")
            return

        locations.append(location)
        self._save_locations(locations)
        logger.info(f"Tracking location {location.id} ({location.name})")

    def remove_location(self, location_id: str) -> None:
        """Stop tracking a location. Raises LocationNotFoundError if it is not tracked."""
        locations = self._load_locations()
        if not any(loc.id == location_id for loc in locations):
            raise LocationNotFoundError(location_id)

        self._save_locations([loc for loc in locations if loc.id != location_id])
        logger.info(f"Stopped tracking location {location_id}")

    def get_tracked_locations(self) -> List[Location]:
        return self._load_locations()

    def get_weather_history(self) -> List[WeatherReading]:
        try:
            return self.store.load_readings()
        except FileSystemError as e:
            logger.warning(f"Could not load weather history, using empty history: {e}")
            return []

    def append_weather_history(self, readings: List[WeatherReading]) -> None:
        """Append readings to the persisted history. Save failures are logged."""
        if not readings:
            return
        history = self.get_weather_history()
        history.extend(readings)
        try:
            self.store.save_readings(history)
        except FileSystemError as e:
            logger.warning(f"Could not save weather history: {e}")

    def _load_locations(self) -> List[Location]:
        try:
            return self.store.load_locations()
        except FileSystemError as e:
            logger.warning(f"Could not load tracked locations, using empty list: {e}")
            return []

    def _save_locations(self, locations: List[Location]) -> None:
        try:
            self.store.save_locations(locations)
        except FileSystemError as e:
            logger.warning(f"Could not save tracked locations: {e}")
