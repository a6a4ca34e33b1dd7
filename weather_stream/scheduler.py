"""
Polling engine that turns tracked locations into a continuous stream of readings.

Each output sequence is an async generator. Behind it a producer task ticks on
a fixed period, fans out one fetch per location onto a worker pool of
`max_concurrent_location` threads and pushes finished readings into a bounded
queue of `buffer_size` slots. A full queue blocks the producer until the
consumer catches up. Closing the generator cancels the producer and shuts the
pool down; fetches already running in a worker thread are abandoned.

A location that keeps failing is retried with exponential backoff and then
dropped for that tick. It never stops the sequence or delays other locations.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from utils.metrics import (
    fetch_retry_counter,
    location_dropped_counter,
    readings_emitted_counter,
    scheduler_tick_counter,
)

from .config import StreamConfig
from .errors import UpstreamError
from .logging_config import get_logger_with_context
from .models import Location, WeatherReading
from .service import WeatherService

logger = logging.getLogger(__name__)

Emit = Callable[[WeatherReading], Awaitable[None]]
Producer = Callable[[ThreadPoolExecutor, Emit], Awaitable[None]]


class UpdateScheduler:
    def __init__(
        self,
        service: WeatherService,
        config: StreamConfig,
        retry_base_delay: float = 1.0,
        max_retries: int = 3,
    ):
        self.service = service
        self.config = config
        self.retry_base_delay = retry_base_delay
        self.max_retries = max_retries

    def weather_updates(self) -> AsyncIterator[WeatherReading]:
        """Readings for every tracked location, re-reading the list each tick."""
        return self._stream(self._pull_all)

    def location_weather_updates(self, location_id: str) -> AsyncIterator[WeatherReading]:
        """Readings for one tracked location. Ticks where it is untracked emit nothing."""

        async def produce(pool: ThreadPoolExecutor, emit: Emit) -> None:
            await self._follow_location(pool, location_id, emit)

        return self._stream(produce)

    def multi_location_weather_updates(
        self, location_ids: List[str]
    ) -> AsyncIterator[WeatherReading]:
        """Merged per-location streams sharing one worker pool."""

        async def produce(pool: ThreadPoolExecutor, emit: Emit) -> None:
            await asyncio.gather(
                *(self._follow_location(pool, location_id, emit) for location_id in location_ids)
            )

        return self._stream(produce)

    async def poll_once(self) -> List[WeatherReading]:
        """Run a single pull-all tick and return the readings it produced."""
        readings: List[WeatherReading] = []

        async def collect(reading: WeatherReading) -> None:
            readings.append(reading)

        pool = self._make_pool()
        try:
            scheduler_tick_counter.labels(stream="once").inc()
            await self._tick_all(pool, collect)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return readings

    def _make_pool(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_location,
            thread_name_prefix="weather-fetch",
        )

    async def _stream(self, produce: Producer) -> AsyncIterator[WeatherReading]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.config.buffer_size)
        pool = self._make_pool()
        producer = asyncio.create_task(produce(pool, queue.put))
        getter = None

        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    {getter, producer}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter in done:
                    reading = getter.result()
                    getter = None
                    readings_emitted_counter.inc()
                    yield reading
                    continue

                # Producer finished: re-raise a crash, otherwise drain and stop
                producer.result()
                while not queue.empty():
                    readings_emitted_counter.inc()
                    yield queue.get_nowait()
                return
        finally:
            if getter is not None:
                getter.cancel()
            producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            pool.shutdown(wait=False, cancel_futures=True)
            logger.debug("Weather update stream closed")

    async def _every_tick(self, tick: Callable[[], Awaitable[None]], stream: str) -> None:
        """Run `tick` now and then every pull interval, measured from tick start."""
        loop = asyncio.get_running_loop()
        interval = self.config.pull_interval_seconds
        while True:
            started = loop.time()
            scheduler_tick_counter.labels(stream=stream).inc()
            await tick()
            await asyncio.sleep(max(0.0, started + interval - loop.time()))

    async def _pull_all(self, pool: ThreadPoolExecutor, emit: Emit) -> None:
        await self._every_tick(lambda: self._tick_all(pool, emit), "all")

    async def _tick_all(self, pool: ThreadPoolExecutor, emit: Emit) -> None:
        loop = asyncio.get_running_loop()
        locations = await loop.run_in_executor(pool, self.service.get_tracked_locations)
        if not locations:
            logger.debug("No tracked locations this tick")
            return

        await asyncio.gather(
            *(self._fetch_and_emit(pool, location, emit) for location in locations)
        )

    async def _follow_location(
        self, pool: ThreadPoolExecutor, location_id: str, emit: Emit
    ) -> None:
        loop = asyncio.get_running_loop()

        async def tick() -> None:
            locations = await loop.run_in_executor(pool, self.service.get_tracked_locations)
            location = next((loc for loc in locations if loc.id == location_id), None)
            if location is None:
                logger.debug(f"Location {location_id} is not tracked, skipping tick")
                return
            await self._fetch_and_emit(pool, location, emit)

        await self._every_tick(tick, "location")

    async def _fetch_and_emit(
        self, pool: ThreadPoolExecutor, location: Location, emit: Emit
    ) -> None:
        reading = await self._fetch_with_retry(pool, location)
        if reading is not None:
            await emit(reading)

    async def _fetch_with_retry(
        self, pool: ThreadPoolExecutor, location: Location
    ) -> Optional[WeatherReading]:
        """
        Fetch one reading, retrying transient upstream errors.

        Sleeps retry_base_delay, then doubles it, for up to max_retries retries.
        Returns None when the location has to be dropped for this tick.
        """
        loop = asyncio.get_running_loop()
        log = get_logger_with_context(__name__, location_id=location.id, task="fetch")
        max_attempts = self.max_retries + 1
        delay = self.retry_base_delay

        for attempt in range(1, max_attempts + 1):
            try:
                return await loop.run_in_executor(
                    pool, self.service.get_current_weather, location
                )
            except UpstreamError as e:
                if not e.retryable:
                    log.error(f"Dropping {location.name}, response not usable: {e}")
                    location_dropped_counter.labels(reason="invalid_response").inc()
                    return None
                if attempt == max_attempts:
                    log.error(f"All {max_attempts} attempts failed for {location.name}: {e}")
                    location_dropped_counter.labels(reason="retries_exhausted").inc()
                    return None

                logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed for {location.name}: {e}. "
                    f"Retrying in {delay}s...",
                    extra={"location_id": location.id, "task": "fetch", "attempt": attempt},
                )
                fetch_retry_counter.inc()
                await asyncio.sleep(delay)
                delay *= 2
            except Exception:
                log.exception(f"Unexpected error fetching {location.name}")
                location_dropped_counter.labels(reason="unexpected_error").inc()
                return None

        return None
