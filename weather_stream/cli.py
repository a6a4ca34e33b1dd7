#!/usr/bin/env python3
"""
Command line demo: manage tracked locations and watch the weather stream.
"""
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from prometheus_client import start_http_server
from pydantic import ValidationError

from utils.metrics import set_app_info

from .cache import InMemoryCache
from .config import AppConfig, load_config
from .errors import ConfigError, LocationNotFoundError
from .logging_config import setup_logging
from .models import WeatherReading, create_location
from .provider import WeatherProvider
from .scheduler import UpdateScheduler
from .service import WeatherService
from .storage import LocationStore

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def build_service(config: AppConfig) -> WeatherService:
    """Wire provider, cache and store into a WeatherService."""
    return WeatherService(
        provider=WeatherProvider(config.api),
        cache=InMemoryCache.from_config(config.cache),
        store=LocationStore.from_config(config.storage),
    )


def format_reading(reading: WeatherReading) -> str:
    return (
        f"[{reading.timestamp.astimezone().strftime('%H:%M:%S')}] "
        f"{reading.location.name}: {reading.temperature:.1f}°C, "
        f"Humidity: {reading.humidity:.0f}%, "
        f"Wind: {reading.wind_speed:.1f} m/s - {reading.condition}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weather-stream", description="Weather monitoring for tracked locations"
    )
    parser.add_argument(
        "--log-level", default=os.getenv("LOG_LEVEL", "INFO"), help="Logging level"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Track a new location")
    add.add_argument("name")
    add.add_argument("latitude", type=float)
    add.add_argument("longitude", type=float)
    add.add_argument("--country", default=None)

    remove = subparsers.add_parser("remove", help="Stop tracking a location")
    remove.add_argument("location_id")

    subparsers.add_parser("list", help="List tracked locations")
    subparsers.add_parser("history", help="Show saved readings")
    subparsers.add_parser("once", help="Fetch every tracked location once")

    watch = subparsers.add_parser("watch", help="Stream readings until interrupted")
    watch.add_argument(
        "--id",
        dest="location_ids",
        action="append",
        default=None,
        help="Only follow this location id (repeatable)",
    )

    return parser


async def watch(
    service: WeatherService, config: AppConfig, location_ids: Optional[List[str]]
) -> None:
    """Print readings as they arrive, saving them to the history periodically."""
    scheduler = UpdateScheduler(service, config.stream)
    if not location_ids:
        updates = scheduler.weather_updates()
    elif len(location_ids) == 1:
        updates = scheduler.location_weather_updates(location_ids[0])
    else:
        updates = scheduler.multi_location_weather_updates(location_ids)

    loop = asyncio.get_running_loop()
    save_interval = config.storage.auto_save_interval_seconds
    pending: List[WeatherReading] = []
    last_save = loop.time()

    try:
        async for reading in updates:
            print(format_reading(reading), flush=True)
            if not save_interval:
                continue
            pending.append(reading)
            if loop.time() - last_save >= save_interval:
                await loop.run_in_executor(None, service.append_weather_history, pending)
                pending = []
                last_save = loop.time()
    finally:
        await updates.aclose()
        if pending:
            await loop.run_in_executor(None, service.append_weather_history, pending)


def run_command(args: argparse.Namespace, config: AppConfig) -> int:
    service = build_service(config)

    if args.command == "add":
        try:
            location = create_location(
                name=args.name,
                latitude=args.latitude,
                longitude=args.longitude,
                country=args.country,
            )
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            print(f"Invalid location {field}: {error['msg']}", file=sys.stderr)
            return 1
        service.add_location(location)
        print(f"Added {location.name} ({location.id})")
        return 0

    if args.command == "remove":
        try:
            service.remove_location(args.location_id)
        except LocationNotFoundError as e:
            print(str(e), file=sys.stderr)
            return 1
        print(f"Removed {args.location_id}")
        return 0

    if args.command == "list":
        for location in service.get_tracked_locations():
            country = f", {location.country}" if location.country else ""
            print(
                f"{location.id}  {location.name}{country} "
                f"({location.coordinates.latitude}, {location.coordinates.longitude})"
            )
        return 0

    if args.command == "history":
        for reading in service.get_weather_history():
            print(format_reading(reading))
        return 0

    if args.command == "once":
        scheduler = UpdateScheduler(service, config.stream)
        for reading in asyncio.run(scheduler.poll_once()):
            print(format_reading(reading))
        return 0

    if args.command == "watch":
        try:
            asyncio.run(watch(service, config, args.location_ids))
        except KeyboardInterrupt:
            logger.info("Weather stream stopped")
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the weather stream CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info(f"Prometheus metrics on port {args.metrics_port}")
    set_app_info(version=VERSION, environment=os.getenv("DEPLOYMENT_ENV", "local"))

    return run_command(args, config)


if __name__ == "__main__":
    sys.exit(main())
