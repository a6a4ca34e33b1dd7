"""
JSON flat-file persistence for tracked locations and reading history.
"""
import json
import logging
from pathlib import Path
from typing import List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .config import StorageConfig
from .errors import FileSystemError
from .models import Location, WeatherReading

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class LocationStore:
    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)
        self.locations_path = self.data_dir / "locations.json"
        self.readings_path = self.data_dir / "readings.json"

    @classmethod
    def from_config(cls, config: StorageConfig) -> "LocationStore":
        return cls(config.data_dir)

    def load_locations(self) -> List[Location]:
        return self._load(self.locations_path, Location)

    def save_locations(self, locations: List[Location]) -> None:
        self._save(self.locations_path, locations)

    def load_readings(self) -> List[WeatherReading]:
        return self._load(self.readings_path, WeatherReading)

    def save_readings(self, readings: List[WeatherReading]) -> None:
        self._save(self.readings_path, readings)

    def _save(self, path: Path, items: List[BaseModel]) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError("mkdir", str(self.data_dir), e)

        encoded = [item.model_dump(mode="json") for item in items]
        try:
            path.write_text(json.dumps(encoded, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise FileSystemError("writeFile", str(path), e)

        logger.debug(f"Saved {len(items)} records to {path}")

    def _load(self, path: Path, model: Type[M]) -> List[M]:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileSystemError("readFile", str(path), e)

        try:
            data = json.loads(content)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return [model.model_validate(item) for item in data]
        except (ValueError, ValidationError) as e:
            raise FileSystemError("decode", str(path), e)
