"""Key-value persistence for family snapshots and loading of seed data."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import httpx

logger = logging.getLogger("familytree.storage")

FAMILY_DATA_KEY = "family-tree-data"
SEED_TIMEOUT_SECONDS = 10.0


class KeyValueStorage(Protocol):
    """Opaque string blob storage, the server-side stand-in for browser localStorage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Storage that lives only as long as the process."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    Storage backed by a single JSON file mapping keys to blob strings.

    Writes go to a temporary file in the same directory which then replaces the
    original, so a crash mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.path)
        except BaseException:
            os.unlink(temp_path)
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)
        logger.debug(f"Stored {len(value)} chars under '{key}' in {self.path}")

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


def fetch_seed(source: str | os.PathLike) -> dict[str, Any]:
    """
    Load a seed snapshot from an http(s) URL or a local JSON file.

    Raises httpx.HTTPError, OSError or ValueError when the source can't be read.
    """
    source_str = str(source)

    if source_str.startswith(("http://", "https://")):
        logger.info(f"Fetching seed data from {source_str}")
        with httpx.Client(timeout=SEED_TIMEOUT_SECONDS) as client:
            response = client.get(source_str, headers={"Accept": "application/json"})
            response.raise_for_status()
            data = response.json()
    else:
        logger.info(f"Reading seed data from {source_str}")
        with open(source_str, "r", encoding="utf-8") as f:
            data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("Seed data must be a JSON object")
    return data
