"""
Persistence store

A key-value blob store holding the platform state as opaque JSON:
{realTimeData, config, lastSaved}
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from engine.errors import PersistenceError

logger = logging.getLogger(__name__)

STORAGE_KEY = "attackPlatformData"


class MemoryStore:
    """In-process blob store"""

    def __init__(self, blobs: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(blobs or {})

    def read(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def write(self, key: str, blob: str) -> None:
        self.blobs[key] = blob


class JsonFileStore:
    """Blob store keeping one <key>.json file per key in a directory"""

    def __init__(self, directory: str = "data"):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e

    def write(self, key: str, blob: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_text(blob, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e
        logger.debug(f"Saved {len(blob)} bytes to {path}")


def load_state(store, key: str = STORAGE_KEY) -> Optional[Dict[str, Any]]:
    """
    Read and decode the persisted state.

    Returns:
        dict with realTimeData/config, or None when nothing was saved yet

    Raises:
        PersistenceError: the blob is unreadable or not a JSON object
    """
    blob = store.read(key)
    if blob is None:
        return None

    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Corrupt saved data: {e}") from e

    if not isinstance(data, dict):
        raise PersistenceError("Corrupt saved data: expected a JSON object")
    return data


def save_state(store, real_time_data: Dict[str, Any], config: Dict[str, Any],
               last_saved: str, key: str = STORAGE_KEY) -> None:
    """Encode and write the platform state"""
    payload = {
        "realTimeData": real_time_data,
        "config": config,
        "lastSaved": last_saved
    }
    try:
        blob = json.dumps(payload)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"State is not serializable: {e}") from e
    store.write(key, blob)
