import json
import logging
import os
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = os.path.join("data", "dashboard_storage.json")


class KeyValueStore:
    """Durable string key/value store backed by one JSON file.

    Plays the part of the browser's localStorage: a flat mapping of string
    keys to string values that survives restarts.
    """

    def __init__(self, path: str = DEFAULT_STORAGE_PATH):
        self.path = path

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a JSON object", self.path)
            return {}

        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> bool:
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            return True
        except OSError as e:
            logger.error("Could not write %s: %s", self.path, e)
            return False

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> bool:
        data = self._read()
        data[key] = str(value)
        return self._write(data)

    def remove(self, *keys: str) -> bool:
        data = self._read()
        if not any(k in data for k in keys):
            return True
        for k in keys:
            data.pop(k, None)
        return self._write(data)
