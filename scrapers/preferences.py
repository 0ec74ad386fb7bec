import json
import logging
import os
import threading
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

DEFAULT_PREFS_PATH = os.environ.get(
    "HIKARI_PREFS_PATH", os.path.join(os.path.expanduser("~"), ".hikari_prefs.json")
)


class Preferences:
    """Small JSON-file key/value store for source settings."""

    def __init__(self, path: Optional[str] = DEFAULT_PREFS_PATH, defaults: Optional[Dict[str, Any]] = None):
        self.path = path
        self.defaults = dict(defaults or {})
        self._values: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._values = data
        except (OSError, json.JSONDecodeError) as e:
            log.warning(f"Ignoring unreadable preferences file {self.path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._values:
            return self._values[key]
        return self.defaults.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            if not self.path:
                return
            try:
                with open(self.path, 'w', encoding='utf-8') as f:
                    json.dump(self._values, f, indent=2)
            except OSError as e:
                log.error(f"Could not save preferences to {self.path}: {e}")
