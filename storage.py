"""Key/value JSON persistence for locally saved state.

Each key lives in its own ``<key>.json`` file under the data directory so the
collections can be read and written independently.
"""

import json
import logging
import os
import tempfile

logger = logging.getLogger(__name__)


class LocalStore:
    """JSON file store keyed by name."""

    def __init__(self, data_dir):
        self.data_dir = data_dir

    def _path(self, key):
        return os.path.join(self.data_dir, f"{key}.json")

    def read(self, key, default=None):
        """Return the value stored under *key*.

        Missing, unreadable or corrupt files yield *default*. When *default*
        is not None, a stored value of a different type is treated as corrupt.
        """
        path = self._path(key)
        if not os.path.isfile(path):
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                value = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable data for %s: %s", key, e)
            return default
        if default is not None and not isinstance(value, type(default)):
            logger.warning("Ignoring data for %s: expected %s, got %s",
                           key, type(default).__name__, type(value).__name__)
            return default
        return value

    def write(self, key, value):
        """Atomically replace the value stored under *key*."""
        os.makedirs(self.data_dir, exist_ok=True)
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def delete(self, key):
        path = self._path(key)
        if os.path.isfile(path):
            os.unlink(path)
