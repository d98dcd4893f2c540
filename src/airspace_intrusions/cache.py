"""Small key/value cache interface used by the pipeline.

The orchestrator keeps parsed boundary sets in a MemoryCache so a batch run
parses the boundary once; the tile compositor can keep fetched tiles in a
DiskCache across runs.  Anything with get/put/invalidate can be injected."""

import logging
from pathlib import Path
from typing import Any, Optional

from .util import atomic_write

logger = logging.getLogger(__name__)

class Cache:
    """Interface: get returns None on a miss."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def put(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything if key is None."""
        raise NotImplementedError

class MemoryCache(Cache):
    def __init__(self):
        self._store: dict[str, Any] = {}

    def get(self, key):
        return self._store.get(key)

    def put(self, key, value):
        self._store[key] = value

    def invalidate(self, key=None):
        if key is None:
            self._store.clear()
        else:
            self._store.pop(key, None)

    def __len__(self):
        return len(self._store)

class DiskCache(Cache):
    """Stores bytes values as files under a directory.

    Keys are relative paths such as "12/1130/1236.png"; slashes become
    subdirectories, which keeps tile caches in the usual {z}/{x}/{y} layout."""

    def __init__(self, cache_dir):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.cache_dir / key).resolve()
        if self.cache_dir.resolve() not in path.parents:
            raise ValueError("cache key escapes cache directory: " + key)
        return path

    def get(self, key):
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def put(self, key, value: bytes):
        with atomic_write(self._path(key)) as tmp:
            tmp.write_bytes(value)

    def invalidate(self, key=None):
        if key is not None:
            self._path(key).unlink(missing_ok=True)
            return
        for path in sorted(self.cache_dir.rglob("*"), reverse=True):
            if path.is_file():
                path.unlink()
            elif path.is_dir():
                path.rmdir()
        logger.info("Cleared cache %s", self.cache_dir)
