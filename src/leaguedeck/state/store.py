"""
Persistent state for widgets, connections, preferences and a TTL cache.

Everything lives in one JSON document written atomically (temp file then
rename). A load failure is never fatal; the store starts empty instead.
"""

import asyncio
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..utils.errors import PersistenceError

logger = logging.getLogger(__name__)


class StateStore:
    VERSION = "1.0.0"
    AUTO_SAVE_INTERVAL = 30.0
    MAX_CACHE_AGE = 300.0
    # Inactive widget/connection entries older than this are dropped by cleanup()
    STALE_ENTRY_AGE = 24 * 60 * 60

    def __init__(
        self,
        path: str,
        auto_save_interval: float = AUTO_SAVE_INTERVAL,
        max_cache_age: float = MAX_CACHE_AGE,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path).expanduser()
        self.auto_save_interval = auto_save_interval
        self.max_cache_age = max_cache_age
        self._clock = clock

        self.widgets: Dict[str, Dict[str, Any]] = {}
        self.connections: Dict[str, Dict[str, Any]] = {}
        self.preferences: Dict[str, Any] = {}
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.metadata: Dict[str, Any] = self._new_metadata()

        self.dirty = False
        self._auto_save_task: Optional[asyncio.Task] = None

    def _new_metadata(self) -> Dict[str, Any]:
        return {"version": self.VERSION, "created": self._clock(), "lastSave": None}

    # Persistence

    def load(self) -> bool:
        """
        Load state from disk.

        Returns:
            True if a state file was loaded, False if starting fresh
        """
        try:
            data = self._read()
        except PersistenceError as e:
            logger.warning(f"{e.message}; starting with empty state")
            self._reset_memory()
            return False

        if data is None:
            logger.info(f"No state file at {self.path}, starting fresh")
            return False

        self.widgets = dict(data.get("keys") or {})
        self.connections = dict(data.get("connections") or {})
        self.preferences = dict(data.get("preferences") or {})
        self.cache = dict(data.get("cache") or {})
        self.metadata = {**self._new_metadata(), **(data.get("metadata") or {})}

        dropped = self.clear_expired_cache()
        self.dirty = dropped > 0

        logger.info(
            f"Loaded state: {len(self.widgets)} widgets, "
            f"{len(self.connections)} connections, {len(self.cache)} cache entries"
        )
        return True

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise PersistenceError(self.path, f"Failed to read state file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError(self.path, f"State file {self.path} is not a JSON object")
        return data

    def save(self) -> bool:
        """
        Write state to disk if anything changed since the last save.

        Returns:
            True if the file is up to date, False if writing failed
        """
        if not self.dirty:
            return True

        try:
            self._write()
        except PersistenceError as e:
            logger.error(e.message)
            return False

        self.dirty = False
        logger.debug(f"State saved to {self.path}")
        return True

    def force_save(self) -> bool:
        self.dirty = True
        return self.save()

    def _write(self) -> None:
        saved_at = self._clock()
        document = {
            "keys": self.widgets,
            "connections": self.connections,
            "preferences": self.preferences,
            "cache": self.cache,
            "metadata": {**self.metadata, "lastSave": saved_at},
        }

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(self.path, f"Failed to save state to {self.path}: {e}") from e

        self.metadata["lastSave"] = saved_at

    def start_auto_save(self) -> None:
        """Start the periodic sweep-and-save task on the running loop"""
        if self._auto_save_task and not self._auto_save_task.done():
            return
        self._auto_save_task = asyncio.get_running_loop().create_task(self._auto_save_loop())

    def stop_auto_save(self) -> None:
        if self._auto_save_task:
            self._auto_save_task.cancel()
            self._auto_save_task = None

    async def _auto_save_loop(self) -> None:
        while True:
            await asyncio.sleep(self.auto_save_interval)
            self.clear_expired_cache()
            self.save()

    async def shutdown(self) -> None:
        self.stop_auto_save()
        self.force_save()
        logger.info("State store shut down")

    # Widget state

    def update_widget_state(self, widget_key: str, state: Dict[str, Any]) -> None:
        current = self.widgets.get(widget_key, {})
        self.widgets[widget_key] = {**current, **state, "lastUpdate": self._clock()}
        self.dirty = True

    def get_widget_state(self, widget_key: str) -> Optional[Dict[str, Any]]:
        return self.widgets.get(widget_key)

    def remove_widget_state(self, widget_key: str) -> bool:
        if self.widgets.pop(widget_key, None) is None:
            return False
        self.dirty = True
        return True

    # Connection state

    def update_connection_state(self, service: str, state: Dict[str, Any]) -> None:
        current = self.connections.get(service, {})
        self.connections[service] = {**current, **state, "lastUpdate": self._clock()}
        self.dirty = True

    def get_connection_state(self, service: str) -> Optional[Dict[str, Any]]:
        return self.connections.get(service)

    # Preferences

    def set_preference(self, key: str, value: Any) -> None:
        self.preferences[key] = value
        self.dirty = True

    def get_preference(self, key: str, default: Any = None) -> Any:
        return self.preferences.get(key, default)

    def remove_preference(self, key: str) -> bool:
        if key not in self.preferences:
            return False
        del self.preferences[key]
        self.dirty = True
        return True

    # Cache

    def set_cache(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """
        Cache a JSON-serializable value.

        Args:
            key: Cache key
            data: Value to store
            ttl: Seconds until expiry; entries without TTL age out after max_cache_age
        """
        now = self._clock()
        self.cache[key] = {
            "data": data,
            "timestamp": now,
            "expiry": now + ttl if ttl is not None else None,
        }
        self.dirty = True

    def get_cache(self, key: str, default: Any = None) -> Any:
        entry = self.cache.get(key)
        if entry is None:
            return default
        if self._is_expired(entry, self._clock()):
            del self.cache[key]
            self.dirty = True
            return default
        return entry.get("data")

    def remove_cache(self, key: str) -> bool:
        if self.cache.pop(key, None) is None:
            return False
        self.dirty = True
        return True

    def clear_all_cache(self) -> None:
        if self.cache:
            self.cache.clear()
            self.dirty = True

    def clear_expired_cache(self) -> int:
        """
        Drop expired and aged cache entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self.cache.items() if self._is_expired(entry, now)]
        for key in expired:
            del self.cache[key]
        if expired:
            self.dirty = True
            logger.debug(f"Removed {len(expired)} expired cache entries")
        return len(expired)

    def _is_expired(self, entry: Dict[str, Any], now: float) -> bool:
        expiry = entry.get("expiry")
        if expiry is not None:
            return now > expiry
        return now - entry.get("timestamp", 0) > self.max_cache_age

    # Maintenance

    def cleanup(self) -> int:
        """
        Remove expired cache entries and stale inactive widget/connection state.

        Returns:
            Number of entries removed
        """
        removed = self.clear_expired_cache()
        cutoff = self._clock() - self.STALE_ENTRY_AGE

        for table in (self.widgets, self.connections):
            stale = [
                key
                for key, state in table.items()
                if state.get("lastUpdate", 0) < cutoff and not state.get("active")
            ]
            for key in stale:
                del table[key]
            removed += len(stale)

        if removed:
            self.dirty = True
            logger.info(f"State cleanup removed {removed} entries")
        return removed

    def reset(self) -> None:
        self._reset_memory()
        self.dirty = True
        logger.info("State reset")

    def _reset_memory(self) -> None:
        self.widgets = {}
        self.connections = {}
        self.preferences = {}
        self.cache = {}
        self.metadata = self._new_metadata()

    def get_summary(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "widgets": len(self.widgets),
            "connections": len(self.connections),
            "preferences": len(self.preferences),
            "cache_entries": len(self.cache),
            "dirty": self.dirty,
            "metadata": dict(self.metadata),
            "auto_save": self._auto_save_task is not None and not self._auto_save_task.done(),
        }
