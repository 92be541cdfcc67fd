"""Keyed store of fetched query data for API clients."""
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

QueryKey = Tuple[Any, ...]


class QueryCache:
    """Entries keep their data when invalidated; only the stale marker flips."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[QueryKey, Dict[str, Any]] = {}

    def get_query_data(self, key: QueryKey) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry["data"] if entry else None

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        with self._lock:
            self._entries[tuple(key)] = {"data": data, "stale": False}

    def update_query_data(self, key: QueryKey, updater: Callable[[Optional[Any]], Any]) -> None:
        """Replace data with updater(old); entries that don't exist are left alone"""
        with self._lock:
            entry = self._entries.get(tuple(key))
            if entry is None:
                return
            entry["data"] = updater(entry["data"])

    def is_stale(self, key: QueryKey) -> bool:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry is None or entry["stale"]

    def keys(self, prefix: QueryKey = ()) -> List[QueryKey]:
        prefix = tuple(prefix)
        with self._lock:
            return [k for k in self._entries if k[:len(prefix)] == prefix]

    def invalidate_queries(self, prefix: QueryKey) -> int:
        """Mark every entry under prefix stale. Returns number of entries touched."""
        prefix = tuple(prefix)
        touched = 0
        with self._lock:
            for key, entry in self._entries.items():
                if key[:len(prefix)] == prefix:
                    entry["stale"] = True
                    touched += 1
        return touched

    def remove_queries(self, prefix: QueryKey) -> int:
        prefix = tuple(prefix)
        with self._lock:
            doomed = [k for k in self._entries if k[:len(prefix)] == prefix]
            for key in doomed:
                del self._entries[key]
        return len(doomed)
