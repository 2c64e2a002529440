import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple

from lms.config import QUERY_STALE_SECONDS, QUERY_RETRY
from lms.errors import ApiError

logger = logging.getLogger(__name__)

Key = Tuple[Hashable, ...]


def freeze_key(key: Iterable[Any]) -> Key:
    """Turn a query key with dict/list parts into a hashable tuple."""
    return tuple(_freeze(part) for part in key)


def _freeze(value):
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items() if v is not None))
    if isinstance(value, (list, tuple, set)):
        return tuple(_freeze(v) for v in value)
    return value


def _should_retry(exc: Exception) -> bool:
    # 4xx answers will not change on a second try
    return isinstance(exc, ApiError) and exc.retryable


@dataclass
class QueryEntry:
    data: Any = None
    error: Optional[Exception] = None
    updated_at: float = 0.0
    invalidated: bool = False
    fetch_count: int = 0


class QueryCache:
    """Per-session server-state cache keyed by tuples.

    A cached value is served until it is older than its stale time or until
    a key prefix it falls under is invalidated; after that the next fetch
    calls the loader again.
    """

    def __init__(self, stale_time: float = QUERY_STALE_SECONDS, retry: int = QUERY_RETRY,
                 clock: Callable[[], float] = time.monotonic):
        self.stale_time = stale_time
        self.retry = retry
        self._clock = clock
        self._entries: Dict[Key, QueryEntry] = {}

    def __contains__(self, key) -> bool:
        return freeze_key(key) in self._entries

    def entry(self, key) -> Optional[QueryEntry]:
        return self._entries.get(freeze_key(key))

    def is_stale(self, key, stale_time: Optional[float] = None) -> bool:
        entry = self.entry(key)
        if entry is None or entry.invalidated or entry.error is not None or entry.fetch_count == 0:
            return True
        limit = self.stale_time if stale_time is None else stale_time
        return self._clock() - entry.updated_at >= limit

    def fetch(self, key, loader: Callable[[], Any], *, stale_time: Optional[float] = None,
              retry: Optional[int] = None, enabled: bool = True) -> Any:
        frozen = freeze_key(key)
        entry = self._entries.get(frozen)
        if not enabled:
            return entry.data if entry else None
        if not self.is_stale(frozen, stale_time):
            return entry.data

        if entry is None:
            entry = self._entries[frozen] = QueryEntry()
        attempts = 1 + (self.retry if retry is None else retry)
        for attempt in range(1, attempts + 1):
            try:
                data = loader()
            except Exception as exc:
                if attempt < attempts and _should_retry(exc):
                    logger.warning("Query %s failed (attempt %d/%d): %s", frozen, attempt, attempts, exc)
                    continue
                entry.error = exc
                raise
            entry.data = data
            entry.error = None
            entry.invalidated = False
            entry.updated_at = self._clock()
            entry.fetch_count += 1
            return data

    def get_data(self, key) -> Any:
        entry = self.entry(key)
        return entry.data if entry else None

    def set_data(self, key, data: Any):
        frozen = freeze_key(key)
        entry = self._entries.setdefault(frozen, QueryEntry())
        entry.data = data
        entry.error = None
        entry.invalidated = False
        entry.updated_at = self._clock()
        entry.fetch_count += 1

    def _matching(self, prefix) -> list:
        frozen = freeze_key(prefix)
        return [k for k in self._entries if k[: len(frozen)] == frozen]

    def invalidate(self, prefix) -> int:
        """Mark every key starting with prefix stale. Returns the count."""
        keys = self._matching(prefix)
        for k in keys:
            self._entries[k].invalidated = True
        return len(keys)

    def remove(self, prefix) -> int:
        keys = self._matching(prefix)
        for k in keys:
            del self._entries[k]
        return len(keys)

    def clear(self):
        self._entries.clear()
