import asyncio
from collections import OrderedDict
from typing import Any, Optional


class ContentCache:
    """In-memory LRU cache for content-addressed documents.

    A content identifier always names the same bytes, so entries never
    expire; only the size bound evicts.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._cache: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key not in self._cache:
                self.misses += 1
                return None

            self._cache.move_to_end(key)
            self.hits += 1
            return self._cache[key]

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._cache[key] = value
            self._cache.move_to_end(key)

            while len(self._cache) > self.max_size:
                self._cache.popitem(last=False)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    def size(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache
