"""
LRU Embedding Cache

Bounded in-memory cache from normalized text to embedding vector. Repeated
questions ("what are my rights as a tenant" vs "What are my rights  as a tenant")
skip the embedding API entirely.

Keys are normalized (trimmed, lowercased, whitespace runs collapsed), so
case and spacing variants of the same text share one entry.
"""

import re
import time
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_key(text: str) -> str:
    """Normalize text into a cache key."""
    return _WHITESPACE.sub(" ", text.strip().lower())


@dataclass
class CacheEntry:
    vector: list[float]
    inserted_at: float


class EmbeddingCache:
    """
    Strict LRU cache of embedding vectors.

    Every hit or overwrite moves the entry to the most-recently-used end;
    inserting beyond max_size evicts the least-recently-used entry.
    Safe to share between retrieval worker threads.
    """

    def __init__(self, max_size: int = 500):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, text: str) -> Optional[list[float]]:
        """Return the cached vector for text, or None on a miss."""
        key = normalize_key(text)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)

        if entry is None:
            self._record(hit=False)
            return None

        self._record(hit=True)
        return entry.vector

    def set(self, text: str, vector: list[float]) -> None:
        """Store a vector, refreshing recency and evicting the LRU entry if full."""
        key = normalize_key(text)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Embedding cache evicted: {evicted[:50]}")
            self._entries[key] = CacheEntry(vector=vector, inserted_at=time.time())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        """Membership check without touching recency or telemetry."""
        return normalize_key(text) in self._entries

    def _record(self, hit: bool) -> None:
        try:
            collector = get_metrics_collector()
            if hit:
                collector.record_cache_hit()
            else:
                collector.record_cache_miss()
        except Exception as e:
            logger.debug(f"Failed to record embedding cache metric: {e}")


_cache: Optional[EmbeddingCache] = None


def get_embedding_cache(max_size: Optional[int] = None) -> EmbeddingCache:
    """Get the process-wide embedding cache (sized from config on first use)."""
    global _cache
    if _cache is None:
        if max_size is None:
            from .config import get_config
            max_size = get_config().embedding_cache_size
        _cache = EmbeddingCache(max_size=max_size)
    return _cache
