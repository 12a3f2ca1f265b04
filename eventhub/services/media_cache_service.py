"""
In-memory media cache service.

Hot tier for gallery media (images, videos, thumbnails):
1. Media payloads (byte-budgeted, LRU eviction, per-category TTL)
2. ETags (for conditional requests)
3. Metadata (lightweight info about each cached item)

Payloads are shared with callers and never copied. `bytes` payloads are
stored as-is; mutable buffers are exposed as read-only memoryviews.
Callers must treat returned payloads as read-only.
"""

import hashlib
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from cachetools import TTLCache

from eventhub.models.cache import (
    MB,
    CacheEntry,
    CacheHealthReport,
    CacheStats,
    MediaCacheConfig,
    MediaCategory,
    Payload,
)
from eventhub.observability.logging import get_logger
from eventhub.observability.metrics import (
    CACHE_CORRUPTIONS,
    CACHE_ITEMS,
    CACHE_OPERATIONS,
    CACHE_SIZE_BYTES,
    CACHED_PAYLOAD_BYTES,
)

logger = get_logger("media_cache")

_COUNTERS = ("hits", "misses", "bytes_served", "bytes_cached", "evictions", "corruptions")


class MediaCacheService:
    """
    Byte-budgeted in-memory cache for binary media.

    Provides per-category expiration, LRU eviction, companion ETag and
    metadata stores and hit/miss statistics. All mutations are serialized
    by a re-entrant lock.
    """

    # clear() keeps hit/miss history so long-run hit rate stays visible.
    # Use reset_stats() to zero the counters explicitly.
    CLEAR_RESETS_STATISTICS = False

    def __init__(
        self,
        config: MediaCacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize media cache.

        Args:
            config: Cache configuration
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.config = config
        self.enabled = config.enabled
        self._clock = clock
        self._lock = threading.RLock()

        # Media entries double as the LRU index: one entry per live key
        self._media: Dict[str, CacheEntry] = {}
        self._etags: TTLCache = TTLCache(
            maxsize=config.max_items * 2,
            ttl=config.media_ttl_seconds,
            timer=clock,
        )
        self._metadata: TTLCache = TTLCache(
            maxsize=config.max_items * 2,
            ttl=config.metadata_ttl_seconds,
            timer=clock,
        )

        self._current_size = 0
        self._access_seq = 0
        self._counters: Dict[str, int] = dict.fromkeys(_COUNTERS, 0)
        self.last_health_report: Optional[CacheHealthReport] = None

        logger.info(
            "media_cache_initialized",
            enabled=self.enabled,
            max_size_mb=config.max_cache_size_mb,
            max_item_size_mb=config.max_item_size_mb,
            max_items=config.max_items,
        )

    # ==================== Keys ====================

    @staticmethod
    def _media_key(name: str) -> str:
        return f"media:{name}"

    @staticmethod
    def _etag_key(name: str) -> str:
        return f"etag:{name}"

    @staticmethod
    def _meta_key(name: str) -> str:
        return f"meta:{name}"

    @staticmethod
    def generate_etag(payload: Payload, name: str) -> str:
        """
        Generate a quoted ETag from payload content and name.

        Args:
            payload: Binary content
            name: Media file name

        Returns:
            Quoted MD5 hex digest, e.g. '"9e107d9d372bb6826bd81d3542a419d6"'
        """
        digest = hashlib.md5(usedforsecurity=False)
        digest.update(payload)
        digest.update(name.encode())
        return f'"{digest.hexdigest()}"'

    # ==================== Payload helpers ====================

    @staticmethod
    def _as_payload(payload: Any) -> Optional[Payload]:
        """Wrap a buffer for storage without copying it."""
        if isinstance(payload, bytes):
            return payload
        if isinstance(payload, (bytearray, memoryview)):
            try:
                return memoryview(payload).cast("B").toreadonly()
            except TypeError:
                # Non-contiguous buffers cannot be shared as flat bytes
                return None
        return None

    @staticmethod
    def _is_binary(payload: Any) -> bool:
        return isinstance(payload, (bytes, memoryview))

    # ==================== Media ====================

    def put(
        self,
        name: str,
        payload: Any,
        meta: Optional[Dict[str, Any]] = None,
        category: MediaCategory = MediaCategory.IMAGE,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """
        Cache a media payload.

        Evicts expired and then least recently used entries when the byte
        budget or item ceiling would be exceeded.

        Args:
            name: Media file name
            payload: Binary content (bytes, bytearray or memoryview)
            meta: Optional metadata stored alongside the payload
            category: Content category, selects the TTL
            ttl_seconds: Explicit TTL overriding the category default

        Returns:
            True if cached, False if rejected (empty, non-binary, too large)
        """
        if not self.enabled:
            return False

        view = self._as_payload(payload)
        size = len(view) if view is not None else 0
        ceiling = min(self.config.max_item_size_bytes, self.config.max_cache_size_bytes)

        if view is None or size == 0 or size > ceiling:
            CACHE_OPERATIONS.labels(operation="reject").inc()
            logger.debug("media_cache_rejected", name=name, size=size, ceiling=ceiling)
            return False

        key = self._media_key(name)
        budget = self.config.max_cache_size_bytes

        with self._lock:
            now = self._clock()

            existing = self._media.pop(key, None)
            if existing is not None:
                self._current_size -= existing.size_bytes

            over_budget = self._current_size + size > budget
            at_capacity = len(self._media) >= self.config.max_items
            if over_budget or at_capacity:
                self._purge_expired_locked(now)

            if self._current_size + size > budget:
                needed = self._current_size + size - budget
                self._evict_lru(needed + int(budget * self.config.eviction_margin))

            if len(self._media) >= self.config.max_items:
                self._evict_lru(0, needed_slots=len(self._media) - self.config.max_items + 1)

            ttl = ttl_seconds if ttl_seconds is not None else self.config.ttl_for(category)
            self._access_seq += 1
            self._media[key] = CacheEntry(
                key=key,
                payload=view,
                size_bytes=size,
                category=category,
                inserted_at=now,
                expires_at=now + ttl,
                last_access_at=now,
                access_count=1,
                access_seq=self._access_seq,
            )
            self._current_size += size
            self._counters["bytes_cached"] += size

            self._etags[self._etag_key(name)] = self.generate_etag(view, name)

            metadata = dict(meta or {})
            metadata.update(
                size=size,
                category=category.value,
                cached_at=datetime.utcnow().isoformat(),
            )
            self._metadata[self._meta_key(name)] = metadata

            self._update_gauges()

        CACHE_OPERATIONS.labels(operation="set").inc()
        CACHED_PAYLOAD_BYTES.observe(size)
        logger.debug(
            "media_cached",
            name=name,
            size=size,
            category=category.value,
            ttl_seconds=ttl,
        )
        return True

    def get(self, name: str) -> Optional[Payload]:
        """
        Get cached media.

        Args:
            name: Media file name

        Returns:
            Shared read-only payload, or None on miss or expiry
        """
        if not self.enabled:
            return None

        key = self._media_key(name)

        with self._lock:
            now = self._clock()
            entry = self._media.get(key)

            if entry is not None and entry.is_expired(now):
                self._remove_locked(key)
                self._update_gauges()
                entry = None

            if entry is None:
                self._counters["misses"] += 1
                CACHE_OPERATIONS.labels(operation="miss").inc()
                return None

            self._counters["hits"] += 1
            self._counters["bytes_served"] += entry.size_bytes
            self._access_seq += 1
            entry.last_access_at = now
            entry.access_count += 1
            entry.access_seq = self._access_seq
            payload = entry.payload

        CACHE_OPERATIONS.labels(operation="hit").inc()
        return payload

    def has(self, name: str) -> bool:
        """Check whether media is cached, without touching statistics."""
        if not self.enabled:
            return False

        with self._lock:
            entry = self._media.get(self._media_key(name))
            return entry is not None and not entry.is_expired(self._clock())

    def get_etag(self, name: str) -> Optional[str]:
        """Get the ETag recorded when the media was cached."""
        with self._lock:
            return self._etags.get(self._etag_key(name))

    def get_metadata(self, name: str) -> Optional[Dict[str, Any]]:
        """Get metadata recorded when the media was cached."""
        with self._lock:
            return self._metadata.get(self._meta_key(name))

    # ==================== Invalidation ====================

    def invalidate(self, name: str) -> None:
        """
        Remove media, ETag and metadata for a name.

        Idempotent: invalidating an absent name is a no-op.
        """
        with self._lock:
            removed = self._remove_locked(self._media_key(name))
            self._etags.pop(self._etag_key(name), None)
            self._metadata.pop(self._meta_key(name), None)
            self._update_gauges()

        if removed:
            CACHE_OPERATIONS.labels(operation="invalidate").inc()
        logger.debug("media_invalidated", name=name, removed=removed)

    def invalidate_by_event_group(self, group_id: str) -> int:
        """
        Remove every entry whose name contains the group token.

        Used when an event is deleted and all of its media must go.

        Args:
            group_id: Token identifying the group, e.g. an event ID

        Returns:
            Number of media entries removed
        """
        if not group_id:
            return 0

        with self._lock:
            media_keys = [
                key for key in self._media if group_id in key.split(":", 1)[1]
            ]
            for key in media_keys:
                self._remove_locked(key)

            for store in (self._etags, self._metadata):
                for key in list(store.keys()):
                    if group_id in key.split(":", 1)[1]:
                        store.pop(key, None)

            self._update_gauges()

        count = len(media_keys)
        if count:
            CACHE_OPERATIONS.labels(operation="invalidate").inc(count)
        logger.info("media_group_invalidated", group_id=group_id, count=count)
        return count

    def clear(self) -> None:
        """Remove all entries and zero the byte counter."""
        with self._lock:
            self._media.clear()
            self._etags.clear()
            self._metadata.clear()
            self._current_size = 0
            if self.CLEAR_RESETS_STATISTICS:
                self._counters = dict.fromkeys(_COUNTERS, 0)
            self._update_gauges()

        logger.info("media_cache_cleared")

    def reset_stats(self) -> None:
        """Zero all statistics counters."""
        with self._lock:
            self._counters = dict.fromkeys(_COUNTERS, 0)

    # ==================== Maintenance ====================

    def purge_expired(self) -> int:
        """Physically remove expired media entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            purged = self._purge_expired_locked(self._clock())
            self._update_gauges()
        return purged

    def perform_health_check(self) -> CacheHealthReport:
        """
        Scan media entries and remove corrupted or expired ones.

        An entry is corrupted when its payload is no longer binary or its
        length no longer matches the recorded size.

        Returns:
            CacheHealthReport for this pass
        """
        with self._lock:
            expired = self._purge_expired_locked(self._clock())

            corrupted = 0
            for key, entry in list(self._media.items()):
                payload = entry.payload
                if not self._is_binary(payload) or len(payload) != entry.size_bytes:
                    self._remove_locked(key)
                    name = key[len("media:"):]
                    self._etags.pop(self._etag_key(name), None)
                    self._metadata.pop(self._meta_key(name), None)
                    corrupted += 1

            self._counters["corruptions"] += corrupted
            self._etags.expire()
            self._metadata.expire()
            self._update_gauges()
            stats = self.stats()

        if corrupted:
            CACHE_CORRUPTIONS.inc(corrupted)
            logger.warning("media_cache_corruption_repaired", corrupted=corrupted)

        logger.info(
            "media_cache_health",
            items=stats.item_count,
            current_size=stats.current_size,
            max_size=stats.max_size,
            utilization_percent=stats.utilization_percent,
            hit_rate=stats.hit_rate,
            expired_purged=expired,
        )

        report = CacheHealthReport(
            healthy=corrupted == 0,
            corrupted=corrupted,
            expired_purged=expired,
            item_count=stats.item_count,
            utilization_percent=stats.utilization_percent,
        )
        self.last_health_report = report
        return report

    def warm_candidates(self, names: Iterable[str]) -> List[str]:
        """
        Return the names that are not cached yet.

        Uncached media is cached on first access; callers use the result
        to schedule warm-up loads.
        """
        pending = [name for name in names if not self.has(name)]
        logger.info("media_cache_warming", queued=len(pending))
        return pending

    def stats(self) -> CacheStats:
        """
        Get cache statistics.

        Returns:
            CacheStats snapshot
        """
        with self._lock:
            return CacheStats(
                **self._counters,
                current_size_bytes=self._current_size,
                max_size_bytes=self.config.max_cache_size_bytes,
                item_count=len(self._media),
                metadata_count=len(self._metadata),
            )

    # ==================== Internals (lock held) ====================

    def _remove_locked(self, key: str) -> bool:
        entry = self._media.pop(key, None)
        if entry is None:
            return False
        self._current_size -= entry.size_bytes
        return True

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, e in self._media.items() if e.is_expired(now)]
        for key in expired:
            self._remove_locked(key)
        if expired:
            logger.debug("media_cache_expired_purged", count=len(expired))
        return len(expired)

    def _evict_lru(self, needed_bytes: int, needed_slots: int = 0) -> int:
        """Evict least recently used entries until enough is freed."""
        candidates = sorted(
            self._media.values(), key=lambda e: (e.last_access_at, e.access_seq)
        )

        freed = 0
        evicted = 0
        for entry in candidates:
            if freed >= needed_bytes and evicted >= needed_slots:
                break
            self._remove_locked(entry.key)
            freed += entry.size_bytes
            evicted += 1

        self._counters["evictions"] += evicted
        if evicted:
            CACHE_OPERATIONS.labels(operation="evict").inc(evicted)

        logger.info(
            "media_cache_evicted",
            evicted=evicted,
            freed_mb=round(freed / MB, 2),
        )
        return freed

    def _update_gauges(self) -> None:
        CACHE_SIZE_BYTES.set(self._current_size)
        CACHE_ITEMS.set(len(self._media))
