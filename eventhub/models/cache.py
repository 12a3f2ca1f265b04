"""
Data models for the media cache.

Defines cache configuration, HTTP cache policy configuration, cache
entries and statistics models.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

MB = 1024 * 1024

Payload = Union[bytes, memoryview]


class MediaCategory(str, Enum):
    """Content category served by the gallery"""

    IMAGE = "image"
    VIDEO = "video"
    THUMBNAIL = "thumbnail"
    METADATA = "metadata"


def _default_cache_size_mb() -> int:
    return int(os.environ.get("MEDIA_CACHE_SIZE_MB", "512"))


class MediaCacheConfig(BaseModel):
    """Media cache configuration"""

    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True

    # Size limits
    max_cache_size_mb: int = Field(default_factory=_default_cache_size_mb, ge=1)
    max_item_size_mb: int = Field(default=50, ge=1)
    max_items: int = Field(default=5000, ge=1)

    # TTL settings (seconds)
    media_ttl_seconds: int = Field(default=24 * 3600, ge=1)
    thumbnail_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=1)
    metadata_ttl_seconds: int = Field(default=3600, ge=1)

    # Eviction frees the overage plus this fraction of the budget
    eviction_margin: float = Field(default=0.1, ge=0.0, le=0.5)

    health_check_interval_seconds: int = Field(default=600, ge=1)

    @property
    def max_cache_size_bytes(self) -> int:
        return self.max_cache_size_mb * MB

    @property
    def max_item_size_bytes(self) -> int:
        return self.max_item_size_mb * MB

    def ttl_for(self, category: MediaCategory) -> int:
        """TTL in seconds for a media entry of the given category"""
        if category == MediaCategory.THUMBNAIL:
            return self.thumbnail_ttl_seconds
        if category == MediaCategory.METADATA:
            return self.metadata_ttl_seconds
        return self.media_ttl_seconds


class HttpCacheConfig(BaseModel):
    """Cache-Control max-age values (seconds) per content category"""

    image_max_age: int = Field(default=7 * 24 * 3600, ge=0)
    video_max_age: int = Field(default=30 * 24 * 3600, ge=0)
    thumbnail_max_age: int = Field(default=30 * 24 * 3600, ge=0)
    metadata_max_age: int = Field(default=3600, ge=0)
    metadata_stale_while_revalidate: int = Field(default=300, ge=0)


@dataclass
class CacheEntry:
    """A single cached media payload with its LRU bookkeeping.

    The payload is shared with the caller, never copied.
    """

    key: str
    payload: Payload
    size_bytes: int
    category: MediaCategory
    inserted_at: float
    expires_at: float
    last_access_at: float
    access_count: int = 1
    access_seq: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStats(BaseModel):
    """Cache statistics snapshot"""

    model_config = ConfigDict(protected_namespaces=())

    hits: int = 0
    misses: int = 0
    bytes_served: int = 0
    bytes_cached: int = 0
    evictions: int = 0
    corruptions: int = 0

    current_size_bytes: int = 0
    max_size_bytes: int = 0
    item_count: int = 0
    metadata_count: int = 0

    last_updated: datetime = Field(default_factory=datetime.now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hit_rate(self) -> float:
        """Hit rate in percent, 0 when nothing was requested yet"""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 2)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def current_size(self) -> str:
        return f"{self.current_size_bytes / MB:.2f} MB"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def max_size(self) -> str:
        return f"{self.max_size_bytes / MB:.2f} MB"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def utilization_percent(self) -> float:
        if self.max_size_bytes == 0:
            return 0.0
        return round(self.current_size_bytes / self.max_size_bytes * 100, 2)


class CacheHealthReport(BaseModel):
    """Result of one periodic cache self-check"""

    healthy: bool
    corrupted: int = 0
    expired_purged: int = 0
    item_count: int = 0
    utilization_percent: float = 0.0
    checked_at: datetime = Field(default_factory=datetime.now)
