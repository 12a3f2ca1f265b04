"""
Cache-through media delivery.

Serves media from the in-memory cache, falling back to an async loader
(GridFS, object storage, ...) on a miss and caching what it returns.
Builds the response headers and the 304 decision for HTTP handlers.
"""

import mimetypes
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Mapping, Optional

from eventhub.models.cache import HttpCacheConfig, MediaCategory, Payload
from eventhub.observability.logging import get_logger
from eventhub.services.http_cache import (
    DEFAULT_HTTP_CACHE_CONFIG,
    apply_cache_headers,
    is_client_cache_valid,
)
from eventhub.services.media_cache_service import MediaCacheService

logger = get_logger("media_delivery")

MediaLoader = Callable[[str], Awaitable[bytes]]


@dataclass
class MediaPayload:
    """Media content plus the validators needed to serve it"""

    name: str
    content: Payload
    etag: str
    from_cache: bool
    category: MediaCategory


@dataclass
class MediaResponse:
    """Status, headers and body for an HTTP media response"""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    media_type: Optional[str] = None


class MediaDeliveryService:
    """Cache-through fetch and response building for media."""

    def __init__(
        self,
        cache: MediaCacheService,
        http_config: HttpCacheConfig = DEFAULT_HTTP_CACHE_CONFIG,
    ):
        self.cache = cache
        self.http_config = http_config

    async def fetch(
        self,
        name: str,
        loader: MediaLoader,
        category: MediaCategory = MediaCategory.IMAGE,
    ) -> MediaPayload:
        """
        Get media from cache, loading and caching it on a miss.

        Args:
            name: Media file name
            loader: Async source called with the name on a cache miss
            category: Content category (selects TTL and headers)

        Returns:
            MediaPayload with content and ETag

        Raises:
            Whatever the loader raises; failures are never masked
        """
        cached = self.cache.get(name)
        if cached is not None:
            etag = self.cache.get_etag(name) or self.cache.generate_etag(cached, name)
            return MediaPayload(
                name=name,
                content=cached,
                etag=etag,
                from_cache=True,
                category=category,
            )

        content = await loader(name)
        stored = self.cache.put(name, content, category=category)
        etag = (
            self.cache.get_etag(name) if stored else None
        ) or self.cache.generate_etag(content, name)

        logger.debug(
            "media_loaded",
            name=name,
            size=len(content),
            category=category.value,
            cached=stored,
        )
        return MediaPayload(
            name=name,
            content=content,
            etag=etag,
            from_cache=False,
            category=category,
        )

    def get_cached(
        self, name: str, category: MediaCategory = MediaCategory.IMAGE
    ) -> Optional[MediaPayload]:
        """Cache-only lookup, for handlers without a backing source."""
        cached = self.cache.get(name)
        if cached is None:
            return None
        etag = self.cache.get_etag(name) or self.cache.generate_etag(cached, name)
        return MediaPayload(
            name=name,
            content=cached,
            etag=etag,
            from_cache=True,
            category=category,
        )

    def build_response(
        self, request_headers: Mapping[str, str], media: MediaPayload
    ) -> MediaResponse:
        """
        Build cache headers and decide between 200 and 304.

        Args:
            request_headers: Incoming request headers
            media: Fetched media

        Returns:
            MediaResponse; body is None for 304 Not Modified
        """
        headers: Dict[str, str] = {}
        apply_cache_headers(headers, media.category, media.etag, self.http_config)
        headers["X-Cache"] = "HIT" if media.from_cache else "MISS"

        if is_client_cache_valid(request_headers, media.etag):
            return MediaResponse(status_code=304, headers=headers)

        media_type, _ = mimetypes.guess_type(media.name)
        return MediaResponse(
            status_code=200,
            headers=headers,
            body=bytes(media.content),
            media_type=media_type or "application/octet-stream",
        )
