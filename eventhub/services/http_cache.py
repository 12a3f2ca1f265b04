"""HTTP cache-policy helpers for media responses.

Stateless functions that translate a content category and an optional
ETag into response cache directives, plus the conditional-request check
used to short-circuit with 304 Not Modified.

Every helper writes into a caller-supplied header mapping (a Starlette
``MutableHeaders``, a plain dict, ...) and has no other side effect.

Usage:
    from eventhub.services.http_cache import (
        apply_cache_headers,
        is_client_cache_valid,
    )

    if is_client_cache_valid(request.headers, etag):
        return Response(status_code=304)
    apply_cache_headers(response.headers, MediaCategory.IMAGE, etag)
"""

from typing import Callable, Dict, Mapping, MutableMapping, Optional

from eventhub.models.cache import HttpCacheConfig, MediaCategory

DEFAULT_HTTP_CACHE_CONFIG = HttpCacheConfig()

HeaderSink = MutableMapping[str, str]


def _set_cdn_headers(headers: HeaderSink, max_age: int) -> None:
    headers["CDN-Cache-Control"] = f"public, max-age={max_age}"
    headers["Cloudflare-CDN-Cache-Control"] = f"public, max-age={max_age}"


def apply_image_cache_headers(
    headers: HeaderSink,
    etag: Optional[str] = None,
    config: HttpCacheConfig = DEFAULT_HTTP_CACHE_CONFIG,
) -> None:
    """Long-lived immutable caching for images, with CDN hints."""
    headers["Cache-Control"] = f"public, max-age={config.image_max_age}, immutable"
    headers["Vary"] = "Accept-Encoding"
    if etag:
        headers["ETag"] = etag
    _set_cdn_headers(headers, config.image_max_age)


def apply_video_cache_headers(
    headers: HeaderSink,
    etag: Optional[str] = None,
    config: HttpCacheConfig = DEFAULT_HTTP_CACHE_CONFIG,
) -> None:
    """Immutable caching for videos; varies on Range for partial content."""
    headers["Cache-Control"] = f"public, max-age={config.video_max_age}, immutable"
    headers["Vary"] = "Accept-Encoding, Range"
    if etag:
        headers["ETag"] = etag
    _set_cdn_headers(headers, config.video_max_age)


def apply_thumbnail_cache_headers(
    headers: HeaderSink,
    etag: Optional[str] = None,
    config: HttpCacheConfig = DEFAULT_HTTP_CACHE_CONFIG,
) -> None:
    headers["Cache-Control"] = (
        f"public, max-age={config.thumbnail_max_age}, immutable"
    )
    headers["Vary"] = "Accept-Encoding"
    if etag:
        headers["ETag"] = etag


def apply_metadata_cache_headers(
    headers: HeaderSink,
    etag: Optional[str] = None,
    config: HttpCacheConfig = DEFAULT_HTTP_CACHE_CONFIG,
) -> None:
    """Short caching for gallery listings; varies per user."""
    headers["Cache-Control"] = (
        f"public, max-age={config.metadata_max_age}, "
        f"stale-while-revalidate={config.metadata_stale_while_revalidate}"
    )
    headers["Vary"] = "Accept-Encoding, Authorization"
    if etag:
        headers["ETag"] = etag


_APPLIERS: Dict[MediaCategory, Callable[..., None]] = {
    MediaCategory.IMAGE: apply_image_cache_headers,
    MediaCategory.VIDEO: apply_video_cache_headers,
    MediaCategory.THUMBNAIL: apply_thumbnail_cache_headers,
    MediaCategory.METADATA: apply_metadata_cache_headers,
}


def apply_cache_headers(
    headers: HeaderSink,
    category: MediaCategory,
    etag: Optional[str] = None,
    config: HttpCacheConfig = DEFAULT_HTTP_CACHE_CONFIG,
) -> None:
    """Apply the cache policy for a content category."""
    _APPLIERS[MediaCategory(category)](headers, etag, config)


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def _opaque_tag(validator: str) -> str:
    # If-None-Match uses weak comparison: W/"x" matches "x"
    if validator.startswith("W/"):
        return validator[2:]
    return validator


def is_client_cache_valid(
    request_headers: Mapping[str, str], etag: Optional[str]
) -> bool:
    """
    Check whether the client's cached copy is still current.

    Matching follows If-None-Match semantics: "*" matches any current
    representation and weak validators compare equal to strong ones.

    Args:
        request_headers: Incoming request headers
        etag: Current ETag of the resource

    Returns:
        True if If-None-Match matches the current ETag (304 applies)
    """
    if not etag:
        return False

    client_etag = _get_header(request_headers, "if-none-match")
    if not client_etag:
        return False

    if client_etag.strip() == "*":
        return True

    current = _opaque_tag(etag)
    validators = (_opaque_tag(v.strip()) for v in client_etag.split(","))
    return any(v == current for v in validators)
