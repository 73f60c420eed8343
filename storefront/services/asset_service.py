"""Thumbnail and video URL resolution backed by the asset URL cache."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Iterable

from ..cache import TTLCache
from ..models import AssetFolder, CatalogRecord, SignedUrlResult
from ..signing import RetryingUrlSigner

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]

# Grey 300x180 "Video Thumbnail" card
PLACEHOLDER_THUMBNAIL = (
    "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iMzAwIiBoZWlnaHQ9IjE4MCIgeG1sbnM9Imh0dHA6Ly93d3cudzMub3JnLzIwMDAvc3ZnIj48"
    "cmVjdCB3aWR0aD0iMzAwIiBoZWlnaHQ9IjE4MCIgZmlsbD0iI2Y1ZjVmNSIvPjx0ZXh0IHg9IjUwJSIgeT0iNTAlIiBmb250LWZhbWlseT0iQXJp"
    "YWwiIGZvbnQtc2l6ZT0iMTQiIGZpbGw9IiM5OTk5OTkiIHRleHQtYW5jaG9yPSJtaWRkbGUiIGR5PSIuM2VtIj5WaWRlbyBUaHVtYm5haWw8L3Rl"
    "eHQ+PC9zdmc+"
)


class AssetResolver:
    """Resolve storage identifiers to delivery URLs through the URL cache.

    Results, fallbacks included, are cached per (folder, identifier): a
    fallback URL for an unprefixed identifier depends on the folder. There is no
    single-flight: two concurrent misses on the same identifier both go to
    the signer and the later write wins.
    """

    def __init__(self, signer: RetryingUrlSigner, url_cache: TTLCache[CacheKey, SignedUrlResult]):
        self._signer = signer
        self._cache = url_cache

    async def resolve(self, identifier: str, folder: AssetFolder) -> SignedUrlResult:
        key = (folder.value, identifier)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("signed_url_cache_hit", extra={"identifier": identifier})
            return cached

        result = await self._signer.resolve(identifier, folder)
        self._cache.set(key, result)
        return result

    async def video_url(self, identifier: str) -> str:
        return (await self.resolve(identifier, AssetFolder.VIDEOS)).url

    async def thumbnail_url(self, identifier: str | None) -> str:
        """Thumbnail URL, or the placeholder when there is none or resolution blows up."""
        if not identifier:
            return PLACEHOLDER_THUMBNAIL
        try:
            return (await self.resolve(identifier, AssetFolder.THUMBNAILS)).url
        except Exception as e:
            logger.error(
                "thumbnail_resolution_failed",
                extra={"identifier": identifier, "error": repr(e)},
            )
            return PLACEHOLDER_THUMBNAIL

    async def with_thumbnail(self, record: CatalogRecord) -> CatalogRecord:
        url = await self.thumbnail_url(record.thumbnail_file_id)
        return dataclasses.replace(record, thumbnail_url=url)

    async def with_thumbnails(self, records: Iterable[CatalogRecord]) -> list[CatalogRecord]:
        """Attach thumbnail URLs to every record, resolving concurrently."""
        return list(await asyncio.gather(*(self.with_thumbnail(r) for r in records)))

    def forget(self, *identifiers: str | None) -> None:
        """Drop cached URLs, e.g. after the binaries were deleted."""
        for identifier in identifiers:
            if identifier:
                for folder in AssetFolder:
                    self._cache.invalidate((folder.value, identifier))
