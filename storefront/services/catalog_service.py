"""Catalog service with a read-through listing cache over the metadata store."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone

from ..cache import TTLCache
from ..metadata import MetadataStore, MetadataStoreError
from ..models import CatalogPage, CatalogRecord, SortOption, VideoDraft, VideoUpdate
from ..monitoring import with_error_capture
from ..signing import SigningClient
from ..utils import filter_records, make_video_id, sort_records
from .asset_service import AssetResolver

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "videos"
DEFAULT_PAGE_SIZE = 12


class CatalogService:
    """Service for catalog reads and mutations.

    Unfiltered listings are served from one cached snapshot, sorted on the
    way out so every sort order shares it. Searches always go to the store
    and are never cached. Every mutation invalidates the snapshot before and
    after its write, then re-reads the catalog.
    """

    def __init__(
        self,
        store: MetadataStore,
        assets: AssetResolver,
        snapshot_cache: TTLCache[str, tuple[CatalogRecord, ...]],
        files: SigningClient,
    ):
        self._store = store
        self._assets = assets
        self._cache = snapshot_cache
        self._files = files
        # Bumped on every invalidation so a fetch that straddles a write
        # does not store its pre-write result.
        self._generation = 0

    def invalidate(self) -> None:
        """Drop the cached listing snapshot."""
        self._generation += 1
        self._cache.invalidate(SNAPSHOT_KEY)
        logger.debug("catalog_cache_invalidated", extra={"generation": self._generation})

    @property
    def is_cached(self) -> bool:
        return SNAPSHOT_KEY in self._cache

    @with_error_capture
    async def get_all(
        self, sort: SortOption | str = SortOption.NEWEST, search: str = ""
    ) -> list[CatalogRecord]:
        """All active videos in ``sort`` order, optionally filtered by ``search``.

        Store failures propagate as ``MetadataStoreError`` and leave the cache
        untouched.
        """
        sort = SortOption(sort)
        query = (search or "").strip()

        if not query:
            snapshot = self._cache.get(SNAPSHOT_KEY)
            if snapshot is not None:
                logger.debug("catalog_cache_hit", extra={"count": len(snapshot)})
                return sort_records(snapshot, sort)

        generation = self._generation
        records = await self._store.list_videos()
        if query:
            records = filter_records(records, query)
        records = await self._assets.with_thumbnails(records)

        if not query:
            if generation == self._generation:
                self._cache.set(SNAPSHOT_KEY, tuple(records))
                logger.info("catalog_cache_updated", extra={"count": len(records)})
            else:
                logger.debug("catalog_cache_update_skipped")

        return sort_records(records, sort)

    async def get_video_ids(self, sort: SortOption | str = SortOption.NEWEST) -> list[str]:
        return [r.id for r in await self.get_all(sort)]

    async def get_page(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
        sort: SortOption | str = SortOption.NEWEST,
        search: str = "",
    ) -> CatalogPage:
        """1-based page of ``get_all``."""
        if page < 1 or per_page < 1:
            raise ValueError("page and per_page must be at least 1")
        videos = await self.get_all(sort, search)
        start = (page - 1) * per_page
        return CatalogPage(
            videos=videos[start : start + per_page],
            total_pages=math.ceil(len(videos) / per_page),
            page=page,
        )

    @with_error_capture
    async def get_one(self, video_id: str) -> CatalogRecord | None:
        """Single active video with its thumbnail resolved, or None."""
        record = await self._store.get_video(video_id)
        if record is None:
            logger.info("video_not_found", extra={"video_id": video_id})
            return None
        return await self._assets.with_thumbnail(record)

    async def get_video_file_url(self, video_id: str) -> str | None:
        """Streaming URL for a video, or None if it has no stored file."""
        record = await self._store.get_video(video_id)
        if record is None:
            return None
        if not record.video_file_id:
            logger.warning("video_without_file", extra={"video_id": video_id})
            return None
        return await self._assets.video_url(record.video_file_id)

    async def increment_views(self, video_id: str) -> None:
        """Best-effort view counter; errors are logged, not raised."""
        try:
            views = await self._store.get_views(video_id)
            if views is None:
                logger.warning("views_target_missing", extra={"video_id": video_id})
                return
            await self._store.set_views(video_id, views + 1)
        except MetadataStoreError as e:
            logger.error("views_increment_failed", extra={"video_id": video_id, "error": str(e)})

    async def _refresh(self) -> None:
        """Re-read the catalog after a confirmed write."""
        self.invalidate()
        try:
            await self.get_all()
        except MetadataStoreError as e:
            # Snapshot stays empty, so the next read goes to the store anyway.
            logger.warning("catalog_refresh_failed", extra={"error": str(e)})

    @with_error_capture
    async def create_video(self, draft: VideoDraft) -> CatalogRecord:
        self.invalidate()
        row = {
            "id": make_video_id(),
            "title": draft.title,
            "description": draft.description,
            "price": draft.price,
            "duration": draft.duration,
            "video_file_id": draft.video_file_id,
            "thumbnail_file_id": draft.thumbnail_file_id,
            "product_link": draft.product_link,
            "is_active": True,
            "views": 0,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            record = await self._store.insert_video(row)
        finally:
            self.invalidate()
        logger.info("video_created", extra={"video_id": record.id})
        await self._refresh()
        return record

    @with_error_capture
    async def update_video(self, video_id: str, changes: VideoUpdate) -> CatalogRecord | None:
        """Apply a partial update; None if the video does not exist."""
        fields = changes.to_row()
        if not fields:
            raise ValueError("no fields to update")

        self.invalidate()
        try:
            record = await self._store.update_video(video_id, fields)
        finally:
            self.invalidate()
        logger.info(
            "video_updated",
            extra={"video_id": video_id, "fields": sorted(fields), "found": record is not None},
        )
        await self._refresh()
        return record

    @with_error_capture
    async def delete_video(self, video_id: str) -> bool:
        """Delete a video row and its stored binaries. False if it did not exist.

        Binary cleanup failures are logged and do not block the row delete.
        """
        self.invalidate()
        try:
            record = await self._store.get_video(video_id)
            if record is not None:
                file_ids = [f for f in (record.video_file_id, record.thumbnail_file_id) if f]
                results = await asyncio.gather(*(self._files.delete_file(f) for f in file_ids))
                for file_id, ok in zip(file_ids, results):
                    if not ok:
                        logger.warning(
                            "video_file_cleanup_failed",
                            extra={"video_id": video_id, "identifier": file_id},
                        )
                self._assets.forget(*file_ids)
            await self._store.delete_video(video_id)
        finally:
            self.invalidate()
        logger.info("video_deleted", extra={"video_id": video_id, "found": record is not None})
        await self._refresh()
        return record is not None
