"""Async client for the ``videos`` collection of the metadata store (Supabase REST)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .models import CatalogRecord

logger = logging.getLogger(__name__)

VIDEOS_TABLE = "videos"


class MetadataStoreError(Exception):
    """The metadata store could not be reached or returned an unusable response."""


def _to_record(row: Any) -> CatalogRecord:
    if not isinstance(row, dict):
        raise MetadataStoreError(f"expected a row object, got {type(row).__name__}")
    try:
        return CatalogRecord.from_row(row)
    except (KeyError, TypeError, ValueError) as e:
        raise MetadataStoreError(f"unusable {VIDEOS_TABLE} row {row.get('id')!r}: {e!r}") from e


class MetadataStore:
    """CRUD over the ``videos`` table via PostgREST query syntax.

    Only active rows (``is_active = true``) are ever read.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str, api_key: str):
        self._http = http
        self._url = f"{base_url.rstrip('/')}/rest/v1/{VIDEOS_TABLE}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }

    async def _request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        return_rows: bool = True,
    ) -> list[dict[str, Any]]:
        headers = dict(self._headers)
        if method in ("POST", "PATCH"):
            headers["Prefer"] = "return=representation"

        try:
            response = await self._http.request(
                method, self._url, params=params, json=json_data, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "metadata_request_failed",
                extra={"method": method, "params": params, "error": str(e)},
            )
            raise MetadataStoreError(f"{method} {VIDEOS_TABLE} failed: {e}") from e

        if not return_rows:
            return []

        try:
            data = response.json()
        except ValueError as e:
            raise MetadataStoreError(f"{method} {VIDEOS_TABLE}: malformed response body") from e
        if not isinstance(data, list):
            raise MetadataStoreError(f"{method} {VIDEOS_TABLE}: expected a list of rows")
        return data

    async def list_videos(self) -> list[CatalogRecord]:
        """All active videos, newest first."""
        rows = await self._request(
            "GET",
            params={"select": "*", "is_active": "eq.true", "order": "created_at.desc"},
        )
        records = []
        for row in rows:
            try:
                records.append(_to_record(row))
            except MetadataStoreError as e:
                logger.warning("video_row_skipped", extra={"error": str(e)})
        logger.debug("videos_listed", extra={"count": len(records)})
        return records

    async def get_video(self, video_id: str) -> CatalogRecord | None:
        rows = await self._request(
            "GET",
            params={"select": "*", "id": f"eq.{video_id}", "is_active": "eq.true", "limit": "1"},
        )
        if not rows:
            return None
        return _to_record(rows[0])

    async def insert_video(self, row: dict[str, Any]) -> CatalogRecord:
        rows = await self._request("POST", json_data=row)
        if not rows:
            raise MetadataStoreError("insert returned no row")
        return _to_record(rows[0])

    async def update_video(self, video_id: str, changes: dict[str, Any]) -> CatalogRecord | None:
        """Apply ``changes``; None if no row matched."""
        rows = await self._request("PATCH", params={"id": f"eq.{video_id}"}, json_data=changes)
        if not rows:
            return None
        return _to_record(rows[0])

    async def delete_video(self, video_id: str) -> None:
        await self._request("DELETE", params={"id": f"eq.{video_id}"}, return_rows=False)

    async def get_views(self, video_id: str) -> int | None:
        rows = await self._request("GET", params={"select": "views", "id": f"eq.{video_id}"})
        if not rows:
            return None
        row = rows[0]
        try:
            return int(row.get("views") or 0)
        except (AttributeError, TypeError, ValueError) as e:
            raise MetadataStoreError(f"unusable views value for {video_id}") from e

    async def set_views(self, video_id: str, views: int) -> None:
        await self._request(
            "PATCH", params={"id": f"eq.{video_id}"}, json_data={"views": views}, return_rows=False
        )
