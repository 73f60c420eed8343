"""Data models for the video storefront."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SortOption(str, Enum):
    """Catalog sort orders."""

    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    VIEWS_DESC = "views_desc"
    DURATION_DESC = "duration_desc"


class AssetFolder(str, Enum):
    """Top-level folders of the object store."""

    VIDEOS = "videos"
    THUMBNAILS = "thumbnails"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp from the wire, assuming UTC when naive."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return EPOCH
    else:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class CatalogRecord:
    """A video in the catalog.

    Rows arrive snake_case from the metadata store; ``thumbnail_url`` is
    filled in by asset resolution and never written back.
    """

    id: str
    title: str
    description: str = ""
    price: float = 0.0
    duration: str = "00:00"
    video_file_id: str | None = None
    thumbnail_file_id: str | None = None
    thumbnail_url: str | None = None
    is_purchased: bool = False
    views: int = 0
    created_at: datetime = EPOCH
    product_link: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> CatalogRecord:
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            description=row.get("description") or "",
            price=float(row.get("price") or 0),
            duration=str(row.get("duration") or "00:00"),
            video_file_id=row.get("video_file_id") or None,
            thumbnail_file_id=row.get("thumbnail_file_id") or None,
            views=int(row.get("views") or 0),
            created_at=parse_timestamp(row.get("created_at")),
            product_link=row.get("product_link") or "",
        )


@dataclass
class VideoDraft:
    """Fields for a new catalog entry."""

    title: str
    description: str
    price: float
    duration: str
    video_file_id: str
    thumbnail_file_id: str
    product_link: str = ""


@dataclass
class VideoUpdate:
    """Partial update; ``None`` fields are left untouched."""

    title: str | None = None
    description: str | None = None
    price: float | None = None
    duration: str | None = None
    video_file_id: str | None = None
    thumbnail_file_id: str | None = None
    product_link: str | None = None

    def to_row(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class SignedUrlResult:
    """Outcome of URL resolution: a signed URL or a constructed fallback."""

    url: str
    is_fallback: bool = False


@dataclass
class CatalogPage:
    """One page of a catalog listing."""

    videos: list[CatalogRecord] = field(default_factory=list)
    total_pages: int = 0
    page: int = 1
