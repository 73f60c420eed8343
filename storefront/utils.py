from __future__ import annotations

import random
import string
import time
from collections.abc import Iterable

from .models import CatalogRecord, SortOption

_ID_ALPHABET = string.ascii_lowercase + string.digits


def make_video_id(prefix: str = "video") -> str:
    """Catalog id in the form ``video-{epochMillis}-{random}``."""
    ts = int(time.time() * 1000)
    rnd = "".join(random.choices(_ID_ALPHABET, k=11))
    return f"{prefix}-{ts}-{rnd}"


def parse_duration(duration: str | None) -> int:
    """
    Convert ``MM:SS`` or ``HH:MM:SS`` to total seconds.
    Anything else (including negative parts) counts as 0.
    """
    if not isinstance(duration, str) or not duration:
        return 0
    parts = duration.strip().split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return 0
    if any(n < 0 for n in numbers):
        return 0
    if len(numbers) == 2:
        minutes, seconds = numbers
        return minutes * 60 + seconds
    if len(numbers) == 3:
        hours, minutes, seconds = numbers
        return hours * 3600 + minutes * 60 + seconds
    return 0


def sort_records(records: Iterable[CatalogRecord], option: SortOption) -> list[CatalogRecord]:
    """Return a new sorted list; equal keys keep their input order."""
    records = list(records)
    if option is SortOption.NEWEST:
        return sorted(records, key=lambda r: r.created_at, reverse=True)
    if option is SortOption.PRICE_ASC:
        return sorted(records, key=lambda r: r.price)
    if option is SortOption.PRICE_DESC:
        return sorted(records, key=lambda r: r.price, reverse=True)
    if option is SortOption.VIEWS_DESC:
        return sorted(records, key=lambda r: r.views or 0, reverse=True)
    if option is SortOption.DURATION_DESC:
        return sorted(records, key=lambda r: parse_duration(r.duration), reverse=True)
    return records


def filter_records(records: Iterable[CatalogRecord], query: str) -> list[CatalogRecord]:
    """Case-insensitive substring match over title and description."""
    needle = query.strip().lower()
    if not needle:
        return list(records)
    return [r for r in records if needle in r.title.lower() or needle in r.description.lower()]
