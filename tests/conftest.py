"""Pytest configuration and fixtures."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Required settings, set before importing app modules
os.environ.setdefault("SUPABASE_URL", "https://db.example.test")
os.environ.setdefault("SUPABASE_KEY", "test_key")
os.environ.setdefault("STORAGE_BUCKET", "media")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Settings with instant retries."""
    from storefront.config import Settings

    return Settings(
        _env_file=None,
        api_base_url="http://api.example.test",
        supabase_url="https://db.example.test",
        supabase_key="test_key",
        storage_bucket="media",
        storage_region="us-east-1",
        signing_backoff_seconds=0,
        signing_timeout_seconds=1.0,
    )


def make_row(video_id, title, **overrides):
    row = {
        "id": video_id,
        "title": title,
        "description": "",
        "price": 10.0,
        "duration": "01:00",
        "video_file_id": f"videos/{video_id}.mp4",
        "thumbnail_file_id": f"thumbnails/{video_id}.jpg",
        "views": 0,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat(),
        "product_link": "",
        "is_active": True,
    }
    row.update(overrides)
    return row


@pytest.fixture
def sample_rows():
    return [
        make_row("video-1", "Category A", price=20.0, views=5, duration="05:00",
                 created_at="2024-03-01T10:00:00Z", description="first upload"),
        make_row("video-2", "Dog Video", price=5.0, views=50, duration="01:30:00",
                 created_at="2024-03-03T10:00:00Z", description="a good boy"),
        make_row("video-3", "Concatenate", price=12.5, views=None, duration="00:45",
                 created_at="2024-03-02T10:00:00Z", description="string tricks"),
    ]
