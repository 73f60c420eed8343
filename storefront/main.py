"""Wiring and lifecycle for the storefront asset/catalog services."""

from __future__ import annotations

import asyncio
import logging
import sys

import httpx

from .cache import TTLCache
from .config import Settings, get_settings
from .gate import ConcurrencyGate
from .metadata import MetadataStore
from .models import CatalogRecord, SignedUrlResult
from .monitoring import setup_sentry
from .services import AssetResolver, CatalogService
from .services.asset_service import CacheKey
from .signing import RetryingUrlSigner, SigningClient

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    # Reduce noise from httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class Storefront:
    """Owns the shared HTTP client, caches and concurrency gate.

    Build with ``from_settings``; use as ``async with`` or call ``start()``
    and ``aclose()`` explicitly. Each instance is fully independent.
    """

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient,
        url_cache: TTLCache[CacheKey, SignedUrlResult],
        catalog_cache: TTLCache[str, tuple[CatalogRecord, ...]],
        gate: ConcurrencyGate,
    ):
        self.settings = settings
        self.http = http
        self.url_cache = url_cache
        self.catalog_cache = catalog_cache
        self.gate = gate

        self.files = SigningClient(http, settings.api_base_url)
        self.signer = RetryingUrlSigner.from_settings(self.files, gate, settings)
        self.store = MetadataStore(http, settings.supabase_url, settings.supabase_key)
        self.assets = AssetResolver(self.signer, url_cache)
        self.catalog = CatalogService(self.store, self.assets, catalog_cache, self.files)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> Storefront:
        http = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.metadata_timeout_seconds, connect=5.0),
            transport=transport,
        )
        return cls(
            settings,
            http,
            TTLCache(settings.asset_url_ttl_seconds, name="asset_urls"),
            TTLCache(settings.catalog_ttl_seconds, name="catalog"),
            ConcurrencyGate(settings.signing_max_concurrent),
        )

    async def start(self) -> None:
        logger.info(
            "storefront_started",
            extra={
                "asset_url_ttl": self.settings.asset_url_ttl_seconds,
                "catalog_ttl": self.settings.catalog_ttl_seconds,
                "max_concurrent_signing": self.settings.signing_max_concurrent,
            },
        )

    async def aclose(self) -> None:
        self.url_cache.clear()
        self.catalog_cache.clear()
        await self.http.aclose()
        logger.info("storefront_stopped")

    async def __aenter__(self) -> Storefront:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def main() -> None:
    """Print the first catalog page with resolved thumbnail URLs."""
    settings = get_settings()
    setup_logging(settings)
    setup_sentry(settings.sentry_dsn, settings.environment)

    async with Storefront.from_settings(settings) as storefront:
        page = await storefront.catalog.get_page(1)
        for video in page.videos:
            print(f"{video.id}\t{video.title}\t{video.price:.2f}\t{video.thumbnail_url}")
        logger.info("catalog_page_listed", extra={"count": len(page.videos), "pages": page.total_pages})


if __name__ == "__main__":
    asyncio.run(main())
