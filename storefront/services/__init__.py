"""Services package."""

from .asset_service import PLACEHOLDER_THUMBNAIL, AssetResolver
from .catalog_service import CatalogService

__all__ = ["AssetResolver", "CatalogService", "PLACEHOLDER_THUMBNAIL"]
