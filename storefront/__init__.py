"""Signed asset URL resolution and catalog caching for the video storefront."""

__version__ = "0.1.0"
