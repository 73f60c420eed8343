"""Object-store key layout and direct (unsigned) URL construction.

Layout of the private bucket::

    {bucket}/
      videos/{identifier}
      thumbnails/{identifier}

Identifiers stored in the catalog may or may not already carry the folder
prefix. Direct URLs only work if the bucket allows anonymous reads; they are
used as a best-effort fallback when signing is unavailable.
"""

from __future__ import annotations

from urllib.parse import quote

from .models import AssetFolder

FOLDER_PREFIXES = tuple(f"{folder.value}/" for folder in AssetFolder)


def has_folder_prefix(identifier: str) -> bool:
    """True if the identifier already starts with a known folder segment."""
    return identifier.startswith(FOLDER_PREFIXES)


def object_key(identifier: str, folder: AssetFolder) -> str:
    """Full object key for ``identifier``, adding ``folder/`` when missing."""
    identifier = identifier.lstrip("/")
    if has_folder_prefix(identifier):
        return identifier
    return f"{folder.value}/{identifier}"


def build_direct_url(
    identifier: str,
    folder: AssetFolder,
    *,
    bucket: str,
    region: str,
    domain: str,
) -> str:
    """Build ``https://{bucket}.s3.{region}.{domain}/{folder}/{identifier}``."""
    key = quote(object_key(identifier, folder), safe="/")
    return f"https://{bucket}.s3.{region}.{domain}/{key}"
