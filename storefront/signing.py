"""Signed URL client with bounded retry and direct-URL fallback."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote, urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from .config import Settings
from .gate import ConcurrencyGate
from .models import AssetFolder, SignedUrlResult
from .monitoring import RETRYABLE_EXCEPTIONS
from .storage import build_direct_url

logger = logging.getLogger(__name__)

SIGNED_URL_PATH = "/api/signed-url/{identifier}"
DELETE_FILE_PATH = "/api/delete-file/{identifier}"


class SigningError(Exception):
    """The signing endpoint rejected the request or returned an unusable body."""


def _is_well_formed(url: Any) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class SigningClient:
    """Thin async client for the signing and delete endpoints.

    ``{"success": true, "url": "..."}`` is the only accepted signing
    response; anything else raises ``SigningError`` or an ``httpx`` error.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self._http = http
        self._base_url = base_url.rstrip("/")

    def _endpoint(self, template: str, identifier: str) -> str:
        return self._base_url + template.format(identifier=quote(identifier, safe=""))

    async def fetch_signed_url(self, identifier: str) -> str:
        """Request a signed URL for one object. Raises on any failure."""
        response = await self._http.get(self._endpoint(SIGNED_URL_PATH, identifier))
        if response.is_error:
            raise SigningError(
                f"signing endpoint returned {response.status_code} for {identifier!r}"
            )
        data = response.json()
        if not isinstance(data, dict) or not data.get("success"):
            raise SigningError(f"signing rejected for {identifier!r}")
        url = data.get("url")
        if not _is_well_formed(url):
            raise SigningError(f"signing endpoint returned a malformed url for {identifier!r}")
        return url.strip()

    async def delete_file(self, identifier: str) -> bool:
        """Delete a stored binary. Returns False instead of raising."""
        try:
            response = await self._http.delete(self._endpoint(DELETE_FILE_PATH, identifier))
        except httpx.HTTPError as e:
            logger.error("delete_file_failed", extra={"identifier": identifier, "error": str(e)})
            return False

        if response.is_error:
            logger.error(
                "delete_file_failed",
                extra={"identifier": identifier, "status": response.status_code},
            )
            return False

        try:
            data = response.json()
        except ValueError:
            logger.error("delete_file_bad_response", extra={"identifier": identifier})
            return False
        return bool(isinstance(data, dict) and data.get("success"))


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "signing_attempt_failed",
        extra={
            "attempt": retry_state.attempt_number,
            "error": repr(exc),
            "retry_in": retry_state.next_action.sleep if retry_state.next_action else None,
        },
    )


class RetryingUrlSigner:
    """Resolve identifiers to signed URLs, never raising.

    Every call holds one ``ConcurrencyGate`` permit for its whole retry loop.
    Attempts are bounded by ``timeout_seconds`` each and spaced
    ``attempt * backoff_seconds`` apart. When every attempt fails, a direct
    bucket URL is returned instead; it 403s if the bucket requires signing.
    """

    def __init__(
        self,
        client: SigningClient,
        gate: ConcurrencyGate,
        *,
        bucket: str,
        region: str,
        domain: str,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        timeout_seconds: float = 5.0,
    ):
        self._client = client
        self._gate = gate
        self._bucket = bucket
        self._region = region
        self._domain = domain
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(
        cls, client: SigningClient, gate: ConcurrencyGate, settings: Settings
    ) -> RetryingUrlSigner:
        return cls(
            client,
            gate,
            bucket=settings.storage_bucket,
            region=settings.storage_region,
            domain=settings.storage_domain,
            max_attempts=settings.signing_max_attempts,
            backoff_seconds=settings.signing_backoff_seconds,
            timeout_seconds=settings.signing_timeout_seconds,
        )

    def fallback_url(self, identifier: str, folder: AssetFolder) -> str:
        return build_direct_url(
            identifier,
            folder,
            bucket=self._bucket,
            region=self._region,
            domain=self._domain,
        )

    async def _attempt(self, identifier: str) -> str:
        return await asyncio.wait_for(
            self._client.fetch_signed_url(identifier), timeout=self._timeout
        )

    async def _sign_with_retry(self, identifier: str) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_incrementing(start=self._backoff, increment=self._backoff),
            retry=retry_if_exception_type(
                (SigningError, asyncio.TimeoutError, *RETRYABLE_EXCEPTIONS)
            ),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._attempt(identifier)
        raise SigningError("retry loop exhausted without result")

    async def resolve(
        self, identifier: str, folder: AssetFolder = AssetFolder.VIDEOS
    ) -> SignedUrlResult:
        """Signed URL for ``identifier``, or its direct URL once retries run out."""
        async with self._gate.slot():
            try:
                url = await self._sign_with_retry(identifier)
            except Exception as e:
                logger.warning(
                    "signing_fallback",
                    extra={"identifier": identifier, "folder": folder.value, "error": repr(e)},
                )
            else:
                logger.debug("signed_url_obtained", extra={"identifier": identifier})
                return SignedUrlResult(url=url)

        return SignedUrlResult(url=self.fallback_url(identifier, folder), is_fallback=True)
