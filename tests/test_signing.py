"""Tests for the signing client and the retrying URL signer."""

import asyncio
import time

import httpx
import pytest

from storefront.gate import ConcurrencyGate
from storefront.models import AssetFolder
from storefront.signing import RetryingUrlSigner, SigningClient, SigningError

API = "http://api.example.test"


def make_signer(handler, *, max_concurrent=5, backoff=0.0, timeout=1.0, attempts=3):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = SigningClient(http, API)
    gate = ConcurrencyGate(max_concurrent)
    signer = RetryingUrlSigner(
        client,
        gate,
        bucket="media",
        region="eu-central-2",
        domain="wasabisys.com",
        max_attempts=attempts,
        backoff_seconds=backoff,
        timeout_seconds=timeout,
    )
    return signer, gate, http


def ok(url):
    return httpx.Response(200, json={"success": True, "url": url})


class TestSigningClient:
    """Tests for SigningClient."""

    @pytest.mark.asyncio
    async def test_fetch_signed_url(self):
        seen = []

        def handler(request):
            seen.append(request)
            return ok("https://signed.example/thumb.jpg?X-Amz-Signature=abc")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            url = await SigningClient(http, API).fetch_signed_url("thumbnails/a b.jpg")

        assert url == "https://signed.example/thumb.jpg?X-Amz-Signature=abc"
        assert seen[0].method == "GET"
        # Identifier is encoded as a single path segment
        assert seen[0].url.raw_path == b"/api/signed-url/thumbnails%2Fa%20b.jpg"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, json={"success": True, "url": "https://x.example/a"}),
            httpx.Response(200, json={"success": False}),
            httpx.Response(200, json={"success": True}),
            httpx.Response(200, json={"success": True, "url": "not a url"}),
            httpx.Response(200, json=["unexpected"]),
        ],
    )
    async def test_rejected_responses_raise(self, response):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response)) as http:
            with pytest.raises(SigningError):
                await SigningClient(http, API).fetch_signed_url("a.jpg")

    @pytest.mark.asyncio
    async def test_malformed_body_raises_value_error(self):
        response = httpx.Response(200, content=b"<html>oops</html>")
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response)) as http:
            with pytest.raises(ValueError):
                await SigningClient(http, API).fetch_signed_url("a.jpg")

    @pytest.mark.asyncio
    async def test_delete_file(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            assert await SigningClient(http, API).delete_file("videos/v1.mp4") is True

        assert seen[0].method == "DELETE"
        assert seen[0].url.raw_path == b"/api/delete-file/videos%2Fv1.mp4"

    @pytest.mark.asyncio
    async def test_delete_file_failures_return_false(self):
        def broken(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as http:
            assert await SigningClient(http, API).delete_file("a") is False

        def not_found(request):
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(not_found)) as http:
            assert await SigningClient(http, API).delete_file("a") is False

        def refused(request):
            return httpx.Response(200, json={"success": False})

        async with httpx.AsyncClient(transport=httpx.MockTransport(refused)) as http:
            assert await SigningClient(http, API).delete_file("a") is False


class TestRetryingUrlSigner:
    """Tests for retry, fallback and gating."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        calls = []

        def handler(request):
            calls.append(request)
            return ok("https://signed.example/a")

        signer, gate, http = make_signer(handler)
        result = await signer.resolve("videos/a.mp4")
        await http.aclose()

        assert result.url == "https://signed.example/a"
        assert result.is_fallback is False
        assert len(calls) == 1
        assert gate.active == 0

    @pytest.mark.asyncio
    async def test_succeeds_on_third_attempt(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            if len(calls) == 2:
                raise httpx.ReadTimeout("slow", request=request)
            return ok("https://signed.example/third")

        signer, gate, http = make_signer(handler)
        result = await signer.resolve("thumbnails/t.jpg", AssetFolder.THUMBNAILS)
        await http.aclose()

        assert result.url == "https://signed.example/third"
        assert result.is_fallback is False
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_all_attempts_fail_returns_fallback(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"success": False})

        signer, gate, http = make_signer(handler)
        result = await signer.resolve("t.jpg", AssetFolder.THUMBNAILS)
        await http.aclose()

        assert result.is_fallback is True
        assert result.url == "https://media.s3.eu-central-2.wasabisys.com/thumbnails/t.jpg"
        assert len(calls) == 3
        assert gate.active == 0

    @pytest.mark.asyncio
    async def test_fallback_keeps_existing_folder_prefix(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        signer, _, http = make_signer(handler)
        video = await signer.resolve("videos/clip.mp4", AssetFolder.VIDEOS)
        thumb = await signer.resolve("thumbnails/clip.jpg", AssetFolder.VIDEOS)
        plain = await signer.resolve("clip.mp4")
        await http.aclose()

        assert video.url == "https://media.s3.eu-central-2.wasabisys.com/videos/clip.mp4"
        assert thumb.url == "https://media.s3.eu-central-2.wasabisys.com/thumbnails/clip.jpg"
        assert plain.url == "https://media.s3.eu-central-2.wasabisys.com/videos/clip.mp4"

    @pytest.mark.asyncio
    async def test_malformed_body_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(200, content=b"not json")
            return ok("https://signed.example/ok")

        signer, _, http = make_signer(handler)
        result = await signer.resolve("a.mp4")
        await http.aclose()

        assert result.url == "https://signed.example/ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_attempt_timeout_triggers_retry(self):
        calls = []

        async def handler(request):
            calls.append(request)
            await asyncio.sleep(1)
            return ok("https://signed.example/late")

        signer, gate, http = make_signer(handler, timeout=0.02)
        result = await signer.resolve("slow.jpg", AssetFolder.THUMBNAILS)
        await http.aclose()

        assert result.is_fallback is True
        assert len(calls) == 3
        assert gate.active == 0

    @pytest.mark.asyncio
    async def test_backoff_grows_with_attempt(self):
        def handler(request):
            return httpx.Response(500)

        signer, _, http = make_signer(handler, backoff=0.05)
        started = time.monotonic()
        await signer.resolve("a.mp4")
        elapsed = time.monotonic() - started
        await http.aclose()

        # Waits of 1x and 2x the base between three attempts
        assert elapsed >= 0.15

    @pytest.mark.asyncio
    async def test_unexpected_error_still_falls_back(self):
        def handler(request):
            raise RuntimeError("bug in transport")

        signer, gate, http = make_signer(handler)
        result = await signer.resolve("a.mp4")
        await http.aclose()

        assert result.is_fallback is True
        assert gate.active == 0

    @pytest.mark.asyncio
    async def test_burst_respects_concurrency_cap(self):
        in_flight = 0
        max_in_flight = 0

        async def handler(request):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return ok(f"https://signed.example{request.url.path}")

        signer, gate, http = make_signer(handler, max_concurrent=3)
        results = await asyncio.gather(*(signer.resolve(f"v{i}.mp4") for i in range(40)))
        await http.aclose()

        assert len(results) == 40
        assert all(not r.is_fallback for r in results)
        assert max_in_flight <= 3
        assert gate.peak <= 3
        assert gate.active == 0
