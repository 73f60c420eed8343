"""Monitoring utilities: error tracking and the retryable error set."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import httpx
import sentry_sdk

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Transient errors worth retrying (network issues, timeouts, bad payloads)
RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,    # Transport errors, timeouts, raise_for_status()
    ConnectionError,    # Connection reset / refused
    TimeoutError,       # Per-attempt deadline exceeded
    OSError,            # Low-level network errors (includes ssl.SSLError)
    ValueError,         # Undecodable JSON body
)


def setup_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK if a DSN is configured."""
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("sentry_initialized", extra={"environment": environment})


def capture_exception(error: BaseException, context: dict | None = None) -> None:
    """Report an exception to Sentry (no-op when not initialized) and log it."""
    with sentry_sdk.new_scope() as scope:
        if context:
            for key, value in context.items():
                scope.set_extra(key, value)
        sentry_sdk.capture_exception(error)
    logger.error(
        "error_captured",
        extra={"error_type": type(error).__name__, "error": str(error), **(context or {})},
        exc_info=error,
    )


def with_error_capture(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """Decorator to capture errors to Sentry for async functions, then re-raise."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            capture_exception(e, {"function": func.__name__})
            raise

    return wrapper
