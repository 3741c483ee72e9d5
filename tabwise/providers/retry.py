"""
tabwise.providers.retry
-----------------------

HTTP status mapping and the bounded retry loop shared by every adapter.

Only transient failures are retried (5xx, 429, unreachable provider).  Any
other client error means the key, model or request is wrong, and retrying
cannot fix that, so it surfaces after a single attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import MAX_RETRIES, RETRY_BACKOFF_BASE
from ..errors import (
    ProviderAuthError,
    ProviderError,
    ProviderQuotaError,
    ProviderRateLimited,
    ProviderRequestError,
    ProviderUnavailable,
)

_LOG = logging.getLogger(__name__)

T = TypeVar("T")


def error_message(body: Any) -> str:
    """Pull the human-readable message out of a provider error body."""
    if not isinstance(body, dict):
        return ""
    error = body.get("error")
    if isinstance(error, str):
        return error
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(body.get("message"), str):
        return body["message"]
    return ""


def extract_embedded_error(body: Any) -> Optional[str]:
    """
    Return the error text when a 2xx body still carries an ``error`` object,
    ``None`` otherwise.
    """
    if isinstance(body, dict) and body.get("error"):
        return error_message(body) or "Unknown error"
    return None


def raise_for_status(
    status: int,
    body: Any,
    provider: str,
    model: str = "",
    suggestion: str = "",
) -> None:
    """Translate a non-2xx *status* into the matching ``ProviderError``."""
    if status < 400:
        return

    detail = error_message(body)

    if status in (401, 403):
        if status == 401:
            msg = f"Invalid API key. Please check your {provider} API key."
        else:
            msg = "Access denied. Your API key may not have access to this model."
        raise ProviderAuthError(f"{provider}: {msg}", provider, status)
    if status == 402:
        raise ProviderQuotaError(
            f"{provider}: Insufficient credits. Please add credits to your "
            f"{provider} account.",
            provider,
            status,
        )
    if status == 429:
        raise ProviderRateLimited(
            f"{provider}: Rate limited. Too many requests. Please wait a moment "
            "and try again.",
            provider,
            status,
        )
    if status == 504:
        raise ProviderUnavailable(
            f"{provider}: Request timed out. The model may be overloaded. "
            "Try again or switch models.",
            provider,
            status,
        )
    if status >= 500:
        hint = f" Try a different model like: {suggestion}" if suggestion else ""
        raise ProviderUnavailable(
            f"{provider}: Provider is temporarily unavailable.{hint}",
            provider,
            status,
        )
    if status == 404:
        raise ProviderRequestError(
            f'{provider}: Model not found: "{model}". Try switching to a '
            "different model.",
            provider,
            status,
        )
    if status == 400:
        raise ProviderRequestError(
            f"{provider}: Bad request: {detail or 'Invalid request format'}",
            provider,
            status,
        )
    raise ProviderRequestError(
        f"{provider}: {detail or f'Unexpected error ({status})'}", provider, status
    )


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int = MAX_RETRIES,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()`` and retry transient ``ProviderError``s up to *retries*
    times, sleeping ``2**attempt`` seconds (1 s, 2 s, ...) in between.

    The last error is re-raised unchanged once retries are exhausted.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=1, exp_base=RETRY_BACKOFF_BASE),
        retry=retry_if_exception(_is_retryable),
        before_sleep=before_sleep_log(_LOG, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await fn()
    return result
