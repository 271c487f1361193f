"""Exponential backoff for controller requests.

Only transient failures are retried: transport errors (timeouts,
refused connections) and 5xx/429 responses. Other request failures
(undecodable bodies, redirect loops) are raised at once as
``TransportError``, never as raw httpx exceptions. Responses that carry a
permanent rejection (401/403, other 4xx) are returned to the caller on
the first attempt so that bad credentials surface immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx
from loguru import logger  # type: ignore[import-untyped]

from unifi_motion.protect.errors import TransportError


RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient(response: httpx.Response) -> bool:
    """Check whether a response status is worth retrying."""
    return response.status_code in RETRYABLE_STATUS_CODES


async def with_backoff(
    call: Callable[[], Awaitable[httpx.Response]],
    max_retries: int,
    initial_delay: float,
    description: str = 'request',
) -> httpx.Response:
    """Run a request with exponential backoff on transient failures.

    The delay before retry ``n`` (0-based) is ``initial_delay * 2**n``, so
    the worst case spends ``initial_delay * (2**max_retries - 1)`` seconds
    sleeping on top of the per-request timeouts.

    Args:
        call: Zero-argument coroutine factory issuing the request. A new
            coroutine is created for every attempt.
        max_retries: Number of retries after the first attempt.
        initial_delay: Delay before the first retry in seconds.
        description: Label used in log messages.

    Returns:
        The first response that is not transient. Non-2xx permanent
        responses are returned as-is for the caller to classify.

    Raises:
        TransportError: If every attempt failed transiently, or at once on
            a request failure that retrying cannot fix.
    """
    last_error: Exception | None = None
    last_status: int | None = None

    for attempt in range(max_retries + 1):
        if attempt:
            delay = initial_delay * 2 ** (attempt - 1)
            logger.debug(f'Retrying {description} in {delay:.2f}s ({attempt}/{max_retries})')
            await asyncio.sleep(delay)

        try:
            response = await call()
        except httpx.TransportError as e:
            last_error = e
            last_status = None
            logger.warning(f'{description} failed: {e!r}')
            continue
        except httpx.RequestError as e:
            logger.warning(f'{description} failed: {e!r}')
            raise TransportError(f'{description} failed: {e!r}', original_error=e)

        if not is_transient(response):
            return response

        last_error = None
        last_status = response.status_code
        logger.warning(f'{description} returned HTTP {response.status_code}')

    detail = f'HTTP {last_status}' if last_status is not None else repr(last_error)
    raise TransportError(
        f'{description} failed after {max_retries + 1} attempts: {detail}',
        original_error=last_error,
        status_code=last_status,
    )
