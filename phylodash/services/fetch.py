# phylodash/services/fetch.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from phylodash import config
from phylodash.services.errors import TransportError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 429}


class FetchOptions(BaseModel):
    """Per-call knobs for fetch_with_retry. Units are seconds."""

    timeout: float = Field(default=config.HTTP_TIMEOUT_S, gt=0)
    retries: int = Field(default=config.HTTP_RETRIES, ge=0)
    retry_delay: float = Field(default=config.RETRY_DELAY_S, ge=0)

    model_config = ConfigDict(frozen=True)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS or status_code >= 500


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    options: Optional[FetchOptions] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Send one HTTP request with a hard timeout and bounded linear-backoff retries.

    Retries on 408, 429, 5xx, local timeouts and connection-level failures. Every
    other response (including 4xx) is returned untouched; callers check
    ``response.is_success`` themselves. A retryable status on the last attempt is
    returned as well, while a transport failure on the last attempt raises
    TransportError.
    """
    opts = options or FetchOptions()

    for attempt in range(opts.retries + 1):
        is_last = attempt >= opts.retries
        try:
            # wait_for cancels the in-flight request once the budget is spent
            response = await asyncio.wait_for(
                client.request(method, url, timeout=opts.timeout, **request_kwargs),
                timeout=opts.timeout,
            )
        except httpx.InvalidURL as exc:
            # not retryable, the same URL fails the same way
            raise TransportError(f"{method} {url!r}: invalid URL ({exc})") from exc
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            if is_last:
                raise TransportError(f"{method} {url} timed out after {opts.timeout:g}s") from exc
            logger.warning("timeout on %s %s (attempt %d/%d)", method, url, attempt + 1, opts.retries + 1)
        except httpx.TransportError as exc:
            if is_last:
                raise TransportError(f"{method} {url} failed: {exc}") from exc
            logger.warning("network error on %s %s (attempt %d/%d): %s", method, url, attempt + 1, opts.retries + 1, exc)
        else:
            if is_last or not is_retryable_status(response.status_code):
                return response
            logger.warning(
                "retryable status %d from %s %s (attempt %d/%d)",
                response.status_code, method, url, attempt + 1, opts.retries + 1,
            )
            await response.aclose()

        await sleep(opts.retry_delay * (attempt + 1))

    raise TransportError(f"{method} {url}: retries exhausted without a response")
