"""Shared HTTP plumbing for feed providers.

Every provider call goes through ``FeedHttpClient``: one per-call timeout,
one log line, and ``None`` instead of an exception on any upstream failure.

Log format:
    DEBUG [cricapi_cricScore] https://api.cricapi.com/v1/cricScore → 200 (143ms)
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import httpx

logger = logging.getLogger("pm.feed")

T = TypeVar("T")
R = TypeVar("R")

USER_AGENT = "yesno-gateway/1.0"


class FeedHttpClient:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(headers={"user-agent": USER_AGENT})

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(
        self,
        url: str,
        *,
        label: str,
        timeout: float,
        params: dict[str, str] | None = None,
    ) -> Any:
        return await self._request("GET", url, label=label, timeout=timeout, params=params)

    async def post_json(
        self,
        url: str,
        *,
        label: str,
        timeout: float,
        json_body: Any = None,
        form: dict[str, Any] | None = None,
    ) -> Any:
        """POST a JSON body or a form (list values repeat the key)."""
        return await self._request(
            "POST", url, label=label, timeout=timeout, json_body=json_body, form=form
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        label: str,
        timeout: float,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        form: dict[str, Any] | None = None,
    ) -> Any:
        # Query strings carry API keys; never log them
        safe_url = url.split("?")[0]
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json_body,
                data=form,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            logger.error(
                "[%s] %s timed out after %.0fms is_timeout=True: %s",
                label, safe_url, _elapsed_ms(start), exc,
            )
            return None
        except httpx.HTTPError as exc:
            logger.error(
                "[%s] %s failed after %.0fms is_timeout=False: %s",
                label, safe_url, _elapsed_ms(start), exc,
            )
            return None

        elapsed = _elapsed_ms(start)
        if response.status_code >= 400:
            logger.warning(
                "[%s] %s → %d (%.0fms) non-OK status",
                label, safe_url, response.status_code, elapsed,
            )
            return None

        if not response.content:
            logger.warning(
                "[%s] %s → %d (%.0fms) empty body",
                label, safe_url, response.status_code, elapsed,
            )
            return None

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("[%s] %s returned malformed JSON: %s", label, safe_url, exc)
            return None

        logger.debug("[%s] %s → %d (%.0fms)", label, safe_url, response.status_code, elapsed)
        return payload


async def map_with_concurrency(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T], Awaitable[R]],
) -> list[R | None]:
    """Run ``mapper`` over ``items`` with at most ``limit`` in flight.

    Results keep input order. A mapper that raises yields ``None`` for its slot.
    """
    semaphore = asyncio.Semaphore(max(1, int(limit)))

    async def run(item: T) -> R | None:
        async with semaphore:
            try:
                return await mapper(item)
            except Exception:
                logger.exception("feed task failed")
                return None

    return list(await asyncio.gather(*(run(item) for item in items)))


def as_record(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_str(value: Any, default: str = "") -> str:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        return value or default
    if isinstance(value, (int, float)):
        return str(value)
    return default


def as_number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
