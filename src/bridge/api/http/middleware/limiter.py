"""Per-address fixed-window rate limiting over the shared cache store."""

from __future__ import annotations

import math

from fastapi import Request
from loguru import logger

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.storage.cache_store import CacheStore
from src.bridge.runtime.context import get_config

KEY_PREFIX = "ratelimit:"


def client_address(request: Request) -> str:
    """Caller address: first forwarded hop, then CDN/proxy headers, then the peer."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class FixedWindowRateLimiter:
    """Counts hits per key in a window that starts with the key's first hit.

    Limits are read from config on every check unless fixed at construction,
    so ``with_context`` overrides apply to a running app.
    """

    def __init__(
        self,
        store: CacheStore,
        requests: int | None = None,
        window_ms: int | None = None,
    ) -> None:
        self._store = store
        self._requests = requests
        self._window_ms = window_ms

    def _limits(self) -> tuple[int, int]:
        config = get_config().rate_limiter
        requests = self._requests if self._requests is not None else config.requests
        window_ms = self._window_ms if self._window_ms is not None else config.window_ms
        return requests, max(1, math.ceil(window_ms / 1000))

    async def hit(self, key: str) -> None:
        """Record one hit for ``key``.

        A store error lets the request through and is logged.

        Raises:
            FederationError: ``rate_limited`` (429) with ``Retry-After`` once the
                window's quota is used up.
        """
        requests, window_seconds = self._limits()
        try:
            count = await self._store.incr(f"{KEY_PREFIX}{key}", window_seconds)
            if count <= requests:
                return
            remaining = await self._store.ttl(f"{KEY_PREFIX}{key}")
        except RuntimeError as e:
            logger.warning("Rate limit store unavailable, allowing request: {}", e)
            return

        retry_after = remaining if remaining and remaining > 0 else window_seconds
        logger.warning("Rate limit exceeded for {} ({} hits)", key, count)
        raise FederationError(
            ErrorCode.RATE_LIMITED,
            "Too many requests",
            headers={"Retry-After": str(retry_after)},
        )

    async def reset(self, key: str) -> None:
        await self._store.evict(f"{KEY_PREFIX}{key}")


async def enforce_rate_limit(request: Request) -> None:
    """Route dependency; runs before the body is read."""
    if not get_config().rate_limiter.enabled:
        return
    limiter: FixedWindowRateLimiter = request.app.state.app_dependencies.rate_limiter
    await limiter.hit(client_address(request))
