from abc import ABC, abstractmethod
from typing import Any

import httpx
from cachetools import TTLCache
from loguru import logger


class JwksFetchError(RuntimeError):
    """The key set could not be downloaded or was not a JWKS document."""


class JWKSCache(ABC):
    @abstractmethod
    def get_jwks(self, jwks_url: str) -> dict[str, Any]:
        """
        Get the cached JWKS for the given key set URL.

        Args:
            jwks_url: The key set URL

        Returns:
            JWKS dictionary, empty when nothing is cached
        """
        raise NotImplementedError

    @abstractmethod
    def set_jwks(self, jwks_url: str, jwks: dict[str, Any]) -> None:
        """
        Set JWKS for the given key set URL in cache.

        Args:
            jwks_url: The key set URL
            jwks: The JWKS dictionary to cache
        """
        raise NotImplementedError

    @abstractmethod
    def clear_jwks_cache(self) -> None:
        """Clear the JWKS cache."""
        raise NotImplementedError


class JWKSCacheInMemory(JWKSCache):
    """TTL cache; expiry forces a re-fetch so rotated keys are picked up."""

    def __init__(self, ttl_seconds: int = 600, maxsize: int = 10) -> None:
        self._cache: TTLCache[str, dict[str, Any]] = TTLCache(
            maxsize=maxsize, ttl=ttl_seconds
        )

    def get_jwks(self, jwks_url: str) -> dict[str, Any]:
        return self._cache.get(jwks_url, {})

    def set_jwks(self, jwks_url: str, jwks: dict[str, Any]) -> None:
        self._cache[jwks_url] = jwks

    def clear_jwks_cache(self) -> None:
        self._cache.clear()


class JwksService:
    def __init__(self, cache: JWKSCache, timeout: float = 5.0) -> None:
        self._cache = cache
        self._timeout = timeout

    async def fetch_jwks(self, jwks_url: str, *, force_refresh: bool = False) -> dict[str, Any]:
        """Return the key set at ``jwks_url``, from cache unless ``force_refresh``.

        Raises:
            JwksFetchError: On network errors, non-2xx responses or a body
                without a ``keys`` list.
        """
        if not force_refresh:
            jwks = self._cache.get_jwks(jwks_url)
            if jwks:
                return jwks

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(jwks_url)
                resp.raise_for_status()
                jwks = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to fetch JWKS from {}: {}", jwks_url, exc)
            raise JwksFetchError(f"Failed to fetch JWKS: {exc}") from exc

        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise JwksFetchError("JWKS response has no 'keys' list")

        logger.debug("Fetched {} keys from {}", len(jwks["keys"]), jwks_url)
        self._cache.set_jwks(jwks_url, jwks)
        return jwks
