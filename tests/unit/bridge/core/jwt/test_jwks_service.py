from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from src.bridge.core.services import JwksFetchError, JwksService

JWKS_URL = "https://clerk.bridge.test/.well-known/jwks.json"


class TestJwksService:
    """Key set download and caching."""

    @pytest.fixture
    def jwks_service(self, jwks_cache) -> JwksService:
        jwks_cache.clear_jwks_cache()
        return JwksService(cache=jwks_cache)

    async def test_fetch_jwks_success_and_cached(self, jwks_data, jwks_service: JwksService):
        """Should fetch once and then serve from the cache."""
        with patch("httpx.AsyncClient") as mock_client:
            mock_response = Mock()
            mock_response.json.return_value = jwks_data
            mock_response.raise_for_status = Mock()
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=mock_response
            )

            first = await jwks_service.fetch_jwks(JWKS_URL)
            second = await jwks_service.fetch_jwks(JWKS_URL)

        assert first == jwks_data
        assert second == jwks_data
        mock_client.return_value.__aenter__.return_value.get.assert_called_once_with(JWKS_URL)

    async def test_force_refresh_bypasses_cache(self, jwks_data, jwks_service: JwksService):
        with patch("httpx.AsyncClient") as mock_client:
            mock_response = Mock()
            mock_response.json.return_value = jwks_data
            mock_response.raise_for_status = Mock()
            get = AsyncMock(return_value=mock_response)
            mock_client.return_value.__aenter__.return_value.get = get

            await jwks_service.fetch_jwks(JWKS_URL)
            await jwks_service.fetch_jwks(JWKS_URL, force_refresh=True)

        assert get.await_count == 2

    async def test_network_timeout(self, jwks_service: JwksService):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.TimeoutException("Request timeout")
            )
            with pytest.raises(JwksFetchError, match="Failed to fetch JWKS"):
                await jwks_service.fetch_jwks(JWKS_URL)

    async def test_invalid_json(self, jwks_service: JwksService):
        with patch("httpx.AsyncClient") as mock_client:
            mock_response = Mock()
            mock_response.json.side_effect = ValueError("Invalid JSON")
            mock_response.raise_for_status = Mock()
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=mock_response
            )
            with pytest.raises(JwksFetchError):
                await jwks_service.fetch_jwks(JWKS_URL)

    async def test_document_without_keys(self, jwks_service: JwksService):
        with patch("httpx.AsyncClient") as mock_client:
            mock_response = Mock()
            mock_response.json.return_value = {"issuer": "x"}
            mock_response.raise_for_status = Mock()
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=mock_response
            )
            with pytest.raises(JwksFetchError, match="keys"):
                await jwks_service.fetch_jwks(JWKS_URL)

