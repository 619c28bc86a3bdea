"""HTTP client for the data platform's privileged admin and RPC endpoints."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.runtime.config.config_data import ConfigData

# PostgREST and Postgres codes for "no such function"
RPC_MISSING_CODES = frozenset({"PGRST202", "42883"})


class PlatformError(RuntimeError):
    """Non-success answer (or no answer) from the data platform."""

    def __init__(
        self, message: str, *, status_code: int | None = None, code: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_rpc_missing(self) -> bool:
        text = str(self).lower()
        return self.code in RPC_MISSING_CODES or (
            "could not find the function" in text
            or ("function" in text and "does not exist" in text)
        )


def _error_from_response(resp: httpx.Response) -> PlatformError:
    code = None
    message = resp.reason_phrase or f"HTTP {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code") or body.get("error_code")
        if code is not None:
            code = str(code)
        message = str(
            body.get("message") or body.get("msg") or body.get("error_description")
            or body.get("error") or message
        )
    return PlatformError(message, status_code=resp.status_code, code=code)


class PlatformAdminClient:
    """Service-role client; the key never leaves this process."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._key = service_role_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: ConfigData, transport: httpx.AsyncBaseTransport | None = None
    ) -> PlatformAdminClient:
        platform = config.platform
        if not platform.base_url or not platform.service_role_key:
            raise FederationError(ErrorCode.ENV_MISSING, "Data platform is not configured")
        return cls(
            platform.base_url,
            platform.service_role_key,
            timeout=platform.request_timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, *, json: Any = None, params: dict | None = None
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                return await client.request(
                    method, path, json=json, params=params, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            logger.warning("Platform request {} {} failed: {}", method, path, type(exc).__name__)
            raise PlatformError(f"Platform unreachable: {type(exc).__name__}") from exc

    # ---------------------------- users ---------------------------------
    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        resp = await self._request("GET", f"/auth/v1/admin/users/{user_id}")
        if resp.status_code == 404:
            return None
        if resp.is_error:
            raise _error_from_response(resp)
        body = resp.json()
        # Some versions wrap the record in {"user": {...}}
        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            body = body["user"]
        return body if isinstance(body, dict) and body.get("id") else None

    async def create_user(
        self,
        user_id: str,
        email: str,
        *,
        user_metadata: dict[str, Any] | None = None,
        app_metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload = {
            "id": user_id,
            "email": email,
            "email_confirm": True,
            "user_metadata": user_metadata or {},
            "app_metadata": app_metadata or {},
        }
        resp = await self._request("POST", "/auth/v1/admin/users", json=payload)
        if resp.is_error:
            raise _error_from_response(resp)
        body = resp.json()
        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            body = body["user"]
        return body

    # ---------------------------- rest/rpc ------------------------------
    async def call_rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self._request("POST", f"/rest/v1/rpc/{name}", json=params or {})
        if resp.is_error:
            raise _error_from_response(resp)
        if not resp.content:
            return None
        return resp.json()
