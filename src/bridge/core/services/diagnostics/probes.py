"""Individual HTTP probes against the data platform and the bridge."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field


class ProbeResult(BaseModel):
    """Outcome of one probe. ``detail`` never contains credentials."""

    name: str
    ok: bool
    status_code: int | None = None
    code: str | None = Field(default=None, description="Error code from the JSON body")
    detail: str = ""
    timed_out: bool = False
    body: Any = None

    @property
    def reachable(self) -> bool:
        return self.status_code is not None

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class ProbeClient:
    """Issues the probe requests, each bounded by ``timeout`` seconds."""

    def __init__(
        self,
        platform_url: str,
        bridge_url: str,
        *,
        anon_key: str | None = None,
        external_token: str | None = None,
        timeout: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._platform_url = platform_url.rstrip("/")
        self._bridge_url = bridge_url.rstrip("/")
        self._anon_key = anon_key
        self._external_token = external_token
        self._timeout = timeout
        self._transport = transport

    def _token_body(self) -> dict[str, str]:
        return {"externalToken": self._external_token or ""}

    def _platform_headers(self, bearer: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._anon_key:
            headers["apikey"] = self._anon_key
        token = bearer or self._anon_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(self, name: str, method: str, url: str, **kwargs) -> ProbeResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.debug("Probe {} timed out", name)
            return ProbeResult(name=name, ok=False, detail="timeout", timed_out=True)
        except httpx.HTTPError as e:
            logger.debug("Probe {} failed: {}", name, type(e).__name__)
            return ProbeResult(name=name, ok=False, detail=f"network error: {type(e).__name__}")

        body: Any = None
        code = None
        detail = resp.reason_phrase or ""
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            raw_code = body.get("code") or body.get("error_code")
            code = str(raw_code) if raw_code is not None else None
            if body.get("error") or body.get("message") or body.get("msg"):
                detail = str(body.get("error") or body.get("message") or body.get("msg"))

        ok = resp.is_success and not (isinstance(body, dict) and body.get("success") is False)
        return ProbeResult(
            name=name, ok=ok, status_code=resp.status_code, code=code, detail=detail, body=body
        )

    async def host(self) -> ProbeResult:
        return await self._send(
            "host", "GET", f"{self._platform_url}/auth/v1/health",
            headers=self._platform_headers(),
        )

    async def federation(self) -> ProbeResult:
        return await self._send(
            "federation", "POST", f"{self._bridge_url}/federate", json=self._token_body()
        )

    async def bootstrap_endpoint(self) -> ProbeResult:
        return await self._send("bootstrap", "OPTIONS", f"{self._bridge_url}/bootstrap")

    async def status(self) -> ProbeResult:
        return await self._send(
            "status", "POST", f"{self._bridge_url}/bootstrap/status", json=self._token_body()
        )

    async def bridge(self, access_token: str) -> ProbeResult:
        """Round-trip: the platform must accept the minted token."""
        return await self._send(
            "bridge", "GET", f"{self._platform_url}/auth/v1/user",
            headers=self._platform_headers(bearer=access_token),
        )

    async def run_bootstrap(self) -> ProbeResult:
        return await self._send(
            "bootstrap_run", "POST", f"{self._bridge_url}/bootstrap", json=self._token_body()
        )
