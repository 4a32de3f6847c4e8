from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

import httpx

from dashboard.config import dlog, DEFAULT_TIMEOUT
from dashboard.credentials import CredentialProvider
from dashboard.errors import ApiRequestError, TransportError


def _clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop unset/empty query values so they are omitted from the URL."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None and v != ""}


class HttpClient:
    """Async JSON client for the token-pool admin API.

    Injects the bearer credential from ``credential_provider`` on every
    request, maps 204 to ``None`` and non-2xx responses to ``ApiRequestError``.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        credential_provider: Optional[CredentialProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._credential_provider = credential_provider
        self._timeout = timeout
        self._transport = transport
        self._session: Optional[httpx.AsyncClient] = None

    @property
    def session(self) -> httpx.AsyncClient:
        if self._session is None or self._session.is_closed:
            self._session = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._session

    def _auth_headers(self) -> Dict[str, str]:
        token = self._credential_provider() if self._credential_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        request_headers = {**self._auth_headers(), **(headers or {})}
        content = json.dumps(body) if body is not None else None
        query = _clean_params(params)
        dlog("http_request", {"method": method, "path": path, "params": query})
        try:
            resp = await self.session.request(
                method,
                path,
                params=query or None,
                content=content,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach dashboard API at {self.base_url or '<relative>'}: {e}") from e

        if resp.status_code == 204:
            return None

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            dlog("http_error", {"method": method, "path": path, "status": resp.status_code, "body": data})
            if not isinstance(data, dict):
                data = {"error": f"HTTP {resp.status_code}"}
            raise ApiRequestError(resp.status_code, data)

        if data is None and resp.content:
            raise ApiRequestError(resp.status_code, {"error": "Invalid JSON in response body"})
        return data

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, body=body)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.request("PUT", path, body=body)

    async def patch(self, path: str, body: Any = None) -> Any:
        return await self.request("PATCH", path, body=body)

    async def delete(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def aclose(self) -> None:
        if self._session is not None and not self._session.is_closed:
            await self._session.aclose()
        self._session = None
