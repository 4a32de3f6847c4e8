from __future__ import annotations

from typing import List
from urllib.parse import quote

from dashboard.models import APIKey, CreateAPIKeyRequest
from dashboard.transport import HttpClient


class KeysApi:
    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def list(self) -> List[APIKey]:
        data = await self._http.get("/api/keys") or []
        return [APIKey.from_dict(k) for k in data if isinstance(k, dict)]

    async def create(self, request: CreateAPIKeyRequest) -> APIKey:
        data = await self._http.post("/api/keys", request.to_dict())
        return APIKey.from_dict(data or {})

    async def update(self, key: str, allowed_groups: List[str]) -> dict:
        return await self._http.patch(f"/api/keys/{quote(key, safe='')}", {"allowed_groups": list(allowed_groups)}) or {}

    async def delete(self, key: str) -> None:
        await self._http.delete(f"/api/keys/{quote(key, safe='')}")
