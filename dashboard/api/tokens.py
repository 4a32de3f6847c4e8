from __future__ import annotations

from typing import Iterable, Optional

from dashboard.models import (
    AddTokenRequest,
    BulkAddResult,
    RefreshTokensRequest,
    RefreshTokensResult,
    TokenListParams,
    TokenListResponse,
    UpdateTokenRequest,
)
from dashboard.transport import HttpClient


class TokensApi:
    """Request shaping for /api/tokens. One network call per method."""

    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def list(self, params: Optional[TokenListParams] = None) -> TokenListResponse:
        query = params.to_query() if params else {}
        data = await self._http.get("/api/tokens", params=query)
        return TokenListResponse.from_dict(data or {})

    async def add(self, request: AddTokenRequest) -> dict:
        return await self._http.post("/api/tokens", request.to_dict()) or {}

    async def add_bulk(self, requests: Iterable[AddTokenRequest]) -> BulkAddResult:
        data = await self._http.post("/api/tokens/bulk", {"tokens": [r.to_dict() for r in requests]})
        return BulkAddResult.from_dict(data or {})

    async def delete(self, token_id: int) -> None:
        await self._http.delete(f"/api/tokens/{int(token_id)}")

    async def update(self, token_id: int, request: UpdateTokenRequest) -> dict:
        return await self._http.patch(f"/api/tokens/{int(token_id)}", request.to_dict()) or {}

    async def move(self, token_id: int, group: str) -> dict:
        return await self._http.put(f"/api/tokens/{int(token_id)}/move", {"group": group}) or {}

    async def refresh(self, request: Optional[RefreshTokensRequest] = None) -> RefreshTokensResult:
        body = request.to_dict() if request else {}
        data = await self._http.post("/api/tokens/refresh", body)
        return RefreshTokensResult.from_dict(data or {})
