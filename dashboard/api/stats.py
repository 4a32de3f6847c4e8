from __future__ import annotations

from typing import Any, Dict, List, Optional

from dashboard.transport import HttpClient


class StatsApi:
    """Request statistics and persisted request logs; payloads are passed through as dicts."""

    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def get(self) -> Dict[str, Any]:
        return await self._http.get("/api/stats") or {}

    async def records(self) -> List[Dict[str, Any]]:
        return await self._http.get("/api/stats/records") or []

    async def logs(
        self,
        *,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        model: Optional[str] = None,
        group: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {"page": page, "page_size": page_size, "model": model, "group": group}
        return await self._http.get("/api/logs", params=params) or {}

    async def log_stats(self) -> Dict[str, Any]:
        return await self._http.get("/api/logs/stats") or {}

    async def clear_logs(self, days: Optional[int] = None) -> Dict[str, Any]:
        params = {"days": days} if days is not None else None
        return await self._http.delete("/api/logs", params=params) or {}
