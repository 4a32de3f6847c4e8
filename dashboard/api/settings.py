from __future__ import annotations

from typing import Any, Dict, Tuple

from dashboard.models import SETTINGS_FIELDS, Settings, SettingsResponse
from dashboard.transport import HttpClient


class SettingsApi:
    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def get(self) -> SettingsResponse:
        data = await self._http.get("/api/settings")
        return SettingsResponse.from_dict(data or {})

    async def update(self, changes: Dict[str, Any]) -> Tuple[str, Settings]:
        """Send a partial settings update; returns (message, effective settings)."""
        unknown = sorted(set(changes) - set(SETTINGS_FIELDS))
        if unknown:
            raise ValueError(f"Unknown settings fields: {', '.join(unknown)}")
        data = await self._http.post("/api/settings", dict(changes)) or {}
        return data.get("message") or "", Settings.from_dict(data.get("settings") or {})
