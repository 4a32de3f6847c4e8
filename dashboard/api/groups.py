from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote

from dashboard.models import Group, GroupSettings
from dashboard.transport import HttpClient


def _group_path(name: str) -> str:
    return f"/api/groups/{quote(name, safe='')}"


class GroupsApi:
    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def list(self) -> List[Group]:
        data = await self._http.get("/api/groups") or {}
        return [Group.from_dict(g) for g in data.get("groups") or [] if isinstance(g, dict)]

    async def create(self, name: str, display_name: Optional[str] = None) -> dict:
        body = {"name": name}
        if display_name is not None:
            body["display_name"] = display_name
        return await self._http.post("/api/groups", body) or {}

    async def update(
        self,
        name: str,
        display_name: Optional[str] = None,
        settings: Optional[GroupSettings] = None,
    ) -> dict:
        body: dict = {}
        if display_name is not None:
            body["display_name"] = display_name
        if settings is not None:
            body["settings"] = settings.to_dict()
        return await self._http.put(_group_path(name), body) or {}

    async def rename(self, old_name: str, new_name: str) -> dict:
        return await self._http.post(f"{_group_path(old_name)}/rename", {"new_name": new_name}) or {}

    async def delete(self, name: str) -> None:
        await self._http.delete(_group_path(name))
