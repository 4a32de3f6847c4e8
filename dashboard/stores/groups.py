from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

from dashboard.api.groups import GroupsApi
from dashboard.config import dlog
from dashboard.models import Group, GroupSettings
from dashboard.observable import Observable


@dataclass(frozen=True)
class GroupsState:
    groups: List[Group] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class GroupsStore(Observable[GroupsState]):
    def __init__(self, api: GroupsApi) -> None:
        super().__init__(GroupsState())
        self._api = api

    @property
    def groups(self) -> List[Group]:
        return list(self.state.groups)

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def group_names(self) -> List[str]:
        return [g.name for g in self.state.groups]

    async def fetch(self) -> None:
        self._replace(replace(self.state, loading=True, error=None))
        try:
            groups = await self._api.list()
        except Exception as e:
            dlog("groups_fetch_error", str(e))
            self._replace(replace(self.state, loading=False, error=str(e) or "Failed to load groups"))
            return
        self._replace(replace(self.state, groups=groups, loading=False))

    async def create(self, name: str, display_name: Optional[str] = None) -> None:
        await self._api.create(name, display_name)
        await self.fetch()

    async def update(
        self,
        name: str,
        display_name: Optional[str] = None,
        settings: Optional[GroupSettings] = None,
    ) -> None:
        await self._api.update(name, display_name, settings)
        await self.fetch()

    async def rename(self, old_name: str, new_name: str) -> None:
        await self._api.rename(old_name, new_name)
        await self.fetch()

    async def remove(self, name: str) -> None:
        await self._api.delete(name)
        await self.fetch()
