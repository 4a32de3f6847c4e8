from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

from dashboard.api.keys import KeysApi
from dashboard.config import dlog
from dashboard.models import APIKey, CreateAPIKeyRequest
from dashboard.observable import Observable


@dataclass(frozen=True)
class KeysState:
    keys: List[APIKey] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class KeysStore(Observable[KeysState]):
    def __init__(self, api: KeysApi) -> None:
        super().__init__(KeysState())
        self._api = api

    @property
    def keys(self) -> List[APIKey]:
        return list(self.state.keys)

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    async def fetch(self) -> None:
        self._replace(replace(self.state, loading=True, error=None))
        try:
            keys = await self._api.list()
        except Exception as e:
            dlog("keys_fetch_error", str(e))
            self._replace(replace(self.state, loading=False, error=str(e) or "Failed to load API keys"))
            return
        self._replace(replace(self.state, keys=keys, loading=False))

    async def create(self, request: CreateAPIKeyRequest) -> APIKey:
        """Create a key; the returned object is the only place the full key is shown."""
        new_key = await self._api.create(request)
        await self.fetch()
        return new_key

    async def update(self, key: str, allowed_groups: List[str]) -> None:
        await self._api.update(key, allowed_groups)
        await self.fetch()

    async def remove(self, key: str) -> None:
        await self._api.delete(key)
        await self.fetch()
