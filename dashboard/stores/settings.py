from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from dashboard.api.settings import SettingsApi
from dashboard.config import dlog
from dashboard.models import RateLimiterStats, Settings
from dashboard.observable import Observable


@dataclass(frozen=True)
class SettingsState:
    settings: Optional[Settings] = None
    rate_limiter: Optional[RateLimiterStats] = None
    active_tokens: int = 0
    loading: bool = False
    error: Optional[str] = None


class SettingsStore(Observable[SettingsState]):
    def __init__(self, api: SettingsApi) -> None:
        super().__init__(SettingsState())
        self._api = api

    @property
    def settings(self) -> Optional[Settings]:
        return self.state.settings

    @property
    def rate_limiter(self) -> Optional[RateLimiterStats]:
        return self.state.rate_limiter

    @property
    def active_tokens(self) -> int:
        return self.state.active_tokens

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    async def fetch(self) -> None:
        self._replace(replace(self.state, loading=True, error=None))
        try:
            res = await self._api.get()
        except Exception as e:
            dlog("settings_fetch_error", str(e))
            self._replace(replace(self.state, loading=False, error=str(e) or "Failed to load settings"))
            return
        self._replace(
            replace(
                self.state,
                settings=res.settings,
                rate_limiter=res.rate_limiter,
                active_tokens=res.active_tokens,
                loading=False,
            )
        )

    async def update(self, changes: Dict[str, Any]) -> str:
        message, settings = await self._api.update(changes)
        self._replace(replace(self.state, settings=settings))
        await self.fetch()
        return message
