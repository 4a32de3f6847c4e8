from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, TypeVar

import httpx

from dashboard.api.groups import GroupsApi
from dashboard.api.keys import KeysApi
from dashboard.api.settings import SettingsApi
from dashboard.api.stats import StatsApi
from dashboard.api.tokens import TokensApi
from dashboard.config import ClientConfig, dlog
from dashboard.credentials import CredentialStore
from dashboard.errors import ApiError, ApiRequestError
from dashboard.notices import NoticeLog
from dashboard.stores.groups import GroupsStore
from dashboard.stores.keys import KeysStore
from dashboard.stores.settings import SettingsStore
from dashboard.stores.tokens import TokensStore
from dashboard.transport import HttpClient


T = TypeVar("T")


@dataclass
class DashboardState:
    config: ClientConfig
    credentials: CredentialStore
    http: HttpClient
    tokens: TokensStore
    groups: GroupsStore
    keys: KeysStore
    settings: SettingsStore
    stats: StatsApi
    notices: NoticeLog

    async def refresh_all(self) -> None:
        """Load every container concurrently; failures land in each store's ``error``."""
        await asyncio.gather(
            self.tokens.fetch(),
            self.groups.fetch(),
            self.keys.fetch(),
            self.settings.fetch(),
        )

    async def run_mutation(self, label: str, action: Awaitable[T]) -> T:
        """Await a store mutation and record its outcome as a notice.

        Errors are recorded and re-raised so the caller still sees them.
        """
        try:
            result = await action
        except ApiRequestError as e:
            detail: dict[str, Any] = {"status": e.status}
            if e.duplicate:
                detail["duplicate"] = True
                detail["existing"] = e.existing
            self.notices.error(f"{label} failed: {e}", detail)
            raise
        except ApiError as e:
            self.notices.error(f"{label} failed: {e}")
            raise
        self.notices.success(f"{label} succeeded")
        return result

    async def aclose(self) -> None:
        self.tokens.close()
        await self.http.aclose()


def init_dashboard_state(
    config: ClientConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DashboardState:
    """Wire credentials, transport, adapters and stores from one config."""
    credentials = CredentialStore(path=config.credential_file, override=config.api_token)
    credentials.load()
    http = HttpClient(
        config.api_url,
        credential_provider=credentials.provider(),
        timeout=config.timeout,
        transport=transport,
    )
    state = DashboardState(
        config=config,
        credentials=credentials,
        http=http,
        tokens=TokensStore(
            TokensApi(http),
            page_size=config.page_size,
            retry_delay=config.retry_delay,
            max_retries=config.max_retries,
        ),
        groups=GroupsStore(GroupsApi(http)),
        keys=KeysStore(KeysApi(http)),
        settings=SettingsStore(SettingsApi(http)),
        stats=StatsApi(http),
        notices=NoticeLog(path=config.notice_log),
    )
    dlog("dashboard_state_ready", {"api_url": config.api_url, "has_credential": credentials.has_credential})
    return state
