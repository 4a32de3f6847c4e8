from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Set

from dashboard.api.tokens import TokensApi
from dashboard.config import dlog, DEFAULT_MAX_RETRIES, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_DELAY
from dashboard.models import (
    AddTokenRequest,
    BulkAddResult,
    PoolStats,
    RefreshTokensRequest,
    RefreshTokensResult,
    Token,
    TokenListParams,
    TokenListResponse,
    UpdateTokenRequest,
    total_pages,
)
from dashboard.observable import Observable


@dataclass(frozen=True)
class TokensState:
    """Everything the token view renders, replaced as one object."""

    data: Optional[TokenListResponse] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    filter_group: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None


class TokensStore(Observable[TokensState]):
    """Paginated, group-filtered view over the token pool.

    While the backend is still warming its cache, list responses carry
    ``loading=True``; each such response schedules one more fetch of the
    same query after ``retry_delay`` seconds, up to ``max_retries`` times.
    Every fetch is tagged with a sequence number and only the most recently
    issued one may replace state, so a slow response for an old page or
    filter never overwrites a newer view.
    """

    def __init__(
        self,
        api: TokensApi,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        super().__init__(TokensState(page_size=page_size))
        self._api = api
        self._default_page_size = page_size
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self._seq = itertools.count(1)
        self._latest_seq = 0
        # origin fetch sequence number -> pending warm-up retry
        self._pending_retries: Dict[int, asyncio.TimerHandle] = {}
        self._retry_tasks: Set[asyncio.Task] = set()
        self._closed = False

    # ---------- derived views of the last applied response ----------
    @property
    def data(self) -> Optional[TokenListResponse]:
        return self.state.data

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def page(self) -> int:
        return self.state.page

    @property
    def page_size(self) -> int:
        return self.state.page_size

    @property
    def filter_group(self) -> Optional[str]:
        return self.state.filter_group

    @property
    def tokens(self) -> List[Token]:
        return list(self.state.data.tokens) if self.state.data else []

    @property
    def total_tokens(self) -> int:
        return self.state.data.total_tokens if self.state.data else 0

    @property
    def active_tokens(self) -> int:
        return self.state.data.active_tokens if self.state.data else 0

    @property
    def pool_stats(self) -> PoolStats:
        """Pool counters reported with the current page (not a recount of it)."""
        return self.state.data.pool_stats if self.state.data else PoolStats()

    @property
    def global_in_flight(self) -> int:
        return self.pool_stats.global_in_flight

    @property
    def tokens_with_in_flight(self) -> int:
        return self.pool_stats.tokens_with_in_flight

    @property
    def is_backend_loading(self) -> bool:
        return bool(self.state.data and self.state.data.loading)

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_tokens, self.state.page_size)

    @property
    def pending_retries(self) -> int:
        return len(self._pending_retries)

    @property
    def retrying(self) -> bool:
        """True while a warm-up retry is scheduled or its fetch is still running."""
        return bool(self._pending_retries or self._retry_tasks)

    # ---------- fetching ----------
    def _effective_query(self, params: Optional[TokenListParams]) -> TokenListParams:
        state = self.state
        if params is None:
            return TokenListParams(page=state.page, page_size=state.page_size, group=state.filter_group)
        return TokenListParams(
            page=params.page if params.page is not None else state.page,
            page_size=params.page_size if params.page_size is not None else state.page_size,
            group=(params.group or None) if params.group is not None else state.filter_group,
        )

    async def fetch(self, params: Optional[TokenListParams] = None, retry_count: int = 0) -> None:
        """Load one page; ``params`` override the held page, page size and group."""
        seq = next(self._seq)
        self._latest_seq = seq
        query = self._effective_query(params)
        self._replace(replace(self.state, loading=True, error=None))

        try:
            response = await self._api.list(query)
        except Exception as e:
            dlog("tokens_fetch_error", {"seq": seq, "query": query.to_query(), "error": str(e)})
            if seq == self._latest_seq:
                self._replace(replace(self.state, loading=False, error=str(e) or "Failed to load tokens"))
            return

        if seq != self._latest_seq:
            dlog("tokens_stale_response", {"seq": seq, "latest": self._latest_seq, "query": query.to_query()})
            return

        self._replace(
            replace(
                self.state,
                data=response,
                page=response.page or 1,
                page_size=response.page_size or self._default_page_size,
                filter_group=query.group,
                loading=False,
            )
        )
        dlog(
            "tokens_fetched",
            {
                "seq": seq,
                "page": response.page,
                "page_size": response.page_size,
                "group": query.group,
                "count": len(response.tokens),
                "backend_loading": response.loading,
                "retry_count": retry_count,
            },
        )

        if response.loading and retry_count < self.max_retries:
            self._schedule_retry(query, retry_count + 1, seq)

    def _schedule_retry(self, query: TokenListParams, retry_count: int, origin_seq: int) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._pending_retries[origin_seq] = loop.call_later(
            self.retry_delay, self._fire_retry, query, retry_count, origin_seq
        )
        dlog("tokens_retry_scheduled", {"retry_count": retry_count, "delay": self.retry_delay, "query": query.to_query()})

    def _fire_retry(self, query: TokenListParams, retry_count: int, origin_seq: int) -> None:
        self._pending_retries.pop(origin_seq, None)
        if origin_seq != self._latest_seq:
            # A newer fetch was issued since; it owns the view (and its own retries).
            dlog("tokens_retry_dropped", {"origin_seq": origin_seq, "latest": self._latest_seq})
            return
        task = asyncio.ensure_future(self.fetch(query, retry_count))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    # ---------- navigation ----------
    async def set_page(self, page: int) -> None:
        self._replace(replace(self.state, page=page))
        await self.fetch(TokenListParams(page=page))

    async def set_page_size(self, page_size: int) -> None:
        self._replace(replace(self.state, page_size=page_size, page=1))
        await self.fetch(TokenListParams(page=1, page_size=page_size))

    async def set_filter_group(self, group: Optional[str]) -> None:
        group = group or None
        self._replace(replace(self.state, filter_group=group, page=1))
        await self.fetch(TokenListParams(page=1, group=group))

    # ---------- mutations: adapter call, then refetch the current view ----------
    async def add(self, request: AddTokenRequest) -> None:
        await self._api.add(request)
        await self.fetch()

    async def add_bulk(self, requests: Iterable[AddTokenRequest]) -> BulkAddResult:
        result = await self._api.add_bulk(requests)
        await self.fetch()
        return result

    async def remove(self, token_id: int) -> None:
        await self._api.delete(token_id)
        await self.fetch()

    async def update(self, token_id: int, request: UpdateTokenRequest) -> None:
        await self._api.update(token_id, request)
        await self.fetch()

    async def move(self, token_id: int, group: str) -> None:
        await self._api.move(token_id, group)
        await self.fetch()

    async def refresh(self, request: Optional[RefreshTokensRequest] = None) -> RefreshTokensResult:
        result = await self._api.refresh(request)
        await self.fetch()
        return result

    # ---------- teardown ----------
    def close(self) -> None:
        """Cancel pending warm-up retries and any retry fetch still running."""
        self._closed = True
        for handle in self._pending_retries.values():
            handle.cancel()
        self._pending_retries.clear()
        for task in list(self._retry_tasks):
            task.cancel()
        self._retry_tasks.clear()
