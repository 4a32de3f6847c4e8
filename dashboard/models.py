from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from dashboard.config import dlog


TOKEN_STATUSES = frozenset({"active", "disabled", "error", "banned", "exhausted"})


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def total_pages(total_items: int, page_size: int) -> int:
    """Number of pages needed for ``total_items``; never less than 1."""
    if page_size <= 0:
        return 1
    return max(1, math.ceil(total_items / page_size))


# ---------- tokens ----------
@dataclass(frozen=True)
class UsageLimits:
    total_limit: float = 0
    current_usage: float = 0
    is_exceeded: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageLimits":
        return cls(
            total_limit=_float(data.get("total_limit")),
            current_usage=_float(data.get("current_usage")),
            is_exceeded=bool(data.get("is_exceeded", False)),
        )


@dataclass(frozen=True)
class Token:
    index: int
    status: str
    group: str = ""
    name: str = ""
    user_email: str = ""
    token_preview: str = ""
    auth_type: str = ""
    remaining_usage: float = 0
    expires_at: str = ""
    last_used: str = ""
    last_verified: str = ""
    error: Optional[str] = None
    client_id: Optional[str] = None
    usage_limits: Optional[UsageLimits] = None
    request_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    in_flight: int = 0
    avg_latency: float = 0.0

    @property
    def id(self) -> int:
        return self.index

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Token":
        # Newer backends send both "id" and "index"; older ones only "index".
        index = data.get("index", data.get("id"))
        status = str(data.get("status") or "error")
        if status not in TOKEN_STATUSES:
            dlog("token_unknown_status", {"index": index, "status": status})
        limits = data.get("usage_limits")
        return cls(
            index=_int(index),
            status=status,
            group=data.get("group") or "",
            name=data.get("name") or "",
            user_email=data.get("user_email") or "",
            token_preview=data.get("token_preview") or "",
            auth_type=data.get("auth_type") or "",
            remaining_usage=_float(data.get("remaining_usage")),
            expires_at=data.get("expires_at") or "",
            last_used=data.get("last_used") or "",
            last_verified=data.get("last_verified") or "",
            error=data.get("error"),
            client_id=data.get("client_id"),
            usage_limits=UsageLimits.from_dict(limits) if isinstance(limits, dict) else None,
            request_count=_int(data.get("request_count")),
            success_count=_int(data.get("success_count")),
            failure_count=_int(data.get("failure_count")),
            in_flight=_int(data.get("in_flight")),
            avg_latency=_float(data.get("avg_latency")),
        )


@dataclass(frozen=True)
class PoolStats:
    """Pool-wide counters as reported alongside one page response.

    They describe the backend at the moment that page was served, not a
    client-side recount of the tokens held.
    """

    total_tokens: int = 0
    active_tokens: int = 0
    global_in_flight: int = 0
    tokens_with_in_flight: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolStats":
        return cls(
            total_tokens=_int(data.get("total_tokens")),
            active_tokens=_int(data.get("active_tokens")),
            global_in_flight=_int(data.get("global_in_flight")),
            tokens_with_in_flight=_int(data.get("tokens_with_in_flight")),
        )


@dataclass(frozen=True)
class TokenListParams:
    page: Optional[int] = None
    page_size: Optional[int] = None
    group: Optional[str] = None

    def to_query(self) -> Dict[str, Any]:
        return _drop_none({"page": self.page, "page_size": self.page_size, "group": self.group or None})


@dataclass(frozen=True)
class TokenListResponse:
    tokens: List[Token] = field(default_factory=list)
    total_tokens: int = 0
    active_tokens: int = 0
    page: int = 0
    page_size: int = 0
    pool_stats: PoolStats = field(default_factory=PoolStats)
    loading: bool = False
    timestamp: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenListResponse":
        stats = data.get("pool_stats")
        return cls(
            tokens=[Token.from_dict(t) for t in data.get("tokens") or [] if isinstance(t, dict)],
            total_tokens=_int(data.get("total_tokens")),
            active_tokens=_int(data.get("active_tokens")),
            page=_int(data.get("page")),
            page_size=_int(data.get("page_size")),
            pool_stats=PoolStats.from_dict(stats) if isinstance(stats, dict) else PoolStats(),
            loading=data.get("loading") is True,
            timestamp=data.get("timestamp") or "",
        )


@dataclass(frozen=True)
class AddTokenRequest:
    refresh_token: str
    auth: Optional[Literal["Social", "IdC"]] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    group: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "refreshToken": self.refresh_token,
                "auth": self.auth,
                "clientId": self.client_id,
                "clientSecret": self.client_secret,
                "group": self.group,
                "name": self.name,
            }
        )


@dataclass(frozen=True)
class UpdateTokenRequest:
    """Partial patch; only fields that are set are sent."""

    disabled: Optional[bool] = None
    group: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"disabled": self.disabled, "group": self.group, "name": self.name})


@dataclass(frozen=True)
class RefreshTokensRequest:
    group: Optional[str] = None
    status: Optional[Literal["banned", "exhausted", "active", ""]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"group": self.group, "status": self.status})


@dataclass(frozen=True)
class BulkAddResult:
    added: int = 0
    duplicates: int = 0
    skipped: List[Any] = field(default_factory=list)
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BulkAddResult":
        return cls(
            added=_int(data.get("added")),
            duplicates=_int(data.get("duplicates")),
            skipped=list(data.get("skipped") or []),
            message=data.get("message") or "",
        )


@dataclass(frozen=True)
class RefreshTokenResult:
    id: int
    group: str = ""
    name: str = ""
    status: str = ""
    user_email: Optional[str] = None
    remaining_usage: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefreshTokenResult":
        remaining = data.get("remaining_usage")
        return cls(
            id=_int(data.get("id", data.get("index"))),
            group=data.get("group") or "",
            name=data.get("name") or "",
            status=data.get("status") or "",
            user_email=data.get("user_email"),
            remaining_usage=_float(remaining) if remaining is not None else None,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class RefreshTokensResult:
    refreshed: int = 0
    failed: int = 0
    total: int = 0
    concurrency: int = 0
    results: List[RefreshTokenResult] = field(default_factory=list)
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefreshTokensResult":
        return cls(
            refreshed=_int(data.get("refreshed")),
            failed=_int(data.get("failed")),
            total=_int(data.get("total")),
            concurrency=_int(data.get("concurrency")),
            results=[RefreshTokenResult.from_dict(r) for r in data.get("results") or [] if isinstance(r, dict)],
            message=data.get("message") or "",
        )


# ---------- groups ----------
@dataclass(frozen=True)
class GroupSettings:
    priority: Optional[int] = None
    disabled: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupSettings":
        priority = data.get("priority")
        disabled = data.get("disabled")
        return cls(
            priority=_int(priority) if priority is not None else None,
            disabled=bool(disabled) if disabled is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"priority": self.priority, "disabled": self.disabled})


@dataclass(frozen=True)
class Group:
    name: str
    display_name: str = ""
    settings: GroupSettings = field(default_factory=GroupSettings)
    token_count: int = 0
    active_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Group":
        settings = data.get("settings")
        return cls(
            name=data.get("name") or "",
            display_name=data.get("display_name") or "",
            settings=GroupSettings.from_dict(settings) if isinstance(settings, dict) else GroupSettings(),
            token_count=_int(data.get("token_count")),
            active_count=_int(data.get("active_count")),
        )


# ---------- API keys ----------
@dataclass(frozen=True)
class APIKey:
    key: str
    masked_key: str = ""
    name: str = ""
    allowed_groups: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "APIKey":
        return cls(
            key=data.get("key") or "",
            masked_key=data.get("masked_key") or "",
            name=data.get("name") or "",
            allowed_groups=list(data.get("allowed_groups") or []),
        )


@dataclass(frozen=True)
class CreateAPIKeyRequest:
    key: Optional[str] = None
    name: Optional[str] = None
    allowed_groups: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"key": self.key, "name": self.name, "allowed_groups": self.allowed_groups})


# ---------- settings ----------
SETTINGS_FIELDS = (
    "rate_limit_qps",
    "rate_limit_burst",
    "request_timeout_sec",
    "max_retries",
    "cooldown_sec",
    "token_rate_limit_qps",
    "token_rate_limit_burst",
    "token_max_concurrent",
    "group_max_concurrent",
    "refresh_concurrency",
    "session_duration_min",
)


@dataclass(frozen=True)
class Settings:
    rate_limit_qps: float = 0
    rate_limit_burst: int = 0
    request_timeout_sec: int = 0
    max_retries: int = 0
    cooldown_sec: int = 0
    token_rate_limit_qps: float = 0
    token_rate_limit_burst: int = 0
    token_max_concurrent: int = 0
    group_max_concurrent: int = 0
    refresh_concurrency: int = 0
    session_duration_min: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        return cls(
            rate_limit_qps=_float(data.get("rate_limit_qps")),
            rate_limit_burst=_int(data.get("rate_limit_burst")),
            request_timeout_sec=_int(data.get("request_timeout_sec")),
            max_retries=_int(data.get("max_retries")),
            cooldown_sec=_int(data.get("cooldown_sec")),
            token_rate_limit_qps=_float(data.get("token_rate_limit_qps")),
            token_rate_limit_burst=_int(data.get("token_rate_limit_burst")),
            token_max_concurrent=_int(data.get("token_max_concurrent")),
            group_max_concurrent=_int(data.get("group_max_concurrent")),
            refresh_concurrency=_int(data.get("refresh_concurrency")),
            session_duration_min=_int(data.get("session_duration_min")),
        )


@dataclass(frozen=True)
class RateLimiterStats:
    qps: float = 0
    burst: int = 0
    available_tokens: float = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateLimiterStats":
        return cls(
            qps=_float(data.get("qps")),
            burst=_int(data.get("burst")),
            available_tokens=_float(data.get("available_tokens")),
        )


@dataclass(frozen=True)
class SettingsResponse:
    settings: Settings
    rate_limiter: Optional[RateLimiterStats] = None
    active_tokens: int = 0
    global_in_flight: int = 0
    tokens_with_in_flight: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingsResponse":
        limiter = data.get("rate_limiter")
        return cls(
            settings=Settings.from_dict(data.get("settings") or {}),
            rate_limiter=RateLimiterStats.from_dict(limiter) if isinstance(limiter, dict) else None,
            active_tokens=_int(data.get("active_tokens")),
            global_in_flight=_int(data.get("global_in_flight")),
            tokens_with_in_flight=_int(data.get("tokens_with_in_flight")),
        )
