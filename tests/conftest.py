import math
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from dashboard.api.groups import GroupsApi
from dashboard.api.keys import KeysApi
from dashboard.api.settings import SettingsApi
from dashboard.api.stats import StatsApi
from dashboard.api.tokens import TokensApi
from dashboard.transport import HttpClient


API_TOKEN = "test-token"
BASE_URL = "http://pool.test"


class FakePool:
    """In-memory token-pool backend state, shaped like the real admin API."""

    def __init__(self) -> None:
        self.tokens: List[Dict[str, Any]] = []
        self.groups: Dict[str, Dict[str, Any]] = {"default": {"display_name": "Default", "settings": {}}}
        self.keys: List[Dict[str, Any]] = [{"key": "sk-admin-0001", "name": "admin", "allowed_groups": []}]
        self.settings: Dict[str, Any] = {
            "rate_limit_qps": 10.0,
            "rate_limit_burst": 20,
            "request_timeout_sec": 120,
            "max_retries": 3,
            "cooldown_sec": 60,
            "token_rate_limit_qps": 1.0,
            "token_rate_limit_burst": 2,
            "token_max_concurrent": 4,
            "group_max_concurrent": 16,
            "refresh_concurrency": 8,
            "session_duration_min": 30,
        }
        self.warmup_responses = 0
        self.list_calls: List[Dict[str, Any]] = []
        self.list_failures: List[int] = []
        self._next_id = 1

    def add_token(self, group: str = "default", name: str = "", status: str = "active", **extra) -> Dict[str, Any]:
        token_id = self._next_id
        self._next_id += 1
        self.groups.setdefault(group, {"display_name": group, "settings": {}})
        token = {
            "id": token_id,
            "index": token_id,
            "refresh_token": extra.pop("refresh_token", f"rt-{token_id}"),
            "user_email": f"u{token_id}@example.com",
            "group": group,
            "name": name or f"token-{token_id}",
            "status": status,
            "in_flight": 0,
        }
        token.update(extra)
        self.tokens.append(token)
        return token

    def find(self, token_id: int) -> Optional[Dict[str, Any]]:
        for t in self.tokens:
            if t["id"] == token_id:
                return t
        return None

    def public(self, token: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: v for k, v in token.items() if k != "refresh_token"}
        data["token_preview"] = token["refresh_token"][:4] + "..."
        data.setdefault("request_count", 0)
        data.setdefault("success_count", 0)
        data.setdefault("failure_count", 0)
        data.setdefault("avg_latency", 0.0)
        return data


def _error(status: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message, **extra})


def create_backend(pool: FakePool) -> FastAPI:
    app = FastAPI()

    @app.middleware("http")
    async def require_bearer(request: Request, call_next):
        if request.headers.get("authorization") != f"Bearer {API_TOKEN}":
            return _error(401, "unauthorized")
        return await call_next(request)

    # ---------- tokens ----------
    @app.get("/api/tokens")
    async def list_tokens(page: int = 1, page_size: int = 100, group: str = ""):
        pool.list_calls.append({"page": page, "page_size": page_size, "group": group or None})
        if pool.list_failures:
            return _error(pool.list_failures.pop(0), "list failed")
        if page < 1:
            page = 1
        if page_size < 1 or page_size > 1000:
            page_size = 100
        scoped = [t for t in pool.tokens if not group or t["group"] == group]
        offset = (page - 1) * page_size
        active = sum(1 for t in pool.tokens if t["status"] == "active")
        in_flight = [t["in_flight"] for t in pool.tokens]
        body: Dict[str, Any] = {
            "timestamp": "2026-01-01T00:00:00Z",
            "total_tokens": len(pool.tokens),
            "active_tokens": active,
            "tokens": [pool.public(t) for t in scoped[offset : offset + page_size]],
            "page": page,
            "page_size": page_size,
            "pool_stats": {
                "total_tokens": len(pool.tokens),
                "active_tokens": active,
                "global_in_flight": sum(in_flight),
                "tokens_with_in_flight": sum(1 for n in in_flight if n > 0),
            },
        }
        if pool.warmup_responses > 0:
            pool.warmup_responses -= 1
            body["loading"] = True
        return body

    @app.post("/api/tokens", status_code=201)
    async def add_token(payload: dict):
        refresh_token = payload.get("refreshToken")
        if not refresh_token:
            return _error(400, "refreshToken is required")
        for t in pool.tokens:
            if t["refresh_token"] == refresh_token:
                return _error(
                    409,
                    "token already exists",
                    duplicate=True,
                    existing={"id": t["id"], "name": t["name"], "group": t["group"]},
                )
        pool.add_token(group=payload.get("group") or "default", name=payload.get("name") or "", refresh_token=refresh_token)
        return {"message": "token added"}

    @app.post("/api/tokens/bulk", status_code=201)
    async def add_bulk(payload: dict):
        items = payload.get("tokens") or []
        if not items:
            return _error(400, "tokens must not be empty")
        known = {t["refresh_token"] for t in pool.tokens}
        added, duplicates, skipped = 0, 0, []
        for item in items:
            rt = item.get("refreshToken")
            if not rt:
                skipped.append({"reason": "missing refreshToken"})
                continue
            if rt in known:
                duplicates += 1
                continue
            known.add(rt)
            pool.add_token(group=item.get("group") or "default", name=item.get("name") or "", refresh_token=rt)
            added += 1
        return {"added": added, "duplicates": duplicates, "skipped": skipped, "message": f"added {added}"}

    @app.post("/api/tokens/refresh")
    async def refresh_tokens(payload: dict):
        group = payload.get("group")
        status = payload.get("status")
        picked = [
            t for t in pool.tokens
            if (not group or t["group"] == group) and (not status or t["status"] == status)
        ]
        results = []
        for t in picked:
            t["status"] = "active"
            results.append({"id": t["id"], "group": t["group"], "name": t["name"], "status": "active"})
        return {
            "refreshed": len(picked),
            "failed": 0,
            "total": len(picked),
            "concurrency": pool.settings["refresh_concurrency"],
            "results": results,
            "message": f"refreshed {len(picked)}",
        }

    @app.delete("/api/tokens/{token_id}")
    async def delete_token(token_id: int):
        token = pool.find(token_id)
        if not token:
            return _error(404, "token not found")
        pool.tokens.remove(token)
        return Response(status_code=204)

    @app.patch("/api/tokens/{token_id}")
    async def update_token(token_id: int, payload: dict):
        token = pool.find(token_id)
        if not token:
            return _error(404, "token not found")
        if "disabled" in payload:
            token["status"] = "disabled" if payload["disabled"] else "active"
        for field in ("group", "name"):
            if field in payload:
                token[field] = payload[field]
        return {"message": "token updated"}

    @app.put("/api/tokens/{token_id}/move")
    async def move_token(token_id: int, payload: dict):
        token = pool.find(token_id)
        if not token:
            return _error(404, "token not found")
        token["group"] = payload.get("group") or "default"
        return {"message": "token moved"}

    # ---------- groups ----------
    @app.get("/api/groups")
    async def list_groups():
        groups = []
        for name, meta in pool.groups.items():
            members = [t for t in pool.tokens if t["group"] == name]
            groups.append(
                {
                    "name": name,
                    "display_name": meta.get("display_name") or name,
                    "settings": meta.get("settings") or {},
                    "token_count": len(members),
                    "active_count": sum(1 for t in members if t["status"] == "active"),
                }
            )
        return {"groups": groups}

    @app.post("/api/groups", status_code=201)
    async def create_group(payload: dict):
        name = payload.get("name")
        if not name or name in pool.groups:
            return _error(400, "invalid or duplicate group name")
        pool.groups[name] = {"display_name": payload.get("display_name") or name, "settings": {}}
        return {"message": "group created"}

    @app.put("/api/groups/{name}")
    async def update_group(name: str, payload: dict):
        if name not in pool.groups:
            return _error(400, "group not found")
        if "display_name" in payload:
            pool.groups[name]["display_name"] = payload["display_name"]
        if "settings" in payload:
            pool.groups[name]["settings"] = payload["settings"]
        return {"message": "group updated"}

    @app.post("/api/groups/{name}/rename")
    async def rename_group(name: str, payload: dict):
        new_name = payload.get("new_name")
        if name not in pool.groups or not new_name or new_name in pool.groups:
            return _error(400, "cannot rename group")
        pool.groups[new_name] = pool.groups.pop(name)
        for t in pool.tokens:
            if t["group"] == name:
                t["group"] = new_name
        return {"message": "group renamed"}

    @app.delete("/api/groups/{name}")
    async def delete_group(name: str):
        if name not in pool.groups:
            return _error(400, "group not found")
        if any(t["group"] == name for t in pool.tokens):
            return _error(400, "group still has tokens")
        del pool.groups[name]
        return Response(status_code=204)

    # ---------- API keys ----------
    def _masked(key: str) -> str:
        return key[:3] + "****" + key[-4:]

    @app.get("/api/keys")
    async def list_keys():
        return [{**k, "masked_key": _masked(k["key"])} for k in pool.keys]

    @app.post("/api/keys", status_code=201)
    async def create_key(payload: dict):
        key = payload.get("key") or f"sk-generated-{len(pool.keys) + 1:04d}"
        if any(k["key"] == key for k in pool.keys):
            return _error(409, "API key already exists")
        entry = {"key": key, "name": payload.get("name") or "", "allowed_groups": payload.get("allowed_groups") or []}
        pool.keys.append(entry)
        return {**entry, "masked_key": _masked(key)}

    @app.patch("/api/keys/{key}")
    async def update_key(key: str, payload: dict):
        for k in pool.keys:
            if k["key"] == key:
                k["allowed_groups"] = payload.get("allowed_groups") or []
                return {"message": "updated"}
        return _error(404, "API key not found")

    @app.delete("/api/keys/{key}")
    async def delete_key(key: str):
        if len(pool.keys) <= 1:
            return _error(400, "at least one API key must remain")
        for k in pool.keys:
            if k["key"] == key:
                pool.keys.remove(k)
                return Response(status_code=204)
        return _error(404, "API key not found")

    # ---------- settings ----------
    @app.get("/api/settings")
    async def get_settings():
        return {
            "settings": pool.settings,
            "rate_limiter": {"qps": pool.settings["rate_limit_qps"], "burst": pool.settings["rate_limit_burst"], "available_tokens": 5},
            "active_tokens": sum(1 for t in pool.tokens if t["status"] == "active"),
            "global_in_flight": 0,
            "tokens_with_in_flight": 0,
        }

    @app.post("/api/settings")
    async def update_settings(payload: dict):
        pool.settings.update(payload)
        return {"message": "settings saved", "settings": pool.settings}

    # ---------- stats / logs ----------
    @app.get("/api/stats")
    async def get_stats():
        return {"total_requests": 3, "success_requests": 2, "failed_requests": 1, "avg_latency": 120.5}

    @app.get("/api/stats/records")
    async def get_records():
        return [{"id": "r1", "model": "claude", "status_code": 200, "token_index": 1, "group": "default"}]

    @app.get("/api/logs")
    async def get_logs(page: int = 1, page_size: int = 50, model: str = "", group: str = ""):
        records = [{"id": 1, "model": model or "claude", "group": group or "default"}]
        return {"total": 1, "page": page, "pages": math.ceil(1 / page_size), "records": records}

    @app.get("/api/logs/stats")
    async def get_log_stats():
        return {"total_records": 1, "db_size_mb": 0.1, "total_credit_usage": 0.5}

    @app.delete("/api/logs")
    async def clear_logs(days: Optional[int] = None):
        if days is None:
            return {"message": "all logs cleared"}
        return {"deleted": 1, "message": f"cleared logs older than {days} days"}

    return app


@pytest.fixture
def pool() -> FakePool:
    pool = FakePool()
    for i in range(5):
        pool.add_token(group="a", name=f"a-{i}")
    for i in range(3):
        pool.add_token(group="b", name=f"b-{i}", in_flight=i)
    return pool


@pytest.fixture
def backend(pool):
    return create_backend(pool)


@pytest.fixture
def asgi_transport(backend) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=backend)


@pytest_asyncio.fixture
async def http(asgi_transport):
    client = HttpClient(BASE_URL, credential_provider=lambda: API_TOKEN, transport=asgi_transport)
    yield client
    await client.aclose()


@pytest.fixture
def tokens_api(http) -> TokensApi:
    return TokensApi(http)


@pytest.fixture
def groups_api(http) -> GroupsApi:
    return GroupsApi(http)


@pytest.fixture
def keys_api(http) -> KeysApi:
    return KeysApi(http)


@pytest.fixture
def settings_api(http) -> SettingsApi:
    return SettingsApi(http)


@pytest.fixture
def stats_api(http) -> StatsApi:
    return StatsApi(http)
