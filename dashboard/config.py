from __future__ import annotations

import os
import json
import sys
from dataclasses import dataclass
from typing import Optional


# Debug flag: default off. Enable via CLI arg "--dashboard-debug" or env DASHBOARD_DEBUG=1.
DEBUG = "--dashboard-debug" in sys.argv or os.environ.get("DASHBOARD_DEBUG") == "1"


def dlog(label: str, data):
    if not DEBUG:
        return
    try:
        printable = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False)
    except Exception:
        printable = str(data)
    print(f"[dashboard-debug] {label}: {printable}")


DEFAULT_API_URL = "http://127.0.0.1:8080"
DEFAULT_PAGE_SIZE = 100
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ClientConfig:
    api_url: str = DEFAULT_API_URL
    credential_file: Optional[str] = None
    api_token: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    retry_delay: float = DEFAULT_RETRY_DELAY
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = DEFAULT_TIMEOUT
    notice_log: Optional[str] = None


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        dlog("config_invalid_int", f"{name}={raw!r}, using {default}")
        return default
    if value < minimum:
        dlog("config_out_of_range", f"{name}={value}, using {default}")
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        dlog("config_invalid_float", f"{name}={raw!r}, using {default}")
        return default
    if value < 0:
        dlog("config_out_of_range", f"{name}={value}, using {default}")
        return default
    return value


def load_client_config() -> ClientConfig:
    """Read dashboard client settings from env."""
    api_url = (os.environ.get("DASHBOARD_API_URL") or DEFAULT_API_URL).strip().rstrip("/")
    cfg = ClientConfig(
        api_url=api_url or DEFAULT_API_URL,
        credential_file=os.environ.get("DASHBOARD_CREDENTIAL_FILE") or None,
        api_token=(os.environ.get("DASHBOARD_API_TOKEN") or "").strip() or None,
        page_size=_env_int("DASHBOARD_PAGE_SIZE", DEFAULT_PAGE_SIZE, minimum=1),
        retry_delay=_env_float("DASHBOARD_RETRY_DELAY", DEFAULT_RETRY_DELAY),
        max_retries=_env_int("DASHBOARD_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        timeout=_env_float("DASHBOARD_TIMEOUT", DEFAULT_TIMEOUT),
        notice_log=os.environ.get("DASHBOARD_NOTICE_LOG") or None,
    )
    dlog(
        "client_config",
        {
            "api_url": cfg.api_url,
            "credential_file": cfg.credential_file,
            "has_env_token": bool(cfg.api_token),
            "page_size": cfg.page_size,
            "retry_delay": cfg.retry_delay,
            "max_retries": cfg.max_retries,
        },
    )
    return cfg
