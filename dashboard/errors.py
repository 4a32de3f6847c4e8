from __future__ import annotations

from typing import Any, Dict, Optional


class ApiError(Exception):
    """Base exception for dashboard API failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ApiRequestError(ApiError):
    """Non-2xx response carrying the server's error payload.

    The payload follows ``{"error": str, "duplicate"?: bool, "existing"?: {...}}``.
    """

    def __init__(self, status: int, data: Optional[Dict[str, Any]] = None):
        payload = data if isinstance(data, dict) else {}
        super().__init__(payload.get("error") or f"HTTP {status}", status_code=status)
        self.status = status
        self.data = payload

    @property
    def duplicate(self) -> bool:
        return bool(self.data.get("duplicate"))

    @property
    def existing(self) -> Optional[Dict[str, Any]]:
        existing = self.data.get("existing")
        return existing if isinstance(existing, dict) else None


class TransportError(ApiError):
    """The request never produced an HTTP response (DNS, connect, timeout...)."""

    pass
