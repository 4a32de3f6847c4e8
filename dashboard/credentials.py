from __future__ import annotations

import os
import json
import tempfile
import time
from typing import Callable, Optional

from dashboard.config import dlog


CREDENTIALS_SCHEMA_VERSION = 1

LOGIN_PATH = "/login"
HOME_PATH = "/"

# Paths reachable without a stored credential.
PUBLIC_PATHS = frozenset({LOGIN_PATH})


CredentialProvider = Callable[[], Optional[str]]


class CredentialStore:
    """Client-side storage for the dashboard bearer credential.

    An env-supplied token (``override``) always wins over the persisted one
    and is never written to disk.
    """

    def __init__(self, path: Optional[str] = None, override: Optional[str] = None) -> None:
        self.path = path
        self.override = override
        self.token: Optional[str] = None
        self.saved_at: Optional[float] = None

    def load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except Exception as e:
            dlog("credential_load_error", f"Could not read credential file: {e}")
            return

        if not isinstance(raw, dict):
            dlog("credential_load_skip", f"Credential file is not a JSON object: {type(raw).__name__}")
            return
        if raw.get("version") != CREDENTIALS_SCHEMA_VERSION:
            dlog("credential_load_skip", f"Incompatible credential file version: {raw.get('version')}")
            return
        token = raw.get("api_token")
        if not isinstance(token, str) or not token.strip():
            return
        self.token = token.strip()
        self.saved_at = raw.get("saved_at")

    def save(self) -> None:
        if not self.path:
            return
        payload = {
            "version": CREDENTIALS_SCHEMA_VERSION,
            "api_token": self.token,
            "saved_at": self.saved_at,
        }
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with tempfile.NamedTemporaryFile("w", delete=False, dir=os.path.dirname(self.path) or ".") as tmp:
                json.dump(payload, tmp)
                tmp.flush()
                os.fsync(tmp.fileno())
                temp_name = tmp.name
            os.replace(temp_name, self.path)
        except Exception as e:
            dlog("credential_save_error", str(e))

    def get(self) -> Optional[str]:
        return self.override or self.token

    def set(self, token: str) -> None:
        token = (token or "").strip()
        if not token:
            raise ValueError("Credential must be a non-empty string.")
        self.token = token
        self.saved_at = time.time()
        self.save()

    def clear(self) -> None:
        self.token = None
        self.saved_at = None
        self.save()

    @property
    def has_credential(self) -> bool:
        return bool(self.get())

    def provider(self) -> CredentialProvider:
        return self.get


def resolve_route(path: str, has_credential: bool) -> str:
    """Return where navigation to ``path`` should land.

    Protected paths without a credential go to the login entry point; an
    operator who already holds a credential is sent home from the login page.
    """
    if path not in PUBLIC_PATHS and not has_credential:
        return LOGIN_PATH
    if path == LOGIN_PATH and has_credential:
        return HOME_PATH
    return path
