from __future__ import annotations

import os
import json
import time
from dataclasses import dataclass
from typing import Dict, Any, List, Literal, Optional

from dashboard.config import dlog


NoticeKind = Literal["success", "error", "info"]
NOTICE_KINDS = ("success", "error", "info")


@dataclass
class Notice:
    id: int
    ts: float
    kind: str
    message: str
    detail: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "ts": self.ts, "kind": self.kind, "message": self.message, "detail": self.detail}


class NoticeLog:
    """In-memory ring buffer of operator-facing notices (mutation outcomes)."""

    def __init__(self, max_notices: int = 200, path: Optional[str] = None) -> None:
        self.max_notices = max_notices
        self.notices: List[Notice] = []
        self.path = path
        self._next_id = 1
        self._load()

    def add(self, kind: NoticeKind, message: str, detail: Optional[Dict[str, Any]] = None) -> Notice:
        if kind not in NOTICE_KINDS:
            raise ValueError(f"Unknown notice kind: {kind}")
        notice = Notice(id=self._next_id, ts=time.time(), kind=kind, message=message, detail=detail)
        self._next_id += 1
        self.notices.append(notice)
        if len(self.notices) > self.max_notices:
            self.notices = self.notices[-self.max_notices :]
        self._persist(notice.to_dict())
        return notice

    def success(self, message: str, detail: Optional[Dict[str, Any]] = None) -> Notice:
        return self.add("success", message, detail)

    def error(self, message: str, detail: Optional[Dict[str, Any]] = None) -> Notice:
        return self.add("error", message, detail)

    def info(self, message: str, detail: Optional[Dict[str, Any]] = None) -> Notice:
        return self.add("info", message, detail)

    def dismiss(self, notice_id: int) -> bool:
        """Drop a notice; with a log file the dismissal is appended so a reload honours it."""
        before = len(self.notices)
        self.notices = [n for n in self.notices if n.id != notice_id]
        if len(self.notices) == before:
            return False
        self._persist({"dismissed": notice_id, "ts": time.time()})
        return True

    def snapshot(self) -> List[Dict[str, Any]]:
        return [n.to_dict() for n in reversed(self.notices)]

    # ---------- persistence helpers ----------
    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    data = json.loads(line)
                    if "dismissed" in data:
                        gone = int(data["dismissed"])
                        self.notices = [n for n in self.notices if n.id != gone]
                        continue
                    kind = data.get("kind")
                    self.notices.append(
                        Notice(
                            id=int(data.get("id") or self._next_id),
                            ts=float(data.get("ts") or time.time()),
                            kind=kind if kind in NOTICE_KINDS else "info",
                            message=data.get("message") or "",
                            detail=data.get("detail"),
                        )
                    )
                    self._next_id = max(self._next_id, self.notices[-1].id + 1)
                    if len(self.notices) > self.max_notices:
                        self.notices = self.notices[-self.max_notices :]
        except Exception as e:
            # best-effort; a corrupt log starts empty
            dlog("notice_log_load_error", str(e))
            self.notices = []

    def _persist(self, record: Dict[str, Any]) -> None:
        if not self.path:
            return
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "a") as f:
                f.write(json.dumps(record) + "\n")
        except Exception as e:
            dlog("notice_log_persist_error", str(e))
