import os
import time
import uuid
import threading
from threading import Thread
from typing import Any, Dict, List, Optional

import requests

from .session_logger import get_cs_logger

DEFAULT_PING_URL = os.getenv("SUPPORT_PING_URL", "http://localhost:3001/support-ping")


class SupportNotifier:
    """Fire-and-forget POST of a support ping to the staff dashboard.

    ``ping`` returns immediately; delivery happens on a daemon thread and
    failures are only printed and logged.
    """

    def __init__(self, url: Optional[str] = None, timeout: float = 2.0, max_retries: int = 2,
                 language: str = "id", background: bool = True, logger=None):
        self.url = url or DEFAULT_PING_URL
        self.timeout = timeout
        self.max_retries = max_retries
        self.language = language
        self.background = background
        self.logger = logger or get_cs_logger()

    def ping(self, ping_type: str, chat_id: str, user_id: Optional[str],
             amount: Optional[int] = None, message: str = "") -> None:
        payload = {
            "type": ping_type,
            "chatId": chat_id,
            "userId": user_id,
            "amount": amount,
            "language": self.language,
            "message": message or "",
        }
        if self.background:
            Thread(target=self._deliver, args=(payload,), daemon=True).start()
        else:
            self._deliver(payload)

    def _deliver(self, payload: Dict[str, Any]) -> bool:
        error = None
        for attempt in range(self.max_retries):
            try:
                r = requests.post(self.url, json=payload, timeout=self.timeout)
                r.raise_for_status()
                print(f"[PING] {payload['type']} sent for chat {payload['chatId']} (user {payload['userId']})")
                self._log(payload, ok=True)
                return True
            except requests.exceptions.RequestException as e:
                error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(0.5 * (attempt + 1))
        print(f"[PING ERROR] Failed after {self.max_retries} attempts: {error}")
        self._log(payload, ok=False, error=error)
        return False

    def _log(self, payload: Dict[str, Any], ok: bool, error: Optional[str] = None) -> None:
        try:
            self.logger.log_ping(
                chat_id=payload["chatId"], ping_type=payload["type"], user_id=payload["userId"],
                amount=payload.get("amount"), ok=ok, error=error,
            )
        except Exception as e:
            print(f"[PING] Failed to log ping: {e}")


class SupportPingInbox:
    """In-memory queue of received pings, read by staff through the API."""

    def __init__(self, clock=time.time):
        self.clock = clock
        self._lock = threading.Lock()
        self._pings: List[Dict[str, Any]] = []

    def create(self, *, chat_id: str, user_id: str, ping_type: str = "deposit_check",
               amount: Optional[Any] = None, language: str = "id", message: str = "") -> Dict[str, Any]:
        if not chat_id or not user_id:
            raise ValueError("chatId and userId are required")
        ping = {
            "id": f"{int(self.clock() * 1000)}-{uuid.uuid4().hex[:6]}",
            "type": ping_type,
            "chatId": chat_id,
            "userId": user_id,
            "amount": amount,
            "language": language,
            "message": message or "",
            "timestamp": self.clock(),
            "read": False,
        }
        with self._lock:
            self._pings.append(ping)
        return ping

    def unread(self, mark_read: bool = False) -> List[Dict[str, Any]]:
        with self._lock:
            pending = sorted((p for p in self._pings if not p["read"]), key=lambda p: p["timestamp"])
            out = [dict(p) for p in pending]
            if mark_read:
                for p in pending:
                    p["read"] = True
        return out
