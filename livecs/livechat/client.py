"""Thin LiveChat Agent API (v3.5) client over ``requests``.

Every public method is safe to call from the poller: failures are printed
and turned into ``[]``, ``None`` or ``False``.
"""
import os
import random
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from ..convo import detectors

DEFAULT_BASE_URL = "https://api.livechatinc.com/v3.5"
ACTIVE_STATUSES = ["active", "queued", "pending"]
CLOSED_STATUSES = ("archived", "closed")
BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")


class LiveChatError(Exception):
    def __init__(self, message: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


def parse_timestamp(value: Any) -> Optional[float]:
    """ISO-8601 ``created_at`` → epoch seconds."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def _first_list(data: Any, *keys: str) -> List[Any]:
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return []
    for key in keys:
        val = data.get(key)
        if isinstance(val, list):
            return val
    inner = data.get("data")
    if isinstance(inner, dict):
        return _first_list(inner, *keys)
    return []


class LiveChatClient:
    def __init__(self, access_token: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep, rng: Optional[random.Random] = None,
                 debug: bool = False):
        self.access_token = access_token if access_token is not None else os.getenv("LIVECHAT_ACCESS_TOKEN", "")
        self.base_url = (base_url or os.getenv("LIVECHAT_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = float(timeout if timeout is not None else os.getenv("LIVECHAT_TIMEOUT", "8"))
        self.session = session or requests.Session()
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.debug = debug

    # Transport
    def auth_variants(self) -> List[Dict[str, str]]:
        token = self.access_token or ""
        basic = {"Authorization": f"Basic {token}"}
        bearer = {"Authorization": f"Bearer {token}"}
        if BASE64_RE.match(token) and "=" in token:
            return [basic, bearer]
        return [bearer, basic]

    def _request(self, path: str, body: Dict[str, Any], headers: Dict[str, str]) -> Any:
        try:
            r = self.session.post(
                f"{self.base_url}{path}",
                json=body,
                headers={**headers, "Content-Type": "application/json", "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise LiveChatError(f"timeout: {e}", retryable=True) from e
        except requests.ConnectionError as e:
            raise LiveChatError(f"connection error: {e}", retryable=True) from e
        except requests.RequestException as e:
            raise LiveChatError(str(e)) from e

        if r.status_code >= 400:
            try:
                detail = ((r.json() or {}).get("error") or {}).get("message") or r.text
            except ValueError:
                detail = r.text
            retryable = r.status_code == 429 or 500 <= r.status_code < 600
            raise LiveChatError(f"HTTP {r.status_code}: {detail}", status=r.status_code, retryable=retryable)
        try:
            return r.json()
        except ValueError:
            return {}

    def _with_retry(self, path: str, body: Dict[str, Any], headers: Dict[str, str],
                    retries: int, backoff: float, label: str) -> Any:
        attempt = 0
        while True:
            try:
                return self._request(path, body, headers)
            except LiveChatError as e:
                if not e.retryable or attempt >= retries:
                    raise
                delay = backoff * (2 ** attempt) + self.rng.uniform(0, 0.15)
                print(f"[LIVECHAT] ⚠️ {label} failed (attempt {attempt + 1}/{retries + 1}): {e}. "
                      f"Retrying in {delay:.2f}s")
                self.sleep(delay)
                attempt += 1

    def post(self, path: str, body: Dict[str, Any], retries: int = 3, backoff: float = 0.7,
             label: str = "livechat") -> Any:
        """POST with retries; on 401/403 the other auth scheme is tried once."""
        last_err: Optional[LiveChatError] = None
        for headers in self.auth_variants():
            try:
                return self._with_retry(path, body, headers, retries, backoff, label)
            except LiveChatError as e:
                last_err = e
                if e.status in (401, 403):
                    scheme = headers["Authorization"].split(" ")[0]
                    print(f"[LIVECHAT] Auth with {scheme} failed ({e.status}). Trying alternative...")
                    continue
                break
        raise last_err

    # Public API
    def list_active_conversations(self) -> List[Dict[str, Any]]:
        try:
            data = self.post("/agent/action/list_chats",
                             {"filters": {"status": ACTIVE_STATUSES}, "limit": 20},
                             retries=3, backoff=0.7, label="list_chats")
        except LiveChatError as e:
            print(f"[LIVECHAT] ❌ Failed to get chats: {e}")
            return []
        chats = _first_list(data, "chats_summary", "chats", "results")
        active = []
        for chat in chats:
            if not isinstance(chat, dict):
                continue
            status = chat.get("status") or (chat.get("chat") or {}).get("status")
            if status in CLOSED_STATUSES:
                continue
            active.append(chat)
        return active

    def get_latest_customer_message(self, chat_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.post("/agent/action/list_threads", {"chat_id": chat_id},
                             retries=2, backoff=0.7, label="list_threads")
        except LiveChatError as e:
            print(f"[LIVECHAT] ❌ Error getting messages for {chat_id}: {e}")
            return None

        events = []
        for thread in _first_list(data, "threads"):
            events.extend((thread or {}).get("events") or [])

        candidates = []
        for event in events:
            if event.get("type") != "message" or not event.get("text") or not event.get("author_id"):
                continue
            if detectors.is_bot_author(event["author_id"]):
                continue
            if detectors.looks_like_bot_text(event["text"]):
                continue
            candidates.append(event)
        if not candidates:
            return None

        candidates.sort(key=lambda ev: parse_timestamp(ev.get("created_at")) or 0.0, reverse=True)
        latest = dict(candidates[0])
        latest["created_ts"] = parse_timestamp(latest.get("created_at"))
        latest["messageId"] = f"{chat_id}_{latest.get('id') or int(time.time() * 1000)}"
        return latest

    def send_message(self, chat_id: str, text: str) -> bool:
        body = {"chat_id": chat_id, "event": {"type": "message", "text": text, "recipients": "all"}}
        try:
            self.post("/agent/action/send_event", body, retries=3, backoff=0.5, label="send_event")
        except LiveChatError as e:
            print(f"[LIVECHAT] ❌ sendMessage failed for {chat_id}: {e}")
            return False
        if self.debug:
            print(f"[LIVECHAT] ✅ Message sent to {chat_id}")
        return True

    def is_archived(self, chat_id: str) -> bool:
        try:
            data = self.post("/agent/action/get_chat", {"chat_id": chat_id},
                             retries=2, backoff=0.6, label="get_chat")
        except LiveChatError as e:
            print(f"[LIVECHAT] ❌ Error checking chat status for {chat_id}: {e}")
            return False
        data = data or {}
        status = ((data.get("chat") or {}).get("status") or data.get("status")
                  or ((data.get("data") or {}).get("chat") or {}).get("status"))
        return status in CLOSED_STATUSES
