import threading
import time
from typing import Callable, Dict, List

WINDOW_SECONDS = 5 * 60
MAX_RECORDS = 20
HASH_LENGTH = 100


def fingerprint(text: str) -> str:
    return (text or "").strip().lower()[:HASH_LENGTH]


class DuplicateSendGuard:
    """Remembers what was recently sent to each chat.

    A chat keeps at most ``MAX_RECORDS`` fingerprints; anything older than
    ``WINDOW_SECONDS`` no longer counts as a duplicate.
    """

    def __init__(self, clock: Callable[[], float] = time.time, window: float = WINDOW_SECONDS,
                 max_records: int = MAX_RECORDS, debug: bool = False):
        self.clock = clock
        self.window = window
        self.max_records = max_records
        self.debug = debug
        self._lock = threading.Lock()
        self._sent: Dict[str, List[Dict[str, object]]] = {}

    def was_sent(self, chat_id: str, text: str) -> bool:
        if not text or not text.strip():
            return False
        candidate = fingerprint(text)
        now = self.clock()
        with self._lock:
            for rec in self._sent.get(chat_id, []):
                if now - rec["ts"] > self.window:
                    continue
                if rec["hash"] == candidate:
                    return True
        return False

    def mark_sent(self, chat_id: str, text: str) -> None:
        if not text or not text.strip():
            if self.debug:
                print(f"[GUARD] Empty message in chat {chat_id}, not recorded")
            return
        now = self.clock()
        with self._lock:
            recent = [r for r in self._sent.get(chat_id, []) if now - r["ts"] < self.window]
            recent.append({"hash": fingerprint(text), "ts": now})
            recent.sort(key=lambda r: r["ts"], reverse=True)
            self._sent[chat_id] = recent[: self.max_records]
            if self.debug:
                print(f"[GUARD] Stored message in chat {chat_id}: \"{text[:50]}\" ({len(self._sent[chat_id])} kept)")

    def sweep(self, max_age: float) -> int:
        """Drop records older than ``max_age`` seconds; returns how many were removed."""
        now = self.clock()
        removed = 0
        with self._lock:
            for chat_id in list(self._sent.keys()):
                recs = self._sent[chat_id]
                keep = [r for r in recs if now - r["ts"] < max_age]
                removed += len(recs) - len(keep)
                if keep:
                    self._sent[chat_id] = keep
                else:
                    del self._sent[chat_id]
        return removed

    def forget(self, chat_id: str) -> None:
        with self._lock:
            self._sent.pop(chat_id, None)

    def count(self, chat_id: str) -> int:
        with self._lock:
            return len(self._sent.get(chat_id, []))
