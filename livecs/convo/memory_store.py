import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .state import ChatState

STATE_MAX_AGE = 24 * 60 * 60
RESPONSE_TIME_MAX_AGE = 60 * 60
RESPONSE_TIME_FAST_MAX_AGE = 30 * 60
SENT_MAX_AGE = 10 * 60
SENT_FAST_MAX_AGE = 5 * 60


# ChatStateStore Class
class ChatStateStore:
    """Process-wide map of chat id to ChatState.

    Lifecycle is explicit: build it, call ``sweep``/``fast_sweep`` on a timer,
    and ``shutdown`` to flush snapshots when a ``ChatDB`` backs the store.
    """

    def __init__(self, db=None, guard=None, clock: Callable[[], float] = time.time, debug: bool = False):
        self.db = db
        self.guard = guard
        self.clock = clock
        self.debug = debug
        self._lock = threading.RLock()
        self._states: Dict[str, ChatState] = {}
        self._response_times: Dict[str, float] = {}
        self._chat_locks: Dict[str, Any] = {}

        if self.debug:
            print(f"[STORE] Backed by: {getattr(db, 'db_path', 'memory')}")

    # Core
    def _load_snapshot(self, chat_id: str) -> Optional[ChatState]:
        if self.db is None:
            return None
        try:
            snapshot = self.db.get_state(chat_id)
        except Exception as e:
            print(f"[STORE] Failed to read snapshot for {chat_id}: {e}")
            return None
        if snapshot is None:
            return None
        try:
            return ChatState.from_dict(chat_id, snapshot)
        except Exception as e:
            print(f"[STORE] Skip corrupted state for {chat_id}: {e}")
            return None

    def get_or_create(self, chat_id: str) -> ChatState:
        with self._lock:
            state = self._states.get(chat_id)
            if state is not None:
                return state

            state = self._load_snapshot(chat_id)
            if state is None:
                state = ChatState(chat_id, started=self.clock())
                if self.debug:
                    print(f"[STORE] New state for chat: {chat_id}")
            self._states[chat_id] = state
            return state

    def lock_for(self, chat_id: str) -> threading.Lock:
        """Per-chat lock; whoever holds it owns that chat's state for one turn."""
        with self._lock:
            lock = self._chat_locks.get(chat_id)
            if lock is None:
                lock = self._chat_locks[chat_id] = threading.Lock()
            return lock

    def get(self, chat_id: str) -> Optional[ChatState]:
        with self._lock:
            return self._states.get(chat_id)

    def persist(self, state: ChatState) -> None:
        if self.db is None:
            return
        try:
            self.db.save_state(state.chat_id, state.to_dict())
        except Exception as e:
            print(f"[STORE] Failed to persist {state.chat_id}: {e}")

    def chat_ids(self) -> List[str]:
        with self._lock:
            return list(self._states.keys())

    def clear(self, chat_id: str) -> None:
        with self._lock:
            self._states.pop(chat_id, None)
            self._response_times.pop(chat_id, None)
        if self.guard is not None:
            self.guard.forget(chat_id)

    # Response-time tracker
    def record_response(self, chat_id: str, ts: Optional[float] = None) -> None:
        with self._lock:
            self._response_times[chat_id] = ts if ts is not None else self.clock()

    def last_response_at(self, chat_id: str) -> Optional[float]:
        with self._lock:
            return self._response_times.get(chat_id)

    # Eviction
    def evict_older_than(self, max_age: float) -> int:
        now = self.clock()
        with self._lock:
            stale = [cid for cid, st in self._states.items() if now - (st.started or 0) > max_age]
            for cid in stale:
                del self._states[cid]
                lock = self._chat_locks.get(cid)
                if lock is not None and not lock.locked():
                    del self._chat_locks[cid]
        if stale:
            print(f"[STORE] 🧹 Cleaned {len(stale)} old chat states")
        return len(stale)

    def _drop_response_times(self, max_age: float) -> int:
        now = self.clock()
        with self._lock:
            stale = [cid for cid, ts in self._response_times.items() if now - ts > max_age]
            for cid in stale:
                del self._response_times[cid]
        return len(stale)

    def sweep(self) -> Dict[str, int]:
        result = {
            "states": self.evict_older_than(STATE_MAX_AGE),
            "response_times": self._drop_response_times(RESPONSE_TIME_MAX_AGE),
            "sent": self.guard.sweep(SENT_MAX_AGE) if self.guard is not None else 0,
        }
        if self.debug:
            print(f"[STORE] sweep → {result}")
        return result

    def fast_sweep(self) -> Dict[str, int]:
        result = {
            "response_times": self._drop_response_times(RESPONSE_TIME_FAST_MAX_AGE),
            "sent": self.guard.sweep(SENT_FAST_MAX_AGE) if self.guard is not None else 0,
        }
        if self.debug:
            print(f"[STORE] fast_sweep → {result}")
        return result

    def shutdown(self) -> None:
        with self._lock:
            states = list(self._states.values())
        for state in states:
            self.persist(state)
        print(f"[STORE] Shutdown: {len(states)} chat states, {len(self._response_times)} response timers")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_chats": len(self._states),
                "total_messages": sum(len(s.history()) for s in self._states.values()),
                "response_timers": len(self._response_times),
            }
