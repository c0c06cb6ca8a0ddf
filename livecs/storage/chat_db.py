import os
import json
import shutil
import threading
import time
from typing import Any, Dict, List, Optional

CHAT_RETENTION_HOURS = 48


def _initial_data() -> Dict[str, Any]:
    return {
        "version": "1.0",
        "chats": {},
        "messages": {},
        "stats": {
            "totalChats": 0,
            "totalMessages": 0,
        },
    }


class ChatDB:
    """Durable chat snapshots and message history kept in a single JSON file.

    ``chats[chat_id]`` holds ``{"state": <snapshot>, "last_activity": <epoch s>}``
    and ``messages[chat_id]`` is the ordered list of
    ``{"role", "content", "timestamp"}`` rows for that chat.
    """

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = os.path.join("data", "storage", "chats.json")

        self.db_path = db_path
        self._lock = threading.RLock()
        self._ensure_db_exists()

    def _ensure_db_exists(self):
        dir_path = os.path.dirname(self.db_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        if not os.path.exists(self.db_path):
            with open(self.db_path, "w", encoding="utf-8") as f:
                json.dump(_initial_data(), f, indent=2, ensure_ascii=False)

    def _read_db(self) -> Dict[str, Any]:
        with self._lock:
            try:
                with open(self.db_path, "r", encoding="utf-8") as f:
                    data = json.loads(f.read() or "{}")
                if not isinstance(data, dict):
                    raise json.JSONDecodeError("root is not an object", "", 0)
                data.setdefault("chats", {})
                data.setdefault("messages", {})
                data.setdefault("stats", {"totalChats": 0, "totalMessages": 0})
                return data
            except json.JSONDecodeError as e:
                print(f"[DB] ❌ JSON error in {self.db_path}: {e}")
                backup_path = f"{self.db_path}.corrupted.backup"
                shutil.copy(self.db_path, backup_path)
                print(f"[DB] 📦 Corrupt file backed up to {backup_path}")
                print(f"[DB] 🔄 Reinitializing database...")

                data = _initial_data()
                with open(self.db_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                return data

    def _write_db(self, data: Dict[str, Any]):
        with self._lock:
            data["stats"] = {
                "totalChats": len(data["chats"]),
                "totalMessages": sum(len(rows) for rows in data["messages"].values()),
            }
            temp_path = f"{self.db_path}.tmp"
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)

                with open(temp_path, "r", encoding="utf-8") as f:
                    json.load(f)

                os.replace(temp_path, self.db_path)
            except Exception as e:
                print(f"[DB] ❌ Error writing database: {e}")
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise

    # Chats
    def get_state(self, chat_id: str) -> Optional[Dict[str, Any]]:
        data = self._read_db()
        row = data["chats"].get(chat_id)
        if not row:
            return None
        return row.get("state")

    def save_state(self, chat_id: str, state: Dict[str, Any], now: Optional[float] = None):
        with self._lock:
            data = self._read_db()
            data["chats"][chat_id] = {
                "state": state,
                "last_activity": int(now if now is not None else time.time()),
            }
            self._write_db(data)

    def get_chat_ids(self) -> List[str]:
        return list(self._read_db()["chats"].keys())

    # Messages
    def add_message(self, chat_id: str, role: str, content: str, now: Optional[float] = None) -> int:
        with self._lock:
            data = self._read_db()
            rows = data["messages"].setdefault(chat_id, [])
            rows.append({
                "role": role,
                "content": content,
                "timestamp": int(now if now is not None else time.time()),
            })
            self._write_db(data)
            return len(rows)

    def get_messages(self, chat_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self._read_db()["messages"].get(chat_id, [])
        # newest first
        return list(reversed(rows))[:limit]

    # Maintenance
    def cleanup_old_chats(self, max_age_hours: float = CHAT_RETENTION_HOURS, now: Optional[float] = None) -> int:
        cutoff = (now if now is not None else time.time()) - max_age_hours * 3600
        with self._lock:
            data = self._read_db()
            stale = [cid for cid, row in data["chats"].items() if row.get("last_activity", 0) < cutoff]
            for cid in stale:
                del data["chats"][cid]
                data["messages"].pop(cid, None)
            if stale:
                self._write_db(data)
            return len(stale)

    def reset_chat(self, chat_id: str, default_state: Dict[str, Any], clear_messages: bool = False) -> int:
        with self._lock:
            data = self._read_db()
            data["chats"][chat_id] = {
                "state": default_state,
                "last_activity": int(time.time()),
            }
            removed = 0
            if clear_messages:
                removed = len(data["messages"].pop(chat_id, []))
            self._write_db(data)
            return removed

    def stats(self) -> Dict[str, Any]:
        return dict(self._read_db()["stats"])
