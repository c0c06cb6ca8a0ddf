import os
import threading
from typing import Any, Dict, List, Optional

from ..storage.json_file import read_json, write_json_atomic

GAME_SECTIONS = [
    ("slot_providers", "🎰 *Penyedia Slot:*"),
    ("live_casino_games", "🎲 *Permainan Live Casino:*"),
    ("fish_shooting_games", "🐠 *Game Tembak Ikan:*"),
    ("mini_games", "🎮 *Permainan Lainnya:*"),
]


def empty_game_data() -> Dict[str, Any]:
    return {
        "offtopic_questions": [],
        "games": {key: [] for key, _ in GAME_SECTIONS},
    }


class GameCatalog:
    """Game categories plus the log of off-topic questions, stored in ``data.json``."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or os.path.join("data", "data.json")
        self._lock = threading.Lock()
        self.data = self._load()

    def _load(self) -> Dict[str, Any]:
        data = read_json(self.path, None)
        if not isinstance(data, dict):
            data = empty_game_data()
            self._save(data)
            return data
        base = empty_game_data()
        base["offtopic_questions"] = list(data.get("offtopic_questions") or [])
        base["games"].update(data.get("games") or {})
        return base

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            write_json_atomic(self.path, data)
        except OSError as e:
            print(f"[GAMES] ❌ Error saving game data: {e}")

    def games(self) -> Dict[str, List[str]]:
        return dict(self.data["games"])

    def set_games(self, section: str, names: List[str]) -> None:
        with self._lock:
            self.data["games"][section] = list(names)
            self._save(self.data)

    def add_offtopic_question(self, question: str) -> bool:
        question = (question or "").strip()
        if not question:
            return False
        with self._lock:
            if question in self.data["offtopic_questions"]:
                return False
            self.data["offtopic_questions"].append(question)
            self._save(self.data)
        return True

    def offtopic_questions(self) -> List[str]:
        return list(self.data["offtopic_questions"])

    def game_list_response(self) -> str:
        lines: List[str] = []
        for key, header in GAME_SECTIONS:
            if lines:
                lines.append("")
            lines.append(header)
            lines.append(", ".join(self.data["games"].get(key) or []) or "-")
        listing = "\n".join(lines)
        return f"*Daftar Permainan yang Tersedia* 🎮\n\n{listing}\n\nAda yang bisa saya bantu lagi bosku? 😊"
