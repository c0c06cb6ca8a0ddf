import os, json, socket, threading, hashlib
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_DIR = os.path.join("data", "storage", "logs")
MAX_LOG_BYTES = 20_000_000


def _sha8(s: str) -> str:
    if not s:
        return ""
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:8]


def _preview(s: str, n: int = 160) -> str:
    if not s:
        return ""
    s = s.replace("\n", " ").strip()
    return (s[:n] + "…") if len(s) > n else s


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionLogger:
    """JSONL event trail, one file per day: ``<log_dir>/<prefix>-YYYY-MM-DD.jsonl``."""

    def __init__(self, file_prefix: str = "cs", log_dir: str = LOG_DIR):
        self.file_prefix = file_prefix
        self.log_dir = log_dir
        self._lock = threading.Lock()
        self.host = socket.gethostname()

    def _today_path(self) -> str:
        os.makedirs(self.log_dir, exist_ok=True)
        day = _utcnow().strftime("%Y-%m-%d")
        return os.path.join(self.log_dir, f"{self.file_prefix}-{day}.jsonl")

    def _ts(self) -> str:
        return _utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")

    def _write(self, obj: Dict[str, Any]) -> None:
        obj.setdefault("ts", self._ts())
        obj.setdefault("host", self.host)
        line = json.dumps(obj, ensure_ascii=False, default=str)
        try:
            with self._lock:
                path = self._today_path()
                if os.path.exists(path) and os.path.getsize(path) > MAX_LOG_BYTES:
                    stamp = _utcnow().strftime("%Y%m%dT%H%M%S")
                    os.rename(path, path.replace(".jsonl", f"-archived-{stamp}.jsonl"))
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            print(f"[LOG] Failed to write event: {e}")

    def log_in(self, *, chat_id: str, text: str, message_id: Optional[str] = None,
               raw: Optional[Dict[str, Any]] = None) -> None:
        self._write({"dir": "in", "chat_id": chat_id, "message_id": message_id, "text": text, "raw": raw})

    def log_out(self, *, chat_id: str, text: str, stage: Optional[str] = None, delivered: bool = True) -> None:
        self._write({"dir": "out", "chat_id": chat_id, "stage": stage, "text": text, "delivered": delivered})

    def log_guard(self, *, chat_id: str, rule: str, trigger: str, action: str) -> None:
        self._write({"dir": "guard", "chat_id": chat_id, "rule": rule, "trigger": trigger, "action": action})

    def log_ping(self, *, chat_id: str, ping_type: str, user_id: Optional[str],
                 amount: Optional[int] = None, ok: bool = True, error: Optional[str] = None) -> None:
        entry = {"dir": "ping", "chat_id": chat_id, "type": ping_type, "user_id": user_id, "amount": amount, "ok": ok}
        if error:
            entry["error"] = error
        self._write(entry)

    def log_llm(self, *, chat_id: str, model: str, system: str, prompt: str, response: str) -> None:
        self._write({
            "dir": "llm", "chat_id": chat_id, "model": model,
            "system_sha": _sha8(system), "prompt": _preview(prompt, 400), "response": _preview(response, 400),
        })

    def log_stage(self, *, chat_id: str, stage: str,
                  info: Optional[Dict[str, Any]] = None,
                  response: Optional[str] = None) -> None:
        entry = {"dir": "stage", "chat_id": chat_id, "stage": stage}
        if info:
            entry["info"] = info

        if response is not None:
            entry["response_len"] = len(response)
            entry["response_sha"] = _sha8(response)
            entry["response_preview"] = _preview(response, 160)

        stage_map = {
            "empty": "EMP",
            "account_flow": "ACC",
            "raw_data": "RAW",
            "promotions": "PRM",
            "rtp": "RTP",
            "bank_info": "BNK",
            "support": "SUP",
            "deposit": "DEP",
            "withdraw": "WDR",
            "transfer": "TRF",
            "game_list": "GAM",
            "encouragement": "ENC",
            "off_topic": "OFF",
            "welcome": "WEL",
            "fallback": "FBK",
        }
        entry["short"] = stage_map.get(stage, stage[:3].upper())

        self._write(entry)


_LOGGER_SINGLETON: Optional[SessionLogger] = None


def get_cs_logger() -> SessionLogger:
    global _LOGGER_SINGLETON
    if _LOGGER_SINGLETON is None:
        _LOGGER_SINGLETON = SessionLogger(file_prefix="cs")
    return _LOGGER_SINGLETON
