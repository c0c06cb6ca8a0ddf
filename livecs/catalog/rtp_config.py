import json
import os
import threading
from typing import Any, Dict, Optional

from ..storage.json_file import read_json, write_json_atomic

DEFAULT_RTP_LINK = os.getenv("RTP_LINK", "https://example.com/rtp")


class RtpConfigStore:
    def __init__(self, path: Optional[str] = None, default_link: str = DEFAULT_RTP_LINK):
        self.path = path or os.path.join("data", "rtp.json")
        self.default_link = default_link
        self._lock = threading.Lock()

    def get_rtp_config(self) -> Dict[str, Any]:
        with self._lock:
            data = read_json(self.path, {})
        link = data.get("rtpLink") if isinstance(data, dict) else None
        if not isinstance(link, str) or not link.strip():
            link = self.default_link
        return {"rtpLink": link.strip()}

    def update_rtp_link(self, link: str) -> str:
        """Persist a new link; raises ``ValueError`` unless it is an http(s) URL."""
        if not isinstance(link, str) or not link.strip():
            raise ValueError("rtpLink (string) is required")
        link = link.strip()
        if not (link.startswith("http://") or link.startswith("https://")):
            raise ValueError("rtpLink must start with http:// or https://")
        with self._lock:
            write_json_atomic(self.path, {"rtpLink": link})
        print(f"[RTP] Link updated: {link}")
        return link

    def raw_json(self) -> str:
        return json.dumps(self.get_rtp_config(), indent=2, ensure_ascii=False)


def format_rtp_config(cfg: Optional[Dict[str, Any]]) -> str:
    link = str((cfg or {}).get("rtpLink") or "").strip()
    body = f"• RTP Link: {link}" if link else "• RTP Link: (tidak tersedia)"
    return f"📊 RTP Info\n\n{body}"
