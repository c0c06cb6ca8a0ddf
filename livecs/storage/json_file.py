import os
import json
from typing import Any


def read_json(path: str, default: Any) -> Any:
    """Load ``path``; a missing or unreadable file yields ``default``."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.loads(f.read() or "null") or default
    except (OSError, ValueError) as e:
        print(f"[FILE] ❌ Failed to read {path}: {e}")
        return default


def write_json_atomic(path: str, data: Any) -> None:
    dir_path = os.path.dirname(path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)

    temp_path = f"{path}.tmp"
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, path)
    except Exception as e:
        print(f"[FILE] ❌ Error writing {path}: {e}")
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
