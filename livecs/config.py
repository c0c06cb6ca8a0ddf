from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the support bot, poller and API."""
    livechat_access_token: str
    livechat_base_url: str
    livechat_timeout: float
    poll_interval: float
    min_response_gap: float
    support_ping_url: str
    support_ping_timeout: float
    use_llm: bool
    data_dir: Path
    brand_name: str
    offtopic_threshold: int
    payment_offtopic_threshold: int
    app_port: int
    admin_secret: str


def load_settings() -> Settings:
    data_dir = os.getenv("DATA_DIR")
    if data_dir:
        data_path = Path(data_dir)
    else:
        data_path = (BASE_DIR / "data").resolve()

    return Settings(
        livechat_access_token=os.getenv("LIVECHAT_ACCESS_TOKEN", ""),
        livechat_base_url=os.getenv("LIVECHAT_BASE_URL", "https://api.livechatinc.com/v3.5").rstrip("/"),
        livechat_timeout=float(os.getenv("LIVECHAT_TIMEOUT", "8")),
        poll_interval=float(os.getenv("POLL_INTERVAL", "5")),
        min_response_gap=float(os.getenv("MIN_RESPONSE_GAP", "7")),
        support_ping_url=os.getenv("SUPPORT_PING_URL", "http://localhost:3001/support-ping"),
        support_ping_timeout=float(os.getenv("SUPPORT_PING_TIMEOUT", "2")),
        use_llm=_env_flag("USE_LLM"),
        data_dir=data_path,
        brand_name=os.getenv("BRAND_NAME", "GoodCasino"),
        offtopic_threshold=int(os.getenv("OFFTOPIC_THRESHOLD", "4")),
        payment_offtopic_threshold=int(os.getenv("PAYMENT_OFFTOPIC_THRESHOLD", "3")),
        app_port=int(os.getenv("APP_PORT", "8080")),
        admin_secret=os.getenv("ADMIN_SECRET_KEY", "dev_reset_2024"),
    )
