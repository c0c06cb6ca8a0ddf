import json
import math
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..storage.json_file import read_json, write_json_atomic

DEFAULT_PROMOTIONS: List[Dict[str, Any]] = [
    {"id": 1, "title": "Welcome Bonus", "description": "Get 10% off on your first deposit",
     "discount": 10, "code": "WELCOME10"},
    {"id": 2, "title": "Weekend Special", "description": "25% bonus on weekend deposits",
     "discount": 25, "code": "WEEKEND25"},
    {"id": 3, "title": "VIP Bonus", "description": "Exclusive 50% bonus for VIP members",
     "discount": 50, "code": "VIP50"},
]

NO_PROMOS = "Saat ini belum ada promo yang tersedia. Cek lagi nanti ya, bosku!"
CLAIM_FOOTER = "\nButuh bantuan klaim promo? Kasih tahu saya ya 😊"
DETAIL_SEPARATOR = "\n" + "─" * 30 + "\n"


class PromotionStore:
    """Promotions kept as ``{"promotions": [...]}`` in a JSON file."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or os.path.join("data", "promotions.json")
        self._lock = threading.RLock()
        if not os.path.exists(self.path):
            self.save([dict(p) for p in DEFAULT_PROMOTIONS])

    def get_promotions(self) -> List[Dict[str, Any]]:
        with self._lock:
            data = read_json(self.path, {"promotions": []})
        promos = data.get("promotions") if isinstance(data, dict) else None
        return promos if isinstance(promos, list) else []

    def save(self, promotions: List[Dict[str, Any]]) -> bool:
        with self._lock:
            try:
                write_json_atomic(self.path, {"promotions": promotions})
                return True
            except OSError as e:
                print(f"[PROMO] Error saving promotions: {e}")
                return False

    def add_promotion(self, promotion: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            promos = self.get_promotions()
            ids = [p.get("id") for p in promos if isinstance(p.get("id"), int)]
            new_promo = dict(promotion)
            new_promo["id"] = (max(ids) + 1) if ids else 1
            promos.append(new_promo)
            self.save(promos)
            return new_promo

    def update_promotion(self, promo_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            promos = self.get_promotions()
            for idx, p in enumerate(promos):
                if p.get("id") == promo_id:
                    merged = {**p, **updates, "id": promo_id}
                    promos[idx] = merged
                    self.save(promos)
                    return merged
            return None

    def delete_promotion(self, promo_id: int) -> bool:
        with self._lock:
            promos = self.get_promotions()
            keep = [p for p in promos if p.get("id") != promo_id]
            if len(keep) == len(promos):
                return False
            self.save(keep)
            return True

    def raw_json(self) -> str:
        return json.dumps(self.get_promotions(), indent=2, ensure_ascii=False)


# Formatting
def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _id_date(value: Any) -> Optional[str]:
    dt = _parse_date(value)
    return f"{dt.day}/{dt.month}/{dt.year}" if dt else None


def _bonus_value(p: Dict[str, Any]):
    if p.get("discount") is not None:
        return p["discount"]
    return p.get("bonusPercentage")


def format_promotions_id(promos: List[Dict[str, Any]], now: Optional[datetime] = None) -> str:
    if not promos:
        return NO_PROMOS

    now = now or datetime.now(timezone.utc)
    lines = ["🎉 *Promo & Bonus Terbaru* 🎉\n"]

    for p in promos:
        remaining = ""
        expires = _parse_date((p.get("timeLimit") or {}).get("expiresAt"))
        if expires is not None:
            if expires <= now:
                continue
            days = math.ceil((expires - now).total_seconds() / 86400)
            remaining = f"⏳ Berakhir dalam {days} hari\n"

        items = p.get("eligibleItems") or []
        eligible = f"🎮 *Barang yang Berlaku:* {', '.join(items)}\n" if items else ""
        bonus = _bonus_value(p)

        lines.append(
            f"*{p.get('title', 'Promo')}*\n"
            f"{p.get('description', '')}\n"
            f"💎 *Kode:* `{p.get('code') or 'N/A'}`\n"
            + (f"🤑 *{bonus}% Bonus*\n" if bonus is not None else "")
            + remaining
            + eligible
            + ("📝 *Syarat & Ketentuan Berlaku*\n" if p.get("terms") else "")
            + "------------------\n"
        )

    if len(lines) <= 1:
        return NO_PROMOS

    lines.append(CLAIM_FOOTER)
    return "\n".join(lines)


def format_promotion_details_id(p: Optional[Dict[str, Any]]) -> str:
    if not p:
        return ""
    lines = [f"🎁 *{p.get('title') or 'Promo'}*"]
    if p.get("description"):
        lines.append(f"📝 {p['description']}")
    if p.get("code"):
        lines.append(f"🔑 Kode: `{p['code']}`")
    bonus = _bonus_value(p)
    if isinstance(bonus, (int, float)):
        lines.append(f"🤑 Bonus {bonus}%")

    start, end = _id_date(p.get("startDate")), _id_date(p.get("endDate"))
    if start and end:
        lines.append(f"📅 Periode: {start} - {end}")
    elif end:
        lines.append(f"📅 Berlaku sampai: {end}")
    elif start:
        lines.append(f"📅 Berlaku mulai: {start}")

    eligible = p.get("eligibleGames") or p.get("eligibleItems") or []
    if eligible:
        lines.append(f"🎮 Berlaku untuk: {', '.join(eligible)}")

    terms = p.get("terms")
    if terms:
        lines.append("\n📜 Syarat & Ketentuan:")
        for i, t in enumerate(terms if isinstance(terms, list) else [str(terms)], 1):
            lines.append(f"  {i}. {t}")

    steps = p.get("howToClaim")
    if steps:
        lines.append("\n📌 Cara Klaim:")
        for i, s in enumerate(steps if isinstance(steps, list) else [str(steps)], 1):
            lines.append(f"  {i}. {s}")

    return "\n".join(lines)


def format_promotions_details_list_id(promos: List[Dict[str, Any]]) -> str:
    if not promos:
        return NO_PROMOS
    parts = ["🎉 *Detail Promo* 🎉\n"]
    for idx, p in enumerate(promos):
        parts.append(format_promotion_details_id(p))
        if idx < len(promos) - 1:
            parts.append(DETAIL_SEPARATOR)
    parts.append(CLAIM_FOOTER)
    return "\n".join(parts)
