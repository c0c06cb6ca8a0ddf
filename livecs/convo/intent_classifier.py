import json
import threading
from typing import Any, Dict, List, Optional

from .ollama_client import OllamaClient
from .session_logger import get_cs_logger

INTENT_FLAGS = ("is_promotion_query", "is_game_list_query", "is_rtp_query", "wants_transfer_to_agent")

CLASSIFY_SYSTEM = (
    "Kamu adalah agen dukungan pelanggan {brand}. Klasifikasikan niat pengguna hanya berdasarkan "
    "pesan terbaru. Balas dalam JSON saja."
)
CLASSIFY_PROMPT = (
    'Pesan pengguna (Bahasa Indonesia/Inggris campur mungkin):\n"""{message}"""\n\n'
    'Keluarkan JSON dengan bidang boolean: {{"is_promotion_query": <bool>, "is_game_list_query": <bool>, '
    '"is_rtp_query": <bool>, "wants_transfer_to_agent": <bool>}}.\n'
    "- is_promotion_query: true jika user bertanya tentang promo/bonus/penawaran.\n"
    "- is_game_list_query: true jika user menanyakan daftar/jenis permainan yang tersedia.\n"
    "- is_rtp_query: true jika user bertanya tentang RTP / link RTP / persentase RTP atau game gacor terkait RTP.\n"
    "- wants_transfer_to_agent: true jika user minta dihubungkan/transfer ke CS/agent manusia."
)

REPLY_SYSTEM = """Kamu adalah tim dukungan pelanggan {brand}.
- Kamu membantu: deposit, penarikan, promo & bonus, RTP, daftar game, pendaftaran, dukungan umum kasino.
- Jika pengguna keluar topik, arahkan kembali dengan sopan ke layanan kasino.

Aturan:
- SELALU balas dalam JSON valid dengan skema:
{{"reply": "string", "intent": "deposit|withdraw|promotion|rtp|games|register|general|offtopic",
  "context": {{"userId": "string|null", "amount": "string|null", "language": "id"}}}}
- Bahasa: Bahasa Indonesia. Panggil pengguna "bosku", santai dan ramah, boleh pakai emoji.
- JANGAN pernah bilang kamu AI, bot, atau asisten. Kamu bagian dari tim {brand}.
- Jawaban singkat sampai semua data lengkap.
- Semangati pengguna yang kalah atau frustrasi dan ingatkan untuk bermain bertanggung jawab.

Konteks tambahan:
- userId: {user_id}
- amount: {amount}
- language: {language}
- recent_messages: {recent}

PENTING: Kembalikan HANYA satu objek JSON sesuai skema (tanpa teks lain)."""


def default_intents() -> Dict[str, bool]:
    return {k: False for k in INTENT_FLAGS}


class IntentClassifier:
    """LLM-backed classification, reply generation and translation.

    With ``use_llm`` off (or the model unreachable) every call degrades:
    intents are all False, replies are ``{}`` and translation is identity.
    """

    def __init__(self, client: Optional[OllamaClient] = None, use_llm: bool = False,
                 brand: str = "GoodCasino", logger=None):
        self.use_llm = use_llm
        self.client = client if client is not None else (OllamaClient() if use_llm else None)
        self.brand = brand
        self.logger = logger or get_cs_logger()
        self._translations: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return bool(self.use_llm and self.client is not None)

    def classify_intents(self, message: str, chat_id: str = "-") -> Dict[str, bool]:
        if not self.available or not (message or "").strip():
            return default_intents()
        system = CLASSIFY_SYSTEM.format(brand=self.brand)
        prompt = CLASSIFY_PROMPT.format(message=message)
        try:
            out = self.client.generate_json(system=system, prompt=prompt)
        except Exception as e:
            print(f"[LLM] Intent detection error: {e}")
            return default_intents()
        self._log(chat_id, system, prompt, out)
        if not isinstance(out, dict):
            return default_intents()
        return {k: bool(out.get(k)) for k in INTENT_FLAGS}

    def build_reply_system(self, context: Dict[str, Any]) -> str:
        history: List[Dict[str, Any]] = context.get("conversation_history") or []
        recent = "; ".join(f"{h.get('type')}: {h.get('message')}" for h in history[-3:])
        last_check = context.get("last_deposit_check") or {}
        return REPLY_SYSTEM.format(
            brand=self.brand,
            user_id=context.get("user_id") or "null",
            amount=context.get("deposit_amount") or last_check.get("amount") or "null",
            language=context.get("language") or "id",
            recent=recent,
        )

    def generate_reply(self, system_prompt: str, user_message: str, chat_id: str = "-") -> Dict[str, Any]:
        """Schema-constrained reply ``{reply, intent, context}``; ``{}`` when unavailable."""
        if not self.available:
            return {}
        try:
            out = self.client.generate_json(system=system_prompt, prompt=user_message, temperature=0.3)
        except Exception as e:
            print(f"[LLM] Reply generation error: {e}")
            return {}
        self._log(chat_id, system_prompt, user_message, out)
        return out if isinstance(out, dict) else {}

    def translate(self, text: str, target_lang: str) -> str:
        lang = (target_lang or "id").lower()[:2]
        if not text or lang in ("id", "en") or not self.available:
            return text
        key = f"{lang}|{text}"
        with self._lock:
            if key in self._translations:
                return self._translations[key]
        try:
            out = self.client.generate(
                system=f"Translate the user's text into language code '{lang}'. Reply with the translation only.",
                prompt=text,
                temperature=0.0,
            )
        except Exception as e:
            print(f"[LLM] Translation error: {e}")
            return text
        translated = out or text
        with self._lock:
            self._translations[key] = translated
        return translated

    def _log(self, chat_id: str, system: str, prompt: str, out: Any) -> None:
        try:
            self.logger.log_llm(
                chat_id=chat_id,
                model=getattr(self.client, "model", "?"),
                system=system,
                prompt=prompt,
                response=json.dumps(out, ensure_ascii=False),
            )
        except Exception as e:
            print(f"[LLM] Failed to log call: {e}")
