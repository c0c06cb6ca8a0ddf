import json
import os
import random
import threading
from typing import List, Optional, Sequence

DEFAULT_BRAND = "GoodCasino"

SUPPORTED_BANKS = [
    "BCA", "BNI", "BRI", "Mandiri", "CIMB Niaga", "Permata",
    "Danamon", "Maybank", "OCBC NISP", "BSI", "SeaBank",
]

# Deposit / withdraw
DEPOSIT_ASK_ID = "Boleh minta User ID-nya dulu bosku? 😊"
DEPOSIT_ASK_AMOUNT = "Oke bosku! Nominal depositnya berapa ya? (contoh: Rp 150.000) 😊"
DEPOSIT_CONFIRM = "Baik, saya akan cek deposit untuk User ID: {user_id} sejumlah {amount}. Mohon ditunggu sebentar."

WITHDRAW_ASK_ID = "Tentu bosku, boleh minta User ID untuk cek withdrawnya?"
WITHDRAW_ASK_AMOUNT = "Baik, berapa jumlah penarikan/withdrawnya bosku? (contoh: 500rb atau 100k)"
WITHDRAW_CONFIRM = ("Baik, saya akan cek status withdraw untuk User ID: {user_id} sejumlah {amount}. "
                    "Mohon ditunggu sebentar ya bosku.")

# Support / accounts
SUPPORT_ASK_ID = "Siap bosku, boleh minta User ID (CID)-nya?"
PASSWORD_ASK_ID = "Baik bosku, untuk bantu reset password boleh minta User ID (CID)-nya?"
USER_ID_CHANGE_ASK = "Baik bosku, untuk proses ganti User ID boleh minta User ID (CID)-nya?"
NEW_ACCOUNT_ASK = "Siap bosku! Untuk buat akun baru, boleh minta Nomor HP dan User ID yang diinginkan?"

ACCOUNT_CHANGE_ASK_ID = ("Baik, untuk membantu Anda mengganti rekening, saya membutuhkan User ID Anda terlebih dahulu."
                         "\n\nSilakan berikan User ID Anda: (contoh: user123)")
ACCOUNT_CHANGE_GOT_ID = "Ok, terima kasih. Mohon tunggu sebentar ya..."
ACCOUNT_CHANGE_INVALID_ID = ("Mohon maaf, format User ID tidak valid. User ID harus terdiri dari 3-20 karakter "
                             "(huruf dan/atau angka).\n\nSilakan masukkan User ID Anda:")
ACCOUNT_CHANGE_DONE = "Ok, terima kasih. Tim kami akan segera memproses permintaan Anda."
ACCOUNT_CHANGE_CANCELLED = ("Baik, proses pergantian rekening dibatalkan. Jika ada yang bisa saya bantu lagi, "
                            "jangan ragu untuk bertanya.")
ACCOUNT_CHANGE_CONFIRM = ("Mohon konfirmasi, apakah Anda ingin diarahkan ke halaman dukungan untuk melanjutkan "
                          "proses pergantian rekening? (Ya/Tidak)")

TRANSFER_NOTICE = "Baik bosku, saya akan hubungkan ke agen kami. Mohon tetap di chat ya, sebentar..."

# Promotions / RTP
PROMO_ERROR = "Maaf bosku, terjadi kendala saat menampilkan promo. Coba lagi sebentar ya. 🙏"
RTP_ERROR = "Maaf bosku, terjadi kendala saat menampilkan RTP. Coba lagi sebentar ya. 🙏"
RTP_FOOTER = "\n\nButuh bantuan? Kasih tahu saya ya 😊"

# Greetings / sentiment
SECOND_GREETING = "Ada yang bisa saya bantu? 😊"
FOLLOW_UP = "Bosku, ada yang bisa saya bantu lagi? Atau ada hal lain yang ingin ditanyakan? 😊"
LOSING_ENCOURAGEMENT = (
    "Santai bosku! 😊 Saya paham rasanya kalau kurang hoki hari ini. Tapi ingat, semua pemain hebat juga "
    "pernah ngalamin hal yang sama! Coba istirahat sebentar dulu, tenangkan pikiran, nanti lanjut lagi ya. "
    "🎰 Kadang rehat sebentar adalah strategi terbaik. Semangat, bosku! 💪"
)

# Off-topic
WARNING_MESSAGES = [
    "Saya di sini untuk membantu dengan dukungan kasino dan permainan. Bisakah Anda beri tahu apa yang ingin "
    "Anda ketahui tentang permainan atau layanan kami?",
    "Sepertinya pertanyaan Anda tidak terkait layanan kami. Saya bisa bantu informasi permainan, deposit, "
    "penarikan, atau masalah akun. Ada yang bisa saya bantu?",
    "Mari kita fokus pada dukungan kasino dan permainan. Jika ada pertanyaan tentang game, deposit, atau akun, "
    "saya siap bantu!",
]
CASINO_NUDGES = [
    "\n\nNgomong-ngomong, kami punya banyak permainan seru yang mungkin Anda suka!",
    "\n\nOmong-omong, sudah coba game slot terbaru kami?",
    "\n\nSaya juga siap bantu kalau ada pertanyaan tentang permainan atau layanan kami!",
]

# Fallback
CLARIFY_TEMPLATES = [
    "Ada yang bisa saya bantu lagi bosku? 😊",
    "Bosku, saya tidak paham maksudmu. Bisakah kamu jelaskan lagi? 🤔",
    "Maaf bosku, saya tidak bisa membantu dengan itu. 😊",
]

# Replies the bot itself sends; a customer message echoing one of these is not a new question
AGENT_PROMPT_ECHOES = [
    DEPOSIT_ASK_ID, DEPOSIT_ASK_AMOUNT, WITHDRAW_ASK_ID, WITHDRAW_ASK_AMOUNT,
    SUPPORT_ASK_ID, PASSWORD_ASK_ID, USER_ID_CHANGE_ASK, NEW_ACCOUNT_ASK, SECOND_GREETING,
]


def pick(rng: Optional[random.Random], templates: Sequence[str]) -> str:
    """Choose one template; pass a seeded ``random.Random`` for repeatable picks."""
    if not templates:
        return ""
    chooser = rng if rng is not None else random
    return templates[chooser.randrange(len(templates))]


def bank_info_response(banks: Optional[List[str]] = None) -> str:
    listing = ", ".join(banks or SUPPORTED_BANKS)
    return (
        f"Kami menerima transfer dari bank-bank berikut: {listing}, dll. "
        "Jika ingin ganti rekening terdaftar, kabari kami ya, nanti kami pandu verifikasi singkat "
        "(nama pemilik & nomor rekening)."
    )


def warning_message(count: int) -> str:
    """Warning tier for the ``count``-th off-topic message (1-based, capped at the last tier)."""
    idx = min(max(count, 1) - 1, len(WARNING_MESSAGES) - 1)
    return WARNING_MESSAGES[idx]


def echoes_agent_prompt(text: str) -> bool:
    low = (text or "").strip().lower()
    if not low:
        return False
    return any(low == p.lower() or (len(low) > 20 and low in p.lower()) for p in AGENT_PROMPT_ECHOES)


class BrandConfig:
    """Brand name persisted in ``brand-config.json``; the welcome text follows it."""

    def __init__(self, path: Optional[str] = None, default: str = DEFAULT_BRAND):
        self.path = path or os.path.join("data", "brand-config.json")
        self._lock = threading.Lock()
        self.name = default
        self.load()

    def load(self) -> str:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            name = (data or {}).get("name")
            if isinstance(name, str) and name.strip():
                self.name = name.strip()
        except FileNotFoundError:
            pass
        except (OSError, ValueError) as e:
            print(f"[BRAND] Failed to load {self.path}: {e}")
        return self.name

    def update(self, new_name: str) -> bool:
        if not isinstance(new_name, str) or not new_name.strip():
            return False
        with self._lock:
            self.name = new_name.strip()
            try:
                folder = os.path.dirname(self.path)
                if folder:
                    os.makedirs(folder, exist_ok=True)
                with open(self.path, "w", encoding="utf-8") as f:
                    json.dump({"name": self.name}, f, indent=2, ensure_ascii=False)
            except OSError as e:
                print(f"[BRAND] ❌ Failed to save brand config: {e}")
                return False
        print(f"[BRAND] ✅ Brand name updated to: {self.name}")
        return True

    def welcome_message(self) -> str:
        return f"Halo bosku! 😎\nSelamat datang di {self.name}, ada yang bisa saya bantu?"
