"""Regex and keyword tables used to recognise customer intents.

Every detector takes the raw customer text and returns a bool (or a small
value) without touching chat state, so the resolver can call them in any
order and as often as it needs.
"""
import re
from typing import Dict, Optional

from .text_normalizer import normalize_for_match

# Deposit / withdraw
DEPOSIT_PATTERNS = [
    re.compile(r"\bcek\s+deposit\b"),
    re.compile(r"\bperiksa\b[\s\S]*\bdeposit\b"),
    re.compile(r"\bmemeriksa\b[\s\S]*\bdeposit\b"),
    re.compile(r"\bdeposit\b[\s\S]*\b(sudah|udh|udah|belum|blm)\b[\s\S]*\b(masuk|terkirim)\b"),
    re.compile(r"\bdepo\b[\s\S]*\b(sudah|udh|udah|sudahkah|udahkah|belum|blm)\b[\s\S]*\b(masuk|terkirim)\b"),
    re.compile(r"\bdeposit\s+saya\b[\s\S]*(masuk|terkirim)"),
    re.compile(r"\bbisakah\b[\s\S]*\bmemeriksa\b[\s\S]*\bdeposit\b"),
]
# "cek deposit saya" style requests without a status verb
DEPOSIT_CHECK_RE = re.compile(r"\b(cek|check|periksa)\s+(depo|deposit|dp)\b")

WITHDRAW_KEYWORDS_RE = re.compile(r"\b(withdraw|wd|penarikan|tarik\s*dana)\b", re.I)
WITHDRAW_CHECK_RE = re.compile(
    r"(cek\s*(withdraw|wd|penarikan|tarik\s*dana)|\b(withdraw|wd)\b|penarikan|tarik\s*dana)", re.I
)


def is_deposit_inquiry(text: str) -> bool:
    if not text:
        return False
    t = text.lower()
    if WITHDRAW_KEYWORDS_RE.search(t):
        return False
    return any(p.search(t) for p in DEPOSIT_PATTERNS) or bool(DEPOSIT_CHECK_RE.search(t))


def is_withdraw_inquiry(text: str) -> bool:
    if not text:
        return False
    return bool(WITHDRAW_CHECK_RE.search(text.lower()))


# Promotions / RTP / raw payloads
PROMO_KEYWORDS = ("promo", "promosi", "bonus", "diskon", "hadiah", "hadia")
RTP_KEYWORDS = ("rtp", "return to player", "gacor", "persentase rtp", "link rtp")


def _keyword_re(words):
    # whole tokens, optionally with the "-nya" suffix ("promonya", "bonusnya")
    alts = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in words)
    return re.compile(r"\b(?:" + alts + r")(?:nya)?\b")


PROMO_RE = _keyword_re(PROMO_KEYWORDS)
RTP_RE = _keyword_re(RTP_KEYWORDS)
RAW_RE = re.compile(r"\b(json|raw)\b", re.I)
PROMO_DETAILS_RE = re.compile(
    r"\b(details?|more|info|terms?|conditions?|syarat|ketentuan|eligible|games?|klaim|claim)\b", re.I
)


def is_promo_request(text: str) -> bool:
    t = normalize_for_match(text)
    return bool(PROMO_RE.search(t))


def is_rtp_request(text: str) -> bool:
    t = normalize_for_match(text)
    return bool(RTP_RE.search(t))


def wants_raw(text: str) -> bool:
    return bool(RAW_RE.search(text or ""))


def wants_promo_details(text: str) -> bool:
    return bool(PROMO_DETAILS_RE.search(text or ""))


# Game list
GAME_LIST_RE = re.compile(
    r"\b(daftar|list|jenis|macam)\s+(game|games|permainan)\b"
    r"|\b(game|games|permainan)\s+(apa\s+(saja|aja)|yang\s+(ada|tersedia))\b"
    r"|\bwhich\s+(games|slots)\b|\bwhat\s+games\b",
    re.I,
)


def is_game_list_query(text: str) -> bool:
    return bool(GAME_LIST_RE.search(text or ""))


# Bank info
BANK_KEY_PHRASES = (
    "bank apa saja", "bank apa aja", "bank apa", "bank diterima", "bank yg diterima",
    "bank yang diterima", "terima bank apa", "menerima bank apa", "support bank",
    "bisa transfer dari bank", "bisa tf dari", "tf dari bank", "rekening bank apa",
    "daftar bank", "list bank", "which banks", "what banks do you accept",
    "accepted banks", "supported banks",
)
BANK_PATTERNS = [
    re.compile(r"(bank|rekening)[^\w]{0,6}(apa|mana|yang\s+didukung|yang\s+diterima)", re.I),
    re.compile(r"(which|what)\s+banks?\s+(are\s+)?(supported|accepted)", re.I),
    re.compile(r"(bisa|dapat|boleh)\s+(transfer|tf)\s+dari\s+bank", re.I),
]


def is_bank_info_query(text: str) -> bool:
    if not text:
        return False
    t = normalize_for_match(text)
    if any(p in t for p in BANK_KEY_PHRASES):
        return True
    return any(p.search(text) for p in BANK_PATTERNS)


# Support escalation
SUPPORT_KEYWORDS = (
    "reset password", "lupa password", "password hilang", "forgot password",
    "ganti password", "change password", "password tidak bisa", "password error",
    "akun terkunci", "akun diblokir", "akun kena suspend", "akun kena banned",
    "ganti email", "change email", "email tidak terdaftar", "email tidak masuk",
    "verifikasi akun", "akun belum terverifikasi", "verifikasi email",
    "ganti nomor hp", "change phone number", "nomor hp tidak terdaftar",
    "user id tidak bisa login", "akun diretas", "hacked account", "saya diretas",
    "saya kena scam", "tertipu", "penipuan", "fraud", "scam", "phishing",
    "kode otp tidak masuk", "otp tidak terkirim", "verifikasi gagal",
    "ganti pin", "lupa pin", "pin tidak bisa", "pin error",
    "pemulihan akun", "recovery account", "akun saya hilang",
    "tidak bisa login", "login error", "gagal login", "tidak bisa masuk",
    "akun tidak dikenal", "akun tidak ditemukan",
)
_SUPPORT_KEYWORD_RES = [re.compile(r"\b" + re.escape(k) + r"\b", re.I) for k in SUPPORT_KEYWORDS]
SUPPORT_PATTERNS = [
    re.compile(r"(lupa|forgot|reset|ganti|change|hilang|lost)\s+(password|sandi|akun|account|email|user\s*id|pin)", re.I),
    re.compile(r"(account|akun|login|masuk|email|user\s*id|password|sandi|pin)\s+(terkunci|diblokir|suspended|banned|hacked|terblokir|error|gagal|tidak\s+bisa|hilang|not\s+found)", re.I),
    re.compile(r"(verif(y|ikasi)|otp|kode\s+verifikasi|kode\s+otp)\s+(tidak\s+masuk|gagal|error|tidak\s+terkirim|not\s+received)", re.I),
    re.compile(r"(scam|phishing|penipuan|tertipu|hacked|diretas|keamanan\s+akun|account\s+security)", re.I),
    re.compile(r"(pemulihan\s+akun|recovery\s+account|akun\s+hilang|tidak\s+bisa\s+masuk|gagal\s+login|login\s+error)", re.I),
]

ISSUE_PASSWORD_RE = re.compile(r"(lupa|forgot|reset|ganti|change|hilang|lost)\s+(password|sandi|pin)", re.I)
ISSUE_ACCESS_RE = re.compile(r"(akun|account|login|masuk)\s+(terkunci|diblokir|suspended|banned|hacked|terblokir)", re.I)
ISSUE_VERIFY_RE = re.compile(r"(verif|otp|kode\s+verifikasi|kode\s+otp)", re.I)
ISSUE_SECURITY_RE = re.compile(r"(scam|phishing|penipuan|tertipu|hacked|diretas)", re.I)


def needs_support_ping(text: str) -> bool:
    if not text:
        return False
    low = text.lower().strip()
    if any(r.search(low) for r in _SUPPORT_KEYWORD_RES):
        return True
    if any(p.search(low) for p in SUPPORT_PATTERNS):
        return True
    if "reset" in low and ("password" in low or "sandi" in low) \
            and "link" not in low and "cara" not in low and "how to" not in low:
        return True
    return ("recovery" in low or "pemulihan" in low) and ("account" in low or "akun" in low)


def support_issue_type(text: str) -> Optional[str]:
    """Issue label for an escalation message, or None when no escalation is needed."""
    if not needs_support_ping(text):
        return None
    low = text.lower()
    if ISSUE_PASSWORD_RE.search(low):
        return "Password Reset"
    if ISSUE_ACCESS_RE.search(low):
        return "Account Access Issue"
    if ISSUE_VERIFY_RE.search(low):
        return "Verification Issue"
    if ISSUE_SECURITY_RE.search(low):
        return "Security Concern"
    return "Account Assistance"


def ping_type_for(issue_type: str) -> str:
    return re.sub(r"\s+", "_", issue_type.lower())


PROBABLE_ID_RE = re.compile(r"\b(?:user\s*id|userid|user_id|user-id|username|user|id)[:=\s]+([A-Za-z0-9_\-]{3,20})", re.I)


def probable_user_id(text: str) -> Optional[str]:
    m = PROBABLE_ID_RE.search(text or "")
    return m.group(1).strip() if m else None


# Account flows
ACCOUNT_CHANGE_RE = re.compile(r"(ganti|ubah|tukar|perbarui|update|change|switch)\s+(rekening|akun|account)", re.I)
USER_ID_CHANGE_RE = re.compile(
    r"\b(ganti|ubah|change|update)\b.*\b(user\s*id|userid|username|id)\b", re.I
)
NEW_ACCOUNT_RE = re.compile(
    r"(buat|daftar|register|create|make|bikin)\s+(akun|account)|\bnew\s+(account|userid|user\s*id)\b", re.I
)


def is_account_change(text: str) -> bool:
    return bool(ACCOUNT_CHANGE_RE.search(text or ""))


def is_user_id_change(text: str) -> bool:
    return bool(USER_ID_CHANGE_RE.search(text or ""))


def is_new_account(text: str) -> bool:
    return bool(NEW_ACCOUNT_RE.search(text or ""))


# Greeting / sentiment
GREETING_RE = re.compile(r"\b(hello|hi|halo|hallo|hai)\b", re.I)
FRUSTRATION_RE = re.compile(
    r"\b(mad|angry|frustrated|upset|annoyed|pissed|marah|kesal|jengkel|sebel)\b", re.I
)
LOSING_RE = re.compile(
    r"\b(lose|losing|lost|lsoe|kalah|rugi|loss|always lose|keep losing|never win|"
    r"selalu kalah|terus kalah|tidak pernah menang)\b",
    re.I,
)


def is_greeting(text: str) -> bool:
    return bool(GREETING_RE.search(text or ""))


def is_frustrated_or_losing(text: str) -> bool:
    t = text or ""
    return bool(FRUSTRATION_RE.search(t) or LOSING_RE.search(t))


# Inbound filters
TRANSFER_PHRASES = (
    "looks like i need to transfer you to one of our agents",
    "i need to transfer you to one of our agents",
    "transfer you to one of our agents",
    "transfer you to an agent",
    "transfer you to our agent",
    "connecting you to an agent",
    "connect you to an agent",
    "forward you to an agent",
    "forward you to our agent",
    "hand over to an agent",
    "handover to an agent",
    "escalate to an agent",
    "escalating you to an agent",
    "stay on chat",
    "stay in chat",
    "please stay on chat",
    "saya akan transfer ke agen",
    "akan transfer ke agen",
    "kami akan menghubungkan ke agen",
    "menghubungkan ke agen",
    "akan dihubungkan ke agen",
    "dialihkan ke agen",
    "alih ke agen",
    "mengarahkan ke agen",
    "hubungkan ke cs",
    "diarahkan ke cs",
    "akan dihubungkan ke cs",
    "tetap di chat",
    "tetap di livechat",
)
TRANSFER_RE = re.compile(
    r"\b(transfer|alih|dialih|hubung|arahkan|forward|connect|handover|hand\s*over|escalat)\w*\b"
    r"[\s\S]*\b(agent|agen|cs|support)\b"
)
STAY_RE = re.compile(r"\b(stay|tetap)\b[\s\S]*\b(chat|livechat)\b")
STAY_VERB_RE = re.compile(r"\b(transfer|hubung|forward|connect|alih|arahkan)\w*\b")


def is_transfer_system_message(text: str) -> bool:
    t = normalize_for_match(text)
    if not t:
        return False
    if any(p in t for p in TRANSFER_PHRASES):
        return True
    if TRANSFER_RE.search(t):
        return True
    return bool(STAY_RE.search(t) and STAY_VERB_RE.search(t))


BOT_INDICATOR_PHRASES = (
    "hello boss", "how can i help", "bosku", "mohon ditunggu", "baik bosku",
    "selamat bermain", "good luck", "terima kasih", "thank you",
    "deposit has been processed", "withdrawal has been processed",
    "please wait", "mohon menunggu", "will be processed", "thanks", "thank",
    "terimakasih", "makasih",
)
BOT_INDICATOR_WORDS_RE = re.compile(r"\b(ty|tq|thx|tyvm|tysm)\b")
BOT_AUTHOR_MARKERS = ("agent", "bot", "system", "support")


def looks_like_bot_text(text: str) -> bool:
    low = (text or "").lower()
    return any(p in low for p in BOT_INDICATOR_PHRASES) or bool(BOT_INDICATOR_WORDS_RE.search(low))


def is_bot_author(author_id: Optional[str]) -> bool:
    low = (author_id or "").lower()
    return any(m in low for m in BOT_AUTHOR_MARKERS)


# Profile fields
ACCOUNT_NAME_RE = re.compile(r"(?:nama.*rekening|account.*name)[\s:]+([a-zA-Z\s]{2,30})", re.I)
ACCOUNT_NUMBER_RE = re.compile(r"(?:nomor.*rekening|account.*number|no.*rek)[\s:]+([0-9\-]{5,20})", re.I)
PHONE_RE = re.compile(r"(?:no.*hp|phone|telepon)[\s:]+([0-9+\-\s]{8,15})", re.I)
BANK_NAME_RE = re.compile(r"(?:bank)[\s:]+([a-zA-Z\s]{2,15})", re.I)


def extract_profile(text: str) -> Dict[str, str]:
    found: Dict[str, str] = {}
    for key, rx in (
        ("account_name", ACCOUNT_NAME_RE),
        ("account_number", ACCOUNT_NUMBER_RE),
        ("phone_number", PHONE_RE),
        ("bank", BANK_NAME_RE),
    ):
        m = rx.search(text or "")
        if m:
            found[key] = m.group(1).strip()
    return found
