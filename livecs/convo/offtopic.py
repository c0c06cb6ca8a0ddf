"""Heuristic relevance scoring for customer messages.

``score`` is pure: same text and threshold, same result. Keywords match
whole words (or whole phrases), so "hi" does not fire inside "this".
"""
import re
from typing import Iterable, List, Pattern

STORY_KEYWORDS = [
    "kemarin", "tadi", "baru saja", "sebelumnya", "waktu itu", "dulu", "pas", "ketika",
    "yesterday", "earlier", "just now", "before", "that time", "when", "then", "once",
    "cerita", "story", "kejadian", "incident", "pengalaman", "experience", "hal lucu", "funny thing",
]
RANT_KEYWORDS = [
    "kesal", "marah", "jengkel", "sebel", "capek", "lelah", "bosan", "stress", "frustasi",
    "angry", "frustrated", "tired", "bored", "annoyed", "sick of", "fed up",
    "gak enak", "tidak nyaman", "ribet", "complicated", "susah", "difficult", "masalah", "problem",
]
GREETING_KEYWORDS = ["hello", "hi", "halo", "hai"]
BUSINESS_KEYWORDS = [
    "deposit", "withdraw", "password", "register", "account", "user id", "bank",
    "depo", "wd", "tarik", "setor", "daftar", "akun",
]
SHORT_EXEMPT_KEYWORDS = ["help", "deposit", "withdraw", "password", "register"] + GREETING_KEYWORDS
EMOTIONAL_EMOJIS = ["😡", "😤", "😠", "😞", "😔", "😢", "😭", "🤬", "💔", "😩", "😫", "😖", "😣"]
STORY_PATTERNS = [
    re.compile(r"kemarin\s+.*\s+"), re.compile(r"tadi\s+.*\s+"), re.compile(r"waktu\s+itu\s+"),
    re.compile(r"dulu\s+.*\s+"), re.compile(r"yesterday\s+.*\s+"), re.compile(r"earlier\s+.*\s+"),
    re.compile(r"that\s+time\s+"), re.compile(r"when\s+.*\s+"),
]

# Payment assistant profile
PAYMENT_KEYWORDS = [
    "cid", "cekipos", "payment", "pembayaran", "subscription", "langganan",
    "extend", "perpanjang", "upgrade", "downgrade", "plan", "paket",
    "usdt", "idr", "transfer", "kirim", "upload", "screenshot", "bukti",
    "transaction", "transaksi", "amount", "jumlah", "price", "harga",
    "bet", "taruhan", "gamble", "judi", "casino", "slot", "poker", "togel",
    "win", "menang", "lose", "lsoe", "kalah", "profit", "untung", "loss", "rugi",
    "deposit", "setor", "withdraw", "tarik", "balance", "saldo", "bonus",
    "promo", "promotion", "jackpot", "odds", "peluang", "chance",
    "lucky", "beruntung", "unlucky", "sial", "winning", "losing",
    "money", "uang", "cash", "tunai", "bank", "rekening", "account", "akun",
]
CASUAL_KEYWORDS = [
    "apa kabar", "how are you", "lagi apa", "what are you doing", "lagi dimana", "where are you",
    "makan apa", "what are you eating", "lagi kerja", "are you working", "liburan", "holiday",
    "hobi", "hobby", "film", "movie", "musik", "music", "game", "permainan", "sport", "olahraga",
    "weather", "cuaca", "hot", "panas", "cold", "dingin", "rain", "hujan", "sunny", "cerah",
]
PERSONAL_KEYWORDS = [
    "who are you", "siapa kamu", "what are you", "apa kamu", "are you human", "kamu manusia",
    "are you real", "kamu asli", "are you a bot", "kamu bot", "are you ai", "kamu ai",
    "what can you do", "apa yang bisa kamu lakukan", "what can i ask", "apa yang bisa saya tanya",
    "tell me about yourself", "ceritakan tentang dirimu", "what is your name", "siapa namamu",
]
GENERAL_OFFTOPIC_KEYWORDS = [
    "politik", "politics", "berita", "news", "gossip", "gosip", "selebriti", "celebrity",
    "inflasi", "inflation", "ekonomi", "economy", "covid", "virus", "vaksin", "vaccine",
    "lockdown", "pandemi", "pandemic", "test", "testing", "tes", "coba", "try",
]


def _compile(words: Iterable[str]) -> List[Pattern]:
    return [re.compile(r"(?<!\w)" + re.escape(w).replace(r"\ ", r"\s+") + r"(?!\w)") for w in words]


_STORY = _compile(STORY_KEYWORDS)
_RANT = _compile(RANT_KEYWORDS)
_GREETING = _compile(GREETING_KEYWORDS)
_BUSINESS = _compile(BUSINESS_KEYWORDS)
_SHORT_EXEMPT = _compile(SHORT_EXEMPT_KEYWORDS)
_PAYMENT = _compile(PAYMENT_KEYWORDS)
_CASUAL = _compile(CASUAL_KEYWORDS)
_PERSONAL = _compile(PERSONAL_KEYWORDS)
_GENERAL = _compile(GENERAL_OFFTOPIC_KEYWORDS)


def _any(patterns: List[Pattern], text: str) -> bool:
    return any(p.search(text) for p in patterns)


class OffTopicResult:
    def __init__(self, is_off_topic: bool, type: str, score: int):
        self.is_off_topic = is_off_topic
        self.type = type
        self.score = score

    def to_dict(self):
        return self.__dict__

    def __repr__(self):
        return f"OffTopicResult(is_off_topic={self.is_off_topic}, type={self.type!r}, score={self.score})"


def score(message: str, threshold: int = 4) -> OffTopicResult:
    message = message or ""
    text = message.lower().strip()

    points = 0
    has_story = _any(_STORY, text)
    has_rant = _any(_RANT, text)
    if has_story:
        points += 3
    if has_rant:
        points += 3
    if len(message) > 100:
        points += 2
    if len(message) <= 10 and not _any(_SHORT_EXEMPT, text):
        points += 3
    if any(e in message for e in EMOTIONAL_EMOJIS):
        points += 1
    if any(p.search(message) for p in STORY_PATTERNS):
        points += 2
    if _any(_GREETING, text):
        points -= 5
    if _any(_BUSINESS, text):
        points -= 2

    off = points >= threshold
    kind = "offtopic"
    if off:
        kind = "story" if has_story else "rant" if has_rant else "offtopic"
    return OffTopicResult(off, kind, points)


def payment_score(message: str, threshold: int = 3) -> OffTopicResult:
    """Variant used by the payment assistant; any payment or gambling word clears the message."""
    message = message or ""
    text = message.lower()

    if _any(_PAYMENT, text):
        return OffTopicResult(False, "gambling", -5)

    has_story = _any(_STORY, text)
    has_rant = _any(_RANT, text)
    has_casual = _any(_CASUAL, text)
    has_personal = _any(_PERSONAL, text)

    points = 0
    if has_story:
        points += 3
    if has_rant:
        points += 3
    if has_casual:
        points += 3
    if _any(_GENERAL, text):
        points += 2
    if has_personal:
        points += 4
    if len(message) > 100:
        points += 2
    if any(e in message for e in EMOTIONAL_EMOJIS):
        points += 1
    if any(p.search(message) for p in STORY_PATTERNS):
        points += 2
    if len(message) <= 10:
        points += 3
    if _any(_GREETING, text):
        points -= 2

    off = points >= threshold
    kind = "offtopic"
    if off:
        if has_personal:
            kind = "personal"
        elif has_story:
            kind = "story"
        elif has_rant:
            kind = "rant"
        elif has_casual:
            kind = "casual"
    return OffTopicResult(off, kind, points)
