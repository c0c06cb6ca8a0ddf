import math
import re
from typing import Callable, Optional, Tuple

from .state import ChatState, empty_slots

UNIT_MULTIPLIERS = {
    "k": 1_000,
    "rb": 1_000,
    "ribu": 1_000,
    "thousand": 1_000,
    "jt": 1_000_000,
    "juta": 1_000_000,
    "m": 1_000_000,
    "million": 1_000_000,
}

AMOUNT_RE = re.compile(
    r"(?<![A-Za-z0-9])(?:(?:rp|idr|usd)\.?\s*)?([0-9][0-9.,]*)\s*"
    r"(k|rb|ribu|jt|juta|million|thousand|m)?(?![A-Za-z0-9])",
    re.I,
)
ID_LABEL_BEFORE_RE = re.compile(r"\b(?:user\s*id|userid|id)[:=\s]*$", re.I)
LABELED_ID_RE = re.compile(r"\b(?:user\s*id|userid|id)[:=\s]*([A-Za-z0-9]{6,16})\b", re.I)
BARE_ID_RE = re.compile(r"\b[A-Za-z0-9]{6,16}\b")
AMOUNT_SHAPED_RE = re.compile(r"^(?:\d+[.,]?\d*)\s*(k|rb|ribu|jt|juta|m|million|thousand)?$", re.I)
BARE_ID_MAX_MESSAGE = 40

STOP_WORDS = {
    "depo", "deposit", "depositnya", "cek", "check", "periksa", "sudah", "udah", "belum", "blm",
    "masuk", "masuknya", "woi", "woy", "gua", "gw", "saya", "aku", "bosku", "bang", "halo",
    "hallo", "hai", "hello", "hi", "withdraw", "withdrawnya", "wd", "tarik", "penarikan",
    "dana", "dananya", "transfer", "rekening", "tolong", "tolongin", "terima", "kasih",
    "makasih", "thanks", "please", "status", "nominal", "jumlah", "berapa", "kemarin",
    "sekarang", "gimana", "bagaimana", "kenapa", "apakah", "bisakah", "terkirim", "bantuan",
    "selamat", "minta", "mohon", "admin", "kakak", "memeriksa", "barusan", "segera",
}


def parse_amount(number: str, unit: Optional[str] = None) -> Optional[int]:
    """Turn ``"1,5"`` + ``"jt"`` into 1500000.

    Without a unit the separators are stripped and the digits taken literally,
    so ``"100.000"`` is 100000. With a unit a single short fractional part is a
    decimal, so ``"1.5jt"`` and ``"1,5jt"`` both mean one and a half million.
    """
    raw = (number or "").strip().strip(".,")
    if not raw:
        return None
    unit = (unit or "").lower()
    mult = UNIT_MULTIPLIERS.get(unit, 1)

    if unit:
        parts = re.split(r"[.,]", raw)
        if len(parts) == 2 and 1 <= len(parts[1]) <= 2:
            value = float(f"{parts[0]}.{parts[1]}")
        else:
            value = float("".join(parts))
    else:
        digits = re.sub(r"[.,]", "", raw)
        if not digits.isdigit():
            return None
        value = float(digits)

    return int(math.floor(value * mult))


def extract_amount(text: str) -> Tuple[Optional[int], Optional[Tuple[int, int]]]:
    """First amount in ``text`` and its span; numbers right after an id label are skipped."""
    for m in AMOUNT_RE.finditer(text or ""):
        if ID_LABEL_BEFORE_RE.search(text[: m.start()]):
            continue
        amount = parse_amount(m.group(1), m.group(2))
        if amount:
            return amount, m.span()
    return None, None


def _is_bare_id(token: str) -> bool:
    low = token.lower()
    if low in STOP_WORDS:
        return False
    if not re.search(r"[A-Za-z]", token):
        return False
    return not AMOUNT_SHAPED_RE.match(token)


def extract_user_id(text: str, original_length: Optional[int] = None) -> Optional[str]:
    """Labeled id anywhere, else a bare id token when the message is short.

    A letters-only bare token is accepted only when it is the whole message;
    inside a sentence the token must mix letters and digits.
    """
    if not text:
        return None
    m = LABELED_ID_RE.search(text)
    if m:
        return m.group(1)

    length = original_length if original_length is not None else len(text)
    if length > BARE_ID_MAX_MESSAGE:
        return None

    tokens = BARE_ID_RE.findall(text)
    whole = text.strip()
    for token in tokens:
        if not _is_bare_id(token):
            continue
        if token.isalpha() and token != whole:
            continue
        return token
    return None


def extract_slots(text: str) -> Tuple[Optional[str], Optional[int]]:
    """Amount first, then the id from what remains of the text."""
    text = text or ""
    amount, span = extract_amount(text)
    rest = text
    if span:
        rest = (text[: span[0]] + " " + text[span[1]:]).strip()
    return extract_user_id(rest, original_length=len(text.strip())), amount


def format_amount(amount: int) -> str:
    return f"{int(amount):,}".replace(",", ".")


class FlowReply:
    def __init__(self, text: str, completed: bool = False, user_id: Optional[str] = None,
                 amount: Optional[int] = None):
        self.text = text
        self.completed = completed
        self.user_id = user_id
        self.amount = amount

    def to_dict(self):
        return self.__dict__


class SlotFillingFlow:
    """Two-slot (user id + amount) collection shared by deposit and withdraw checks.

    This is the only writer of ``ChatState.deposit_state`` and
    ``ChatState.withdraw_state``.
    """

    def __init__(self, name: str, trigger: Callable[[str], bool], ask_id: str, ask_amount: str,
                 confirm: str, ping_type: str, notifier=None, debug: bool = False):
        self.name = name
        self.trigger = trigger
        self.ask_id = ask_id
        self.ask_amount = ask_amount
        self.confirm = confirm
        self.ping_type = ping_type
        self.notifier = notifier
        self.debug = debug

    def is_triggered(self, text: str) -> bool:
        try:
            return bool(self.trigger(text))
        except Exception as e:
            print(f"[FLOW] {self.name} trigger error: {e}")
            return False

    def is_active(self, state: ChatState) -> bool:
        return bool(state.slots(self.name).get("active"))

    def wants(self, state: ChatState, text: str) -> bool:
        return self.is_active(state) or self.is_triggered(text)

    def reset(self, state: ChatState) -> None:
        state.slots(self.name).update(empty_slots())

    def handle(self, state: ChatState, text: str) -> FlowReply:
        slots = state.slots(self.name)

        if self.is_triggered(text) and not slots.get("active"):
            slots.update(empty_slots())
        slots["active"] = True

        user_id, amount = extract_slots(text)
        if user_id and not slots.get("user_id"):
            slots["user_id"] = user_id
        if amount and not slots.get("amount"):
            slots["amount"] = amount

        if self.name == "deposit":
            if slots.get("user_id"):
                state.context["user_id"] = slots["user_id"]
            if slots.get("amount"):
                state.context["deposit_amount"] = slots["amount"]
            state.context["last_deposit_check"] = {
                "user_id": slots.get("user_id"),
                "amount": slots.get("amount"),
            }

        if self.debug:
            print(f"[FLOW] {self.name} {state.chat_id}: id={slots.get('user_id')} amount={slots.get('amount')}")

        if not slots.get("user_id"):
            return FlowReply(self.ask_id)
        if not slots.get("amount"):
            return FlowReply(self.ask_amount, user_id=slots["user_id"])

        uid, amt = slots["user_id"], slots["amount"]
        reply = self.confirm.format(user_id=uid, amount=format_amount(amt))
        self.reset(state)

        if self.notifier is not None:
            try:
                self.notifier.ping(self.ping_type, state.chat_id, uid, amount=amt, message=text)
            except Exception as e:
                print(f"[FLOW] Support ping failed for {state.chat_id}: {e}")

        return FlowReply(reply, completed=True, user_id=uid, amount=amt)
