"""Subscription payment assistant.

A separate bot persona that walks a customer from CID collection to a
submitted payment. Its chat states are kept apart from the support bot's
``ChatState``.
"""
import copy
import os
import re
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .offtopic import payment_score
from .slot_filling import format_amount
from ..storage.json_file import read_json

GREETING = "greeting"
COLLECTING_CID = "collecting_cid"
FETCHING_INFO = "fetching_info"
READY_FOR_PAYMENT = "ready_for_payment"
SHOWING_SUBSCRIPTION_OPTIONS = "showing_subscription_options"
PROCESSING = "processing"
SUBMITTED_TO_AGENT = "submitted_to_agent"
HANDOFF = "handoff"

MAX_ATTEMPTS = 3

PAYMENT_TEMPLATES = {
    "en": {
        "welcome": "Hello! I'm here to help you with your Cekipos payment, bro. Can you share your CID? "
                   "Don't have it handy? Just type /mycid in your Telegram channel that has Cekipos "
                   "subscription activated.",
        "cid_collected": "Perfect! I got your CID, bro. I see you have {current_subscription}. For extension, "
                         "here are your payment details: Amount: {amount} USDT. Send your payment to: "
                         "{transfer_address}. Once you've sent it, just upload your payment screenshot here "
                         "and I'll handle the verification!",
        "idr_note": " In rupiah that is Rp {amount_idr} (rate {rate}).",
        "upgrade_options": "Got it, bro! You want to {plan_type}. Here are the available subscription "
                           "options:\n{options}\nWhich one would you like to choose?",
        "select_plan": "Please select a subscription plan from the options above.",
        "await_proof": "Please upload your payment screenshot when ready!",
        "payment_received": "Awesome, bro! I've verified your payment details and everything looks good! "
                            "Submitting this to our team for final processing now. You should hear back soon! "
                            "Thanks for your patience.",
        "completion": "Perfect, bro! All done! I've submitted your payment details to our team for processing. "
                      "What happens next: Our agent will verify your payment, your {plan} subscription will be "
                      "activated, and you'll get confirmation once it's complete! Thanks for choosing Cekipos!",
        "submitted": "Your payment has been submitted for processing. You'll receive confirmation soon!",
        "out_of_scope": "I'm only here to help with payment processing, bro. For questions about {topic}, I can "
                        "connect you with our support team who can give you detailed info! Would you like me "
                        "to inform for assistance?",
        "handoff": "I'm having trouble helping you with this, bro. Let me connect you with our support team. "
                   "Please contact @cscekipos for immediate assistance.",
    },
    "id": {
        "welcome": "Halo! Saya di sini untuk membantu kakak dengan pembayaran Cekipos nya. Bisakah bagikan CID "
                   "kakak? Ketik saja /mycid di channel Telegram kakak sendiri yang sudah berlangganan Cekipos.",
        "cid_collected": "Sempurna! CID kakak sudah saya dapat. Saya lihat kakak punya {current_subscription}. "
                         "Untuk perpanjangan, ini detail pembayaran nya: Jumlah: {amount} USDT. Kirim pembayaran "
                         "ke: {transfer_address}. Setelah kakak kirim, upload saja screenshot pembayaran nya di "
                         "sini dan saya akan verifikasi!",
        "idr_note": " Dalam rupiah: Rp {amount_idr} (kurs {rate}).",
        "upgrade_options": "Baik kakak! Kakak mau {plan_type}. Ini pilihan langganan yang tersedia:\n{options}\n"
                           "Mana yang mau kakak pilih?",
        "select_plan": "Silakan pilih paket langganan dari opsi di atas ya kak.",
        "await_proof": "Silakan upload screenshot pembayaran kakak kalau sudah siap ya!",
        "payment_received": "Mantap, kak! Saya sudah verifikasi detail pembayaran kakak dan semua oke! Sekarang "
                            "saya submit ke tim untuk proses final. Kakak akan dapat kabar segera! Makasih ya "
                            "sabar nya.",
        "completion": "Sempurna, kak! Semua beres! Saya sudah submit detail pembayaran kakak ke tim untuk "
                      "diproses. Yang terjadi selanjutnya: Agen kami akan verifikasi pembayaran kakak, langganan "
                      "{plan} kakak akan diaktifkan, dan kakak akan dapat konfirmasi setelah selesai! Makasih "
                      "sudah pilih Cekipos!",
        "submitted": "Pembayaran kakak sudah kami submit untuk diproses. Konfirmasi akan segera dikirim!",
        "out_of_scope": "Saya hanya membantu untuk proses pembayaran saja, kak. Untuk pertanyaan tentang {topic}, "
                        "saya bisa hubungkan kakak dengan tim support yang bisa kasih info lengkap! Mau saya "
                        "arahkan kakak ke tim support untuk bantuan?",
        "handoff": "Saya agak kesulitan membantu kakak untuk ini. Biar saya hubungkan dengan tim support ya. "
                   "Silakan hubungi @cscekipos untuk bantuan langsung.",
    },
}

TOPIC_LABELS = {
    "id": {"personal": "hal pribadi", "story": "cerita", "rant": "keluhan", "casual": "obrolan santai",
           "offtopic": "topik lain"},
    "en": {"personal": "personal matters", "story": "stories", "rant": "complaints", "casual": "small talk",
           "offtopic": "other topics"},
}

CID_PATTERNS = [
    re.compile(r"cid[:\s]*(\d+)", re.I),
    re.compile(r"cekipos[:\s]*(\d+)", re.I),
    re.compile(r"\b(\d{4,10})\b"),
]
PLAN_CHOICE_RE = re.compile(r"(premium|business)\s+(monthly|yearly)", re.I)
PROOF_WORDS = ("upload", "screenshot", "bukti", "kirim")

DEFAULT_SUBSCRIPTION: Dict[str, Any] = {
    "current_subscription": "Premium Monthly",
    "expiry_date": "2024-02-15",
    "available_plans": [
        {"name": "Premium Monthly", "price": 125, "currency": "USDT"},
        {"name": "Premium Yearly", "price": 1200, "currency": "USDT"},
        {"name": "Business Monthly", "price": 250, "currency": "USDT"},
        {"name": "Business Yearly", "price": 2400, "currency": "USDT"},
    ],
    "transfer_address": "0x1dC45622D4ba8B70e11190873cbEB03408Df3f08",
    "idr_rate": 15600,
}


def extract_cid(message: str) -> Optional[str]:
    for pattern in CID_PATTERNS:
        m = pattern.search(message or "")
        if m:
            return m.group(1)
    return None


def extract_plan_type(message: str) -> str:
    text = (message or "").lower()
    if "upgrade" in text or "naik" in text:
        return "UPGRADE"
    if "downgrade" in text or "turun" in text:
        return "DOWNGRADE"
    return "EXTEND"


def extract_currency_preference(message: str) -> str:
    text = (message or "").lower()
    if re.search(r"\b(idr|rupiah|rp)\b", text):
        return "IDR"
    return "USDT"


class SubscriptionDirectory:
    """CID lookup backed by ``subscriptions.json``.

    File layout: ``{"default": {...}, "cids": {"<cid>": {...}}}``. Unknown
    CIDs fall back to ``default``; ``None`` when neither exists.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or os.path.join("data", "subscriptions.json")

    def lookup(self, cid: str) -> Optional[Dict[str, Any]]:
        data = read_json(self.path, {})
        if not isinstance(data, dict):
            data = {}
        record = (data.get("cids") or {}).get(str(cid))
        if record is None:
            record = data.get("default", DEFAULT_SUBSCRIPTION if not data else None)
        return copy.deepcopy(record) if record else None


class PaymentState:
    def __init__(self, chat_id: str, language: str = "id", started: Optional[float] = None):
        self.chat_id = chat_id
        self.payment_state = GREETING
        self.context: Dict[str, Any] = {
            "language": language,
            "cid": None,
            "plan": "EXTEND",
            "subscription_type": None,
            "preferred_currency": "USDT",
            "transfer_address": None,
            "transfer_amount": None,
            "original_price_usdt": None,
            "converted_price_idr": None,
            "idr_rate": None,
            "conversation_history": [],
        }
        self.validation: Dict[str, Any] = {
            "cid_verified": None,
            "cid_attempts": 0,
            "subscription_attempts": 0,
        }
        self.off_topic_warning_count = 0
        self.started = started if started is not None else time.time()

    def to_dict(self):
        return copy.deepcopy(self.__dict__)


class PaymentAssistant:
    def __init__(self, directory: Optional[SubscriptionDirectory] = None, guard=None, notifier=None,
                 offtopic_threshold: int = 3, language: str = "id",
                 clock: Callable[[], float] = time.time):
        self.directory = directory or SubscriptionDirectory()
        self.guard = guard
        self.notifier = notifier
        self.offtopic_threshold = offtopic_threshold
        self.language = language
        self.clock = clock
        self._lock = threading.Lock()
        self._states: Dict[str, PaymentState] = {}

    def get_state(self, chat_id: str) -> PaymentState:
        with self._lock:
            st = self._states.get(chat_id)
            if st is None:
                st = PaymentState(chat_id, self.language, started=self.clock())
                self._states[chat_id] = st
            return st

    def reset(self, chat_id: str) -> None:
        with self._lock:
            self._states.pop(chat_id, None)

    def evict_older_than(self, max_age: float) -> int:
        now = self.clock()
        with self._lock:
            stale = [cid for cid, st in self._states.items() if now - (st.started or 0) > max_age]
            for cid in stale:
                del self._states[cid]
        if stale:
            print(f"[PAYMENT] 🧹 Cleaned {len(stale)} old payment states")
        return len(stale)

    def handle(self, chat_id: str, message: str) -> Optional[str]:
        text = (message or "").strip()
        if not text:
            return None

        state = self.get_state(chat_id)
        history: List[Dict[str, Any]] = state.context["conversation_history"]
        history.append({"message": text, "timestamp": self.clock(), "type": "user"})
        state.context["conversation_history"] = history[-10:]

        reply = None
        if state.payment_state not in (GREETING, HANDOFF):
            check = payment_score(text, threshold=self.offtopic_threshold)
            if check.is_off_topic:
                state.off_topic_warning_count += 1
                lang = state.context["language"]
                topic = TOPIC_LABELS.get(lang, TOPIC_LABELS["id"]).get(check.type, check.type)
                reply = self._t(state, "out_of_scope").format(topic=topic)

        if reply is None:
            reply = self.process(state, text)
        if not reply:
            return None

        if self.guard is not None:
            if self.guard.was_sent(chat_id, reply):
                print(f"[PAYMENT] 🚫 Duplicate reply suppressed in chat {chat_id}")
                return None
            self.guard.mark_sent(chat_id, reply)

        state.context["conversation_history"].append({"message": reply, "timestamp": self.clock(), "type": "agent"})
        state.context["conversation_history"] = state.context["conversation_history"][-10:]
        return reply

    def _t(self, state: PaymentState, key: str) -> str:
        lang = state.context.get("language") or "id"
        return PAYMENT_TEMPLATES.get(lang, PAYMENT_TEMPLATES["id"])[key]

    def process(self, state: PaymentState, message: str) -> Optional[str]:
        ctx = state.context
        cid = extract_cid(message)
        plan = extract_plan_type(message)
        currency = extract_currency_preference(message)
        if cid:
            ctx["cid"] = cid
        if plan != "EXTEND":
            ctx["plan"] = plan
        if currency != "USDT":
            ctx["preferred_currency"] = currency

        current = state.payment_state

        if current == GREETING:
            state.payment_state = COLLECTING_CID
            if not cid:
                return self._t(state, "welcome")
            current = COLLECTING_CID

        if current == COLLECTING_CID:
            if not cid:
                return self._failed_attempt(state, "cid_attempts", "welcome")
            state.payment_state = FETCHING_INFO
            state.validation["cid_verified"] = True
            info = self.directory.lookup(cid)
            if not info:
                state.payment_state = HANDOFF
                return self._t(state, "handoff")
            ctx["transfer_address"] = info.get("transfer_address")
            ctx["idr_rate"] = info.get("idr_rate")

            if ctx["plan"] == "EXTEND":
                plans = info.get("available_plans") or []
                chosen = next((p for p in plans if p.get("name") == info.get("current_subscription")), None)
                if chosen is None:
                    state.payment_state = HANDOFF
                    return self._t(state, "handoff")
                ctx["subscription_type"] = chosen["name"]
                return self._payment_details(state, info, chosen)

            state.payment_state = SHOWING_SUBSCRIPTION_OPTIONS
            options = "\n".join(f"- {p['name']}: {p['price']} {p.get('currency', 'USDT')}"
                                for p in info.get("available_plans") or [])
            return self._t(state, "upgrade_options").format(plan_type=ctx["plan"].lower(), options=options)

        if current == SHOWING_SUBSCRIPTION_OPTIONS:
            m = PLAN_CHOICE_RE.search(message)
            if m:
                name = f"{m.group(1).capitalize()} {m.group(2).capitalize()}"
                info = self.directory.lookup(ctx["cid"]) or {}
                chosen = next((p for p in info.get("available_plans") or [] if p.get("name") == name), None)
                if chosen is not None:
                    ctx["subscription_type"] = name
                    return self._payment_details(state, info, chosen)
            return self._failed_attempt(state, "subscription_attempts", "select_plan")

        if current == READY_FOR_PAYMENT:
            low = message.lower()
            if any(w in low for w in PROOF_WORDS):
                state.payment_state = PROCESSING
                return self._t(state, "payment_received")
            return self._t(state, "await_proof")

        if current == PROCESSING:
            state.payment_state = SUBMITTED_TO_AGENT
            self._submit(state)
            return self._t(state, "completion").format(plan=ctx.get("subscription_type") or ctx["plan"])

        if current == SUBMITTED_TO_AGENT:
            return self._t(state, "submitted")

        if current == HANDOFF:
            return self._t(state, "handoff")

        return None

    def _payment_details(self, state: PaymentState, info: Dict[str, Any], plan: Dict[str, Any]) -> str:
        ctx = state.context
        ctx["transfer_amount"] = plan["price"]
        ctx["original_price_usdt"] = plan["price"]
        state.payment_state = READY_FOR_PAYMENT

        reply = self._t(state, "cid_collected").format(
            current_subscription=info.get("current_subscription"),
            amount=plan["price"],
            transfer_address=info.get("transfer_address"),
        )
        rate = ctx.get("idr_rate")
        if ctx.get("preferred_currency") == "IDR" and rate:
            amount_idr = int(plan["price"] * rate)
            ctx["converted_price_idr"] = amount_idr
            reply += self._t(state, "idr_note").format(amount_idr=format_amount(amount_idr),
                                                        rate=format_amount(rate))
        return reply

    def _failed_attempt(self, state: PaymentState, counter: str, template: str) -> str:
        state.validation[counter] += 1
        if state.validation[counter] >= MAX_ATTEMPTS:
            state.payment_state = HANDOFF
            return self._t(state, "handoff")
        return self._t(state, template)

    def _submit(self, state: PaymentState) -> None:
        if self.notifier is None:
            return
        ctx = state.context
        try:
            self.notifier.ping("payment_submission", state.chat_id, ctx.get("cid"),
                               amount=ctx.get("transfer_amount"),
                               message=f"{ctx.get('subscription_type') or ctx.get('plan')} via {ctx.get('preferred_currency')}")
        except Exception as e:
            print(f"[PAYMENT] Support ping failed for {state.chat_id}: {e}")
