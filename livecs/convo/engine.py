from __future__ import annotations
import os, random, time
from typing import Any, Callable, Dict, Optional

from ..config import Settings, load_settings
from ..catalog.game_catalog import GameCatalog
from ..catalog.promotions import PromotionStore
from ..catalog.rtp_config import RtpConfigStore
from ..storage.chat_db import ChatDB
from . import detectors
from . import templates as T
from .account_flow import AccountFlow
from .intent_classifier import IntentClassifier
from .memory_store import ChatStateStore
from .resolver import IntentResolver
from .sent_guard import DuplicateSendGuard
from .session_logger import get_cs_logger
from .slot_filling import SlotFillingFlow
from .state import ChatState
from .support_ping import SupportNotifier

MAX_REPLY_LENGTH = 1000


def build_deposit_flow(notifier=None) -> SlotFillingFlow:
    return SlotFillingFlow(
        "deposit", detectors.is_deposit_inquiry,
        ask_id=T.DEPOSIT_ASK_ID, ask_amount=T.DEPOSIT_ASK_AMOUNT, confirm=T.DEPOSIT_CONFIRM,
        ping_type="deposit_check", notifier=notifier,
    )


def build_withdraw_flow(notifier=None) -> SlotFillingFlow:
    return SlotFillingFlow(
        "withdraw", detectors.is_withdraw_inquiry,
        ask_id=T.WITHDRAW_ASK_ID, ask_amount=T.WITHDRAW_ASK_AMOUNT, confirm=T.WITHDRAW_CONFIRM,
        ping_type="withdraw_check", notifier=notifier,
    )


class ConversationEngine:
    """Owns one turn end to end: history, resolution, delivery and persistence.

    ``transport`` is anything with ``send_message(chat_id, text) -> bool``;
    without one the caller is expected to deliver the returned text itself.
    """

    def __init__(self, settings: Optional[Settings] = None, *, store: Optional[ChatStateStore] = None,
                 guard: Optional[DuplicateSendGuard] = None, db: Optional[ChatDB] = None,
                 classifier: Optional[IntentClassifier] = None, notifier=None,
                 promotions: Optional[PromotionStore] = None, rtp: Optional[RtpConfigStore] = None,
                 games: Optional[GameCatalog] = None, brand: Optional[T.BrandConfig] = None,
                 transport=None, rng: Optional[random.Random] = None, logger=None,
                 clock: Callable[[], float] = time.time, debug: bool = False) -> None:
        self.settings = settings or load_settings()
        data_dir = str(self.settings.data_dir)
        self.clock = clock
        self.debug = debug

        self.logger = logger or get_cs_logger()
        self.guard = guard or DuplicateSendGuard(clock=clock, debug=debug)
        self.db = db if db is not None else ChatDB(os.path.join(data_dir, "storage", "chats.json"))
        self.store = store or ChatStateStore(db=self.db, guard=self.guard, clock=clock, debug=debug)
        self.notifier = notifier if notifier is not None else SupportNotifier(
            url=self.settings.support_ping_url, timeout=self.settings.support_ping_timeout, logger=self.logger,
        )
        self.classifier = classifier or IntentClassifier(use_llm=self.settings.use_llm,
                                                         brand=self.settings.brand_name, logger=self.logger)
        self.promotions = promotions or PromotionStore(os.path.join(data_dir, "promotions.json"))
        self.rtp = rtp or RtpConfigStore(os.path.join(data_dir, "rtp.json"))
        self.games = games or GameCatalog(os.path.join(data_dir, "data.json"))
        self.brand = brand or T.BrandConfig(os.path.join(data_dir, "brand-config.json"),
                                            default=self.settings.brand_name)
        self.transport = transport

        self.deposit_flow = build_deposit_flow(self.notifier)
        self.withdraw_flow = build_withdraw_flow(self.notifier)
        self.account_flow = AccountFlow(self.notifier)
        self.resolver = IntentResolver(
            guard=self.guard,
            deposit_flow=self.deposit_flow,
            withdraw_flow=self.withdraw_flow,
            account_flow=self.account_flow,
            promotions=self.promotions,
            rtp=self.rtp,
            games=self.games,
            brand=self.brand,
            classifier=self.classifier,
            notifier=self.notifier,
            rng=rng,
            offtopic_threshold=self.settings.offtopic_threshold,
            logger=self.logger,
            clock=clock,
            debug=debug,
        )

    # Turn
    def handle_turn(self, chat_id: str, message_text: str, message_id: Optional[str] = None,
                    follow_up: bool = False) -> Optional[str]:
        with self.store.lock_for(chat_id):
            return self._handle_turn(chat_id, message_text, message_id, follow_up)

    def _handle_turn(self, chat_id: str, message_text: str, message_id: Optional[str],
                     follow_up: bool) -> Optional[str]:
        state = self.store.get_or_create(chat_id)
        text = (message_text or "").strip()
        now = self.clock()

        first_message = False
        if text:
            first_message = not state.has_received_customer_message
            state.has_received_customer_message = True
            state.append_history(text, "user", ts=now)
            for key, val in detectors.extract_profile(text).items():
                state.context[key] = val
            self._save_message(chat_id, "user", text, now)
            self._safe_log("log_in", chat_id=chat_id, text=text, message_id=message_id)

        resolution = self.resolver.resolve(state, text, message_id=message_id, first_message=first_message)
        reply = resolution.text if resolution else None
        stage = resolution.stage if resolution else None

        if reply is None and follow_up and text:
            reply = self._follow_up(state, text)
            stage = "follow_up" if reply else None

        if reply is None:
            self.store.persist(state)
            return None

        reply = reply[:MAX_REPLY_LENGTH]
        state.append_history(reply, "agent", ts=now)
        state.last_processed_message_id = message_id
        state.last_response_time = now
        state.last_response_type = stage or ""
        self.store.record_response(chat_id, now)

        delivered = self._deliver(chat_id, reply)
        self._safe_log("log_out", chat_id=chat_id, text=reply, stage=stage, delivered=delivered)
        if not delivered:
            self.store.persist(state)
            return None

        self.guard.mark_sent(chat_id, reply)
        self._save_message(chat_id, "agent", reply, now)
        self.store.persist(state)
        if self.debug:
            print(f"[ENGINE] {chat_id} [{stage}] → {reply[:80]}")
        return reply

    def _follow_up(self, state, text: str) -> Optional[str]:
        if self.deposit_flow.is_active(state) or self.withdraw_flow.is_active(state):
            return None
        if state.account_change_flow is not None or T.echoes_agent_prompt(text):
            return None
        if self.guard.was_sent(state.chat_id, T.FOLLOW_UP):
            return None
        return T.FOLLOW_UP

    def _deliver(self, chat_id: str, text: str) -> bool:
        if self.transport is None:
            return True
        try:
            return bool(self.transport.send_message(chat_id, text))
        except Exception as e:
            print(f"[ENGINE] ❌ Send failed for chat {chat_id}: {e}")
            return False

    def send_welcome(self, chat_id: str) -> Optional[str]:
        """Idle welcome for a chat that has not said anything yet."""
        with self.store.lock_for(chat_id):
            return self._send_welcome(chat_id)

    def _send_welcome(self, chat_id: str) -> Optional[str]:
        state = self.store.get_or_create(chat_id)
        if state.has_sent_welcome or state.has_received_customer_message:
            return None
        text = self.brand.welcome_message()
        if self.guard.was_sent(chat_id, text):
            return None
        if not self._deliver(chat_id, text):
            return None
        now = self.clock()
        state.has_sent_welcome = True
        state.has_sent_welcome_at = now
        state.append_history(text, "agent", ts=now)
        self.guard.mark_sent(chat_id, text)
        self._save_message(chat_id, "agent", text, now)
        self.store.persist(state)
        return text

    # Helpers
    def _save_message(self, chat_id: str, role: str, content: str, now: float) -> None:
        if self.db is None:
            return
        try:
            self.db.add_message(chat_id, role, content, now=now)
        except Exception as e:
            print(f"[ENGINE] Failed to save {role} message for {chat_id}: {e}")

    def _safe_log(self, method: str, **kwargs: Any) -> None:
        try:
            getattr(self.logger, method)(**kwargs)
        except Exception as e:
            print(f"[ENGINE] Logger {method} failed: {e}")

    def chat_state(self, chat_id: str) -> Dict[str, Any]:
        return self.store.get_or_create(chat_id).to_dict()

    def reset_chat(self, chat_id: str, clear_messages: bool = False) -> int:
        with self.store.lock_for(chat_id):
            self.store.clear(chat_id)
            if self.db is None:
                return 0
            return self.db.reset_chat(chat_id, ChatState(chat_id, started=self.clock()).to_dict(),
                                      clear_messages=clear_messages)
