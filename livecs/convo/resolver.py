"""Ordered intent pipeline.

Each stage takes a ``TurnContext`` and answers with a ``StageResult``:
``handled`` (this is the reply), ``delegate`` (not mine, try the next stage)
or ``no_reply`` (the turn is answered by silence). The first stage that does
not delegate wins, and its text still has to pass the duplicate-send guard.
"""
import random
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import detectors
from . import offtopic
from . import templates as T
from .session_logger import get_cs_logger
from .slot_filling import SlotFillingFlow
from .state import ChatState
from .text_normalizer import TextNormalizer
from ..catalog.promotions import format_promotions_details_list_id, format_promotions_id
from ..catalog.rtp_config import format_rtp_config

HANDLED = "handled"
DELEGATE = "delegate"
NO_REPLY = "no_reply"

AI_DISCLOSURE_RE = re.compile(
    r"i\s*am\s*an\s*ai|as an ai|i'm an ai|i am a language model|i cannot|i'm sorry|i do not understand|"
    r"i don't know|i am unable|saya\s+(adalah\s+)?(sebuah\s+)?(ai|bot|asisten\s+virtual|model\s+bahasa)",
    re.I,
)


class StageResult:
    def __init__(self, kind: str, text: Optional[str] = None):
        self.kind = kind
        self.text = text

    @classmethod
    def handled(cls, text: str) -> "StageResult":
        return cls(HANDLED, text)

    @classmethod
    def delegate(cls) -> "StageResult":
        return cls(DELEGATE)

    @classmethod
    def no_reply(cls) -> "StageResult":
        return cls(NO_REPLY)

    def __repr__(self):
        return f"StageResult({self.kind!r}, {self.text!r})"


class Resolution:
    def __init__(self, text: str, stage: str):
        self.text = text
        self.stage = stage

    def to_dict(self):
        return self.__dict__


class TurnContext:
    """Inputs of one turn. LLM intents and the off-topic score are computed on first use."""

    def __init__(self, state: ChatState, text: str, message_id: Optional[str] = None,
                 first_message: bool = False, classifier=None, offtopic_threshold: int = 4,
                 normalizer: Optional[TextNormalizer] = None):
        self.state = state
        self.chat_id = state.chat_id
        self.text = text or ""
        self.message_id = message_id
        self.first_message = first_message
        self.classifier = classifier
        self.offtopic_threshold = offtopic_threshold
        self.normalized = (normalizer or TextNormalizer()).normalize_for_intent(self.text)
        self._intents: Optional[Dict[str, bool]] = None

    @property
    def intents(self) -> Dict[str, bool]:
        if self._intents is None:
            if self.classifier is None:
                self._intents = {}
            else:
                try:
                    self._intents = self.classifier.classify_intents(self.text, chat_id=self.chat_id)
                except Exception as e:
                    print(f"[RESOLVER] Intent classifier failed: {e}")
                    self._intents = {}
        return self._intents

    def offtopic(self) -> offtopic.OffTopicResult:
        return offtopic.score(self.text, threshold=self.offtopic_threshold)


class IntentResolver:
    def __init__(self, guard, deposit_flow: SlotFillingFlow, withdraw_flow: SlotFillingFlow,
                 account_flow, promotions, rtp, games, brand, classifier=None, notifier=None,
                 rng: Optional[random.Random] = None, offtopic_threshold: int = 4,
                 logger=None, clock: Callable[[], float] = time.time, debug: bool = False):
        self.guard = guard
        self.deposit_flow = deposit_flow
        self.withdraw_flow = withdraw_flow
        self.account_flow = account_flow
        self.promotions = promotions
        self.rtp = rtp
        self.games = games
        self.brand = brand
        self.classifier = classifier
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.offtopic_threshold = offtopic_threshold
        self.logger = logger or get_cs_logger()
        self.clock = clock
        self.debug = debug
        self.normalizer = TextNormalizer()

        self.stages: List[Tuple[str, Callable[[TurnContext], StageResult]]] = [
            ("empty", self.stage_empty),
            ("account_flow", self.stage_account_flow),
            ("raw_data", self.stage_raw_data),
            ("promotions", self.stage_promotions),
            ("rtp", self.stage_rtp),
            ("bank_info", self.stage_bank_info),
            ("support", self.stage_support),
            ("deposit", self.stage_deposit),
            ("withdraw", self.stage_withdraw),
            ("transfer", self.stage_transfer),
            ("game_list", self.stage_game_list),
            ("encouragement", self.stage_encouragement),
            ("off_topic", self.stage_off_topic),
            ("welcome", self.stage_welcome),
            ("fallback", self.stage_fallback),
        ]

    def context(self, state: ChatState, text: str, message_id: Optional[str] = None,
                first_message: bool = False) -> TurnContext:
        return TurnContext(state, text, message_id, first_message, self.classifier,
                           self.offtopic_threshold, self.normalizer)

    def resolve(self, state: ChatState, text: str, message_id: Optional[str] = None,
                first_message: bool = False) -> Optional[Resolution]:
        ctx = self.context(state, text, message_id, first_message)

        for name, stage in self.stages:
            result = stage(ctx)
            if result.kind == DELEGATE:
                continue

            self._log_stage(ctx, name, result)
            if result.kind == NO_REPLY or not result.text:
                return None

            if name != "promotions":
                state.context["is_discussing_promos"] = False

            if self.guard.was_sent(state.chat_id, result.text):
                if self.debug:
                    print(f"[RESOLVER] 🚫 Duplicate {name} reply suppressed in chat {state.chat_id}")
                self._log_guard(state.chat_id, name)
                return None
            return Resolution(result.text, name)

        return None

    # Stages
    def stage_empty(self, ctx: TurnContext) -> StageResult:
        if not ctx.text.strip():
            return StageResult.no_reply()
        return StageResult.delegate()

    def stage_account_flow(self, ctx: TurnContext) -> StageResult:
        if not self.account_flow.wants(ctx.state, ctx.text):
            return StageResult.delegate()
        reply = self.account_flow.handle(ctx.state, ctx.text)
        return StageResult.handled(reply) if reply else StageResult.delegate()

    def stage_raw_data(self, ctx: TurnContext) -> StageResult:
        if not detectors.wants_raw(ctx.text):
            return StageResult.delegate()
        if detectors.is_rtp_request(ctx.text):
            return StageResult.handled(self.rtp.raw_json())
        if detectors.is_promo_request(ctx.text) or ctx.state.context.get("is_discussing_promos"):
            return StageResult.handled(self.promotions.raw_json())
        return StageResult.delegate()

    def stage_promotions(self, ctx: TurnContext) -> StageResult:
        context = ctx.state.context
        follow_up = context.get("is_discussing_promos") and detectors.wants_promo_details(ctx.text)
        asked = follow_up or detectors.is_promo_request(ctx.text) or ctx.intents.get("is_promotion_query")
        if not asked:
            return StageResult.delegate()
        try:
            promos = self.promotions.get_promotions()
            if follow_up:
                reply = format_promotions_details_list_id(promos)
            else:
                reply = format_promotions_id(promos)
        except Exception as e:
            print(f"[RESOLVER] Promo error in chat {ctx.chat_id}: {e}")
            return StageResult.handled(T.PROMO_ERROR)
        context["is_discussing_promos"] = True
        return StageResult.handled(reply)

    def stage_rtp(self, ctx: TurnContext) -> StageResult:
        if not (detectors.is_rtp_request(ctx.text) or ctx.intents.get("is_rtp_query")):
            return StageResult.delegate()
        try:
            return StageResult.handled(format_rtp_config(self.rtp.get_rtp_config()) + T.RTP_FOOTER)
        except Exception as e:
            print(f"[RESOLVER] RTP error in chat {ctx.chat_id}: {e}")
            return StageResult.handled(T.RTP_ERROR)

    def stage_bank_info(self, ctx: TurnContext) -> StageResult:
        if detectors.is_bank_info_query(ctx.text) or detectors.is_bank_info_query(ctx.normalized):
            return StageResult.handled(T.bank_info_response())
        return StageResult.delegate()

    def stage_support(self, ctx: TurnContext) -> StageResult:
        issue = detectors.support_issue_type(ctx.text)
        if issue is None:
            return StageResult.delegate()

        ctx.state.context["issue_type"] = issue
        uid = detectors.probable_user_id(ctx.text) or ctx.state.context.get("user_id") or "anonymous"
        if self.notifier is not None:
            try:
                self.notifier.ping(detectors.ping_type_for(issue), ctx.chat_id, uid, message=ctx.text)
            except Exception as e:
                print(f"[RESOLVER] Support ping failed for {ctx.chat_id}: {e}")

        if issue == "Password Reset":
            return StageResult.handled(T.PASSWORD_ASK_ID)
        return StageResult.handled(T.SUPPORT_ASK_ID)

    def stage_deposit(self, ctx: TurnContext) -> StageResult:
        state = ctx.state
        if self.deposit_flow.is_triggered(ctx.text):
            return StageResult.handled(self.deposit_flow.handle(state, ctx.text).text)
        if not self.deposit_flow.is_active(state):
            return StageResult.delegate()
        # an open withdraw dialogue that spoke last keeps the turn
        if self.withdraw_flow.is_triggered(ctx.text):
            return StageResult.delegate()
        if self.withdraw_flow.is_active(state) and state.last_response_type == "withdraw":
            return StageResult.delegate()
        return StageResult.handled(self.deposit_flow.handle(state, ctx.text).text)

    def stage_withdraw(self, ctx: TurnContext) -> StageResult:
        if not self.withdraw_flow.wants(ctx.state, ctx.text):
            return StageResult.delegate()
        return StageResult.handled(self.withdraw_flow.handle(ctx.state, ctx.text).text)

    def stage_transfer(self, ctx: TurnContext) -> StageResult:
        if not ctx.intents.get("wants_transfer_to_agent"):
            return StageResult.delegate()
        if ctx.state.has_sent_transfer_notice:
            return StageResult.no_reply()
        ctx.state.has_sent_transfer_notice = True
        return StageResult.handled(T.TRANSFER_NOTICE)

    def stage_game_list(self, ctx: TurnContext) -> StageResult:
        if detectors.is_game_list_query(ctx.text) or ctx.intents.get("is_game_list_query"):
            return StageResult.handled(self.games.game_list_response())
        return StageResult.delegate()

    def stage_encouragement(self, ctx: TurnContext) -> StageResult:
        if not (detectors.is_frustrated_or_losing(ctx.text) or detectors.is_frustrated_or_losing(ctx.normalized)):
            return StageResult.delegate()
        if ctx.offtopic().is_off_topic:
            return StageResult.delegate()
        return StageResult.handled(T.LOSING_ENCOURAGEMENT)

    def stage_off_topic(self, ctx: TurnContext) -> StageResult:
        result = ctx.offtopic()
        if not result.is_off_topic:
            return StageResult.delegate()

        state = ctx.state
        state.off_topic_warning_count += 1
        print(f"[RESOLVER] 💬 {result.type} detected in chat {ctx.chat_id} (score: {result.score})")
        try:
            self.games.add_offtopic_question(ctx.text)
        except Exception as e:
            print(f"[RESOLVER] Could not record off-topic question: {e}")
        return StageResult.handled(
            T.warning_message(state.off_topic_warning_count) + T.pick(self.rng, T.CASINO_NUDGES)
        )

    def stage_welcome(self, ctx: TurnContext) -> StageResult:
        state = ctx.state
        greeting = detectors.is_greeting(ctx.text)
        if not state.has_sent_welcome and (ctx.first_message or greeting):
            state.has_sent_welcome = True
            state.has_sent_welcome_at = self.clock()
            print(f"[RESOLVER] 👋 Sending welcome message to chat {ctx.chat_id}")
            return StageResult.handled(self.brand.welcome_message())
        if greeting and state.has_sent_welcome:
            return StageResult.handled(T.SECOND_GREETING)
        return StageResult.delegate()

    def stage_fallback(self, ctx: TurnContext) -> StageResult:
        clarify = T.pick(self.rng, T.CLARIFY_TEMPLATES)
        if ctx.offtopic().is_off_topic:
            return StageResult.handled(clarify)
        if self.classifier is None or not getattr(self.classifier, "available", False):
            return StageResult.handled(clarify)

        context = ctx.state.context
        try:
            system = self.classifier.build_reply_system(context)
            out = self.classifier.generate_reply(system, ctx.text, chat_id=ctx.chat_id)
        except Exception as e:
            print(f"[RESOLVER] Reply generation error: {e}")
            return StageResult.handled(clarify)

        reply = self._apply_generated(context, out)
        if not reply or len(reply) < 3 or AI_DISCLOSURE_RE.search(reply):
            return StageResult.handled(clarify)
        return StageResult.handled(self.classifier.translate(reply, context.get("language") or "id"))

    @staticmethod
    def _apply_generated(context: Dict[str, Any], out: Any) -> str:
        if not isinstance(out, dict):
            return ""
        extra = out.get("context")
        if isinstance(extra, dict):
            if extra.get("userId"):
                context["user_id"] = extra["userId"]
            if extra.get("amount"):
                context["deposit_amount"] = extra["amount"]
        if out.get("intent"):
            context["issue_type"] = out["intent"]
        reply = out.get("reply")
        return reply.strip() if isinstance(reply, str) else ""

    # Logging
    def _log_stage(self, ctx: TurnContext, stage: str, result: StageResult) -> None:
        try:
            self.logger.log_stage(chat_id=ctx.chat_id, stage=stage,
                                  info={"kind": result.kind, "message_id": ctx.message_id},
                                  response=result.text)
        except Exception as e:
            print(f"[RESOLVER] Failed to log stage: {e}")

    def _log_guard(self, chat_id: str, stage: str) -> None:
        try:
            self.logger.log_guard(chat_id=chat_id, rule="duplicate_send", trigger=stage, action="suppressed")
        except Exception as e:
            print(f"[RESOLVER] Failed to log guard: {e}")
