import os, time
from threading import Thread
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from livecs.config import Settings, load_settings
from livecs.convo import detectors
from livecs.convo.engine import ConversationEngine
from livecs.convo.memory_store import STATE_MAX_AGE
from livecs.convo.payment_assistant import PaymentAssistant, SubscriptionDirectory
from livecs.convo.sent_guard import DuplicateSendGuard
from livecs.convo.support_ping import SupportPingInbox

SWEEP_INTERVAL = 2 * 60 * 60


class ChatIn(BaseModel):
    chat_id: str
    text: str
    message_id: Optional[str] = None

class ChatOut(BaseModel):
    ok: bool = True
    reply: Optional[str] = None
    stage: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

class PromotionIn(BaseModel):
    title: str
    description: str
    discount: Optional[float] = None
    bonusPercentage: Optional[float] = None
    code: Optional[str] = None
    timeLimit: Optional[Dict[str, Any]] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    terms: Optional[Any] = None
    howToClaim: Optional[Any] = None
    maxBonus: Optional[Any] = None
    eligibleItems: Optional[Any] = None
    eligibleGames: Optional[Any] = None

class RtpIn(BaseModel):
    rtpLink: Optional[str] = None

class SupportPingIn(BaseModel):
    type: str = "deposit_check"
    chatId: Optional[str] = None
    userId: Optional[str] = None
    amount: Optional[Any] = None
    language: str = "id"
    message: Optional[str] = ""

class BrandIn(BaseModel):
    brandName: str = Field(..., min_length=1)

class PaymentChatIn(BaseModel):
    chat_id: str
    text: str


def _eligible(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return list(value) if isinstance(value, (list, tuple)) else []


def create_app(settings: Optional[Settings] = None, engine: Optional[ConversationEngine] = None,
               inbox: Optional[SupportPingInbox] = None,
               payment: Optional[PaymentAssistant] = None) -> FastAPI:
    settings = settings or load_settings()
    engine = engine or ConversationEngine(settings)
    inbox = inbox or SupportPingInbox()
    payment = payment or PaymentAssistant(
        directory=SubscriptionDirectory(os.path.join(str(settings.data_dir), "subscriptions.json")),
        guard=DuplicateSendGuard(),
        notifier=engine.notifier,
        offtopic_threshold=settings.payment_offtopic_threshold,
    )

    app = FastAPI(title="LiveCS API", version="1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine
    app.state.inbox = inbox
    app.state.payment = payment

    def periodic_sweep():
        while True:
            time.sleep(SWEEP_INTERVAL)
            try:
                engine.store.sweep()
                payment.evict_older_than(STATE_MAX_AGE)
            except Exception as e:
                print(f"[SWEEP] Error: {e}")

    @app.on_event("startup")
    async def startup_event():
        Thread(target=periodic_sweep, daemon=True).start()
        print(f"[SWEEP] Background state sweep started (every {SWEEP_INTERVAL}s)")

    def check_secret(secret: str) -> None:
        if secret != settings.admin_secret:
            raise HTTPException(status_code=403, detail="Invalid secret key")

    @app.get("/health")
    def health():
        return {
            "ok": True,
            "engine_ready": True,
            "llm": engine.classifier.available,
            "version": app.version,
        }

    @app.post("/chat", response_model=ChatOut)
    def chat(payload: ChatIn):
        start = time.time()
        user_text = payload.text.strip()
        if not user_text:
            return {"ok": True, "reply": None, "meta": {"error": "empty message"}}

        if user_text.startswith("/dev reset "):
            parts = user_text.split()
            if len(parts) >= 3 and parts[2] == settings.admin_secret:
                engine.reset_chat(payload.chat_id)
                return {"ok": True, "reply": f"✅ Memory reset berhasil untuk chat: {payload.chat_id}",
                        "meta": {"admin_action": "memory_reset", "chat_id": payload.chat_id}}
            return {"ok": False, "reply": "❌ Invalid secret key", "meta": {"error": "invalid_secret"}}

        try:
            reply = engine.handle_turn(payload.chat_id, user_text, payload.message_id)
            stage = engine.chat_state(payload.chat_id).get("last_response_type") if reply else None
        except Exception as e:
            print(f"[API] ❌ chat: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        duration = round((time.time() - start) * 1000, 2)
        print(f"[API] {payload.chat_id} | {user_text[:60]} ({duration}ms)")
        return {"ok": True, "reply": reply, "stage": stage or None, "meta": {"took_ms": duration}}

    @app.get("/chat-state/{chat_id}")
    def chat_state(chat_id: str):
        try:
            return {"success": True, "chatId": chat_id, "state": engine.chat_state(chat_id)}
        except Exception as e:
            print(f"[API] ❌ chat_state: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    # Promotions
    @app.get("/api/promotions")
    def list_promotions():
        promos = engine.promotions.get_promotions()
        if not promos:
            return {"success": True, "message": "There are no active promotions at the moment.", "promotions": []}
        return {"success": True, "promotions": promos}

    @app.post("/api/promotions", status_code=201)
    def add_promotion(payload: PromotionIn):
        if payload.discount is None and payload.bonusPercentage is None:
            raise HTTPException(status_code=400, detail="Missing required fields")
        data = payload.model_dump(exclude_none=True)
        elig = _eligible(payload.eligibleItems if payload.eligibleItems is not None else payload.eligibleGames)
        data["eligibleItems"] = elig
        data["eligibleGames"] = elig
        try:
            return {"success": True, "promotion": engine.promotions.add_promotion(data)}
        except Exception as e:
            print(f"[API] ❌ add_promotion: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.put("/api/promotions/{promo_id}")
    def update_promotion(promo_id: int, updates: Dict[str, Any]):
        updated = engine.promotions.update_promotion(promo_id, updates)
        if updated is None:
            raise HTTPException(status_code=404, detail="Promotion not found")
        return {"success": True, "promotion": updated}

    @app.delete("/api/promotions/{promo_id}")
    def delete_promotion(promo_id: int):
        if not engine.promotions.delete_promotion(promo_id):
            raise HTTPException(status_code=404, detail="Promotion not found")
        return {"success": True}

    # RTP
    @app.get("/api/rtp")
    def get_rtp():
        return {"success": True, **engine.rtp.get_rtp_config()}

    @app.put("/api/rtp")
    def put_rtp(payload: RtpIn):
        try:
            link = engine.rtp.update_rtp_link(payload.rtpLink)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OSError as e:
            print(f"[API] ❌ Failed to update RTP link: {e}")
            raise HTTPException(status_code=500, detail="Failed to update RTP link")
        return {"success": True, "rtpLink": link}

    # Brand
    @app.get("/settings")
    def get_settings():
        return {"success": True, "brandName": engine.brand.name, "welcomeMessage": engine.brand.welcome_message()}

    @app.post("/settings")
    def post_settings(payload: BrandIn):
        if not engine.brand.update(payload.brandName):
            raise HTTPException(status_code=500, detail="Failed to save brand config")
        return {"success": True, "brandName": engine.brand.name, "welcomeMessage": engine.brand.welcome_message()}

    # Support pings
    @app.post("/support-ping")
    def support_ping(payload: SupportPingIn):
        try:
            ping = inbox.create(chat_id=payload.chatId, user_id=payload.userId, ping_type=payload.type,
                                amount=payload.amount, language=payload.language, message=payload.message or "")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        print(f"[API] 🔔 Support ping {ping['type']} for chat {ping['chatId']}")
        return {"success": True, "ping": ping}

    @app.get("/support-pings")
    def support_pings(markRead: bool = Query(False)):
        return {"success": True, "pings": inbox.unread(mark_read=markRead)}

    # Payment assistant
    @app.post("/payment/chat")
    def payment_chat(payload: PaymentChatIn):
        try:
            reply = payment.handle(payload.chat_id, payload.text)
            state = payment.get_state(payload.chat_id)
        except Exception as e:
            print(f"[API] ❌ payment_chat: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"success": True, "reply": reply, "paymentState": state.payment_state,
                "context": {k: v for k, v in state.context.items() if k != "conversation_history"}}

    # Admin
    @app.post("/admin/reset-chat")
    def admin_reset_chat(chat_id: str, secret: str = Query(...), clear_messages: bool = Query(False)):
        check_secret(secret)
        try:
            removed = engine.reset_chat(chat_id, clear_messages=clear_messages)
            payment.reset(chat_id)
        except Exception as e:
            print(f"[API] ❌ admin_reset_chat: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"ok": True, "message": f"Memory reset berhasil untuk chat: {chat_id}",
                "chat_id": chat_id, "messages_removed": removed}

    @app.get("/admin/memory-stats")
    def admin_memory_stats(secret: str = Query(...)):
        check_secret(secret)
        return {"ok": True, "stats": engine.store.stats(), "db": engine.db.stats() if engine.db else None}

    @app.post("/admin/classify")
    def admin_classify(payload: ChatIn, secret: str = Query(...)):
        check_secret(secret)
        text = payload.text
        return {
            "ok": True,
            "deposit": detectors.is_deposit_inquiry(text),
            "withdraw": detectors.is_withdraw_inquiry(text),
            "promo": detectors.is_promo_request(text),
            "rtp": detectors.is_rtp_request(text),
            "support": detectors.needs_support_ping(text),
            "intents": engine.classifier.classify_intents(text, payload.chat_id),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=load_settings().app_port)
