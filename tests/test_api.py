import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from fastapi.testclient import TestClient

from livecs.api import create_app
from livecs.convo import templates as T
from livecs.convo.payment_assistant import PAYMENT_TEMPLATES, PaymentAssistant, SubscriptionDirectory
from livecs.convo.support_ping import SupportPingInbox

SECRET = "test_secret"


@pytest.fixture
def client(tmp_path, settings, make_engine, clock):
    payment = PaymentAssistant(SubscriptionDirectory(str(tmp_path / "subscriptions.json")), clock=clock)
    app = create_app(settings, engine=make_engine(), inbox=SupportPingInbox(clock=clock), payment=payment)
    return TestClient(app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["llm"] is False


def test_chat_turn_and_state(client):
    r = client.post("/chat", json={"chat_id": "c1", "text": "cek deposit saya"})
    body = r.json()
    assert r.status_code == 200
    assert body["reply"] == T.DEPOSIT_ASK_ID
    assert body["stage"] == "deposit"

    state = client.get("/chat-state/c1").json()["state"]
    assert state["deposit_state"]["active"] is True
    assert state["context"]["conversation_history"][0]["message"] == "cek deposit saya"


def test_chat_empty_message(client):
    body = client.post("/chat", json={"chat_id": "c1", "text": "   "}).json()
    assert body["reply"] is None
    assert body["meta"] == {"error": "empty message"}


def test_dev_reset_command(client):
    client.post("/chat", json={"chat_id": "c1", "text": "cek deposit saya"})

    bad = client.post("/chat", json={"chat_id": "c1", "text": "/dev reset wrong"}).json()
    assert bad["ok"] is False

    good = client.post("/chat", json={"chat_id": "c1", "text": f"/dev reset {SECRET}"}).json()
    assert good["ok"] is True
    assert good["meta"]["admin_action"] == "memory_reset"
    assert client.get("/chat-state/c1").json()["state"]["deposit_state"]["active"] is False


def test_promotions_crud(client):
    assert len(client.get("/api/promotions").json()["promotions"]) == 3

    missing = client.post("/api/promotions", json={"title": "Cashback", "description": "5%"})
    assert missing.status_code == 400

    created = client.post("/api/promotions", json={
        "title": "Cashback", "description": "Cashback mingguan", "discount": 5,
        "eligibleItems": "Slot, Live Casino",
    })
    assert created.status_code == 201
    promo = created.json()["promotion"]
    assert promo["id"] == 4
    assert promo["eligibleItems"] == ["Slot", "Live Casino"]

    updated = client.put("/api/promotions/4", json={"discount": 7})
    assert updated.json()["promotion"]["discount"] == 7
    assert client.put("/api/promotions/99", json={"discount": 1}).status_code == 404

    assert client.delete("/api/promotions/4").status_code == 200
    assert client.delete("/api/promotions/4").status_code == 404


def test_rtp_endpoints(client):
    assert client.get("/api/rtp").json()["rtpLink"] == "https://example.com/rtp"
    assert client.put("/api/rtp", json={"rtpLink": "rtp.example.com"}).status_code == 400
    assert client.put("/api/rtp", json={}).status_code == 400

    r = client.put("/api/rtp", json={"rtpLink": "https://rtp.example.com"})
    assert r.json() == {"success": True, "rtpLink": "https://rtp.example.com"}
    assert client.get("/api/rtp").json()["rtpLink"] == "https://rtp.example.com"


def test_brand_settings(client):
    assert client.get("/settings").json()["brandName"] == "GoodCasino"
    assert client.post("/settings", json={"brandName": ""}).status_code == 422

    body = client.post("/settings", json={"brandName": "LuckySpin"}).json()
    assert body["brandName"] == "LuckySpin"
    assert "LuckySpin" in body["welcomeMessage"]

    reply = client.post("/chat", json={"chat_id": "c5", "text": "halo"}).json()["reply"]
    assert "LuckySpin" in reply


def test_support_ping_inbox(client):
    assert client.post("/support-ping", json={"chatId": "c1"}).status_code == 400

    r = client.post("/support-ping", json={"chatId": "c1", "userId": "abc123", "amount": 50000})
    assert r.json()["ping"]["type"] == "deposit_check"

    pings = client.get("/support-pings", params={"markRead": "true"}).json()["pings"]
    assert [p["userId"] for p in pings] == ["abc123"]
    assert client.get("/support-pings").json()["pings"] == []


def test_payment_chat(client):
    body = client.post("/payment/chat", json={"chat_id": "p1", "text": "halo"}).json()
    assert body["reply"] == PAYMENT_TEMPLATES["id"]["welcome"]
    assert body["paymentState"] == "collecting_cid"
    assert "conversation_history" not in body["context"]

    body = client.post("/payment/chat", json={"chat_id": "p1", "text": "cid 12345"}).json()
    assert body["paymentState"] == "ready_for_payment"
    assert body["context"]["cid"] == "12345"


def test_admin_reset_chat(client):
    client.post("/chat", json={"chat_id": "c1", "text": "cek deposit saya"})

    assert client.post("/admin/reset-chat", params={"chat_id": "c1", "secret": "nope"}).status_code == 403

    r = client.post("/admin/reset-chat", params={"chat_id": "c1", "secret": SECRET, "clear_messages": "true"})
    assert r.status_code == 200
    assert r.json()["messages_removed"] == 2


def test_admin_memory_stats_and_classify(client):
    client.post("/chat", json={"chat_id": "c1", "text": "cek deposit saya"})

    assert client.get("/admin/memory-stats", params={"secret": "nope"}).status_code == 403
    stats = client.get("/admin/memory-stats", params={"secret": SECRET}).json()
    assert stats["stats"]["total_chats"] == 1
    assert stats["db"]["totalMessages"] == 2

    out = client.post("/admin/classify", params={"secret": SECRET},
                      json={"chat_id": "c1", "text": "cek wd dong"}).json()
    assert out["withdraw"] is True
    assert out["deposit"] is False
    assert out["intents"] == {}


def test_default_payment_wiring_pings_support(settings, make_engine, notifier):
    client = TestClient(create_app(settings, engine=make_engine(), inbox=SupportPingInbox()))
    for text in ("halo", "cid 12345", "sudah saya upload bukti transfer", "oke sudah saya transfer ya"):
        client.post("/payment/chat", json={"chat_id": "p1", "text": text})

    assert [p["type"] for p in notifier.pings] == ["payment_submission"]
    assert notifier.pings[0]["user_id"] == "12345"
