import sys
import os
import threading
import time
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from conftest import FakeClassifier, FakeTransport
from livecs.convo import templates as T


def test_deposit_check_over_three_turns(engine, notifier, transport):
    print("\n" + "=" * 60)
    print("SCENARIO: deposit check over three turns")
    print("=" * 60)

    r1 = engine.handle_turn("c1", "cek deposit saya", message_id="m1")
    r2 = engine.handle_turn("c1", "userid: abc123", message_id="m2")
    r3 = engine.handle_turn("c1", "500rb", message_id="m3")
    for r in (r1, r2, r3):
        print(f"  → {r}")

    assert r1 == T.DEPOSIT_ASK_ID
    assert r2 == T.DEPOSIT_ASK_AMOUNT
    assert "abc123" in r3 and "500.000" in r3

    state = engine.store.get_or_create("c1")
    assert state.deposit_state == {"active": False, "user_id": None, "amount": None}
    assert state.context["last_deposit_check"] == {"user_id": "abc123", "amount": 500000}
    assert state.last_processed_message_id == "m3"
    assert notifier.pings[-1]["type"] == "deposit_check"
    assert notifier.pings[-1]["amount"] == 500000
    assert [text for _, text in transport.sent] == [r1, r2, r3]


def test_withdraw_does_not_touch_deposit_slots(engine):
    engine.handle_turn("c1", "cek deposit saya")
    assert engine.handle_turn("c1", "cek wd dong") == T.WITHDRAW_ASK_ID
    assert engine.handle_turn("c1", "abc123") == T.WITHDRAW_ASK_AMOUNT

    state = engine.store.get_or_create("c1")
    assert state.deposit_state == {"active": True, "user_id": None, "amount": None}
    assert state.withdraw_state["user_id"] == "abc123"
    assert state.last_response_type == "withdraw"


def test_history_records_both_sides(engine):
    reply = engine.handle_turn("c1", "cek deposit saya")
    history = engine.store.get_or_create("c1").history()
    assert [(h["type"], h["message"]) for h in history] == [("user", "cek deposit saya"), ("agent", reply)]


def test_messages_saved_to_db(engine):
    reply = engine.handle_turn("c1", "cek deposit saya")
    rows = engine.db.get_messages("c1")
    assert [(r["role"], r["content"]) for r in rows] == [("agent", reply), ("user", "cek deposit saya")]


def test_delivery_failure_returns_none(make_engine):
    failing = FakeTransport(ok=False)
    engine = make_engine(transport_override=failing)

    assert engine.handle_turn("c1", "cek deposit saya") is None
    assert failing.sent == [("c1", T.DEPOSIT_ASK_ID)]
    assert not engine.guard.was_sent("c1", T.DEPOSIT_ASK_ID)
    assert [r["role"] for r in engine.db.get_messages("c1")] == ["user"]


def test_failed_reply_can_be_retried(make_engine):
    transport = FakeTransport(ok=False)
    engine = make_engine(transport_override=transport)
    engine.handle_turn("c1", "cek deposit saya")

    transport.ok = True
    assert engine.handle_turn("c1", "cek deposit saya") == T.DEPOSIT_ASK_ID


def test_reply_is_truncated(make_engine):
    engine = make_engine(classifier=FakeClassifier(reply={"reply": "Baccarat " * 300}))
    state = engine.store.get_or_create("c1")
    state.has_sent_welcome = True
    state.has_received_customer_message = True

    reply = engine.handle_turn("c1", "bagaimana cara main baccarat yang benar?")
    assert len(reply) == 1000


def test_follow_up_when_resolver_stays_silent(engine):
    engine.handle_turn("c1", "halo")
    engine.handle_turn("c1", "halo")

    assert engine.handle_turn("c1", "halo", follow_up=True) == T.FOLLOW_UP
    assert engine.store.get_or_create("c1").last_response_type == "follow_up"
    assert engine.handle_turn("c1", "halo", follow_up=True) is None


def test_no_follow_up_inside_open_flow(engine):
    engine.handle_turn("c1", "cek deposit saya")
    # same ask again is suppressed by the guard, the open flow keeps quiet
    assert engine.handle_turn("c1", "cek deposit saya", follow_up=True) is None


def test_send_welcome_once(engine, transport):
    text = engine.send_welcome("c9")
    assert text == engine.brand.welcome_message()
    assert engine.send_welcome("c9") is None
    assert transport.sent == [("c9", text)]
    assert engine.store.get_or_create("c9").has_sent_welcome is True


def test_no_idle_welcome_after_customer_spoke(engine):
    engine.handle_turn("c9", "cek deposit saya")
    assert engine.send_welcome("c9") is None


def test_reset_chat(engine):
    engine.handle_turn("c1", "cek deposit saya")
    removed = engine.reset_chat("c1", clear_messages=True)

    state = engine.store.get_or_create("c1")
    assert removed == 2
    assert state.deposit_state["active"] is False
    assert state.history() == []
    assert engine.db.get_messages("c1") == []
    assert not engine.guard.was_sent("c1", T.DEPOSIT_ASK_ID)


def test_state_survives_restart(make_engine):
    first = make_engine()
    first.handle_turn("c1", "cek deposit saya")
    first.store.shutdown()

    second = make_engine()
    state = second.store.get_or_create("c1")
    assert state.deposit_state["active"] is True
    assert state.has_received_customer_message is True


class SlowTransport(FakeTransport):
    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0
        self._count_lock = threading.Lock()

    def send_message(self, chat_id, text):
        with self._count_lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        time.sleep(0.05)
        with self._count_lock:
            self.in_flight -= 1
        return super().send_message(chat_id, text)


def test_turns_for_one_chat_run_one_at_a_time(make_engine):
    transport = SlowTransport()
    engine = make_engine(transport_override=transport)
    threads = [
        threading.Thread(target=engine.handle_turn, args=("c1", "cek deposit saya", "m1")),
        threading.Thread(target=engine.handle_turn, args=("c1", "cek wd dong", "m2")),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert transport.peak == 1
    assert len(transport.sent) == 2
    history = engine.store.get_or_create("c1").history()
    assert [h["type"] for h in history] == ["user", "agent", "user", "agent"]


def test_other_chats_are_not_blocked(engine):
    with engine.store.lock_for("c1"):
        assert engine.handle_turn("c2", "cek deposit saya") == T.DEPOSIT_ASK_ID
