import sys
import os
import asyncio
import threading
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from livecs.convo import templates as T
from livecs.livechat.poller import FAST_SWEEP_EVERY, FULL_SWEEP_EVERY, ChatPoller


class FakeLiveChat:
    def __init__(self, chats=None, latest=None, archived=False):
        self.chats = chats or []
        self.latest = latest or {}
        self.archived = archived
        self.latest_calls = []

    def list_active_conversations(self):
        return list(self.chats)

    def get_latest_customer_message(self, chat_id):
        self.latest_calls.append(chat_id)
        return self.latest.get(chat_id)

    def is_archived(self, chat_id):
        return self.archived


def customer_message(clock, chat_id="c1", event_id="e1", text="cek deposit saya", **extra):
    msg = {"id": event_id, "messageId": f"{chat_id}_{event_id}", "text": text,
           "author_id": "cust-1", "created_ts": clock()}
    msg.update(extra)
    return msg


@pytest.fixture
def livechat():
    return FakeLiveChat()


@pytest.fixture
def poller(engine, livechat, clock):
    return ChatPoller(engine, livechat, interval=0.01, min_response_gap=7, clock=clock)


def test_customer_message_is_answered_once(poller, livechat, clock, transport):
    livechat.latest["c1"] = customer_message(clock)

    assert asyncio.run(poller.process_chat({"id": "c1"})) == T.DEPOSIT_ASK_ID
    assert poller.is_processed("c1_e1")
    assert poller.engine.store.get_or_create("c1").last_processed_message_id == "c1_e1"

    clock.advance(30)
    assert asyncio.run(poller.process_chat({"id": "c1"})) is None
    assert transport.sent == [("c1", T.DEPOSIT_ASK_ID)]


def test_min_gap_between_replies(poller, livechat, clock):
    livechat.latest["c1"] = customer_message(clock)
    asyncio.run(poller.process_chat({"id": "c1"}))

    clock.advance(3)
    livechat.latest["c1"] = customer_message(clock, event_id="e2", text="userid: abc123")
    assert asyncio.run(poller.process_chat({"id": "c1"})) is None

    clock.advance(5)
    assert asyncio.run(poller.process_chat({"id": "c1"})) == T.DEPOSIT_ASK_AMOUNT


def test_stale_message_is_skipped(poller, livechat, clock):
    livechat.latest["c1"] = customer_message(clock)
    asyncio.run(poller.process_chat({"id": "c1"}))

    old_ts = clock() - 60
    clock.advance(30)
    livechat.latest["c1"] = customer_message(clock, event_id="e0", text="userid: abc123", created_ts=old_ts)
    assert asyncio.run(poller.process_chat({"id": "c1"})) is None


def test_transfer_notice_from_platform_is_ignored(poller, livechat, clock, transport):
    livechat.latest["c1"] = customer_message(
        clock, text="Looks like I need to transfer you to one of our agents, please stay on chat")

    assert asyncio.run(poller.process_chat({"id": "c1"})) is None
    assert poller.is_processed("c1_e1")
    assert transport.sent == []


def test_idle_chat_gets_welcome(poller, clock, transport):
    reply = asyncio.run(poller.process_chat({"id": "c2"}))

    assert reply == poller.engine.brand.welcome_message()
    assert poller.engine.store.get_or_create("c2").has_sent_welcome is True
    assert poller.engine.store.last_response_at("c2") == clock()
    assert asyncio.run(poller.process_chat({"id": "c2"})) is None
    assert len(transport.sent) == 1


def test_welcome_when_last_message_is_from_agent(poller, livechat, clock):
    livechat.latest["c3"] = customer_message(clock, chat_id="c3", author_type="agent")
    assert asyncio.run(poller.process_chat({"id": "c3"})) == poller.engine.brand.welcome_message()


def test_archived_chat_is_skipped(engine, clock, transport):
    livechat = FakeLiveChat(latest={"c1": customer_message(clock)}, archived=True)
    poller = ChatPoller(engine, livechat, clock=clock)
    assert asyncio.run(poller.process_chat({"id": "c1"})) is None
    assert transport.sent == []


def test_chat_is_not_processed_twice_at_once(poller, livechat, clock):
    livechat.latest["c1"] = customer_message(clock)
    assert poller._acquire("c1") is True

    assert asyncio.run(poller.process_chat({"id": "c1"})) is None
    assert livechat.latest_calls == []

    poller._release("c1")
    assert asyncio.run(poller.process_chat({"id": "c1"})) == T.DEPOSIT_ASK_ID


def test_processed_ids_are_bounded(poller):
    for i in range(1002):
        poller.mark_processed(f"id-{i}")
    assert not poller.is_processed("id-0")
    assert poller.is_processed("id-1001")


def test_tick_handles_every_chat(poller, livechat, clock, transport):
    livechat.chats = [{"id": "c1"}, {"id": "c2"}]
    livechat.latest["c1"] = customer_message(clock)

    assert asyncio.run(poller.tick()) == 2
    assert sorted(chat_id for chat_id, _ in transport.sent) == ["c1", "c2"]


def test_maintenance_runs_fast_sweep(poller, clock, monkeypatch):
    calls = []
    monkeypatch.setattr(poller.engine.store, "fast_sweep", lambda: calls.append("fast"))
    monkeypatch.setattr(poller.engine.store, "sweep", lambda: calls.append("full"))

    poller.maintenance()
    clock.advance(FAST_SWEEP_EVERY)
    poller.maintenance()
    assert calls == ["fast"]


def test_run_until_stopped(poller, livechat, monkeypatch):
    flushed = []
    monkeypatch.setattr(poller.engine.store, "shutdown", lambda: flushed.append(True))

    async def main():
        task = asyncio.create_task(poller.run())
        await asyncio.sleep(0.05)
        poller.stop()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(main())
    assert poller.stopping
    assert flushed == [True]


def test_slow_turn_keeps_chat_locked_until_it_finishes(poller, livechat, clock, transport, monkeypatch):
    livechat.latest["c1"] = customer_message(clock)
    poller.turn_timeout = 0.05
    gate = threading.Event()
    running = []
    peak = []
    real_turn = poller.engine.handle_turn

    def slow_turn(*args, **kwargs):
        running.append(1)
        peak.append(len(running))
        gate.wait(2)
        try:
            return real_turn(*args, **kwargs)
        finally:
            running.pop()

    monkeypatch.setattr(poller.engine, "handle_turn", slow_turn)

    async def main():
        assert await poller.process_chat({"id": "c1"}) is None
        assert await poller.process_chat({"id": "c1"}) is None
        assert livechat.latest_calls == ["c1"]

        gate.set()
        for _ in range(200):
            if not poller._acquire("c1"):
                await asyncio.sleep(0.01)
                continue
            poller._release("c1")
            break

    asyncio.run(main())
    assert max(peak) == 1
    assert transport.sent == [("c1", T.DEPOSIT_ASK_ID)]
    assert poller.is_processed("c1_e1")


def test_full_sweep_also_evicts_payment_states(engine, livechat, clock, monkeypatch):
    class FakePayment:
        def __init__(self):
            self.evictions = []

        def evict_older_than(self, max_age):
            self.evictions.append(max_age)
            return 0

    payment = FakePayment()
    poller = ChatPoller(engine, livechat, clock=clock, payment=payment)
    monkeypatch.setattr(engine.store, "sweep", lambda: None)

    clock.advance(FULL_SWEEP_EVERY)
    poller.maintenance()
    assert payment.evictions == [24 * 60 * 60]
