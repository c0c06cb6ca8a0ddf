import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from conftest import FakeClock
from livecs.convo.memory_store import ChatStateStore, STATE_MAX_AGE
from livecs.convo.sent_guard import DuplicateSendGuard
from livecs.convo.state import ChatState, MAX_HISTORY
from livecs.storage.chat_db import ChatDB


def test_get_or_create_is_idempotent():
    store = ChatStateStore(clock=FakeClock())
    first = store.get_or_create("chat-1")
    second = store.get_or_create("chat-1")
    assert first is second
    assert first.to_dict() == second.to_dict()
    assert first.deposit_state == {"active": False, "user_id": None, "amount": None}
    assert first.withdraw_state == {"active": False, "user_id": None, "amount": None}


def test_fresh_states_compare_equal():
    clock = FakeClock()
    a = ChatStateStore(clock=clock).get_or_create("c")
    b = ChatStateStore(clock=clock).get_or_create("c")
    assert a == b


def test_history_is_capped():
    state = ChatState("c", started=0)
    for i in range(MAX_HISTORY + 5):
        state.append_history(f"pesan {i}", "user", ts=i)
    history = state.history()
    assert len(history) == MAX_HISTORY
    assert history[-1]["message"] == f"pesan {MAX_HISTORY + 4}"


def test_snapshot_roundtrip_through_db(tmp_path):
    db = ChatDB(str(tmp_path / "chats.json"))
    clock = FakeClock()
    store = ChatStateStore(db=db, clock=clock)
    state = store.get_or_create("chat-2")
    state.deposit_state.update({"active": True, "user_id": "maxpro88"})
    state.append_history("cek deposit saya", "user", ts=clock())
    store.persist(state)

    reloaded = ChatStateStore(db=db, clock=clock).get_or_create("chat-2")
    assert reloaded.deposit_state["user_id"] == "maxpro88"
    assert reloaded.deposit_state["active"] is True
    assert reloaded.history()[0]["message"] == "cek deposit saya"


def test_corrupted_snapshot_reinitializes(tmp_path):
    db = ChatDB(str(tmp_path / "chats.json"))
    db.save_state("broken", {"context": "not a dict", "deposit_state": 5})
    store = ChatStateStore(db=db, clock=FakeClock())

    state = store.get_or_create("broken")
    assert state.context["conversation_history"] == []
    assert state.deposit_state == {"active": False, "user_id": None, "amount": None}


def test_clear_forgets_guard_records():
    clock = FakeClock()
    guard = DuplicateSendGuard(clock=clock)
    store = ChatStateStore(guard=guard, clock=clock)
    store.get_or_create("c")
    guard.mark_sent("c", "halo")
    store.record_response("c")

    store.clear("c")
    assert store.get("c") is None
    assert store.last_response_at("c") is None
    assert guard.was_sent("c", "halo") is False


def test_sweep_evicts_old_states():
    clock = FakeClock()
    guard = DuplicateSendGuard(clock=clock)
    store = ChatStateStore(guard=guard, clock=clock)
    store.get_or_create("old")
    store.record_response("old")
    guard.mark_sent("old", "pesan lama")

    clock.advance(STATE_MAX_AGE + 1)
    store.get_or_create("new")
    result = store.sweep()

    assert result["states"] == 1
    assert result["response_times"] == 1
    assert result["sent"] == 1
    assert store.chat_ids() == ["new"]


def test_fast_sweep_keeps_states():
    clock = FakeClock()
    store = ChatStateStore(clock=clock)
    store.get_or_create("c")
    store.record_response("c")
    clock.advance(31 * 60)

    result = store.fast_sweep()
    assert result["response_times"] == 1
    assert store.get("c") is not None


def test_shutdown_flushes_to_db(tmp_path):
    db = ChatDB(str(tmp_path / "chats.json"))
    store = ChatStateStore(db=db, clock=FakeClock())
    state = store.get_or_create("c")
    state.off_topic_warning_count = 2
    store.shutdown()

    assert db.get_state("c")["off_topic_warning_count"] == 2


def test_chat_lock_is_shared_per_chat_and_dropped_on_eviction():
    clock = FakeClock()
    store = ChatStateStore(clock=clock)
    store.get_or_create("old")
    lock = store.lock_for("old")
    assert store.lock_for("old") is lock
    assert store.lock_for("other") is not lock

    clock.advance(STATE_MAX_AGE + 1)
    assert store.evict_older_than(STATE_MAX_AGE) == 1
    assert store.lock_for("old") is not lock
