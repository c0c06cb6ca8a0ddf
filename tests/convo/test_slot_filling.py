import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from conftest import FakeNotifier
from livecs.convo import templates as T
from livecs.convo.engine import build_deposit_flow, build_withdraw_flow
from livecs.convo.slot_filling import (
    extract_amount,
    extract_slots,
    extract_user_id,
    format_amount,
    parse_amount,
)
from livecs.convo.state import ChatState


# Amount parsing
def test_amount_with_units():
    assert parse_amount("500", "rb") == 500_000
    assert parse_amount("2", "jt") == 2_000_000
    assert parse_amount("150", "k") == 150_000
    assert parse_amount("3", "juta") == 3_000_000
    assert parse_amount("1,5", "jt") == 1_500_000
    assert parse_amount("1.5", "jt") == 1_500_000


def test_amount_without_unit_is_literal_digits():
    assert parse_amount("100.000") == 100_000
    assert parse_amount("100,000") == 100_000
    assert parse_amount("50000") == 50_000


def test_extract_amount_from_sentences():
    assert extract_amount("500rb")[0] == 500_000
    assert extract_amount("2jt")[0] == 2_000_000
    assert extract_amount("depo Rp 100.000 tadi")[0] == 100_000
    assert extract_amount("sudah transfer 150 k")[0] == 150_000
    assert extract_amount("tidak ada angka")[0] is None


def test_amount_not_taken_from_inside_user_id():
    assert extract_amount("maxpro88")[0] is None
    user_id, amount = extract_slots("id: 12345678 depo 200rb")
    assert amount == 200_000
    assert user_id == "12345678"


def test_user_id_extraction():
    assert extract_user_id("maxpro88") == "maxpro88"
    assert extract_user_id("user id: gacor77") == "gacor77"
    assert extract_user_id("cek deposit saya") is None
    assert extract_user_id("bosku") is None


def test_letters_only_token_needs_whole_message():
    assert extract_user_id("budiman") == "budiman"
    assert extract_user_id("tolong budiman") is None


def test_bare_id_ignored_in_long_messages():
    text = "saya sudah deposit dari tadi pagi tapi belum masuk juga ya maxpro88"
    assert extract_user_id(text) is None
    assert extract_user_id("userid maxpro88 " + text) == "maxpro88"


def test_extract_slots_both_in_one_message():
    assert extract_slots("maxpro88 150k") == ("maxpro88", 150_000)


def test_format_amount():
    assert format_amount(150_000) == "150.000"
    assert format_amount(2_000_000) == "2.000.000"


# Flow engine
def test_deposit_three_turns():
    state = ChatState("c1", started=0)
    notifier = FakeNotifier()
    flow = build_deposit_flow(notifier)

    r1 = flow.handle(state, "cek deposit saya")
    assert r1.text == T.DEPOSIT_ASK_ID
    assert state.deposit_state["active"] is True

    r2 = flow.handle(state, "maxpro88")
    assert r2.text == T.DEPOSIT_ASK_AMOUNT
    assert state.deposit_state["user_id"] == "maxpro88"

    r3 = flow.handle(state, "150k")
    assert r3.completed
    assert "maxpro88" in r3.text
    assert "150.000" in r3.text
    assert state.deposit_state == {"active": False, "user_id": None, "amount": None}
    assert notifier.pings == [{
        "type": "deposit_check", "chat_id": "c1", "user_id": "maxpro88",
        "amount": 150_000, "message": "150k",
    }]
    assert state.context["user_id"] == "maxpro88"
    assert state.context["deposit_amount"] == 150_000


def test_single_message_completes_flow():
    state = ChatState("c1", started=0)
    flow = build_withdraw_flow()
    reply = flow.handle(state, "cek withdraw userid maxpro88 500rb")
    assert reply.completed
    assert "500.000" in reply.text


def test_existing_slots_are_not_overwritten():
    state = ChatState("c1", started=0)
    flow = build_deposit_flow()
    flow.handle(state, "cek deposit saya")
    flow.handle(state, "maxpro88")
    flow.handle(state, "akunbaru99")
    assert state.deposit_state["user_id"] == "maxpro88"


def test_trigger_inside_open_flow_keeps_user_id():
    state = ChatState("c1", started=0)
    flow = build_withdraw_flow()
    flow.handle(state, "mau withdraw")
    flow.handle(state, "maxpro88")

    reply = flow.handle(state, "wd 500rb")
    assert reply.completed
    assert reply.user_id == "maxpro88"
    assert reply.amount == 500_000


def test_deposit_trigger_with_amount_completes_open_flow():
    state = ChatState("c1", started=0)
    flow = build_deposit_flow()
    flow.handle(state, "cek deposit saya")
    flow.handle(state, "maxpro88")

    reply = flow.handle(state, "cek deposit 150k")
    assert reply.completed
    assert "maxpro88" in reply.text and "150.000" in reply.text


def test_trigger_on_inactive_flow_starts_fresh():
    state = ChatState("c1", started=0)
    flow = build_deposit_flow()
    state.deposit_state.update({"active": False, "user_id": "lama123", "amount": None})

    reply = flow.handle(state, "cek deposit")
    assert reply.text == T.DEPOSIT_ASK_ID
    assert state.deposit_state == {"active": True, "user_id": None, "amount": None}


def test_flows_do_not_touch_each_other():
    state = ChatState("c1", started=0)
    deposit = build_deposit_flow()
    withdraw = build_withdraw_flow()

    deposit.handle(state, "cek deposit saya")
    deposit.handle(state, "maxpro88")
    before = dict(state.deposit_state)

    withdraw.handle(state, "mau cek withdraw")
    withdraw.handle(state, "gacor77")
    assert state.deposit_state == before
    assert state.withdraw_state["user_id"] == "gacor77"

    withdraw.handle(state, "300k")
    assert state.withdraw_state == {"active": False, "user_id": None, "amount": None}
    assert state.deposit_state == before


def test_withdraw_does_not_write_deposit_context():
    state = ChatState("c1", started=0)
    withdraw = build_withdraw_flow()
    withdraw.handle(state, "wd userid gacor77")
    assert state.context["user_id"] is None
    assert state.context["last_deposit_check"] is None
