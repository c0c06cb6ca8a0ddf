import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from conftest import FakeClock
from livecs.convo.sent_guard import DuplicateSendGuard, fingerprint


def test_mark_then_was_sent():
    guard = DuplicateSendGuard(clock=FakeClock())
    guard.mark_sent("c1", "Boleh minta User ID-nya dulu bosku? 😊")
    assert guard.was_sent("c1", "Boleh minta User ID-nya dulu bosku? 😊") is True


def test_expires_after_window():
    clock = FakeClock()
    guard = DuplicateSendGuard(clock=clock)
    guard.mark_sent("c1", "halo")
    clock.advance(4 * 60)
    assert guard.was_sent("c1", "halo") is True
    clock.advance(61 + 1)
    assert guard.was_sent("c1", "halo") is False


def test_scoped_per_chat():
    guard = DuplicateSendGuard(clock=FakeClock())
    guard.mark_sent("c1", "halo")
    assert guard.was_sent("c2", "halo") is False


def test_fingerprint_ignores_case_and_outer_whitespace():
    assert fingerprint("  Halo Bosku ") == fingerprint("halo bosku")
    guard = DuplicateSendGuard(clock=FakeClock())
    guard.mark_sent("c1", "Halo Bosku")
    assert guard.was_sent("c1", "  halo bosku  ")


def test_fingerprint_uses_prefix():
    base = "x" * 100
    assert fingerprint(base + "tail one") == fingerprint(base + "tail two")


def test_empty_text_never_recorded():
    guard = DuplicateSendGuard(clock=FakeClock())
    guard.mark_sent("c1", "   ")
    assert guard.count("c1") == 0
    assert guard.was_sent("c1", "") is False


def test_keeps_most_recent_records_only():
    clock = FakeClock()
    guard = DuplicateSendGuard(clock=clock, max_records=3)
    for i in range(5):
        guard.mark_sent("c1", f"pesan {i}")
        clock.advance(1)
    assert guard.count("c1") == 3
    assert guard.was_sent("c1", "pesan 4")
    assert not guard.was_sent("c1", "pesan 0")


def test_sweep_drops_old_records():
    clock = FakeClock()
    guard = DuplicateSendGuard(clock=clock)
    guard.mark_sent("c1", "lama")
    clock.advance(600)
    guard.mark_sent("c2", "baru")
    assert guard.sweep(300) == 1
    assert guard.count("c1") == 0
    assert guard.count("c2") == 1
