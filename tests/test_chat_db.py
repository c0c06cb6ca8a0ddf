import sys
import os
import json
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from livecs.storage.chat_db import ChatDB


def test_creates_file_with_initial_layout(tmp_path):
    path = tmp_path / "storage" / "chats.json"
    ChatDB(str(path))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["chats"] == {} and data["messages"] == {}
    assert data["stats"] == {"totalChats": 0, "totalMessages": 0}


def test_state_and_messages(tmp_path):
    db = ChatDB(str(tmp_path / "chats.json"))
    db.save_state("c1", {"off_topic_warning_count": 1}, now=100)
    db.add_message("c1", "user", "halo", now=100)
    db.add_message("c1", "agent", "Halo bosku!", now=101)

    assert db.get_state("c1") == {"off_topic_warning_count": 1}
    assert db.get_state("missing") is None
    assert [m["content"] for m in db.get_messages("c1")] == ["Halo bosku!", "halo"]
    assert len(db.get_messages("c1", limit=1)) == 1
    assert db.stats() == {"totalChats": 1, "totalMessages": 2}


def test_corrupt_file_is_backed_up(tmp_path):
    path = tmp_path / "chats.json"
    db = ChatDB(str(path))
    path.write_text("{not json", encoding="utf-8")

    assert db.get_chat_ids() == []
    backup = tmp_path / "chats.json.corrupted.backup"
    assert backup.read_text(encoding="utf-8") == "{not json"
    assert json.loads(path.read_text(encoding="utf-8"))["chats"] == {}


def test_cleanup_old_chats(tmp_path):
    db = ChatDB(str(tmp_path / "chats.json"))
    now = 1_700_000_000
    db.save_state("old", {}, now=now - 49 * 3600)
    db.add_message("old", "user", "halo", now=now - 49 * 3600)
    db.save_state("fresh", {}, now=now - 3600)

    assert db.cleanup_old_chats(48, now=now) == 1
    assert db.get_chat_ids() == ["fresh"]
    assert db.get_messages("old") == []
    assert db.cleanup_old_chats(48, now=now) == 0


def test_reset_chat_keeps_or_clears_messages(tmp_path):
    db = ChatDB(str(tmp_path / "chats.json"))
    db.save_state("c1", {"has_sent_welcome": True})
    db.add_message("c1", "user", "halo")
    db.add_message("c1", "agent", "Halo bosku!")

    assert db.reset_chat("c1", {"has_sent_welcome": False}) == 0
    assert db.get_state("c1") == {"has_sent_welcome": False}
    assert len(db.get_messages("c1")) == 2

    assert db.reset_chat("c1", {}, clear_messages=True) == 2
    assert db.get_messages("c1") == []
