"""Tests for unread bookkeeping and widget state storage."""

from datetime import timedelta

from tests.fakes import BASE_TIME, FakeClock
from traffic_chat.widget.models import Message
from traffic_chat.widget.storage import JsonFileStore, MemoryStore
from traffic_chat.widget.unread import UnreadTracker, badge_text, last_seen_key


def _msg(id, sender_type="agent", minutes=0, is_private=False):
    return Message(
        id=id,
        conversation_id="c1",
        body="x",
        sender_type=sender_type,
        is_private=is_private,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def test_badge_text():
    assert badge_text(0) == ""
    assert badge_text(1) == "1"
    assert badge_text(9) == "9"
    assert badge_text(10) == "9+"
    assert badge_text(250) == "9+"


def test_count_without_marker_counts_all_agent_and_bot_messages():
    tracker = UnreadTracker(MemoryStore())
    messages = [
        _msg("a", "agent"),
        _msg("b", "bot"),
        _msg("c", "customer"),
        _msg("d", "agent", is_private=True),
    ]
    assert tracker.count_unseen("c1", messages) == 2


def test_count_is_strictly_after_marker():
    clock = FakeClock(BASE_TIME + timedelta(minutes=5))
    tracker = UnreadTracker(MemoryStore(), clock=clock)
    tracker.mark_seen("c1")

    messages = [_msg("a", minutes=4), _msg("b", minutes=5), _msg("c", minutes=6)]
    assert tracker.count_unseen("c1", messages) == 1


def test_mark_seen_persists_iso_timestamp():
    store = MemoryStore()
    clock = FakeClock()
    UnreadTracker(store, clock=clock).mark_seen("c1")
    assert store.get(last_seen_key("c1")) == BASE_TIME.isoformat()
    assert UnreadTracker(store).last_seen("c1") == BASE_TIME


def test_bad_marker_is_ignored():
    store = MemoryStore({last_seen_key("c1"): "not a date"})
    assert UnreadTracker(store).last_seen("c1") is None


def test_recompute_only_raises_the_count():
    tracker = UnreadTracker(MemoryStore())
    tracker.increment()
    assert tracker.recompute("c1", []) == 0
    assert tracker.count == 1
    assert tracker.recompute("c1", [_msg("a"), _msg("b")]) == 2
    assert tracker.count == 2


def test_badge_uses_cap():
    tracker = UnreadTracker(MemoryStore(), cap=3)
    tracker.set_count(4)
    assert tracker.badge == "3+"
    tracker.reset()
    assert tracker.badge == ""


def test_json_file_store_round_trip(tmp_path):
    path = tmp_path / "state" / "widget.json"
    store = JsonFileStore(path)
    assert store.get("chat_conversation_id") is None

    store.set("chat_conversation_id", "conv-1")
    assert JsonFileStore(path).get("chat_conversation_id") == "conv-1"

    store.remove("chat_conversation_id")
    store.remove("chat_conversation_id")
    assert JsonFileStore(path).get("chat_conversation_id") is None


def test_json_file_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "widget.json"
    path.write_text("{not json")
    store = JsonFileStore(path)
    assert store.get("anything") is None
    store.set("k", "v")
    assert store.get("k") == "v"


def test_json_file_store_defaults_to_configured_path(tmp_path, monkeypatch):
    from traffic_chat.core.config import settings

    path = tmp_path / "default.json"
    monkeypatch.setattr(settings, "widget_state_path", path)
    JsonFileStore().set("k", "v")
    assert path.exists()
