"""Replay cursor tracking."""

from chatlink.replay import ReplayTracker
from chatlink.transport.envelope import parse_envelope


def env(payload):
    return parse_envelope(payload, strict=True)


def test_live_log_envelopes_advance_by_one():
    tracker = ReplayTracker()
    assert tracker.observe(env({"type": "stream", "id": "a", "content": "He"}))
    assert tracker.observe(env({"type": "stream", "id": "a", "content": "Hello"}))
    assert tracker.observe(env({"type": "meta_agent", "id": "m1", "content": "note"}))
    cursor = tracker.cursor
    assert cursor.buffer_offset == 3
    assert cursor.last_message_id == "m1"


def test_replayed_envelopes_do_not_advance():
    tracker = ReplayTracker()
    tracker.observe(env({"type": "stream", "id": "a", "content": "x"}))
    assert not tracker.observe(env({"type": "stream", "id": "b", "content": "y", "is_replay": True}))
    assert not tracker.observe(env({"type": "tool_use", "tool_id": "t", "tool_name": "ls", "is_replay": True}))
    assert tracker.cursor.buffer_offset == 1
    assert tracker.cursor.last_message_id == "a"


def test_non_log_kinds_are_ignored():
    tracker = ReplayTracker()
    for payload in (
        {"type": "complete"},
        {"type": "error", "error": "boom"},
        {"type": "processing_state", "processing": True},
        {"type": "file_results", "files": [], "query": ""},
    ):
        assert not tracker.observe(env(payload))
    assert tracker.cursor.buffer_offset == 0


def test_tool_use_counts_without_setting_message_id():
    tracker = ReplayTracker()
    tracker.observe(env({"type": "stream", "id": "a", "content": "x"}))
    tracker.observe(env({"type": "tool_use", "tool_id": "t1", "tool_name": "Read"}))
    assert tracker.cursor.buffer_offset == 2
    assert tracker.cursor.last_message_id == "a"


def test_user_message_echo_sets_message_id():
    tracker = ReplayTracker()
    tracker.observe(env({"type": "message", "message": {"id": "u1", "role": "user", "content": "hi"}}))
    assert tracker.cursor.last_message_id == "u1"


def test_acknowledge_skips_replayed_count_and_reset():
    tracker = ReplayTracker()
    tracker.observe(env({"type": "stream", "id": "a", "content": "x"}))
    tracker.acknowledge(4)
    tracker.acknowledge(0)
    assert tracker.cursor.buffer_offset == 5
    tracker.reset()
    assert tracker.cursor.buffer_offset == 0
    assert tracker.cursor.last_message_id is None


def test_cursor_is_a_copy():
    tracker = ReplayTracker()
    cursor = tracker.cursor
    tracker.observe(env({"type": "stream", "id": "a", "content": "x"}))
    assert cursor.buffer_offset == 0
