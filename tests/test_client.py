"""AsyncChatSession wiring: history seed, optimistic turns, readiness recovery."""

import httpx
import pytest

from chatlink.client import AsyncChatSession
from chatlink.config import ConnectionConfig
from chatlink.connection import ConnectionState
from chatlink.models.events import CloseCode, SessionEvent
from chatlink.transport.http import HttpClient

from fakes import FakeFactory, settle, wait_until

HISTORY = {"messages": [
    {"message_id": "h1", "role": "user", "content": "Build a widget", "timestamp": "2024-05-01T12:00:00Z"},
    {"message_id": "h2", "role": "assistant", "content": "Done.", "timestamp": "2024-05-01T12:00:09Z"},
]}


def backend(ready: bool = True, history=HISTORY):
    calls = {"status": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/chat/history"):
            return httpx.Response(200, json=history)
        if request.url.path.endswith("/status"):
            calls["status"] += 1
            return httpx.Response(200, json={"is_ready": ready})
        return httpx.Response(404)

    http = HttpClient(base_url="http://engine.test", transport=httpx.MockTransport(handler))
    return http, calls


def make_session(**kwargs):
    http, calls = backend(**kwargs)
    factory = FakeFactory()
    session = AsyncChatSession(
        "p1",
        ws_url="ws://engine.test/",
        config=ConnectionConfig(poll_interval=0.01),
        channel_factory=factory,
        http=http,
    )
    return session, factory, calls


@pytest.mark.asyncio
async def test_open_seeds_history_then_connects():
    session, factory, _ = make_session()
    await session.open()
    assert [e.id for e in session.messages] == ["h1", "h2"]
    assert factory.urls == ["ws://engine.test/projects/p1/chat"]
    assert session.state is ConnectionState.OPEN
    await session.aclose()


@pytest.mark.asyncio
async def test_send_shows_pending_turn_until_echo_arrives():
    session, factory, _ = make_session()
    async with session:
        assert session.send("  Add a button  ")
        await settle()
        assert factory.last.sent[-1]["content"] == "Add a button"
        pending = session.messages[-1]
        assert pending.id.startswith("cached-")
        assert pending.metadata == {"pending": True}

        factory.last.feed({"type": "message", "message": {
            "id": "srv-1", "role": "user", "content": "Add a button"}})
        await settle()
        assert [e.id for e in session.messages] == ["h1", "h2", "srv-1"]
    await session.http.close()


@pytest.mark.asyncio
async def test_send_while_disconnected_adds_nothing():
    session, factory, _ = make_session()
    assert session.send("hello") is False
    assert session.messages == []
    assert factory.calls == 0
    await session.aclose()


@pytest.mark.asyncio
async def test_processing_flag_follows_turn_lifecycle():
    session, factory, _ = make_session()
    await session.open(load_history=False)
    channel = factory.last
    channel.feed({"type": "streaming_active"})
    await settle()
    assert session.is_processing
    channel.feed({"type": "complete"})
    await settle()
    assert not session.is_processing
    channel.feed({"type": "processing_state", "processing": True, "message": "Other tab is working"})
    await settle()
    assert session.is_processing
    await session.aclose()


@pytest.mark.asyncio
async def test_on_filters_by_event_name():
    session, factory, _ = make_session()
    completes = []
    session.on(SessionEvent.COMPLETE, completes.append)
    await session.open(load_history=False)
    factory.last.feed({"type": "stream", "id": "a", "content": "hi"})
    factory.last.feed({"type": "complete"})
    await settle()
    assert completes == [None]
    await session.aclose()


@pytest.mark.asyncio
async def test_not_ready_close_polls_status_then_resumes():
    session, factory, calls = make_session()
    await session.open(load_history=False)
    factory.last.feed({"type": "stream", "id": "a", "content": "partial"})
    await settle()
    factory.last.drop(CloseCode.NOT_READY)

    await wait_until(lambda: factory.calls == 2 and bool(factory.last.sent))
    assert calls["status"] >= 1
    assert factory.last.sent[0] == {"type": "reconnect", "last_message_id": "a", "last_buffer_index": 1}
    factory.last.feed({"type": "reconnected", "buffered_count": 0})
    await wait_until(lambda: session.connected)
    await session.aclose()


@pytest.mark.asyncio
async def test_close_stops_readiness_polling():
    session, factory, calls = make_session(ready=False)
    await session.open(load_history=False)
    factory.last.drop(CloseCode.NOT_READY)
    await wait_until(lambda: session.poller.running)
    await session.close()
    assert not session.poller.running
    assert factory.calls == 1
    await session.aclose()


@pytest.mark.asyncio
async def test_echo_inside_duplicate_window_replaces_pending_turn():
    session, factory, _ = make_session()
    assert session.config.duplicate_window == 0.1
    await session.open(load_history=False)
    assert session.send("Add a button")
    await settle()
    factory.last.feed({"type": "message", "message": {
        "id": "srv-1", "role": "user", "content": "Add a button"}})
    await settle()
    assert [(e.id, e.metadata) for e in session.messages] == [("srv-1", {})]
    await session.aclose()


@pytest.mark.asyncio
async def test_streaming_flag_follows_stream_until_complete():
    session, factory, _ = make_session()
    await session.open(load_history=False)
    assert not session.is_streaming
    factory.last.feed({"type": "stream", "id": "a", "content": "He"})
    await settle()
    assert session.is_streaming
    factory.last.feed({"type": "complete"})
    await settle()
    assert not session.is_streaming
    await session.aclose()


@pytest.mark.asyncio
async def test_streaming_flag_ignores_tool_use_and_broadcasts():
    session, factory, _ = make_session()
    await session.open(load_history=False)
    factory.last.feed({"type": "tool_use", "tool_id": "t1", "tool_name": "Read"})
    factory.last.feed({"type": "processing_state", "processing": True})
    await settle()
    assert session.is_processing
    assert not session.is_streaming
    factory.last.feed({"type": "streaming_active"})
    await settle()
    assert session.is_streaming
    factory.last.feed({"type": "error", "error": "boom"})
    await settle()
    assert not session.is_streaming
    await session.aclose()


@pytest.mark.asyncio
async def test_access_token_is_sent_as_bearer():
    session = AsyncChatSession("p1", access_token="tok", channel_factory=FakeFactory())
    assert session.http._auth_headers() == {"Authorization": "Bearer tok"}
    await session.aclose()
