"""
Connection lifecycle manager — one owned instance per chat session.

States: idle -> connecting -> open -> (closing | reconnecting) -> idle,
with `failed` reached only when the backoff budget is spent.

All mutable connection state (channel, timers, attempt counters, replay
cursor) lives on the instance. Inbound frames are dispatched one at a time
by a single reader task, in arrival order.
"""

import asyncio
import enum
import logging
from typing import Any, Callable, Optional

from chatlink.backoff import BackoffController, CloseKind
from chatlink.broadcast import ProcessingBroadcast
from chatlink.errors import ConnectionError, ReconnectExhaustedError, TurnError
from chatlink.models.envelope import InboundEnvelope
from chatlink.models.events import LOG_KINDS, CloseCode, InboundKind, SessionEvent
from chatlink.models.log import LogEntry, ReplayCursor
from chatlink.replay import ReplayTracker
from chatlink.store import MessageStore
from chatlink.transport.envelope import (
    build_abort,
    build_command_search,
    build_file_search,
    build_reconnect,
    build_turn,
    parse_envelope,
)
from chatlink.transport.websocket import Channel, ChannelFactory

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Any], None]
Scheduler = Callable[[float, Callable[[], None]], Any]

ABORTED_TEXT = "Request aborted by user"


class ConnectionState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    CLOSING = "closing"
    FAILED = "failed"


def _call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class ConnectionManager:
    def __init__(
        self,
        session_key: str,
        url: str,
        channel_factory: ChannelFactory,
        *,
        store: Optional[MessageStore] = None,
        tracker: Optional[ReplayTracker] = None,
        broadcast: Optional[ProcessingBroadcast] = None,
        backoff: Optional[BackoffController] = None,
        handshake_timeout: Optional[float] = None,
        scheduler: Scheduler = _call_later,
    ):
        self.session_key = session_key
        self._url = url
        self._channel_factory = channel_factory
        self.store = store if store is not None else MessageStore()
        self.tracker = tracker if tracker is not None else ReplayTracker()
        self.broadcast = broadcast if broadcast is not None else ProcessingBroadcast()
        self.backoff = backoff if backoff is not None else BackoffController()
        self._handshake_timeout = handshake_timeout
        self._scheduler = scheduler

        self._state = ConnectionState.IDLE
        self._channel: Optional[Channel] = None
        self._reader: Optional[asyncio.Task[None]] = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._retry_handle: Any = None
        self._handshake_handle: Any = None
        self._reconnection = False
        self._awaiting_ack = False
        self._closed = False
        # Bumped by every connect() and close(); an open that finishes under an older value is stale
        self._generation = 0
        self._event_handlers: list[EventHandler] = []

    # -- observation --------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def cursor(self) -> ReplayCursor:
        return self.tracker.cursor

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    def add_event_handler(self, handler: EventHandler) -> Callable[[], None]:
        """Add an event handler. Returns a cleanup function."""
        self._event_handlers.append(handler)

        def remove() -> None:
            try:
                self._event_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def report_error(self, error: ConnectionError) -> None:
        """Surface a connection-level failure detected outside the manager (e.g. readiness polling)."""
        self._emit(SessionEvent.CONNECTION_ERROR, error)

    # -- lifecycle ----------------------------------------------------------

    async def connect(self) -> None:
        """Open the channel. No-op while already connecting or open.

        A connect after an abnormal or not-ready close is a resumption: the
        current replay cursor is sent first and the state stays `connecting`
        until the server acknowledges or delivers its first envelope.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN, ConnectionState.CLOSING):
            return

        self._cancel_retry()
        if self._state is ConnectionState.FAILED:
            self.backoff.reset()
        self._closed = False
        self._generation += 1
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)
        logger.info("Connecting session %s to %s", self.session_key, self._url)

        try:
            channel = await self._channel_factory(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._closed or generation != self._generation:
                return
            logger.warning("Failed to open channel for session %s: %s", self.session_key, e)
            if self.backoff.attempts == 0:
                self._emit(SessionEvent.CONNECTION_ERROR, ConnectionError(f"Failed to establish connection: {e}"))
            self._handle_close(CloseCode.ABNORMAL)
            return

        if self._closed or generation != self._generation:
            # close() ran while the channel was opening
            await self._close_channel(channel, "Session closed")
            return

        self._channel = channel
        self.backoff.reset()

        if self._reconnection:
            cursor = self.tracker.cursor
            logger.info(
                "Resuming session %s from buffer index %d (last message %s)",
                self.session_key, cursor.buffer_offset, cursor.last_message_id,
            )
            self._awaiting_ack = True
            await self._send_now(channel, build_reconnect(cursor))
            if self._channel is not channel:
                return
            if self._handshake_timeout is not None:
                self._handshake_handle = self._scheduler(self._handshake_timeout, self._handshake_expired)
        else:
            self._mark_open()

        self._reader = asyncio.create_task(self._read(channel))

    async def close(self, reason: str = "User disconnect") -> None:
        """Close with normal closure. Cancels any pending retry; never reconnects."""
        self._closed = True
        self._generation += 1
        self._cancel_retry()
        self._cancel_handshake()
        self._awaiting_ack = False
        self._reconnection = False
        self.backoff.reset()

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()

        channel, self._channel = self._channel, None
        reader, self._reader = self._reader, None
        if channel is not None:
            self._set_state(ConnectionState.CLOSING)
            await self._close_channel(channel, reason)
        if reader is not None and reader is not current:
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
        self._set_state(ConnectionState.IDLE)

    # -- outbound -----------------------------------------------------------

    def send_turn(
        self,
        content: str,
        *,
        images: Optional[list[dict[str, Any]]] = None,
        agent_type: str = "claude",
        permission_mode: Optional[str] = None,
        thinking_mode: Optional[str] = None,
    ) -> bool:
        """Send a user turn (fire-and-forget). Returns False, sending nothing, unless open."""
        if not self._can_send("turn"):
            return False
        self._send(build_turn(
            content,
            images=images,
            agent_type=agent_type,
            permission_mode=permission_mode,
            thinking_mode=thinking_mode,
        ))
        return True

    def send_abort(self) -> bool:
        if not self._can_send("abort"):
            return False
        self._send(build_abort())
        return True

    def search_files(self, query: str, path: str = "") -> bool:
        if not self._can_send("file search"):
            return False
        self._send(build_file_search(query, path))
        return True

    def search_commands(self, query: str) -> bool:
        if not self._can_send("command search"):
            return False
        self._send(build_command_search(query))
        return True

    def _can_send(self, what: str) -> bool:
        if self._state is ConnectionState.OPEN and self._channel is not None:
            return True
        logger.warning("Session %s is %s; %s not sent", self.session_key, self._state.value, what)
        return False

    def _send(self, text: str) -> None:
        channel = self._channel
        if channel is None:
            return
        self._spawn(self._send_now(channel, text))

    async def _send_now(self, channel: Channel, text: str) -> None:
        try:
            await channel.send(text)
        except Exception as e:
            # The reader observes the close and drives recovery
            logger.error("Send failed for session %s: %s", self.session_key, e)

    # -- inbound ------------------------------------------------------------

    async def _read(self, channel: Channel) -> None:
        try:
            async for raw in channel.messages():
                try:
                    self._dispatch(raw)
                except Exception:
                    logger.exception("Error dispatching envelope for session %s", self.session_key)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Channel reader failed for session %s", self.session_key)
        finally:
            self._on_channel_closed(channel)

    def _dispatch(self, raw: Any) -> None:
        envelope = parse_envelope(raw)
        if envelope is None:
            return
        if self._awaiting_ack:
            self._complete_handshake()

        kind = envelope.type
        if kind in LOG_KINDS:
            self._apply_log_envelope(envelope)
        elif kind == InboundKind.COMPLETE:
            self._emit(SessionEvent.COMPLETE, None)
        elif kind == InboundKind.ERROR:
            message = str(envelope.error) if envelope.error else "Unknown error"
            logger.error("Turn error in session %s: %s", self.session_key, message)
            self.store.upsert(LogEntry.system(message, "error"))
            self._emit(SessionEvent.TURN_ERROR, TurnError(message))
        elif kind == InboundKind.ABORTED:
            self.store.upsert(LogEntry.system(ABORTED_TEXT, "abort"))
            self._emit(SessionEvent.ABORTED, envelope.message)
        elif kind == InboundKind.FILE_RESULTS:
            self._emit(SessionEvent.FILE_RESULTS, {"items": envelope.files, "query": envelope.query})
        elif kind == InboundKind.COMMAND_RESULTS:
            self._emit(SessionEvent.COMMAND_RESULTS, {"items": envelope.commands, "query": envelope.query})
        elif kind == InboundKind.RECONNECTED:
            logger.info("Session %s resumed, %d buffered event(s)", self.session_key, envelope.buffered_count)
            self.tracker.acknowledge(envelope.buffered_count)
            self._emit(SessionEvent.RECONNECTED, envelope.buffered_count)
        elif kind == InboundKind.STREAMING_ACTIVE:
            self._emit(SessionEvent.STREAMING_ACTIVE, None)
        elif kind == InboundKind.PROCESSING_STATE:
            self.broadcast.publish(self.session_key, envelope.processing, envelope.message)

    def _apply_log_envelope(self, envelope: InboundEnvelope) -> None:
        self.tracker.observe(envelope)
        entry = LogEntry.from_envelope(envelope)
        self.store.upsert(entry)
        self._emit(envelope.type, entry)

    # -- handshake ----------------------------------------------------------

    def _complete_handshake(self) -> None:
        self._awaiting_ack = False
        self._cancel_handshake()
        self._mark_open()

    def _handshake_expired(self) -> None:
        self._handshake_handle = None
        if self._awaiting_ack and self._channel is not None:
            logger.warning("No reconnect acknowledgment for session %s; continuing", self.session_key)
            self._complete_handshake()

    def _mark_open(self) -> None:
        reconnection, self._reconnection = self._reconnection, False
        self._set_state(ConnectionState.OPEN)
        logger.info("Session %s %s", self.session_key, "reconnected" if reconnection else "connected")
        self._emit(SessionEvent.CONNECTED, {"reconnection": reconnection})

    # -- close handling -----------------------------------------------------

    def _on_channel_closed(self, channel: Channel) -> None:
        if channel is not self._channel:
            return  # replaced or closed by us
        self._channel = None
        self._reader = None
        self._awaiting_ack = False
        self._cancel_handshake()
        code, reason = channel.close_code, channel.close_reason
        logger.info("Session %s disconnected (code: %s, reason: %s)", self.session_key, code, reason)
        self._emit(SessionEvent.DISCONNECTED, {"code": code, "reason": reason})
        self._handle_close(code)

    def _handle_close(self, code: int) -> None:
        kind = self.backoff.classify(code, requested=self._closed)
        if kind is CloseKind.NORMAL:
            self._set_state(ConnectionState.IDLE)
            return
        # Either way the next open resumes from the cursor
        self._reconnection = True
        if kind is CloseKind.NOT_READY:
            logger.info("Session %s: remote environment not ready, waiting for readiness", self.session_key)
            self._set_state(ConnectionState.IDLE)
            self._emit(SessionEvent.NOT_READY, None)
            return
        self._schedule_retry()

    def _schedule_retry(self) -> None:
        delay = self.backoff.next_delay()
        if delay is None:
            logger.error("Session %s: max reconnection attempts reached", self.session_key)
            self._set_state(ConnectionState.FAILED)
            self._emit(SessionEvent.CONNECTION_ERROR, ReconnectExhaustedError(self.backoff.max_attempts))
            return
        self._set_state(ConnectionState.RECONNECTING)
        logger.info(
            "Attempting reconnection %d/%d in %.1fs",
            self.backoff.attempts, self.backoff.max_attempts, delay,
        )
        self._retry_handle = self._scheduler(delay, self._fire_retry)

    def _fire_retry(self) -> None:
        self._retry_handle = None
        if self._closed or self._state is not ConnectionState.RECONNECTING:
            return
        self._spawn(self.connect())

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _cancel_handshake(self) -> None:
        if self._handshake_handle is not None:
            self._handshake_handle.cancel()
            self._handshake_handle = None

    async def _close_channel(self, channel: Channel, reason: str) -> None:
        try:
            await channel.close(CloseCode.NORMAL, reason)
        except Exception as e:
            logger.warning("Error closing channel for session %s: %s", self.session_key, e)

    # -- plumbing -----------------------------------------------------------

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("Session %s: %s -> %s", self.session_key, self._state.value, state.value)
        self._state = state
        self._emit(SessionEvent.STATE, state)

    def _emit(self, event: str, data: Any) -> None:
        for handler in list(self._event_handlers):
            try:
                handler(event, data)
            except Exception:
                logger.exception("Event handler failed for %s", event)
