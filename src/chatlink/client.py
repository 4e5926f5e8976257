"""
AsyncChatSession — one conversation view: history seed, live connection,
readiness recovery and the local message log.
"""

import logging
from typing import Any, Callable, Optional

from chatlink.backoff import BackoffController
from chatlink.broadcast import ProcessingBroadcast, ProcessingObserver
from chatlink.config import ConnectionConfig
from chatlink.connection import ConnectionManager, ConnectionState
from chatlink.errors import HttpError
from chatlink.history import HistoryAPI
from chatlink.models.events import SessionEvent
from chatlink.models.log import LogEntry, generate_id
from chatlink.readiness import ReadinessPoller
from chatlink.store import MessageStore
from chatlink.transport.http import DEFAULT_BASE_URL, HttpClient
from chatlink.transport.websocket import ChannelFactory, chat_url, websocket_factory

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "ws://localhost:8000"
PENDING_PREFIX = "cached-"

_IDLE_EVENTS = {SessionEvent.COMPLETE, SessionEvent.TURN_ERROR, SessionEvent.ABORTED}
_STREAMING_EVENTS = {SessionEvent.STREAM, SessionEvent.STREAMING_ACTIVE}


class AsyncChatSession:
    """Chat session client (primary)."""

    def __init__(
        self,
        session_key: str,
        *,
        ws_url: str = DEFAULT_WS_URL,
        base_url: str = DEFAULT_BASE_URL,
        access_token: Optional[str] = None,
        config: Optional[ConnectionConfig] = None,
        broadcast: Optional[ProcessingBroadcast] = None,
        channel_factory: Optional[ChannelFactory] = None,
        http: Optional[HttpClient] = None,
    ):
        self.session_key = session_key
        self.config = config or ConnectionConfig()
        self.http = http or HttpClient(base_url=base_url, token=access_token)
        self.history = HistoryAPI(self.http)
        self.store = MessageStore(duplicate_window=self.config.duplicate_window)
        self.broadcast = broadcast or ProcessingBroadcast()
        self.manager = ConnectionManager(
            session_key,
            chat_url(ws_url, session_key),
            channel_factory or websocket_factory(access_token, open_timeout=self.config.open_timeout),
            store=self.store,
            broadcast=self.broadcast,
            backoff=BackoffController(
                initial_delay=self.config.initial_delay,
                max_delay=self.config.max_delay,
                max_attempts=self.config.max_attempts,
                not_ready_code=self.config.not_ready_code,
            ),
            handshake_timeout=self.config.handshake_timeout,
        )
        self.poller = ReadinessPoller(
            self.http,
            session_key,
            on_ready=self.manager.connect,
            interval=self.config.poll_interval,
            timeout=self.config.poll_timeout,
        )
        self._processing = False
        self._streaming = False
        self._pending: dict[str, str] = {}  # pending entry id -> content
        self._cleanups: list[Callable[[], None]] = [
            self.manager.add_event_handler(self._on_event),
            self.broadcast.subscribe(session_key, self._on_processing),
        ]

    async def __aenter__(self) -> "AsyncChatSession":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    @property
    def connected(self) -> bool:
        return self.manager.connected

    @property
    def is_processing(self) -> bool:
        """True while the agent is working on a turn, as far as this client knows."""
        return self._processing

    @property
    def is_streaming(self) -> bool:
        """True from `streaming_active` or the first streamed chunk until the turn ends."""
        return self._streaming

    @property
    def messages(self) -> list[LogEntry]:
        return self.store.entries

    def on(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Register a handler for one SessionEvent name. Returns a cleanup function."""
        def _filtered(name: str, data: Any) -> None:
            if name == event:
                handler(data)
        return self.manager.add_event_handler(_filtered)

    def subscribe_processing(self, observer: ProcessingObserver) -> Callable[[], None]:
        return self.broadcast.subscribe(self.session_key, observer)

    async def open(self, load_history: bool = True) -> None:
        """Seed the log from durable history, then connect."""
        if load_history:
            try:
                await self.history.load(self.session_key, self.store)
            except HttpError as e:
                logger.error("Failed to load chat history for %s: %s", self.session_key, e)
        await self.manager.connect()

    async def close(self) -> None:
        await self.poller.cancel()
        await self.manager.close()

    async def aclose(self) -> None:
        """Close the session and release the HTTP client."""
        await self.close()
        for cleanup in self._cleanups:
            cleanup()
        self._cleanups.clear()
        await self.http.close()

    def send(
        self,
        content: str,
        *,
        images: Optional[list[dict[str, Any]]] = None,
        agent_type: Optional[str] = None,
        permission_mode: Optional[str] = None,
        thinking_mode: Optional[str] = None,
    ) -> bool:
        """Send a user turn and show it immediately as a pending entry.

        Returns False when the session is not open; nothing is queued.
        """
        content = content.strip()
        if not content:
            return False
        sent = self.manager.send_turn(
            content,
            images=images,
            agent_type=agent_type or self.config.agent_type,
            permission_mode=permission_mode,
            thinking_mode=thinking_mode,
        )
        if sent:
            entry = LogEntry(
                id=f"{PENDING_PREFIX}{generate_id('user')}",
                role="user",
                content=content,
                metadata={"pending": True},
            )
            # Unchecked so the server echo of this turn is never taken for a near-duplicate
            self.store.upsert(entry, suppress_duplicates=False)
            self._pending[entry.id] = content
        return sent

    def abort(self) -> bool:
        return self.manager.send_abort()

    def search_files(self, query: str, path: str = "") -> bool:
        return self.manager.search_files(query, path)

    def search_commands(self, query: str) -> bool:
        return self.manager.search_commands(query)

    def _on_event(self, event: str, data: Any) -> None:
        if event == SessionEvent.NOT_READY:
            self.poller.start(on_error=self.manager.report_error)
        elif event == SessionEvent.MESSAGE:
            self._settle_pending(data)
        elif event in _STREAMING_EVENTS:
            self._streaming = True
            self._processing = True
        elif event == SessionEvent.TOOL_USE:
            self._processing = True
        elif event in _IDLE_EVENTS:
            self._streaming = False
            self._processing = False

    def _on_processing(self, processing: bool, message: Optional[str]) -> None:
        self._processing = processing

    def _settle_pending(self, entry: LogEntry) -> None:
        # The server echoes our own turn back; the echo supersedes the pending copy
        if entry.role != "user" or entry.id not in self.store:
            return
        for pending_id, content in list(self._pending.items()):
            if content == entry.content:
                del self._pending[pending_id]
                self.store.remove(pending_id)
                return
