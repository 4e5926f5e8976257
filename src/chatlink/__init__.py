"""
chatlink — resilient real-time chat session client.

Keeps a long-lived WebSocket to a conversational agent engine, survives
disconnects with cursor-based replay, and maintains an ordered,
deduplicated client-side message log.
"""

from chatlink.client import AsyncChatSession
from chatlink.config import ConnectionConfig
from chatlink.connection import ConnectionManager, ConnectionState
from chatlink.store import MessageStore
from chatlink.replay import ReplayTracker
from chatlink.backoff import BackoffController, CloseKind
from chatlink.broadcast import ProcessingBroadcast
from chatlink.errors import (
    ChatLinkError,
    ConnectionError,
    ReconnectExhaustedError,
    NotReadyError,
    TurnError,
    EnvelopeError,
    HttpError,
)
from chatlink.models.events import InboundKind, OutboundKind, SessionEvent, CloseCode
from chatlink.models.log import LogEntry, ReplayCursor

__version__ = "0.1.0"
__all__ = [
    "AsyncChatSession",
    "ConnectionConfig",
    "ConnectionManager",
    "ConnectionState",
    "MessageStore",
    "ReplayTracker",
    "BackoffController",
    "CloseKind",
    "ProcessingBroadcast",
    "ChatLinkError",
    "ConnectionError",
    "ReconnectExhaustedError",
    "NotReadyError",
    "TurnError",
    "EnvelopeError",
    "HttpError",
    "InboundKind",
    "OutboundKind",
    "SessionEvent",
    "CloseCode",
    "LogEntry",
    "ReplayCursor",
]
