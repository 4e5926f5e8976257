"""
Conversation log models.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from chatlink.models.envelope import (
    LogEnvelope,
    MessageEnvelope,
    MetaAgentEnvelope,
    StreamEnvelope,
    ToolUseEnvelope,
    WireMessage,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(suffix: str) -> str:
    """Client-side id for envelopes the server sent without one."""
    return f"{int(time.time() * 1000)}-{suffix}-{uuid.uuid4().hex[:8]}"


class ToolInfo(BaseModel):
    name: str = ""
    summary: Optional[str] = None
    input: Optional[Any] = None


class LogEntry(BaseModel):
    id: str
    role: str  # "user" | "assistant" | "system" | "tool" | "meta_agent"
    content: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    kind: str = "chat"  # "chat" | "tool_use" | "system"
    tool_info: Optional[Any] = None
    metadata: dict[str, Any] = {}
    is_replay: bool = False

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # History may carry naive timestamps; ordering compares against aware ones
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_wire(cls, msg: WireMessage, is_replay: bool = False) -> "LogEntry":
        return cls(
            id=msg.id,
            role=msg.role,
            content=msg.content,
            timestamp=msg.timestamp or utcnow(),
            kind=msg.message_type or "chat",
            tool_info=msg.tool_info,
            metadata=msg.metadata or {},
            is_replay=is_replay,
        )

    @classmethod
    def from_envelope(cls, envelope: LogEnvelope) -> "LogEntry":
        if isinstance(envelope, MessageEnvelope):
            return cls.from_wire(envelope.message, is_replay=envelope.is_replay)
        if isinstance(envelope, StreamEnvelope):
            return cls(
                id=envelope.id or generate_id("stream"),
                role="assistant",
                content=envelope.content,
                metadata=envelope.metadata or {},
                is_replay=envelope.is_replay,
            )
        if isinstance(envelope, ToolUseEnvelope):
            return cls(
                id=envelope.tool_id or generate_id("tool"),
                role="tool",
                content=envelope.summary or f"Using {envelope.tool_name}",
                kind="tool_use",
                tool_info=ToolInfo(name=envelope.tool_name, summary=envelope.summary, input=envelope.tool_input),
                is_replay=envelope.is_replay,
            )
        if isinstance(envelope, MetaAgentEnvelope):
            return cls(
                id=envelope.id or generate_id("meta"),
                role="meta_agent",
                content=envelope.content,
                is_replay=envelope.is_replay,
            )
        raise TypeError(f"Not a log envelope: {type(envelope).__name__}")

    @classmethod
    def system(cls, content: str, suffix: str = "system") -> "LogEntry":
        return cls(id=generate_id(suffix), role="system", content=content, kind="system")


class ReplayCursor(BaseModel):
    """Delivery watermark sent to the server on reconnect."""
    last_message_id: Optional[str] = None
    buffer_offset: int = 0
