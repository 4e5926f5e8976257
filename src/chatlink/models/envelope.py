"""
Envelope models for the chat session wire protocol.

Every envelope is a UTF-8 JSON object with a mandatory `type` discriminator.
Inbound models allow unknown fields so newer servers do not break older clients.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from chatlink.models.events import ABORT_SENTINEL


class _Inbound(BaseModel):
    model_config = ConfigDict(extra="allow")


class WireMessage(BaseModel):
    """A finalized chat turn as carried by `message` envelopes and history."""
    model_config = ConfigDict(extra="allow")

    id: str
    role: str
    content: str = ""
    timestamp: Optional[datetime] = None
    message_type: str = "chat"
    metadata: Optional[dict[str, Any]] = None
    tool_info: Optional[Any] = None


class MessageEnvelope(_Inbound):
    type: Literal["message"]
    message: WireMessage
    is_replay: bool = False

    @property
    def message_id(self) -> Optional[str]:
        return self.message.id


class StreamEnvelope(_Inbound):
    type: Literal["stream"]
    id: Optional[str] = None
    content: str = ""
    metadata: Optional[dict[str, Any]] = None
    is_replay: bool = False

    @property
    def message_id(self) -> Optional[str]:
        return self.id


class ToolUseEnvelope(_Inbound):
    type: Literal["tool_use"]
    tool_id: Optional[str] = None
    tool_name: str = ""
    tool_input: Optional[Any] = None
    summary: Optional[str] = None
    is_replay: bool = False

    @property
    def message_id(self) -> Optional[str]:
        # tool_id names an invocation, not a conversation message
        return None


class MetaAgentEnvelope(_Inbound):
    type: Literal["meta_agent"]
    id: Optional[str] = None
    content: str = ""
    is_replay: bool = False

    @property
    def message_id(self) -> Optional[str]:
        return self.id


class CompleteEnvelope(_Inbound):
    type: Literal["complete"]
    is_replay: bool = False


class ErrorEnvelope(_Inbound):
    type: Literal["error"]
    error: Optional[Any] = None


class AbortedEnvelope(_Inbound):
    type: Literal["aborted"]
    message: Optional[str] = None


class FileResultsEnvelope(_Inbound):
    type: Literal["file_results"]
    files: list[Any] = []
    query: str = ""


class CommandResultsEnvelope(_Inbound):
    type: Literal["command_results"]
    commands: list[Any] = []
    query: str = ""


class ReconnectedEnvelope(_Inbound):
    type: Literal["reconnected"]
    buffered_count: int = 0


class StreamingActiveEnvelope(_Inbound):
    type: Literal["streaming_active"]


class ProcessingStateEnvelope(_Inbound):
    type: Literal["processing_state"]
    processing: bool
    message: Optional[str] = None


InboundEnvelope = Annotated[
    Union[
        MessageEnvelope,
        StreamEnvelope,
        ToolUseEnvelope,
        MetaAgentEnvelope,
        CompleteEnvelope,
        ErrorEnvelope,
        AbortedEnvelope,
        FileResultsEnvelope,
        CommandResultsEnvelope,
        ReconnectedEnvelope,
        StreamingActiveEnvelope,
        ProcessingStateEnvelope,
    ],
    Field(discriminator="type"),
]

LogEnvelope = Union[MessageEnvelope, StreamEnvelope, ToolUseEnvelope, MetaAgentEnvelope]


# Outbound

class UserTurnEnvelope(BaseModel):
    type: Literal["message"] = "message"
    content: str
    stream: bool = True
    agent_type: str = "claude"
    images: list[dict[str, Any]] = []
    permission_mode: Optional[str] = None
    thinking_mode: Optional[str] = None


class AbortEnvelope(BaseModel):
    type: Literal["message"] = "message"
    content: str = ABORT_SENTINEL
    stream: bool = False


class ReconnectEnvelope(BaseModel):
    type: Literal["reconnect"] = "reconnect"
    last_message_id: Optional[str] = None
    last_buffer_index: int = 0


class FileSearchEnvelope(BaseModel):
    type: Literal["file_search"] = "file_search"
    query: str
    path: str = ""


class CommandSearchEnvelope(BaseModel):
    type: Literal["command_search"] = "command_search"
    query: str
