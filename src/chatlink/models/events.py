"""
Wire kinds, session event names and close codes.
"""


class InboundKind:
    """Server -> client envelope `type` values."""
    MESSAGE = "message"
    STREAM = "stream"
    TOOL_USE = "tool_use"
    COMPLETE = "complete"
    ERROR = "error"
    ABORTED = "aborted"
    META_AGENT = "meta_agent"
    FILE_RESULTS = "file_results"
    COMMAND_RESULTS = "command_results"
    RECONNECTED = "reconnected"
    STREAMING_ACTIVE = "streaming_active"
    PROCESSING_STATE = "processing_state"


# Kinds that contribute to the conversation log and advance the replay cursor
LOG_KINDS = frozenset({
    InboundKind.MESSAGE, InboundKind.STREAM,
    InboundKind.TOOL_USE, InboundKind.META_AGENT,
})


class OutboundKind:
    """Client -> server envelope `type` values."""
    MESSAGE = "message"
    RECONNECT = "reconnect"
    FILE_SEARCH = "file_search"
    COMMAND_SEARCH = "command_search"


ABORT_SENTINEL = "__ABORT__"


class SessionEvent:
    """Names delivered to ConnectionManager event handlers."""
    STATE = "state"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"
    STREAM = "stream"
    TOOL_USE = "tool_use"
    META_AGENT = "meta_agent"
    COMPLETE = "complete"
    TURN_ERROR = "turn_error"
    ABORTED = "aborted"
    FILE_RESULTS = "file_results"
    COMMAND_RESULTS = "command_results"
    RECONNECTED = "reconnected"
    STREAMING_ACTIVE = "streaming_active"
    NOT_READY = "not_ready"
    CONNECTION_ERROR = "connection_error"


class CloseCode:
    NORMAL = 1000
    GOING_AWAY = 1001
    ABNORMAL = 1006
    NOT_READY = 4004
