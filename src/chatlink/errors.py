"""
chatlink error types.

Connection-level failures and turn-level failures are kept in separate
branches so callers never mistake a dead socket for a failed agent turn.
"""

from typing import Any, Optional


class ChatLinkError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ConnectionError(ChatLinkError):
    def __init__(self, message: str, code: str = "connection_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class ReconnectExhaustedError(ConnectionError):
    def __init__(self, attempts: int):
        super().__init__(
            f"Chat connection failed after {attempts} attempts. Please reload and try again.",
            code="reconnect_exhausted",
            details={"attempts": attempts},
        )
        self.attempts = attempts


class NotReadyError(ConnectionError):
    def __init__(self, message: str = "Remote execution environment is not ready"):
        super().__init__(message, code="not_ready")


class TurnError(ChatLinkError):
    def __init__(self, message: str):
        super().__init__("turn_error", message)


class EnvelopeError(ChatLinkError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("invalid_envelope", message, details)


class HttpError(ChatLinkError):
    def __init__(self, status_code: int, message: str):
        super().__init__("http_error", message, {"status_code": status_code})
        self.status_code = status_code
