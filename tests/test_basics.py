"""Basic unit tests for the chatlink package."""

import pytest
from pydantic import ValidationError

from chatlink import (
    AsyncChatSession,
    ChatLinkError,
    ConnectionError,
    ReconnectExhaustedError,
    NotReadyError,
    TurnError,
    EnvelopeError,
    HttpError,
    InboundKind,
    SessionEvent,
    CloseCode,
    __version__,
)
from chatlink.config import ConnectionConfig, resolve_settings
from chatlink.models.events import LOG_KINDS


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert AsyncChatSession is not None


def test_error_hierarchy():
    assert issubclass(ConnectionError, ChatLinkError)
    assert issubclass(ReconnectExhaustedError, ConnectionError)
    assert issubclass(NotReadyError, ConnectionError)
    # turn-level failures are never connection failures
    assert not issubclass(TurnError, ConnectionError)
    assert issubclass(EnvelopeError, ChatLinkError)
    assert issubclass(HttpError, ChatLinkError)


def test_error_attributes():
    err = ChatLinkError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None

    exhausted = ReconnectExhaustedError(5)
    assert exhausted.code == "reconnect_exhausted"
    assert exhausted.details == {"attempts": 5}
    assert "reload" in str(exhausted)


def test_constants():
    assert CloseCode.NORMAL == 1000
    assert CloseCode.NOT_READY == 4004
    assert SessionEvent.CONNECTION_ERROR == "connection_error"
    assert LOG_KINDS == {InboundKind.MESSAGE, InboundKind.STREAM, InboundKind.TOOL_USE, InboundKind.META_AGENT}


def test_config_defaults():
    cfg = ConnectionConfig()
    assert (cfg.initial_delay, cfg.max_delay, cfg.max_attempts) == (1.0, 30.0, 5)
    assert cfg.not_ready_code == 4004


def test_environment_overrides_config_file(monkeypatch):
    monkeypatch.setenv("CHATLINK_WS_URL", "wss://env.example")
    monkeypatch.delenv("CHATLINK_BASE_URL", raising=False)
    monkeypatch.delenv("CHATLINK_TOKEN", raising=False)
    settings = resolve_settings({"ws_url": "ws://file", "base_url": "http://file", "access_token": "t"})
    assert settings == {"base_url": "http://file", "ws_url": "wss://env.example", "access_token": "t"}


def test_config_rejects_ceiling_below_initial_delay():
    with pytest.raises(ValidationError, match="max_delay"):
        ConnectionConfig(initial_delay=10.0, max_delay=5.0)
