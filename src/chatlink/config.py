"""
Connection tunables and the CLI config file.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from chatlink.backoff import DEFAULT_INITIAL_DELAY_S, DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_DELAY_S
from chatlink.models.events import CloseCode
from chatlink.store import DEFAULT_DUPLICATE_WINDOW_S

CONFIG_FILE = Path.home() / ".chatlink" / "config.json"

ENV_BASE_URL = "CHATLINK_BASE_URL"
ENV_WS_URL = "CHATLINK_WS_URL"
ENV_TOKEN = "CHATLINK_TOKEN"


class ConnectionConfig(BaseModel):
    initial_delay: float = Field(DEFAULT_INITIAL_DELAY_S, gt=0)
    max_delay: float = Field(DEFAULT_MAX_DELAY_S, gt=0)
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=0)
    duplicate_window: float = Field(DEFAULT_DUPLICATE_WINDOW_S, ge=0)
    not_ready_code: int = CloseCode.NOT_READY
    # Seconds to wait for the reconnect acknowledgment before treating the channel as open
    handshake_timeout: Optional[float] = Field(None, gt=0)
    open_timeout: float = Field(10.0, gt=0)
    poll_interval: float = Field(5.0, gt=0)
    poll_timeout: float = Field(300.0, gt=0)
    agent_type: str = "claude"

    @model_validator(mode="after")
    def _check_delays(self) -> "ConnectionConfig":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self


def load_config(path: Path = CONFIG_FILE) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def save_config(cfg: dict[str, Any], path: Path = CONFIG_FILE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))


def resolve_settings(cfg: dict[str, Any]) -> dict[str, Optional[str]]:
    """Environment variables win over the config file."""
    return {
        "base_url": os.environ.get(ENV_BASE_URL) or cfg.get("base_url") or "http://localhost:8000",
        "ws_url": os.environ.get(ENV_WS_URL) or cfg.get("ws_url") or "ws://localhost:8000",
        "access_token": os.environ.get(ENV_TOKEN) or cfg.get("access_token"),
    }
