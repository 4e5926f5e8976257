"""
Reconnection and backoff controller.

Delays double from `initial_delay` up to `max_delay`. After `max_attempts`
consecutive failures no delay is issued and the session is terminal.
Successful opens reset both the delay and the attempt counter.
"""

import enum
from typing import Optional

from chatlink.models.events import CloseCode

DEFAULT_INITIAL_DELAY_S = 1.0
DEFAULT_MAX_DELAY_S = 30.0
DEFAULT_MAX_ATTEMPTS = 5


class CloseKind(str, enum.Enum):
    NORMAL = "normal"        # requested by us, or a clean normal-closure: never retried
    NOT_READY = "not_ready"  # remote environment provisioning: external poller decides
    TRANSIENT = "transient"  # everything else: backoff retry


class BackoffController:
    def __init__(
        self,
        initial_delay: float = DEFAULT_INITIAL_DELAY_S,
        max_delay: float = DEFAULT_MAX_DELAY_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        not_ready_code: int = CloseCode.NOT_READY,
    ):
        if initial_delay <= 0 or max_delay < initial_delay:
            raise ValueError("require 0 < initial_delay <= max_delay")
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.not_ready_code = not_ready_code
        self._attempts = 0
        self._delay = initial_delay

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def exhausted(self) -> bool:
        return self._attempts >= self.max_attempts

    def classify(self, code: Optional[int], requested: bool = False) -> CloseKind:
        if requested or code == CloseCode.NORMAL:
            return CloseKind.NORMAL
        if code == self.not_ready_code:
            return CloseKind.NOT_READY
        return CloseKind.TRANSIENT

    def next_delay(self) -> Optional[float]:
        """Consume one attempt and return its delay, or None once the budget is spent."""
        if self.exhausted:
            return None
        delay = self._delay
        self._attempts += 1
        self._delay = min(self._delay * 2, self.max_delay)
        return delay

    def reset(self) -> None:
        self._attempts = 0
        self._delay = self.initial_delay
