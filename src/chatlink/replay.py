"""
Replay/dedup tracker.

Keeps the ReplayCursor the client hands the server on reconnect. Only live
(non-replay) log envelopes move it; the server decides what it resends.
"""

import logging
from typing import Optional

from chatlink.models.envelope import InboundEnvelope
from chatlink.models.events import LOG_KINDS
from chatlink.models.log import ReplayCursor

logger = logging.getLogger(__name__)


class ReplayTracker:
    def __init__(self) -> None:
        self._last_message_id: Optional[str] = None
        self._buffer_offset = 0

    @property
    def cursor(self) -> ReplayCursor:
        return ReplayCursor(last_message_id=self._last_message_id, buffer_offset=self._buffer_offset)

    def observe(self, envelope: InboundEnvelope) -> bool:
        """Advance for a live log envelope. Returns False for replays and non-log kinds."""
        if envelope.type not in LOG_KINDS or envelope.is_replay:
            return False
        self._buffer_offset += 1
        message_id = envelope.message_id
        if message_id:
            self._last_message_id = message_id
        return True

    def acknowledge(self, replayed_count: int) -> None:
        """Skip past events the server replayed after a reconnect."""
        if replayed_count > 0:
            self._buffer_offset += replayed_count
            logger.debug("Cursor advanced by %d replayed event(s) to %d", replayed_count, self._buffer_offset)

    def reset(self) -> None:
        self._last_message_id = None
        self._buffer_offset = 0
