"""
Conversation history endpoint — fetched once at session start to seed the store.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from chatlink.errors import HttpError
from chatlink.models.log import LogEntry
from chatlink.store import MessageStore
from chatlink.transport.http import HttpClient

logger = logging.getLogger(__name__)


class HistoryAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def fetch(self, session_key: str) -> list[LogEntry]:
        """Durable history in ascending timestamp order. A 404 means no history yet."""
        try:
            data = await self._http.get(f"/api/projects/{session_key}/chat/history")
        except HttpError as e:
            if e.status_code == 404:
                return []
            raise
        messages = data.get("messages") if isinstance(data, dict) else None
        entries = [entry for entry in (self._to_entry(m) for m in messages or []) if entry is not None]
        entries.sort(key=lambda e: e.timestamp)
        return entries

    async def load(self, session_key: str, store: MessageStore) -> int:
        entries = await self.fetch(session_key)
        count = store.seed(entries)
        logger.info("Seeded %d history message(s) for session %s", count, session_key)
        return count

    @staticmethod
    def _to_entry(raw: Any) -> Optional[LogEntry]:
        if not isinstance(raw, dict):
            return None
        try:
            return LogEntry(
                id=raw.get("message_id") or raw["id"],
                role=raw["role"],
                content=raw.get("content") or "",
                timestamp=raw["timestamp"],
                kind=raw.get("message_type") or "chat",
                tool_info=raw.get("tool_info"),
                metadata=raw.get("metadata") or {},
            )
        except (KeyError, ValidationError) as e:
            logger.warning("Skipping malformed history message: %s", e)
            return None
