"""
Envelope construction and parsing.
"""

import json
import logging
from typing import Any, Optional, Union

from pydantic import TypeAdapter, ValidationError

from chatlink.errors import EnvelopeError
from chatlink.models.envelope import (
    AbortEnvelope,
    CommandSearchEnvelope,
    FileSearchEnvelope,
    InboundEnvelope,
    ReconnectEnvelope,
    UserTurnEnvelope,
)
from chatlink.models.log import ReplayCursor

logger = logging.getLogger(__name__)

_inbound_adapter: TypeAdapter[InboundEnvelope] = TypeAdapter(InboundEnvelope)


def build_turn(
    content: str,
    images: Optional[list[dict[str, Any]]] = None,
    agent_type: str = "claude",
    permission_mode: Optional[str] = None,
    thinking_mode: Optional[str] = None,
) -> str:
    """Build a user turn as a JSON text frame. Unset optional modes are omitted."""
    envelope = UserTurnEnvelope(
        content=content,
        images=images or [],
        agent_type=agent_type,
        permission_mode=permission_mode,
        thinking_mode=thinking_mode,
    )
    return envelope.model_dump_json(exclude_none=True)


def build_abort() -> str:
    return AbortEnvelope().model_dump_json()


def build_reconnect(cursor: ReplayCursor) -> str:
    """`last_message_id` is always present, null before the first tracked message."""
    return ReconnectEnvelope(
        last_message_id=cursor.last_message_id,
        last_buffer_index=cursor.buffer_offset,
    ).model_dump_json()


def build_file_search(query: str, path: str = "") -> str:
    return FileSearchEnvelope(query=query, path=path).model_dump_json()


def build_command_search(query: str) -> str:
    return CommandSearchEnvelope(query=query).model_dump_json()


def parse_envelope(raw: Union[str, bytes, dict[str, Any]], strict: bool = False) -> Optional[InboundEnvelope]:
    """Parse an inbound envelope.

    Returns None for undecodable JSON, non-object payloads, unknown `type`
    values and schema violations, or raises EnvelopeError when `strict`.
    """
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        return _reject(f"Undecodable payload: {e}", raw, strict)
    if not isinstance(data, dict) or "type" not in data:
        return _reject("Payload is not a typed JSON object", raw, strict)
    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        return _reject(f"Invalid {data.get('type')!r} envelope: {e.error_count()} error(s)", raw, strict)


def _reject(message: str, raw: Any, strict: bool) -> None:
    if strict:
        raise EnvelopeError(message, details={"raw": str(raw)[:200]})
    logger.warning("Dropping envelope: %s", message)
    return None
