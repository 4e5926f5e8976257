"""
Duplex text channel over the `websockets` asyncio client.

Connection: {ws_url}/projects/{session_key}/chat with an optional bearer token.
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from chatlink.models.events import CloseCode

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """What ConnectionManager needs from an open duplex connection."""

    close_code: int
    close_reason: str

    async def send(self, text: str) -> None: ...

    def messages(self) -> AsyncIterator[str]: ...

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None: ...


ChannelFactory = Callable[[str], Awaitable[Channel]]


def chat_url(ws_url: str, session_key: str) -> str:
    return f"{ws_url.rstrip('/')}/projects/{session_key}/chat"


class WebSocketChannel:
    def __init__(self, ws: ClientConnection):
        self._ws = ws

    @classmethod
    async def open(
        cls,
        url: str,
        token: Optional[str] = None,
        open_timeout: float = 10.0,
    ) -> "WebSocketChannel":
        headers = {"Authorization": f"Bearer {token}"} if token else None
        ws = await connect(
            url,
            additional_headers=headers,
            open_timeout=open_timeout,
            ping_interval=30,
            ping_timeout=10,
        )
        return cls(ws)

    @property
    def close_code(self) -> int:
        code = self._ws.close_code
        return code if code is not None else CloseCode.ABNORMAL

    @property
    def close_reason(self) -> str:
        return self._ws.close_reason or ""

    async def send(self, text: str) -> None:
        await self._ws.send(text)

    async def messages(self) -> AsyncIterator[str]:
        """Yield text frames until the connection closes, then stop.

        The close code is read from `close_code` afterwards; binary frames are decoded as UTF-8.
        """
        try:
            async for message in self._ws:
                yield message.decode("utf-8", errors="replace") if isinstance(message, bytes) else message
        except ConnectionClosed as e:
            logger.debug("Connection closed: %s", e)

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        await self._ws.close(code, reason)


def websocket_factory(token: Optional[str] = None, open_timeout: float = 10.0) -> ChannelFactory:
    async def _open(url: str) -> Channel:
        return await WebSocketChannel.open(url, token=token, open_timeout=open_timeout)
    return _open
