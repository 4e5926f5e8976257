"""In-memory stand-ins for the socket and the timer loop."""

import asyncio
import json
from typing import Any, Callable, Optional, Union

from chatlink.models.events import CloseCode

_CLOSED = object()


class FakeChannel:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.close_code = CloseCode.ABNORMAL
        self.close_reason = ""
        self.closed_with: Optional[tuple[int, str]] = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, text: str) -> None:
        self.sent.append(json.loads(text))

    async def messages(self):
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        self.closed_with = (code, reason)
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(_CLOSED)

    def feed(self, payload: Union[str, dict[str, Any]]) -> None:
        self._inbox.put_nowait(payload if isinstance(payload, str) else json.dumps(payload))

    def fail(self, exc: BaseException) -> None:
        """Make the receive loop raise `exc`, as a broken transport would."""
        self._inbox.put_nowait(exc)

    def drop(self, code: int = CloseCode.ABNORMAL, reason: str = "") -> None:
        """Simulate the server side closing the connection."""
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(_CLOSED)


class FakeFactory:
    def __init__(self, failures: int = 0, gate: Optional[asyncio.Event] = None) -> None:
        self.failures = failures
        self.gate = gate
        self.calls = 0
        self.urls: list[str] = []
        self.channels: list[FakeChannel] = []

    async def __call__(self, url: str) -> FakeChannel:
        self.calls += 1
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            self.failures -= 1
            raise OSError("Connection refused")
        channel = FakeChannel()
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def delays(self) -> list[float]:
        return [h.delay for h in self.handles]

    def fire_last(self) -> None:
        handle = self.handles[-1]
        assert not handle.cancelled
        handle.callback()


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def __call__(self, event: str, data: Any) -> None:
        self.events.append((event, data))

    def of(self, name: str) -> list[Any]:
        return [data for event, data in self.events if event == name]


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
