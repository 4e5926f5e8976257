"""
Readiness poller.

After a not-ready close the manager does not retry by itself. The poller
checks the environment status endpoint until it reports `is_ready`, then
calls back (normally ConnectionManager.connect).
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from chatlink.errors import ChatLinkError, NotReadyError
from chatlink.transport.http import HttpClient

logger = logging.getLogger(__name__)


class ReadinessPoller:
    def __init__(
        self,
        http: HttpClient,
        session_key: str,
        on_ready: Callable[[], Awaitable[Any]],
        interval: float = 5.0,
        timeout: float = 300.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._http = http
        self._session_key = session_key
        self._on_ready = on_ready
        self._interval = interval
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check(self) -> bool:
        data = await self._http.get(f"/api/projects/{self._session_key}/status")
        return isinstance(data, dict) and bool(data.get("is_ready"))

    async def wait_ready(self) -> None:
        """Return once the environment reports ready; raise NotReadyError after `timeout`."""
        deadline = self._clock() + self._timeout
        while True:
            try:
                if await self.check():
                    return
            except (ChatLinkError, httpx.HTTPError) as e:
                logger.warning("Status check failed for session %s: %s", self._session_key, e)
            if self._clock() >= deadline:
                raise NotReadyError(f"Environment for session {self._session_key} not ready after {self._timeout:.0f}s")
            await self._sleep(self._interval)

    async def run(self) -> None:
        await self.wait_ready()
        logger.info("Session %s environment ready, reconnecting", self._session_key)
        await self._on_ready()

    def start(self, on_error: Optional[Callable[[NotReadyError], None]] = None) -> asyncio.Task[None]:
        """Start polling in the background. A poll already in progress is reused."""
        if self._task is not None and not self._task.done():
            return self._task

        async def _run() -> None:
            try:
                await self.run()
            except NotReadyError as e:
                logger.error("%s", e)
                if on_error is not None:
                    on_error(e)

        self._task = asyncio.ensure_future(_run())
        return self._task

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
