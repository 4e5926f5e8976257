"""
Processing-state fan-out for every view observing the same session.

Best-effort UI affordance: nothing is persisted, observers run in
registration order, and one failing observer does not stop the rest.
"""

import logging
from collections import defaultdict
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProcessingObserver = Callable[[bool, Optional[str]], None]


class ProcessingBroadcast:
    def __init__(self) -> None:
        self._observers: dict[str, list[ProcessingObserver]] = defaultdict(list)

    def subscribe(self, session_key: str, observer: ProcessingObserver) -> Callable[[], None]:
        """Register an observer. Returns a function that unregisters it."""
        self._observers[session_key].append(observer)

        def remove() -> None:
            observers = self._observers.get(session_key)
            if observers is None:
                return
            try:
                observers.remove(observer)
            except ValueError:
                pass
            if not observers:
                del self._observers[session_key]
        return remove

    def observer_count(self, session_key: str) -> int:
        return len(self._observers.get(session_key, ()))

    def publish(self, session_key: str, processing: bool, message: Optional[str] = None) -> int:
        observers = list(self._observers.get(session_key, ()))
        for observer in observers:
            try:
                observer(processing, message)
            except Exception:
                logger.exception("Processing observer failed for session %s", session_key)
        return len(observers)
