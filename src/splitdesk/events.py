from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


class Observable:
    """
    Minimal subscribe/notify helper shared by the session and the stores.

    Listeners run synchronously, in subscription order, after the state
    they observe has been committed. A listener that raises does not stop
    the others; the error is logged with its traceback.
    """

    def __init__(self) -> None:
        self._listeners_lock = RLock()
        self._listeners: List[Listener] = []

    # PUBLIC_INTERFACE
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it again."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, *args: Any) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener %r failed", listener)
