from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")

Listener = Callable[[S], None]


class Store(Generic[S]):
    """
    Holds an immutable snapshot and notifies subscribers on every change.

    Stores are created explicitly and passed to whoever needs them; `close()`
    tears one down. Listeners run synchronously, in subscription order.
    """

    def __init__(self, initial: S) -> None:
        self._snapshot = initial
        self._listeners: list[Listener[S]] = []
        self._closed = False

    @property
    def snapshot(self) -> S:
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener[S]) -> Callable[[], None]:
        """Register `listener`; the returned callable unregisters it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, snapshot: S) -> None:
        if self._closed:
            logger.debug("%s is closed, ignoring update", type(self).__name__)
            return
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.exception("%s listener failed: %s", type(self).__name__, exc)

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()
