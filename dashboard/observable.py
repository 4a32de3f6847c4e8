from __future__ import annotations

from typing import Callable, Generic, List, TypeVar

from dashboard.config import dlog


S = TypeVar("S")

Subscriber = Callable[[S], None]


class Observable(Generic[S]):
    """Holds one immutable state object and notifies subscribers on replacement."""

    def __init__(self, initial: S) -> None:
        self._state = initial
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _replace(self, state: S) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception as e:
                dlog("subscriber_error", f"{type(self).__name__}: {e!r}")
