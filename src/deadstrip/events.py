from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

WarningEventKind = Literal["completed", "restored"]


@dataclass(frozen=True, slots=True)
class WarningEvent:
    """A warning left the visible set (`completed`) or came back (`restored`)."""

    kind: WarningEventKind
    warning_id: str


Subscriber = Callable[[WarningEvent], None]


class EventChannel:
    """
    Observer list owned by one engine session.

    Subscribers are called synchronously on the publishing thread, in
    subscription order.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: WarningEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(event)

    def publish_all(self, kind: WarningEventKind, warning_ids: tuple[str, ...] | list[str]) -> None:
        for warning_id in warning_ids:
            self.publish(WarningEvent(kind=kind, warning_id=warning_id))
