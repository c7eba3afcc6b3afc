# ClearPath/core/events.py
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List
from threading import RLock

from loguru import logger

Handler = Callable[["Event"], None]


@dataclass
class Event:
    type: str
    payload: Dict[str, Any] | None = None


class EventBus:
    """
    Synchronous in-process pub/sub for session notifications.
    Handlers run on the publisher's thread (the session loop), so they must
    be quick; a handler that raises is logged and skipped.
    """

    def __init__(self):
        self._subs: Dict[str, List[Handler]] = {}
        self._lock = RLock()

    def subscribe(self, evt_type: str, handler: Handler):
        with self._lock:
            self._subs.setdefault(evt_type, []).append(handler)

    def subscribe_many(self, evt_types: Iterable[str], handler: Handler):
        for evt_type in evt_types:
            self.subscribe(evt_type, handler)

    def publish(self, evt_type: str, payload: Dict[str, Any] | None = None):
        with self._lock:
            handlers = list(self._subs.get(evt_type, ()))
        if not handlers:
            return
        evt = Event(evt_type, payload)
        for handler in handlers:
            try:
                handler(evt)
            except Exception as e:
                logger.exception(f"[BUS] {evt_type} handler {getattr(handler, '__name__', handler)!r} failed: {e}")

    def unsubscribe(self, evt_type: str, handler: Handler):
        with self._lock:
            handlers = self._subs.get(evt_type, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._subs.pop(evt_type, None)
