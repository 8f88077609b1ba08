# events.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List


@dataclass(frozen=True)
class MapEvent:
    type: str
    target: Any
    data: Dict[str, Any] = field(default_factory=dict)


Handler = Callable[[MapEvent], None]


class Evented:
    """
    Named event streams for the map objects.
    Handlers run synchronously, in subscription order, on the emitting thread.
    """

    def _listeners(self) -> Dict[str, List[Handler]]:
        # lazily created so dataclass subclasses need no __init__ cooperation
        return self.__dict__.setdefault("_event_listeners", {})

    def on(self, type: str, handler: Handler) -> Handler:
        handlers = self._listeners().setdefault(type, [])
        if handler not in handlers:
            handlers.append(handler)
        return handler

    def off(self, type: str, handler: Handler | None = None) -> None:
        listeners = self._listeners()
        if handler is None:
            listeners.pop(type, None)
            return
        handlers = listeners.get(type, [])
        if handler in handlers:
            handlers.remove(handler)

    def listens(self, type: str) -> bool:
        return bool(self._listeners().get(type))

    def emit(self, type: str, **data: Any) -> MapEvent:
        event = MapEvent(type=type, target=self, data=data)
        for handler in list(self._listeners().get(type, ())):
            handler(event)
        return event
