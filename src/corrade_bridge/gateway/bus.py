"""Event bus: synchronous, in-order delivery of events to registered targets."""

from __future__ import annotations

from loguru import logger

from corrade_bridge.events import EventTarget

__all__ = ["Bus", "EventTarget"]


class Bus:
    """Delivers each published event to every target that accepts it.

    Delivery happens inline on the caller's thread (the event loop), one event
    at a time, so relay decisions never overlap. A failing target is logged and
    skipped; it never stops delivery to the remaining targets.
    """

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    def register(self, target: EventTarget) -> None:
        """Register an adapter or the relay as event target."""
        if target not in self._targets:
            self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        """Unregister a target; unknown targets are ignored."""
        if target in self._targets:
            self._targets.remove(target)

    @property
    def targets(self) -> list[EventTarget]:
        return list(self._targets)

    def publish(self, source: str, evt: object) -> None:
        """Publish event to all targets that accept it."""
        for target in list(self._targets):
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception(
                    "Target {} failed on {} from {}: {}",
                    type(target).__name__,
                    type(evt).__name__,
                    source,
                    exc,
                )
