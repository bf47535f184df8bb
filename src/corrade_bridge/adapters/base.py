"""Common shape of the Corrade and Discord adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod


class AdapterBase(ABC):
    """A transport that feeds inbound events to the bus and drains outbound ones.

    Subclasses claim their outbound event type in ``accept_event`` and deliver
    it in ``push_event``; the defaults accept nothing.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Bus source name of this side of the bridge: 'corrade' or 'discord'."""
        ...

    def accept_event(self, source: str, evt: object) -> bool:
        return False

    def push_event(self, source: str, evt: object) -> None:
        pass

    @abstractmethod
    async def start(self) -> None:
        """Connect to the broker or gateway and register on the bus."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Unregister from the bus, disconnect and cancel background tasks."""
        ...
