"""Base adapter interface: guild event dispatch plus start/wait/stop lifecycle."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ircbridge.events import GuildEvent


class AdapterBase(ABC):
    """Platform connection that owns bridge sessions and reacts to guild events."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Platform identifier, used in log lines."""
        ...

    @abstractmethod
    async def dispatch(self, evt: GuildEvent) -> None:
        """Handle one guild lifecycle or interaction event."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Connect in the background; return once the connection task is running."""
        ...

    async def wait_closed(self) -> None:
        """Block until the platform connection ends. Default: return immediately."""
        return None

    @abstractmethod
    async def stop(self) -> None:
        """Tear down the current session and disconnect."""
        ...
