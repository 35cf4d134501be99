"""Contract between the command layer and a connected cube."""

from __future__ import annotations

from datetime import datetime
from typing import AsyncIterator, Protocol

from .config import Config
from .models import Facet, LogEntry, NotificationEvent, SyncState, SystemStatus


class DeviceSession(Protocol):
    """Operations the commands need from a connected TimeFlip2.

    Every call may raise a transport error; callers surface it unchanged.
    """

    async def battery_level(self) -> int: ...

    async def facet(self) -> Facet: ...

    async def lock(self) -> None: ...

    async def unlock(self) -> None: ...

    async def pause(self) -> None: ...

    async def unpause(self) -> None: ...

    async def system_status(self) -> SystemStatus: ...

    async def sync_state(self) -> SyncState: ...

    async def sync(self, config: Config) -> None: ...

    async def time(self) -> datetime: ...

    async def set_time(self, when: datetime) -> None: ...

    async def write_config(self, config: Config) -> None: ...

    async def read_history_since(self, entry_id: int) -> list[LogEntry]:
        """Return entries with an id greater than ``entry_id``, ascending."""
        ...

    async def subscribe_battery_level(self) -> None: ...

    async def subscribe_facet(self) -> None: ...

    async def subscribe_double_tap(self) -> None: ...

    async def subscribe_events(self) -> None: ...

    def event_stream(self) -> AsyncIterator[NotificationEvent]: ...

    async def maintain(self) -> None:
        """Keep the connection serviced; returns only when it is lost."""
        ...

    async def disconnect(self) -> None: ...
