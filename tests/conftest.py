"""Shared fixtures: an in-memory stand-in for a connected cube."""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Iterable
from unittest.mock import AsyncMock

import pytest
from rich.console import Console

from timeflip_control.config import Config, Side
from timeflip_control.models import (
    Facet,
    LogEntry,
    NotificationEvent,
    SyncState,
    SystemStatus,
)

BASE_TIME = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def make_entry(
    entry_id: int,
    facet: int = 0,
    *,
    duration: int = 600,
    paused: bool = False,
    start: datetime | None = None,
) -> LogEntry:
    """Build a log entry; by default entries start ten minutes apart."""
    return LogEntry(
        id=entry_id,
        facet=Facet(facet),
        paused=paused,
        time=start or BASE_TIME + timedelta(minutes=10 * entry_id),
        duration=duration,
    )


class FakeSession:
    """Device session double recording every call."""

    def __init__(
        self,
        history: Iterable[LogEntry] = (),
        events: Iterable[NotificationEvent] = (),
    ):
        self.history = list(history)
        self.events = list(events)
        self.history_requests: list[int] = []
        self.calls: list[str] = []

        self.battery_level = AsyncMock(return_value=87)
        self.facet = AsyncMock(return_value=Facet(1))
        self.lock = AsyncMock()
        self.unlock = AsyncMock()
        self.pause = AsyncMock()
        self.unpause = AsyncMock()
        self.system_status = AsyncMock(
            return_value=SystemStatus(
                locked=False, paused=True, auto_pause_minutes=0
            )
        )
        self.sync_state = AsyncMock(return_value=SyncState.NOT_SYNCHRONIZED)
        self.sync = AsyncMock()
        self.time = AsyncMock(return_value=BASE_TIME)
        self.set_time = AsyncMock()
        self.write_config = AsyncMock()
        self.maintain = AsyncMock()
        self.disconnect = AsyncMock()

        self.subscribe_battery_level = AsyncMock(
            side_effect=lambda: self.calls.append("battery")
        )
        self.subscribe_facet = AsyncMock(
            side_effect=lambda: self.calls.append("facet")
        )
        self.subscribe_double_tap = AsyncMock(
            side_effect=lambda: self.calls.append("double_tap")
        )
        self.subscribe_events = AsyncMock(
            side_effect=lambda: self.calls.append("log_event")
        )

    async def read_history_since(self, entry_id: int) -> list[LogEntry]:
        self.history_requests.append(entry_id)
        return [entry for entry in self.history if entry.id > entry_id]

    async def event_stream(self) -> AsyncIterator[NotificationEvent]:
        self.calls.append("stream")
        for event in self.events:
            yield event

    def device_calls(self) -> int:
        """Number of awaited device operations, history reads included."""
        mocks = [
            value for value in vars(self).values() if isinstance(value, AsyncMock)
        ]
        return sum(mock.await_count for mock in mocks) + len(
            self.history_requests
        )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def config() -> Config:
    return Config(
        password="123456",
        sides=[Side(name="Email"), Side(name="Coding", pomodoro_minutes=25)],
    )


@pytest.fixture
def console() -> Console:
    """Console writing to a buffer, read back via ``console.file.getvalue()``."""
    return Console(file=io.StringIO(), width=120, color_system=None)
