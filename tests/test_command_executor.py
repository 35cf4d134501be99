"""Tests for the CommandExecutor."""

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import FakeSession, make_entry
from timeflip_control.command_executor import (
    CommandExecutor,
    HistoryStyle,
    check_config,
)
from timeflip_control.exception import (
    CacheCorruptError,
    ConfigurationMissingError,
)
from timeflip_control.models import (
    BatteryLevel,
    Disconnected,
    Facet,
    FacetChanged,
    SubscriptionSet,
    SyncState,
)

# All test coroutines will be treated as marked.
pytestmark = pytest.mark.asyncio


def _output(console) -> str:
    return console.file.getvalue()


@pytest.mark.parametrize("command", ["history", "sync", "write_config"])
async def test_config_required_commands_fail_before_device_calls(
    session: FakeSession, console, command: str
):
    executor = CommandExecutor(session, None, console)

    with pytest.raises(ConfigurationMissingError, match="config is mandatory"):
        await getattr(executor, command)()

    assert session.device_calls() == 0


async def test_check_config_passes_for_other_commands():
    assert check_config("battery", None) is None
    with pytest.raises(ConfigurationMissingError):
        check_config("history", None)


async def test_battery(session: FakeSession, console):
    await CommandExecutor(session, None, console).battery()

    assert "Battery level: 87" in _output(console)


async def test_facet_uses_configured_name(session: FakeSession, config, console):
    await CommandExecutor(session, config, console).facet()

    assert "Currently up: Coding" in _output(console)


async def test_simple_commands_delegate(session: FakeSession, console):
    executor = CommandExecutor(session, None, console)

    await executor.lock()
    await executor.unlock()
    await executor.pause()
    await executor.unpause()

    session.lock.assert_awaited_once()
    session.unlock.assert_awaited_once()
    session.pause.assert_awaited_once()
    session.unpause.assert_awaited_once()


async def test_status_and_sync_state(session: FakeSession, console):
    executor = CommandExecutor(session, None, console)

    await executor.status()
    await executor.sync_state()

    output = _output(console)
    assert "System status: unlocked, paused, auto pause off" in output
    assert "Sync state: not synchronized" in output


async def test_sync_skips_synchronized_cube(
    session: FakeSession, config, console
):
    session.sync_state.return_value = SyncState.SYNCHRONIZED

    await CommandExecutor(session, config, console).sync()

    session.sync.assert_not_awaited()
    assert "already synchronized" in _output(console)


async def test_sync_writes_when_not_synchronized(
    session: FakeSession, config, console
):
    await CommandExecutor(session, config, console).sync()

    session.sync.assert_awaited_once_with(config)


async def test_write_config(session: FakeSession, config, console):
    await CommandExecutor(session, config, console).write_config()

    session.write_config.assert_awaited_once_with(config)


async def test_time_read_and_set(session: FakeSession, console):
    executor = CommandExecutor(session, None, console)

    await executor.time()
    await executor.time(set_clock=True)

    assert "Time set on TimeFlip:" in _output(console)
    assert "Setting time to:" in _output(console)
    (when,), _ = session.set_time.call_args
    assert when.tzinfo is not None
    assert abs(datetime.now(timezone.utc) - when) < timedelta(minutes=1)


async def test_notify_prints_until_disconnect(config, console):
    session = FakeSession(
        events=[BatteryLevel(64), FacetChanged(Facet(0)), Disconnected()]
    )

    await CommandExecutor(session, config, console).notify(
        SubscriptionSet(battery=True, facet=True)
    )

    assert _output(console).splitlines() == [
        "Battery Level 64",
        "Currently Up: Email",
        "TimeFlip has disconnected",
    ]


async def test_history_updates_cache_file(config, console, tmp_path: Path):
    session = FakeSession(history=[make_entry(i, facet=i % 2) for i in (1, 2, 3)])
    cache_file = tmp_path / "history.json"
    cache_file.write_text(
        json.dumps([make_entry(1, facet=1).model_dump(mode="json")]),
        encoding="utf-8",
    )

    await CommandExecutor(session, config, console).history(
        update=cache_file, style=HistoryStyle.lines
    )

    assert session.history_requests == [1]
    saved = json.loads(cache_file.read_text())
    assert [item["id"] for item in saved] == [1, 2, 3]
    lines = _output(console).splitlines()
    assert len(lines) == 3
    assert "Email" in lines[1]


async def test_history_since_filters_display_only(
    config, console, tmp_path: Path
):
    old = make_entry(1, start=datetime(2020, 1, 1, 12, tzinfo=timezone.utc))
    new = make_entry(2, start=datetime.now(timezone.utc))
    session = FakeSession(history=[old, new])
    cache_file = tmp_path / "history.json"

    await CommandExecutor(session, config, console).history(
        update=cache_file,
        since=date.today() - timedelta(days=1),
        style=HistoryStyle.lines,
    )

    assert len(_output(console).splitlines()) == 1
    assert len(json.loads(cache_file.read_text())) == 2


async def test_history_reports_cache_write_failure(
    config, console, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    session = FakeSession(history=[make_entry(1)])

    def _refuse(self, target):
        raise OSError("read-only file system")

    monkeypatch.setattr(Path, "replace", _refuse)

    await CommandExecutor(session, config, console).history(
        update=tmp_path / "history.json", style=HistoryStyle.summarized
    )

    output = _output(console)
    assert "cannot update entries file" in output
    assert "Total" in output


async def test_history_corrupt_cache_is_fatal(config, console, tmp_path: Path):
    session = FakeSession(history=[make_entry(1)])
    cache_file = tmp_path / "history.json"
    cache_file.write_text("garbage", encoding="utf-8")

    with pytest.raises(CacheCorruptError):
        await CommandExecutor(session, config, console).history(
            update=cache_file
        )

    assert session.history_requests == []
    assert cache_file.read_text() == "garbage"


async def test_history_without_cache_file_uses_start_with(config, console):
    session = FakeSession(history=[make_entry(i) for i in range(1, 6)])

    await CommandExecutor(session, config, console).history(start_with=3)

    assert session.history_requests == [3]
    assert "Day" in _output(console)
