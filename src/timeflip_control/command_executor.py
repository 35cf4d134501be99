"""Command execution for the cube, one coroutine per CLI command."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path

from rich.console import Console

from .config import Config, facet_name
from .events import describe_event, merged_events
from .exception import CacheWriteError, ConfigurationMissingError
from .history import sync_history
from .models import SubscriptionSet, SyncState
from .session import DeviceSession
from .view import History

logger = logging.getLogger(__name__)

CONFIG_REQUIRED_COMMANDS = frozenset({"history", "sync", "write_config"})


class HistoryStyle(str, Enum):
    """Output styles for the history command."""

    lines = "lines"
    tabular = "tabular"
    summarized = "summarized"


def check_config(command: str, config: Config | None) -> Config | None:
    """Fail fast when ``command`` needs a configuration and has none."""
    if config is None and command in CONFIG_REQUIRED_COMMANDS:
        raise ConfigurationMissingError("config is mandatory for this command")
    return config


class CommandExecutor:
    """Executes commands on a connected cube and prints the results."""

    def __init__(
        self,
        session: DeviceSession,
        config: Config | None = None,
        console: Console | None = None,
    ):
        self.session = session
        self.config = config
        self.console = console or Console()

    def _require_config(self, command: str) -> Config:
        config = check_config(command, self.config)
        assert config is not None  # nosec
        return config

    def _facet_name(self, facet) -> str:
        return facet_name(facet, self.config)

    async def battery(self) -> None:
        level = await self.session.battery_level()
        self.console.print(f"Battery level: {level}")

    async def history(
        self,
        update: Path | None = None,
        start_with: int | None = None,
        since: date | None = None,
        style: HistoryStyle = HistoryStyle.tabular,
    ) -> None:
        """Sync the history log and print it."""
        config = self._require_config("history")

        def _report_write_error(exc: CacheWriteError) -> None:
            self.console.print(str(exc), style="yellow", markup=False)

        entries = await sync_history(
            self.session.read_history_since,
            cache_file=update,
            resume_override=start_with,
            on_write_error=_report_write_error,
        )

        history = History(entries, config)
        if since is not None:
            # local midnight of the requested day
            view = history.since(datetime.combine(since, time()).astimezone())
        else:
            view = history.all()

        if style is HistoryStyle.lines:
            self.console.print(view.lines(), end="")
        elif style is HistoryStyle.summarized:
            self.console.print(view.summarized())
        else:
            self.console.print(view.table_by_day())

    async def facet(self) -> None:
        facet = await self.session.facet()
        self.console.print(f"Currently up: {self._facet_name(facet)}")

    async def lock(self) -> None:
        await self.session.lock()

    async def unlock(self) -> None:
        await self.session.unlock()

    async def notify(self, subscriptions: SubscriptionSet) -> None:
        """Print notifications until the cube disconnects."""
        async for event in merged_events(self.session, subscriptions):
            self.console.print(describe_event(event, self.config))

    async def pause(self) -> None:
        await self.session.pause()

    async def unpause(self) -> None:
        await self.session.unpause()

    async def status(self) -> None:
        status = await self.session.system_status()
        self.console.print(f"System status: {status}")

    async def sync_state(self) -> None:
        state = await self.session.sync_state()
        self.console.print(f"Sync state: {state.value}")

    async def sync(self) -> None:
        """Synchronize the cube unless it reports it already is."""
        config = self._require_config("sync")
        if await self.session.sync_state() is SyncState.SYNCHRONIZED:
            self.console.print("TimeFlip is already synchronized")
            return
        await self.session.sync(config)
        self.console.print("TimeFlip synchronized")

    async def time(self, set_clock: bool = False) -> None:
        if set_clock:
            now = datetime.now().astimezone()
            self.console.print(f"Setting time to: {now}")
            await self.session.set_time(now)
        else:
            cube_time = await self.session.time()
            self.console.print(f"Time set on TimeFlip: {cube_time.astimezone()}")

    async def write_config(self) -> None:
        config = self._require_config("write_config")
        await self.session.write_config(config)
        logger.info("Configuration written")
