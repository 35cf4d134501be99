"""TimeFlip2 control CLI entrypoint.

Communicate with a TimeFlip2 cube. Pair the cube first (for example with
``bluetoothctl``); the password from the config file is sent on connect,
the factory default otherwise.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable

import typer
from bleak.exc import BleakError
from rich.console import Console
from typing_extensions import Annotated

from .command_executor import CommandExecutor, HistoryStyle, check_config
from .config import Config, load_config
from .device import device_session
from .environment import default_config_path, get_log_level
from .exception import TimeFlipError
from .models import SubscriptionSet
from .runner import run_until_first, wait_for_interrupt

app = typer.Typer(help="Communicate with a TimeFlip2 cube.")

err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

Command = Callable[[CommandExecutor], Awaitable[None]]


@dataclass
class _Options:
    config: Config | None
    address: str | None


def _configure_logging(verbose: bool) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else get_log_level(),
            format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        )


def _fail(exc: Exception) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {exc}")
    raise typer.Exit(code=1)


async def _run_session(options: _Options, command: Command) -> None:
    """Connect, then race the command against disconnects and Ctrl-C."""
    password = options.config.password if options.config else None
    async with device_session(options.address, password) as timeflip:
        executor = CommandExecutor(timeflip, options.config)
        await run_until_first(
            command(executor), timeflip.maintain(), wait_for_interrupt()
        )


def _run(ctx: typer.Context, name: str, command: Command) -> None:
    options: _Options = ctx.obj
    try:
        check_config(name, options.config)
        asyncio.run(_run_session(options, command))
    except KeyboardInterrupt:
        logger.info("shutting down")
    except (TimeFlipError, BleakError) as exc:
        _fail(exc)


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="path to the timeflip.toml file"),
    ] = None,
    address: Annotated[
        str | None,
        typer.Option(
            "--address",
            "-a",
            envvar=["TIMEFLIP_ADDRESS", "TIMEFLIP_MAC"],
            help="bluetooth address of the cube, scan by name if omitted",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="log debug output")
    ] = False,
) -> None:
    """Communicate with a TimeFlip2 cube."""
    _configure_logging(verbose)
    path = config or default_config_path()
    loaded: Config | None = None
    if path is not None:
        try:
            loaded = load_config(path)
        except TimeFlipError as exc:
            _fail(exc)
    ctx.obj = _Options(config=loaded, address=address)


@app.command()
def battery(ctx: typer.Context) -> None:
    """Print the current battery level."""
    _run(ctx, "battery", lambda executor: executor.battery())


@app.command()
def history(
    ctx: typer.Context,
    update: Annotated[
        Path | None,
        typer.Option(help="read events from and write new events to file"),
    ] = None,
    start_with: Annotated[
        int | None,
        typer.Option(
            min=0,
            help="start reading after entry ID, overrides the latest "
            "event in --update",
        ),
    ] = None,
    since: Annotated[
        datetime | None,
        typer.Option(
            formats=["%Y-%m-%d"],
            help="start displaying with entries after DATE (YYYY-MM-DD)",
        ),
    ] = None,
    style: Annotated[
        HistoryStyle, typer.Option(help="choose output style")
    ] = HistoryStyle.tabular,
) -> None:
    """Print logged TimeFlip events."""
    since_date = since.date() if since is not None else None
    _run(
        ctx,
        "history",
        lambda executor: executor.history(
            update=update, start_with=start_with, since=since_date, style=style
        ),
    )


@app.command()
def facet(ctx: typer.Context) -> None:
    """Print the facet currently facing up."""
    _run(ctx, "facet", lambda executor: executor.facet())


@app.command()
def lock(ctx: typer.Context) -> None:
    """Put the TimeFlip2 in lock mode."""
    _run(ctx, "lock", lambda executor: executor.lock())


@app.command()
def unlock(ctx: typer.Context) -> None:
    """Release the TimeFlip2 from lock mode."""
    _run(ctx, "unlock", lambda executor: executor.unlock())


@app.command()
def notify(
    ctx: typer.Context,
    battery: Annotated[
        bool, typer.Option("--battery", help="listen for battery events")
    ] = False,
    facet: Annotated[
        bool, typer.Option("--facet", help="listen for facet events")
    ] = False,
    double_tap: Annotated[
        bool,
        typer.Option("--double-tap", help="listen for double-tap events"),
    ] = False,
    log_event: Annotated[
        bool, typer.Option("--log-event", help="listen for log events")
    ] = False,
) -> None:
    """Subscribe to properties and get notified if they change."""
    subscriptions = SubscriptionSet(
        battery=battery, facet=facet, double_tap=double_tap, log_event=log_event
    )
    if not subscriptions.any():
        raise typer.BadParameter(
            "choose at least one of --battery, --facet, --double-tap, "
            "--log-event"
        )
    _run(ctx, "notify", lambda executor: executor.notify(subscriptions))


@app.command()
def pause(ctx: typer.Context) -> None:
    """Put the TimeFlip2 into pause mode."""
    _run(ctx, "pause", lambda executor: executor.pause())


@app.command()
def unpause(ctx: typer.Context) -> None:
    """Release the TimeFlip2 from pause mode."""
    _run(ctx, "unpause", lambda executor: executor.unpause())


@app.command()
def status(ctx: typer.Context) -> None:
    """Print the TimeFlip2's system status."""
    _run(ctx, "status", lambda executor: executor.status())


@app.command()
def sync_state(ctx: typer.Context) -> None:
    """Get the TimeFlip2's synchronization state."""
    _run(ctx, "sync_state", lambda executor: executor.sync_state())


@app.command()
def sync(ctx: typer.Context) -> None:
    """Synchronize TimeFlip2. Do nothing if the cube reports it is synchronized."""
    _run(ctx, "sync", lambda executor: executor.sync())


@app.command()
def time(
    ctx: typer.Context,
    set_clock: Annotated[
        bool,
        typer.Option("--set", help="set TimeFlip2's time to the current time"),
    ] = False,
) -> None:
    """Get the TimeFlip2's current time."""
    _run(ctx, "time", lambda executor: executor.time(set_clock=set_clock))


@app.command()
def write_config(ctx: typer.Context) -> None:
    """Write config from the toml file to the TimeFlip2's memory."""
    _run(ctx, "write_config", lambda executor: executor.write_config())


if __name__ == "__main__":
    app()
