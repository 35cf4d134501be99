"""Race the command against the background task and the operator."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable

logger = logging.getLogger(__name__)

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


async def wait_for_interrupt() -> None:
    """Return once the operator interrupts the process.

    Where the loop cannot install signal handlers, this never returns and
    Ctrl-C arrives as ``KeyboardInterrupt`` instead.
    """
    loop = asyncio.get_running_loop()
    interrupted = asyncio.Event()
    installed = []
    for sig in INTERRUPT_SIGNALS:
        try:
            loop.add_signal_handler(sig, interrupted.set)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    try:
        await interrupted.wait()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def run_until_first(
    command: Awaitable[None],
    background: Awaitable[None],
    interrupt: Awaitable[None],
) -> None:
    """Run all three and stop at whichever finishes first.

    An interrupt or the end of the background task is a graceful shutdown;
    the command's own outcome, error included, is passed to the caller.
    The other branches are left behind, not awaited.
    """
    interrupt_task = asyncio.ensure_future(interrupt)
    background_task = asyncio.ensure_future(background)
    command_task = asyncio.ensure_future(command)

    done, _pending = await asyncio.wait(
        {interrupt_task, background_task, command_task},
        return_when=asyncio.FIRST_COMPLETED,
    )

    if interrupt_task in done:
        winner = interrupt_task
    elif command_task in done:
        winner = command_task
    else:
        winner = background_task
    for task in done - {winner}:
        _discard_outcome(task)

    if winner is interrupt_task:
        logger.info("shutting down")
        return
    if winner is command_task:
        command_task.result()
        return

    exc = background_task.exception()
    if exc is not None:
        logger.error(
            "bluetooth session background task exited with error: %s", exc
        )
    else:
        logger.error("bluetooth session background task exited")


def _discard_outcome(task: asyncio.Future) -> None:
    """Retrieve the outcome of a branch that finished alongside the winner."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("ignoring error from finished branch: %r", exc)
