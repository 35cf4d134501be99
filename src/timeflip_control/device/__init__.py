"""Module defining the TimeFlip2 device session."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from .base_device import BaseDevice
from .timeflip import TimeFlip, find_timeflip

__all__ = ["BaseDevice", "TimeFlip", "device_session", "find_timeflip"]


@asynccontextmanager
async def device_session(
    address: str | None = None, password: str | None = None
) -> AsyncIterator[TimeFlip]:
    """Connect to the cube and ensure it is disconnected afterwards."""
    timeflip = await TimeFlip.connect(address, password)
    try:
        yield timeflip
    finally:
        await timeflip.disconnect()
