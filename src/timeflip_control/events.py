"""Turn toggleable notification classes into one ordered event sequence."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from .config import Config, facet_name
from .exception import NoSubscriptionError
from .models import (
    BatteryLevel,
    Disconnected,
    DoubleTap,
    FacetChanged,
    LogEvent,
    NotificationEvent,
    SubscriptionSet,
)
from .session import DeviceSession

logger = logging.getLogger(__name__)


async def subscribe(session: DeviceSession, subscriptions: SubscriptionSet) -> None:
    """Arm every enabled notification class, stopping at the first failure."""
    if not subscriptions.any():
        raise NoSubscriptionError(
            "Enable at least one of battery, facet, double-tap or log-event"
        )
    requests = {
        "battery": session.subscribe_battery_level,
        "facet": session.subscribe_facet,
        "double_tap": session.subscribe_double_tap,
        "log_event": session.subscribe_events,
    }
    for name in subscriptions.enabled():
        logger.debug("Subscribing to %s notifications", name)
        await requests[name]()


async def merged_events(
    session: DeviceSession, subscriptions: SubscriptionSet
) -> AsyncIterator[NotificationEvent]:
    """Subscribe, then yield events in arrival order.

    The sequence ends right after the first ``Disconnected`` event, which is
    yielded, or when the transport stream itself ends.
    """
    await subscribe(session, subscriptions)
    async for event in session.event_stream():
        yield event
        if isinstance(event, Disconnected):
            logger.debug("Event stream ended by disconnect")
            return


def describe_event(event: NotificationEvent, config: Config | None) -> str:
    """Render one event as the line ``notify`` prints."""
    match event:
        case BatteryLevel(percentage=percentage):
            return f"Battery Level {percentage}"
        case LogEvent(entry=entry):
            return str(entry)
        case FacetChanged(facet=facet):
            return f"Currently Up: {facet_name(facet, config)}"
        case DoubleTap(facet=facet, paused=paused):
            state = "paused" if paused else "started"
            return f"Facet {facet_name(facet, config)} has {state}"
        case Disconnected():
            return "TimeFlip has disconnected"
    raise TypeError(f"Unknown event {event!r}")
