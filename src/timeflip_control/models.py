"""Data model shared by the session, the event merger and the history code."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import core_schema

from .const import FACET_COUNT


class Facet(int):
    """Zero-based index of the cube side facing up.

    Displayed one-based, the way the sides are printed on the cube.
    """

    def __new__(cls, value: int) -> "Facet":
        value = int(value)
        if not 0 <= value < FACET_COUNT:
            raise ValueError(
                f"Facet index must be in range 0-{FACET_COUNT - 1}, got {value}"
            )
        return super().__new__(cls, value)

    def __str__(self) -> str:
        return f"Facet {int(self) + 1}"

    def __repr__(self) -> str:
        return f"Facet({int(self)})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source: Any, _handler: Any
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.int_schema(ge=0, lt=FACET_COUNT),
            serialization=core_schema.plain_serializer_function_ser_schema(
                int
            ),
        )


class LogEntry(BaseModel):
    """A device-recorded facet transition.

    ``id`` is unique and grows in the order the cube recorded entries; it is
    the only key used to deduplicate and to resume history reads.
    """

    id: int = Field(ge=0)
    facet: Facet
    paused: bool = False
    time: datetime
    duration: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def __str__(self) -> str:
        local = self.time.astimezone()
        state = "paused" if self.paused else "active"
        return (
            f"#{self.id} {local:%Y-%m-%d %H:%M:%S} {self.facet} {state} "
            f"for {timedelta(seconds=self.duration)}"
        )


@dataclass(frozen=True, slots=True)
class BatteryLevel:
    """Battery charge notification."""

    percentage: int


@dataclass(frozen=True, slots=True)
class LogEvent:
    """A log entry the cube just recorded."""

    entry: LogEntry


@dataclass(frozen=True, slots=True)
class FacetChanged:
    """The cube was turned to another facet."""

    facet: Facet


@dataclass(frozen=True, slots=True)
class DoubleTap:
    """The cube was double tapped, toggling pause on ``facet``."""

    facet: Facet
    paused: bool


@dataclass(frozen=True, slots=True)
class Disconnected:
    """The connection is gone; nothing follows this event."""


NotificationEvent = Union[
    BatteryLevel, LogEvent, FacetChanged, DoubleTap, Disconnected
]


@dataclass(frozen=True, slots=True)
class SubscriptionSet:
    """Notification classes the operator asked ``notify`` to listen for."""

    battery: bool = False
    facet: bool = False
    double_tap: bool = False
    log_event: bool = False

    def enabled(self) -> tuple[str, ...]:
        """Return the names of the enabled classes in declaration order."""
        return tuple(f.name for f in fields(self) if getattr(self, f.name))

    def any(self) -> bool:
        return bool(self.enabled())


class SyncState(Enum):
    """Whether the cube's memory matches the last written configuration."""

    SYNCHRONIZED = "synchronized"
    NOT_SYNCHRONIZED = "not synchronized"


@dataclass(slots=True)
class SystemStatus:
    """Lock and pause flags reported by the cube."""

    locked: bool
    paused: bool
    auto_pause_minutes: int

    def __str__(self) -> str:
        lock = "locked" if self.locked else "unlocked"
        pause = "paused" if self.paused else "running"
        auto = (
            f"auto pause after {self.auto_pause_minutes} min"
            if self.auto_pause_minutes
            else "auto pause off"
        )
        return f"{lock}, {pause}, {auto}"
