"""Command encoders and payload decoders for the TimeFlip2 GATT service.

Records and results are little endian. A facet byte carries the facet index
in its low six bits and the pause flag in the top bit.
"""

from __future__ import annotations

import struct
from datetime import datetime, timezone
from typing import Iterable, List

from .const import Opcode
from .models import Facet, LogEntry, SyncState, SystemStatus

PAUSE_BIT = 0x80
FACET_MASK = 0x3F

# id, facet byte, start (unix seconds), duration (seconds)
_ENTRY = struct.Struct("<IBII")
ENTRY_SIZE = _ENTRY.size


def _command(opcode: Opcode, fmt: str = "", *values: int) -> bytes:
    return struct.pack("<B" + fmt, opcode, *values)


def decode_facet_byte(value: int) -> tuple[Facet, bool]:
    """Split a facet byte into facet and pause flag."""
    return Facet(value & FACET_MASK), bool(value & PAUSE_BIT)


def encode_facet_byte(facet: Facet, paused: bool = False) -> int:
    return int(facet) | (PAUSE_BIT if paused else 0)


def parse_battery_level(payload: bytes) -> int:
    """Decode the standard battery level characteristic."""
    if not payload:
        raise ValueError("Empty battery level payload")
    level = payload[0]
    if level > 100:
        raise ValueError(f"Battery level out of range: {level}")
    return level


def parse_facet(payload: bytes) -> Facet:
    if not payload:
        raise ValueError("Empty facet payload")
    facet, _paused = decode_facet_byte(payload[0])
    return facet


def parse_double_tap(payload: bytes) -> tuple[Facet, bool]:
    if not payload:
        raise ValueError("Empty double tap payload")
    return decode_facet_byte(payload[0])


def parse_entry(payload: bytes, offset: int = 0) -> LogEntry:
    """Decode one log record starting at ``offset``."""
    if len(payload) - offset < ENTRY_SIZE:
        raise ValueError(
            f"Log record needs {ENTRY_SIZE} bytes, got {len(payload) - offset}"
        )
    entry_id, facet_byte, start, duration = _ENTRY.unpack_from(
        payload, offset
    )
    facet, paused = decode_facet_byte(facet_byte)
    return LogEntry(
        id=entry_id,
        facet=facet,
        paused=paused,
        time=datetime.fromtimestamp(start, tz=timezone.utc),
        duration=duration,
    )


def encode_entry(entry: LogEntry) -> bytes:
    return _ENTRY.pack(
        entry.id,
        encode_facet_byte(entry.facet, entry.paused),
        int(entry.time.timestamp()),
        entry.duration,
    )


def is_history_end(payload: bytes) -> bool:
    """History transfers end with a notification shorter than one record."""
    return len(payload) < ENTRY_SIZE


def parse_history_packet(payload: bytes) -> List[LogEntry]:
    """Decode every whole record in a history notification."""
    count = len(payload) // ENTRY_SIZE
    return [parse_entry(payload, i * ENTRY_SIZE) for i in range(count)]


def parse_time(payload: bytes) -> datetime:
    if len(payload) < 8:
        raise ValueError(f"Time result needs 8 bytes, got {len(payload)}")
    (seconds,) = struct.unpack_from("<Q", payload)
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_system_status(payload: bytes) -> SystemStatus:
    if len(payload) < 4:
        raise ValueError(
            f"System status needs 4 bytes, got {len(payload)}"
        )
    lock, pause, auto_pause = struct.unpack_from("<BBH", payload)
    return SystemStatus(
        locked=bool(lock), paused=bool(pause), auto_pause_minutes=auto_pause
    )


def parse_sync_state(payload: bytes) -> SyncState:
    if not payload:
        raise ValueError("Empty sync state payload")
    if payload[0]:
        return SyncState.SYNCHRONIZED
    return SyncState.NOT_SYNCHRONIZED


def create_read_history_command(since_id: int) -> bytes:
    """Ask for every log record with an id greater than ``since_id``."""
    if not 0 <= since_id <= 0xFFFFFFFF:
        raise ValueError(f"History id out of range: {since_id}")
    return _command(Opcode.READ_HISTORY, "I", since_id)


def create_read_time_command() -> bytes:
    return _command(Opcode.READ_TIME)


def create_set_time_command(when: datetime) -> bytes:
    return _command(Opcode.SET_TIME, "Q", int(when.timestamp()))


def create_lock_command(locked: bool) -> bytes:
    return _command(Opcode.LOCK_ON if locked else Opcode.LOCK_OFF)


def create_pause_command(paused: bool) -> bytes:
    return _command(Opcode.PAUSE_ON if paused else Opcode.PAUSE_OFF)


def create_system_status_command() -> bytes:
    return _command(Opcode.SYSTEM_STATUS)


def create_sync_state_command() -> bytes:
    return _command(Opcode.SYNC_STATE)


def create_mark_synchronized_command() -> bytes:
    return _command(Opcode.MARK_SYNCHRONIZED)


def create_auto_pause_command(minutes: int) -> bytes:
    if not 0 <= minutes <= 0xFFFF:
        raise ValueError(f"Auto pause out of range: {minutes}")
    return _command(Opcode.SET_AUTO_PAUSE, "H", minutes)


def create_facet_settings_command(
    facet: Facet, pomodoro_minutes: int | None
) -> bytes:
    """Configure one side; a pomodoro of 0 disables the timer."""
    return _command(
        Opcode.SET_FACET, "BH", int(facet), pomodoro_minutes or 0
    )


def create_facet_settings_commands(
    pomodoros: Iterable[int | None],
) -> List[bytes]:
    return [
        create_facet_settings_command(Facet(index), minutes)
        for index, minutes in enumerate(pomodoros)
    ]
