"""TimeFlip2 cube session over bleak."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator, ClassVar

from bleak import BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from .. import protocol
from ..config import Config
from ..const import (
    BATTERY_LEVEL_CHAR_UUID,
    COMMAND_CHAR_UUID,
    COMMAND_RESULT_CHAR_UUID,
    DEFAULT_PASSWORD,
    DEVICE_NAME_PREFIX,
    DOUBLE_TAP_CHAR_UUID,
    EVENT_CHAR_UUID,
    FACET_CHAR_UUID,
    HISTORY_CHAR_UUID,
    PASSWORD_CHAR_UUID,
)
from ..environment import get_env_float
from ..exception import DeviceCommunicationError, DeviceNotFound
from ..models import (
    BatteryLevel,
    Disconnected,
    DoubleTap,
    Facet,
    FacetChanged,
    LogEntry,
    LogEvent,
    NotificationEvent,
    SyncState,
    SystemStatus,
)
from .base_device import BaseDevice

SCAN_TIMEOUT = get_env_float("TIMEFLIP_SCAN_TIMEOUT", 10.0)
HISTORY_TIMEOUT = get_env_float("TIMEFLIP_HISTORY_TIMEOUT", 10.0)


async def find_timeflip(
    address: str | None = None, timeout: float = SCAN_TIMEOUT
) -> BLEDevice:
    """Locate the cube by address, or the first advertising TimeFlip."""
    if address:
        device = await BleakScanner.find_device_by_address(
            address, timeout=timeout
        )
    else:
        device = await BleakScanner.find_device_by_filter(
            lambda d, _ad: (d.name or "").startswith(DEVICE_NAME_PREFIX),
            timeout=timeout,
        )
    if device is None:
        target = address or f"a device named {DEVICE_NAME_PREFIX}*"
        raise DeviceNotFound(f"Could not find {target}")
    return device


class TimeFlip(BaseDevice):
    """A connected TimeFlip2 cube."""

    required_characteristics: ClassVar[tuple[str, ...]] = (
        COMMAND_CHAR_UUID,
        COMMAND_RESULT_CHAR_UUID,
        PASSWORD_CHAR_UUID,
    )

    def __init__(
        self,
        ble_device: BLEDevice,
        advertisement_data: AdvertisementData | None = None,
        password: str | None = None,
    ) -> None:
        super().__init__(ble_device, advertisement_data)
        self._password = password or DEFAULT_PASSWORD
        self._events: asyncio.Queue[NotificationEvent] = asyncio.Queue()
        self._history: asyncio.Queue[bytes] = asyncio.Queue()
        self._request_lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls, address: str | None = None, password: str | None = None
    ) -> "TimeFlip":
        """Find the cube, connect and log in."""
        ble_device = await find_timeflip(address)
        timeflip = cls(ble_device, password=password)
        await timeflip._ensure_connected()
        timeflip._logger.info("%s: connected", timeflip.name)
        return timeflip

    async def _on_connected(self) -> None:
        await self._write(PASSWORD_CHAR_UUID, self._password.encode("ascii"))

    def _on_disconnected(self, expected: bool) -> None:
        self._events.put_nowait(Disconnected())

    # Request/response

    async def _request(self, command: bytes) -> bytes:
        async with self._request_lock:
            await self._write(COMMAND_CHAR_UUID, command)
            return await self._read(COMMAND_RESULT_CHAR_UUID)

    def _decode(self, what: str, parse, payload: bytes):
        try:
            return parse(payload)
        except ValueError as exc:
            raise DeviceCommunicationError(
                f"{self.name}: invalid {what} payload {payload.hex()}: {exc}"
            ) from exc

    async def battery_level(self) -> int:
        payload = await self._read(BATTERY_LEVEL_CHAR_UUID)
        return self._decode("battery", protocol.parse_battery_level, payload)

    async def facet(self) -> Facet:
        payload = await self._read(FACET_CHAR_UUID)
        return self._decode("facet", protocol.parse_facet, payload)

    async def lock(self) -> None:
        await self._write(COMMAND_CHAR_UUID, protocol.create_lock_command(True))

    async def unlock(self) -> None:
        await self._write(
            COMMAND_CHAR_UUID, protocol.create_lock_command(False)
        )

    async def pause(self) -> None:
        await self._write(
            COMMAND_CHAR_UUID, protocol.create_pause_command(True)
        )

    async def unpause(self) -> None:
        await self._write(
            COMMAND_CHAR_UUID, protocol.create_pause_command(False)
        )

    async def system_status(self) -> SystemStatus:
        payload = await self._request(protocol.create_system_status_command())
        return self._decode(
            "system status", protocol.parse_system_status, payload
        )

    async def sync_state(self) -> SyncState:
        payload = await self._request(protocol.create_sync_state_command())
        return self._decode("sync state", protocol.parse_sync_state, payload)

    async def time(self) -> datetime:
        payload = await self._request(protocol.create_read_time_command())
        return self._decode("time", protocol.parse_time, payload)

    async def set_time(self, when: datetime) -> None:
        await self._write(
            COMMAND_CHAR_UUID, protocol.create_set_time_command(when)
        )

    async def write_config(self, config: Config) -> None:
        """Write per-side timers and the auto pause to the cube."""
        commands = protocol.create_facet_settings_commands(
            side.pomodoro_minutes for side in config.sides
        )
        commands.append(
            protocol.create_auto_pause_command(config.auto_pause_minutes)
        )
        for command in commands:
            await self._write(COMMAND_CHAR_UUID, command)

    async def sync(self, config: Config) -> None:
        """Write config and clock, then mark the cube synchronized."""
        await self.write_config(config)
        await self.set_time(datetime.now(timezone.utc))
        await self._write(
            COMMAND_CHAR_UUID, protocol.create_mark_synchronized_command()
        )

    async def read_history_since(self, entry_id: int) -> list[LogEntry]:
        """Read log records with an id greater than ``entry_id``."""
        await self._start_notify(HISTORY_CHAR_UUID, self._history_handler)
        while not self._history.empty():
            self._history.get_nowait()

        await self._write(
            COMMAND_CHAR_UUID, protocol.create_read_history_command(entry_id)
        )
        entries: dict[int, LogEntry] = {}
        while True:
            try:
                packet = await asyncio.wait_for(
                    self._history.get(), timeout=HISTORY_TIMEOUT
                )
            except asyncio.TimeoutError as exc:
                raise DeviceCommunicationError(
                    f"{self.name}: history transfer stalled after "
                    f"{len(entries)} entries"
                ) from exc
            if protocol.is_history_end(packet):
                break
            for entry in self._decode(
                "history", protocol.parse_history_packet, packet
            ):
                if entry.id > entry_id:
                    entries[entry.id] = entry
        self._logger.debug(
            "%s: read %d history entries after id %d",
            self.name,
            len(entries),
            entry_id,
        )
        return [entries[key] for key in sorted(entries)]

    # Notifications

    async def subscribe_battery_level(self) -> None:
        await self._start_notify(BATTERY_LEVEL_CHAR_UUID, self._battery_handler)

    async def subscribe_facet(self) -> None:
        await self._start_notify(FACET_CHAR_UUID, self._facet_handler)

    async def subscribe_double_tap(self) -> None:
        await self._start_notify(DOUBLE_TAP_CHAR_UUID, self._double_tap_handler)

    async def subscribe_events(self) -> None:
        await self._start_notify(EVENT_CHAR_UUID, self._event_handler)

    async def event_stream(self) -> AsyncIterator[NotificationEvent]:
        """Yield notifications as they arrive, ending after Disconnected."""
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, Disconnected):
                return

    def _push(self, what: str, parse, data: bytearray) -> None:
        payload = bytes(data)
        try:
            event = parse(payload)
        except ValueError as exc:
            self._logger.warning(
                "%s: Ignoring %s notification %s: %s",
                self.name,
                what,
                payload.hex(),
                exc,
            )
            return
        self._events.put_nowait(event)

    def _battery_handler(
        self, _sender: BleakGATTCharacteristic, data: bytearray
    ) -> None:
        self._push(
            "battery",
            lambda p: BatteryLevel(protocol.parse_battery_level(p)),
            data,
        )

    def _facet_handler(
        self, _sender: BleakGATTCharacteristic, data: bytearray
    ) -> None:
        self._push(
            "facet", lambda p: FacetChanged(protocol.parse_facet(p)), data
        )

    def _double_tap_handler(
        self, _sender: BleakGATTCharacteristic, data: bytearray
    ) -> None:
        self._push(
            "double tap",
            lambda p: DoubleTap(*protocol.parse_double_tap(p)),
            data,
        )

    def _event_handler(
        self, _sender: BleakGATTCharacteristic, data: bytearray
    ) -> None:
        self._push("event", lambda p: LogEvent(protocol.parse_entry(p)), data)

    def _history_handler(
        self, _sender: BleakGATTCharacteristic, data: bytearray
    ) -> None:
        self._history.put_nowait(bytes(data))

    # Background

    async def maintain(self) -> None:
        """Wait on the connection; losing it unexpectedly is an error."""
        expected = await self.wait_disconnected()
        if not expected:
            raise DeviceCommunicationError(f"Connection to {self.name} lost")
        self._logger.debug("%s: connection closed", self.name)
