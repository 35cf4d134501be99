"""Module defining a base device class."""

import abc
import asyncio
import logging
from abc import ABC
from typing import Callable, ClassVar

from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.backends.service import BleakGATTServiceCollection
from bleak.exc import BleakDBusError
from bleak_retry_connector import BLEAK_RETRY_EXCEPTIONS as BLEAK_EXCEPTIONS
from bleak_retry_connector import BleakError  # type: ignore
from bleak_retry_connector import (
    BleakClientWithServiceCache,
    BleakNotFoundError,
    establish_connection,
    retry_bluetooth_connection_error,
)

from ..exception import CharacteristicMissingError

DEFAULT_ATTEMPTS = 3

BLEAK_BACKOFF_TIME = 0.25

NotificationHandler = Callable[[BleakGATTCharacteristic, bytearray], None]


class BaseDevice(ABC):
    """Base class holding one GATT connection to a device."""

    required_characteristics: ClassVar[tuple[str, ...]] = ()

    _logger: logging.Logger

    def __init__(
        self,
        ble_device: BLEDevice,
        advertisement_data: AdvertisementData | None = None,
    ) -> None:
        """Create a new device."""
        self._ble_device = ble_device
        self._logger = logging.getLogger(ble_device.address.replace(":", "-"))
        self._advertisement_data = advertisement_data
        self._client: BleakClientWithServiceCache | None = None
        self._chars: dict[str, BleakGATTCharacteristic] = {}
        self._notifying: set[str] = set()
        self._operation_lock: asyncio.Lock = asyncio.Lock()
        self._connect_lock: asyncio.Lock = asyncio.Lock()
        self._expected_disconnect = False
        self._disconnected_event = asyncio.Event()

    # Base methods

    @property
    def address(self) -> str:
        """Return the address."""
        return self._ble_device.address

    @property
    def name(self) -> str:
        """Get the name of the device."""
        return self._ble_device.name or self._ble_device.address

    @property
    def rssi(self) -> int | None:
        """Get the rssi of the device."""
        if self._advertisement_data:
            return self._advertisement_data.rssi
        return None

    @property
    def is_connected(self) -> bool:
        return bool(self._client and self._client.is_connected)

    # Hooks for subclasses

    @abc.abstractmethod
    async def _on_connected(self) -> None:
        """Run the device handshake right after connecting."""

    def _on_disconnected(self, expected: bool) -> None:
        """Handle a finished connection."""

    # Bluetooth methods

    def _char(self, uuid: str) -> BleakGATTCharacteristic:
        char = self._chars.get(uuid)
        if char is None:
            raise CharacteristicMissingError(f"Characteristic {uuid} missing")
        return char

    async def _write(self, uuid: str, data: bytes) -> None:
        """Write ``data`` to a characteristic with retries."""
        await self._ensure_connected()
        self._logger.debug("%s: Writing %s to %s", self.name, data.hex(), uuid)
        async with self._operation_lock:
            try:
                await self._write_locked(uuid, data)
            except BleakNotFoundError:
                self._logger.error(
                    "%s: device missing or out of range. RSSI: %s",
                    self.name,
                    self.rssi,
                    exc_info=True,
                )
                raise
            except CharacteristicMissingError as ex:
                self._logger.debug(
                    "%s: characteristic missing (%s). RSSI: %s",
                    self.name,
                    ex,
                    self.rssi,
                    exc_info=True,
                )
                raise
            except BLEAK_EXCEPTIONS:
                self._logger.debug(
                    "%s: communication failed", self.name, exc_info=True
                )
                raise

    @retry_bluetooth_connection_error(DEFAULT_ATTEMPTS)
    async def _write_locked(self, uuid: str, data: bytes) -> None:
        try:
            assert self._client is not None  # nosec
            await self._client.write_gatt_char(self._char(uuid), data, True)
        except BleakDBusError as ex:
            await asyncio.sleep(BLEAK_BACKOFF_TIME)
            self._logger.debug(
                "%s: RSSI: %s; backing off %.2fs due to error %s",
                self.name,
                self.rssi,
                BLEAK_BACKOFF_TIME,
                ex,
            )
            raise

    async def _read(self, uuid: str) -> bytes:
        """Read a characteristic value."""
        await self._ensure_connected()
        assert self._client is not None  # nosec
        async with self._operation_lock:
            data = await self._client.read_gatt_char(self._char(uuid))
        self._logger.debug("%s: Read %s from %s", self.name, data.hex(), uuid)
        return bytes(data)

    async def _start_notify(
        self, uuid: str, handler: NotificationHandler
    ) -> None:
        """Subscribe ``handler`` to a characteristic once."""
        if uuid in self._notifying:
            return
        await self._ensure_connected()
        assert self._client is not None  # nosec
        self._logger.debug("%s: Subscribe to %s", self.name, uuid)
        await self._client.start_notify(self._char(uuid), handler)
        self._notifying.add(uuid)

    def _disconnected(self, client: BleakClientWithServiceCache) -> None:
        """Disconnected callback."""
        expected = self._expected_disconnect
        if expected:
            self._logger.debug(
                "%s: Disconnected from device; RSSI: %s", self.name, self.rssi
            )
        else:
            self._logger.warning(
                "%s: Device unexpectedly disconnected; RSSI: %s",
                self.name,
                self.rssi,
            )
        self._notifying.clear()
        self._disconnected_event.set()
        self._on_disconnected(expected)

    def _resolve_characteristics(
        self, services: BleakGATTServiceCollection
    ) -> bool:
        """Resolve characteristics."""
        for service in services:
            for char in service.characteristics:
                self._chars[char.uuid.lower()] = char
        return all(uuid in self._chars for uuid in self.required_characteristics)

    async def _ensure_connected(self) -> None:
        """Ensure connection to device is established."""
        if self._connect_lock.locked():
            self._logger.debug(
                "%s: Connection already in progress; waiting. RSSI: %s",
                self.name,
                self.rssi,
            )
        if self.is_connected:
            return
        async with self._connect_lock:
            # Check again while holding the lock
            if self.is_connected:
                return
            self._logger.debug("%s: Connecting; RSSI: %s", self.name, self.rssi)
            client = await establish_connection(
                BleakClientWithServiceCache,
                self._ble_device,
                self.name,
                self._disconnected,
                use_services_cache=True,
                ble_device_callback=lambda: self._ble_device,
            )
            self._logger.debug("%s: Connected; RSSI: %s", self.name, self.rssi)
            self._expected_disconnect = False
            self._disconnected_event.clear()
            self._client = client
            if not self._resolve_characteristics(client.services):
                await self._execute_disconnect()
                raise CharacteristicMissingError(
                    f"{self.name} does not expose the expected characteristics"
                )
        await self._on_connected()

    async def wait_disconnected(self) -> bool:
        """Wait until the connection ends; return whether it was expected."""
        await self._disconnected_event.wait()
        return self._expected_disconnect

    async def disconnect(self) -> None:
        """Disconnect."""
        self._logger.debug("%s: Disconnecting", self.name)
        await self._execute_disconnect()

    async def _execute_disconnect(self) -> None:
        """Execute disconnection."""
        client = self._client
        self._expected_disconnect = True
        self._client = None
        if client and client.is_connected:
            for uuid in list(self._notifying):
                try:
                    await client.stop_notify(self._chars[uuid])
                except BleakError:
                    self._logger.debug(
                        "%s: Failed to stop notifications",
                        self.name,
                        exc_info=True,
                    )
            self._notifying.clear()
            await client.disconnect()
