"""GATT characteristic UUIDs and command opcodes used by the TimeFlip2."""

from enum import IntEnum

DEVICE_NAME_PREFIX = "TimeFlip"
DEFAULT_PASSWORD = "000000"

SIDE_COUNT = 12
FACET_COUNT = 48

BATTERY_LEVEL_CHAR_UUID = "00002a19-0000-1000-8000-00805f9b34fb"

EVENT_CHAR_UUID = "f1196f51-71a4-11e6-bdf4-0800200c9a66"
FACET_CHAR_UUID = "f1196f52-71a4-11e6-bdf4-0800200c9a66"
COMMAND_RESULT_CHAR_UUID = "f1196f53-71a4-11e6-bdf4-0800200c9a66"
COMMAND_CHAR_UUID = "f1196f54-71a4-11e6-bdf4-0800200c9a66"
DOUBLE_TAP_CHAR_UUID = "f1196f55-71a4-11e6-bdf4-0800200c9a66"
PASSWORD_CHAR_UUID = "f1196f57-71a4-11e6-bdf4-0800200c9a66"
HISTORY_CHAR_UUID = "f1196f58-71a4-11e6-bdf4-0800200c9a66"


class Opcode(IntEnum):
    """Command opcodes written to the command characteristic."""

    READ_HISTORY = 0x01
    READ_TIME = 0x02
    SET_TIME = 0x03
    LOCK_ON = 0x04
    LOCK_OFF = 0x05
    PAUSE_ON = 0x06
    PAUSE_OFF = 0x07
    SYSTEM_STATUS = 0x10
    SYNC_STATE = 0x11
    SET_AUTO_PAUSE = 0x12
    SET_FACET = 0x13
    MARK_SYNCHRONIZED = 0x14
