"""Exceptions module."""


class TimeFlipError(Exception):
    """Base class for errors reported by timeflipctl."""


class CharacteristicMissingError(TimeFlipError):
    """Raised when a characteristic is missing."""


class DeviceNotFound(TimeFlipError):
    """Raised when BLE device is not found."""


class DeviceCommunicationError(TimeFlipError):
    """Raised when there are issues communicating with a device."""


class ConfigurationError(TimeFlipError):
    """Raised when the configuration file cannot be read or is invalid."""


class ConfigurationMissingError(TimeFlipError):
    """Raised when a command needs a configuration and none was given."""


class CacheCorruptError(TimeFlipError):
    """Raised when the history cache file exists but cannot be parsed."""


class CacheWriteError(TimeFlipError):
    """Raised when the history cache file cannot be written."""


class NoSubscriptionError(TimeFlipError, ValueError):
    """Raised when notify is asked to listen without any event class."""
