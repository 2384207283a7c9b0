"""Domain-specific errors for noisectl."""


class NoisectlError(Exception):
    """Base error for noisectl."""


class MalformedRecordError(NoisectlError):
    """Raised when a persisted device record cannot be parsed."""


class RegistryStorageError(NoisectlError):
    """Raised when the device record store cannot be read or written."""


class ProfileValidationError(NoisectlError):
    """Raised when a profile command table does not conform to schema or semantics."""


class ProfileLoadError(NoisectlError):
    """Raised when loading profile command table sources fails."""


class ConfigError(NoisectlError):
    """Raised when the configuration file is unreadable or invalid."""


class DeviceDiscoveryError(NoisectlError):
    """Raised when Bluetooth device discovery command(s) fail."""


class UnsupportedCommandError(NoisectlError):
    """Raised when a profile has no frame for the requested mode."""


class TransportError(NoisectlError):
    """Base transport error."""


class RadioDisabledError(TransportError):
    """Raised when the Bluetooth adapter is missing or powered off."""


class TransportConnectError(TransportError):
    """Raised on RFCOMM connect failures."""


class TransportStreamError(TransportError):
    """Raised when a writable stream cannot be obtained on the channel."""


class TransportWriteError(TransportError):
    """Raised when writing a frame fails."""
