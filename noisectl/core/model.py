"""Core data models used across registry, codec, dispatch, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from noisectl.core.errors import MalformedRecordError

SPP_UUID = "00001101-0000-1000-8000-00805f9b34fb"

_RECORD_SEPARATOR = "\t"


class DeviceProfile(Enum):
    NC700 = ("700", "Bose NC 700")
    QC35 = ("qc35", "Bose QC 35")

    def __init__(self, code: str, display_name: str) -> None:
        self.code = code
        self.display_name = display_name

    def __str__(self) -> str:
        return self.code

    @classmethod
    def default(cls) -> DeviceProfile:
        return cls.NC700

    @classmethod
    def from_code(cls, code: str) -> DeviceProfile:
        """Return the profile for `code`, or the default profile when unknown."""
        for profile in cls:
            if profile.code == code:
                return profile
        return cls.default()

    @classmethod
    def lookup(cls, code: str) -> DeviceProfile | None:
        """Strict variant of `from_code` that returns None for unknown codes."""
        for profile in cls:
            if profile.code == code:
                return profile
        return None


class Mode(Enum):
    NC_10 = "10"
    NC_5 = "5"
    NC_0 = "0"
    OFF = "off"

    @property
    def token(self) -> str:
        return self.value

    @property
    def level(self) -> int | None:
        """Noise-cancelling level, or None when noise cancelling is off."""
        if self is Mode.OFF:
            return None
        return int(self.value)

    def __str__(self) -> str:
        return self.value

    @classmethod
    def noise_cancelling(cls, level: int) -> Mode:
        for mode in cls:
            if mode.level == level:
                return mode
        raise ValueError(f"Unsupported noise-cancelling level {level}; expected 0, 5 or 10")

    @classmethod
    def from_token(cls, token: str) -> Mode:
        """Map a level token to a mode. Unrecognized tokens map to OFF."""
        normalized = token.strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        return cls.OFF


@dataclass(frozen=True)
class Device:
    profile: DeviceProfile
    address: str
    name: str

    def __post_init__(self) -> None:
        if not self.address:
            raise MalformedRecordError("Device address must not be empty")
        if any(ch in self.address for ch in "\t\r\n"):
            raise MalformedRecordError(f"Device address {self.address!r} contains a separator")
        if any(ch in self.name for ch in "\r\n"):
            raise MalformedRecordError(f"Device name {self.name!r} contains a line break")
        for label, value in (("address", self.address), ("name", self.name)):
            try:
                value.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise MalformedRecordError(f"Device {label} {value!r} is not valid UTF-8") from exc

    def serialize(self) -> str:
        return _RECORD_SEPARATOR.join((self.profile.code, self.address, self.name))

    @classmethod
    def parse(cls, record: str) -> Device:
        parts = record.split(_RECORD_SEPARATOR, 2)
        if len(parts) < 3:
            raise MalformedRecordError(f"Device record not well formed: {record!r}")
        code, address, name = parts
        return cls(profile=DeviceProfile.from_code(code), address=address, name=name)


@dataclass(frozen=True)
class MatchRules:
    name_contains: tuple[str, ...]
    mac_prefix: tuple[str, ...]


@dataclass(frozen=True)
class CommandTable:
    profile: DeviceProfile
    name: str
    match: MatchRules
    frames: Mapping[Mode, bytes]


@dataclass(frozen=True)
class BondedDevice:
    address: str
    name: str

