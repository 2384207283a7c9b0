"""Platform interfaces."""

from __future__ import annotations

from typing import Protocol

from noisectl.core.model import BondedDevice


class Platform(Protocol):
    def radio_enabled(self) -> bool:
        """Return True when a Bluetooth adapter is present and powered."""

    def active_audio_outputs(self) -> set[str]:
        """Return upper-cased addresses of devices currently used as audio outputs."""

    def bonded_devices(self) -> list[BondedDevice]:
        """Return devices already paired with the adapter."""

    def resolve_channel(self, address: str, service_uuid: str) -> int:
        """Return the RFCOMM channel on which `address` offers `service_uuid`."""
