"""Detection of registered devices that are currently connected for audio."""

from __future__ import annotations

import logging

from noisectl.core.model import Device
from noisectl.core.registry import DeviceRegistry
from noisectl.platform.base import Platform

LOGGER = logging.getLogger(__name__)


class ConnectionProbe:
    def __init__(self, platform: Platform) -> None:
        self.platform = platform

    def connected_devices(self, registry: DeviceRegistry) -> set[Device]:
        if not self.platform.radio_enabled():
            LOGGER.debug("Bluetooth radio disabled, no devices considered connected")
            return set()

        active = {address.upper() for address in self.platform.active_audio_outputs()}
        connected = {device for device in registry.all_devices() if device.address.upper() in active}
        LOGGER.debug("Connected registered devices: %s", sorted(d.address for d in connected))
        return connected
