"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import socket

from noisectl.core.codec import CommandCodec
from noisectl.core.config import Settings, load_settings
from noisectl.core.discovery import discover_candidates
from noisectl.core.dispatch import DispatchCoordinator, DispatchResult
from noisectl.core.errors import ProfileValidationError
from noisectl.core.model import CommandTable, Device, DeviceProfile, Mode
from noisectl.core.probe import ConnectionProbe
from noisectl.core.registry import DeviceRegistry, FileRecordStore, RecordStore
from noisectl.platform.base import Platform
from noisectl.platform.bluez import BlueZPlatform
from noisectl.transports.base import Transport
from noisectl.transports.rfcomm import RFCOMMTransport


class NoiseService:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        platform: Platform | None = None,
        transport: Transport | None = None,
        store: RecordStore | None = None,
        codec: CommandCodec | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.platform = platform or BlueZPlatform()
        self.codec = codec or CommandCodec()
        self.registry = DeviceRegistry.load(store or FileRecordStore(self.settings.registry_path))
        self.load_warnings = tuple(self.codec.load_warnings) + self.registry.load_warnings
        self.runtime_warnings = _runtime_warnings()
        self.transport = transport or RFCOMMTransport(
            self.platform,
            channel=self.settings.rfcomm_channel,
            timeout_s=self.settings.timeout_s,
        )
        self.probe = ConnectionProbe(self.platform)
        self.coordinator = DispatchCoordinator(
            registry=self.registry,
            probe=self.probe,
            codec=self.codec,
            transport=self.transport,
            repeat_count=self.settings.repeat_count,
            inter_write_delay_s=self.settings.inter_write_delay_s,
            parallel=self.settings.parallel_dispatch,
        )

    def list_profiles(self) -> list[CommandTable]:
        return [self.codec.tables[p] for p in DeviceProfile if p in self.codec.tables]

    def list_devices(self) -> list[Device]:
        return sorted(self.registry.all_devices(), key=lambda d: d.address)

    def connected_devices(self) -> list[Device]:
        return sorted(self.probe.connected_devices(self.registry), key=lambda d: d.address)

    def add_device(self, address: str, name: str, profile_code: str | None = None) -> Device:
        profile = DeviceProfile.default()
        if profile_code is not None:
            profile = DeviceProfile.lookup(profile_code)
            if profile is None:
                known = ", ".join(p.code for p in DeviceProfile)
                raise ProfileValidationError(f"Unknown profile '{profile_code}'. Known: {known}")
        return self.registry.add(profile, address.strip().upper(), name)

    def remove_device(self, address: str) -> bool:
        device = self.registry.find(address.strip())
        if device is None:
            return False
        return self.registry.remove(device.address)

    def discover(self, *, add: bool = False) -> list[Device]:
        """Return bonded devices from a known vendor that are not registered yet."""
        candidates = discover_candidates(
            self.platform.bonded_devices(),
            self.registry,
            self.codec.tables,
            self.settings.vendor_prefixes,
        )
        devices: list[Device] = []
        for bonded, profile in candidates:
            if add:
                devices.append(self.registry.add(profile, bonded.address, bonded.name))
            else:
                devices.append(Device(profile=profile, address=bonded.address, name=bonded.name))
        return devices

    def set_mode(self, mode: Mode) -> DispatchResult:
        return self.coordinator.dispatch(mode)


def _runtime_warnings() -> tuple[str, ...]:
    warnings: list[str] = []
    if not hasattr(socket, "AF_BLUETOOTH") or not hasattr(socket, "BTPROTO_RFCOMM"):
        warnings.append(
            "Python runtime missing AF_BLUETOOTH/BTPROTO_RFCOMM; RFCOMM control commands will fail."
        )
    return tuple(warnings)
