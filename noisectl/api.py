"""Stable public API for building tooling on top of noisectl.

This module is the supported integration surface for third-party callers
(tray applets, hotkey daemons, scripts). Avoid importing from private/internal
modules unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

from noisectl.core.codec import CommandCodec
from noisectl.core.config import Settings
from noisectl.core.dispatch import DeviceOutcome, DispatchResult, Outcome
from noisectl.core.errors import (
    ConfigError,
    DeviceDiscoveryError,
    MalformedRecordError,
    NoisectlError,
    ProfileLoadError,
    ProfileValidationError,
    RadioDisabledError,
    RegistryStorageError,
    TransportConnectError,
    TransportError,
    TransportStreamError,
    TransportWriteError,
    UnsupportedCommandError,
)
from noisectl.core.model import BondedDevice, CommandTable, Device, DeviceProfile, Mode
from noisectl.core.registry import RecordStore
from noisectl.core.service import NoiseService
from noisectl.core.worker import ModeRequestWorker, ResultCallback
from noisectl.platform.base import Platform
from noisectl.transports.base import Transport

__all__ = [
    "NoisectlError",
    "ConfigError",
    "DeviceDiscoveryError",
    "MalformedRecordError",
    "ProfileLoadError",
    "ProfileValidationError",
    "RegistryStorageError",
    "UnsupportedCommandError",
    "TransportError",
    "RadioDisabledError",
    "TransportConnectError",
    "TransportStreamError",
    "TransportWriteError",
    "BondedDevice",
    "CommandTable",
    "Device",
    "DeviceProfile",
    "Mode",
    "Outcome",
    "DeviceOutcome",
    "DispatchResult",
    "Settings",
    "Client",
]


class Client:
    """Public client for interacting with noisectl core capabilities.

    A `Client` wraps the device registry, connection probing, command encoding
    and RFCOMM delivery behind a stable API. `set_mode` blocks until every
    connected device has been attempted; `request_mode` queues the request on a
    background worker and returns immediately.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        platform: Platform | None = None,
        transport: Transport | None = None,
        store: RecordStore | None = None,
        codec: CommandCodec | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        self._service = NoiseService(
            settings=settings,
            platform=platform,
            transport=transport,
            store=store,
            codec=codec,
        )
        self._worker = ModeRequestWorker(
            self._service.coordinator,
            on_result=on_result,
            coalesce=self._service.settings.coalesce_requests,
        )

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    def list_profiles(self) -> list[CommandTable]:
        return self._service.list_profiles()

    def list_devices(self) -> list[Device]:
        return self._service.list_devices()

    def connected_devices(self) -> list[Device]:
        return self._service.connected_devices()

    def add_device(self, address: str, name: str, *, profile: str | None = None) -> Device:
        return self._service.add_device(address, name, profile_code=profile)

    def remove_device(self, address: str) -> bool:
        return self._service.remove_device(address)

    def discover(self, *, add: bool = False) -> list[Device]:
        return self._service.discover(add=add)

    def reload(self) -> None:
        self._service.registry.reload()

    def set_mode(self, token: str) -> DispatchResult:
        return self._service.set_mode(Mode.from_token(token))

    def request_mode(self, token: str) -> Mode:
        return self._worker.request_mode(token)

    def wait(self) -> None:
        """Block until every queued mode request has been handled."""
        self._worker.join()

    def close(self) -> None:
        self._worker.stop()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
