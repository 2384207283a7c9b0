"""Registry of known devices, keyed by hardware address and persisted as text records.

The registry keeps an immutable snapshot of its mapping. Mutations build a new
mapping under a lock, persist the full record set, then swap the snapshot in,
so readers never observe a partially updated registry and never block on a
writer.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from types import MappingProxyType
from typing import Protocol

from noisectl.core.errors import MalformedRecordError, RegistryStorageError
from noisectl.core.model import Device, DeviceProfile

LOGGER = logging.getLogger(__name__)

RegistryListener = Callable[[frozenset[Device]], None]


class RecordStore(Protocol):
    def read_records(self) -> list[str]:
        """Return every persisted record."""

    def write_records(self, records: Iterable[str]) -> None:
        """Replace the persisted record set."""


class FileRecordStore:
    """Stores one record per line in a UTF-8 text file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read_records(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            # Undecodable bytes survive as surrogates and fail that record's validation only.
            content = self.path.read_text(encoding="utf-8", errors="surrogateescape")
        except OSError as exc:
            raise RegistryStorageError(f"Could not read device registry {self.path}: {exc}") from exc
        return [line for line in content.split("\n") if line]

    def write_records(self, records: Iterable[str]) -> None:
        content = "".join(f"{record}\n" for record in records)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".devices-", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(content)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise RegistryStorageError(f"Could not write device registry {self.path}: {exc}") from exc


def _parse_records(records: Iterable[str]) -> tuple[dict[str, Device], tuple[str, ...]]:
    devices: dict[str, Device] = {}
    warnings: list[str] = []
    for record in records:
        try:
            device = Device.parse(record)
        except MalformedRecordError as exc:
            warning = f"Skipping malformed device record: {exc}"
            LOGGER.warning(warning)
            warnings.append(warning)
            continue
        devices[device.address] = device
    return devices, tuple(warnings)


class DeviceRegistry:
    def __init__(self, store: RecordStore, devices: dict[str, Device] | None = None) -> None:
        self._store = store
        self._devices = MappingProxyType(dict(devices or {}))
        self._write_lock = threading.Lock()
        self._listeners: list[RegistryListener] = []
        self.load_warnings: tuple[str, ...] = ()

    @classmethod
    def load(cls, store: RecordStore) -> DeviceRegistry:
        devices, warnings = _parse_records(store.read_records())
        registry = cls(store, devices)
        registry.load_warnings = warnings
        return registry

    def reload(self) -> None:
        """Re-read the store, e.g. after another process changed it."""
        with self._write_lock:
            devices, warnings = _parse_records(self._store.read_records())
            self._devices = MappingProxyType(devices)
            self.load_warnings = warnings
            snapshot = self.all_devices()
        self._notify(snapshot)

    def add(self, profile: DeviceProfile, address: str, name: str) -> Device:
        device = Device(profile=profile, address=address, name=name)
        with self._write_lock:
            devices = dict(self._devices)
            devices[device.address] = device
            self._commit(devices)
            snapshot = self.all_devices()
        LOGGER.info("Registered %s (%s) as %s", device.address, device.name, profile.display_name)
        self._notify(snapshot)
        return device

    def remove(self, address: str) -> bool:
        with self._write_lock:
            devices = dict(self._devices)
            removed = devices.pop(address, None) is not None
            self._commit(devices)
            snapshot = self.all_devices()
        if removed:
            LOGGER.info("Removed %s from registry", address)
        self._notify(snapshot)
        return removed

    def all_devices(self) -> frozenset[Device]:
        return frozenset(self._devices.values())

    def get(self, address: str) -> Device | None:
        return self._devices.get(address)

    def find(self, address: str) -> Device | None:
        """Case-insensitive address lookup."""
        wanted = address.upper()
        for device in self._devices.values():
            if device.address.upper() == wanted:
                return device
        return None

    def on_registry_changed(self, listener: RegistryListener) -> Callable[[], None]:
        """Subscribe to registry changes. Returns a callable that unsubscribes."""
        with self._write_lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._write_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, address: object) -> bool:
        return address in self._devices

    def _commit(self, devices: dict[str, Device]) -> None:
        # The snapshot only changes once the store accepted the write.
        self._store.write_records(sorted(device.serialize() for device in devices.values()))
        self._devices = MappingProxyType(devices)

    def _notify(self, snapshot: frozenset[Device]) -> None:
        with self._write_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(snapshot)
