from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

import pytest

from noisectl.core.errors import MalformedRecordError, RegistryStorageError
from noisectl.core.model import Device, DeviceProfile
from noisectl.core.registry import DeviceRegistry, FileRecordStore


class MemoryStore:
    def __init__(self, records: list[str] | None = None) -> None:
        self.records = list(records or [])
        self.writes = 0

    def read_records(self) -> list[str]:
        return list(self.records)

    def write_records(self, records: Iterable[str]) -> None:
        self.records = list(records)
        self.writes += 1


class FailingStore(MemoryStore):
    def write_records(self, records: Iterable[str]) -> None:
        raise RegistryStorageError("disk full")


def test_load_skips_malformed_record(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryStore(["garbage-without-tabs", "700\tC8:7B:23:00:00:01\tBose 700"])

    with caplog.at_level(logging.WARNING):
        registry = DeviceRegistry.load(store)

    assert registry.all_devices() == {
        Device(profile=DeviceProfile.NC700, address="C8:7B:23:00:00:01", name="Bose 700")
    }
    assert len(registry.load_warnings) == 1
    assert "garbage-without-tabs" in registry.load_warnings[0]
    assert "Skipping malformed device record" in caplog.text


def test_add_persists_full_record_set() -> None:
    store = MemoryStore(["700\tC8:7B:23:00:00:01\tBose 700"])
    registry = DeviceRegistry.load(store)

    registry.add(DeviceProfile.QC35, "C8:7B:23:00:00:02", "QC35")

    assert store.writes == 1
    assert store.records == [
        "700\tC8:7B:23:00:00:01\tBose 700",
        "qc35\tC8:7B:23:00:00:02\tQC35",
    ]


def test_add_overwrites_by_address() -> None:
    registry = DeviceRegistry.load(MemoryStore())
    registry.add(DeviceProfile.NC700, "C8:7B:23:00:00:01", "Old name")
    registry.add(DeviceProfile.QC35, "C8:7B:23:00:00:01", "New name")

    assert len(registry) == 1
    device = registry.get("C8:7B:23:00:00:01")
    assert device is not None
    assert device.profile is DeviceProfile.QC35
    assert device.name == "New name"


def test_add_then_remove_restores_previous_state() -> None:
    store = MemoryStore(["700\tC8:7B:23:00:00:01\tBose 700"])
    registry = DeviceRegistry.load(store)
    before = registry.all_devices()

    registry.add(DeviceProfile.QC35, "C8:7B:23:00:00:02", "QC35")
    assert registry.remove("C8:7B:23:00:00:02") is True

    assert registry.all_devices() == before
    assert store.records == ["700\tC8:7B:23:00:00:01\tBose 700"]


def test_remove_unknown_address_is_noop() -> None:
    store = MemoryStore(["700\tC8:7B:23:00:00:01\tBose 700"])
    registry = DeviceRegistry.load(store)

    assert registry.remove("00:00:00:00:00:00") is False
    assert len(registry) == 1
    assert "C8:7B:23:00:00:01" in registry


def test_failed_write_keeps_previous_snapshot() -> None:
    registry = DeviceRegistry.load(FailingStore(["700\tC8:7B:23:00:00:01\tBose 700"]))

    with pytest.raises(RegistryStorageError):
        registry.add(DeviceProfile.QC35, "C8:7B:23:00:00:02", "QC35")

    assert len(registry) == 1


def test_listeners_receive_snapshots_until_unsubscribed() -> None:
    registry = DeviceRegistry.load(MemoryStore())
    seen: list[frozenset[Device]] = []
    unsubscribe = registry.on_registry_changed(seen.append)

    registry.add(DeviceProfile.NC700, "C8:7B:23:00:00:01", "Bose 700")
    unsubscribe()
    registry.remove("C8:7B:23:00:00:01")

    assert len(seen) == 1
    assert {d.address for d in seen[0]} == {"C8:7B:23:00:00:01"}


def test_reload_picks_up_external_changes() -> None:
    store = MemoryStore()
    registry = DeviceRegistry.load(store)
    seen: list[frozenset[Device]] = []
    registry.on_registry_changed(seen.append)

    store.records = ["qc35\tC8:7B:23:00:00:02\tQC35"]
    registry.reload()

    assert registry.find("c8:7b:23:00:00:02") is not None
    assert len(seen) == 1


def test_file_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "devices.tsv"
    registry = DeviceRegistry.load(FileRecordStore(path))
    registry.add(DeviceProfile.NC700, "C8:7B:23:00:00:01", "Bose 700")
    registry.add(DeviceProfile.QC35, "C8:7B:23:00:00:02", "QC35")

    assert path.read_text(encoding="utf-8") == (
        "700\tC8:7B:23:00:00:01\tBose 700\nqc35\tC8:7B:23:00:00:02\tQC35\n"
    )
    reloaded = DeviceRegistry.load(FileRecordStore(path))
    assert reloaded.all_devices() == registry.all_devices()
    assert list(path.parent.iterdir()) == [path]


def test_file_store_missing_file_is_empty(tmp_path: Path) -> None:
    assert FileRecordStore(tmp_path / "absent.tsv").read_records() == []


def test_file_store_skips_record_with_invalid_utf8(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "devices.tsv"
    path.write_bytes(
        b"700\tC8:7B:23:00:00:01\tBose 700\n"
        b"qc35\tC8:7B:23:00:00:02\tQC\xff35\n"
    )

    with caplog.at_level(logging.WARNING):
        registry = DeviceRegistry.load(FileRecordStore(path))

    assert registry.all_devices() == {
        Device(profile=DeviceProfile.NC700, address="C8:7B:23:00:00:01", name="Bose 700")
    }
    assert len(registry.load_warnings) == 1
    assert "not valid UTF-8" in registry.load_warnings[0]
    assert "Skipping malformed device record" in caplog.text


def test_device_rejects_unencodable_name() -> None:
    with pytest.raises(MalformedRecordError, match="not valid UTF-8"):
        Device(profile=DeviceProfile.QC35, address="C8:7B:23:00:00:02", name="QC\udcff35")


def test_concurrent_mutations_keep_snapshots_and_store_consistent() -> None:
    store = MemoryStore()
    registry = DeviceRegistry.load(store)
    addresses = [f"C8:7B:23:00:00:{index:02X}" for index in range(12)]
    done = threading.Event()
    bad_snapshots: list[frozenset[Device]] = []

    def mutate(worker: int) -> None:
        for round_ in range(25):
            address = addresses[(worker * 5 + round_) % len(addresses)]
            if round_ % 3 == 2:
                registry.remove(address)
            else:
                registry.add(DeviceProfile.QC35 if worker % 2 else DeviceProfile.NC700, address, f"worker {worker}")

    def read() -> None:
        while not done.is_set():
            snapshot = registry.all_devices()
            if len({device.address for device in snapshot}) != len(snapshot):
                bad_snapshots.append(snapshot)

    reader = threading.Thread(target=read)
    reader.start()
    writers = [threading.Thread(target=mutate, args=(worker,)) for worker in range(6)]
    for thread in writers:
        thread.start()
    for thread in writers:
        thread.join()
    done.set()
    reader.join()

    assert bad_snapshots == []
    final = registry.all_devices()
    assert store.records == sorted(device.serialize() for device in final)
    for device in final:
        assert registry.get(device.address) == device
    assert DeviceRegistry.load(MemoryStore(store.records)).all_devices() == final
