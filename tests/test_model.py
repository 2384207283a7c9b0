from __future__ import annotations

import pytest

from noisectl.core.errors import MalformedRecordError
from noisectl.core.model import Device, DeviceProfile, Mode


@pytest.mark.parametrize(
    "device",
    [
        Device(profile=DeviceProfile.NC700, address="C8:7B:23:00:00:01", name="Bose 700"),
        Device(profile=DeviceProfile.QC35, address="C8:7B:23:00:00:02", name="QC35 II"),
        Device(profile=DeviceProfile.QC35, address="C8:7B:23:00:00:03", name=""),
        Device(profile=DeviceProfile.NC700, address="C8:7B:23:00:00:04", name="Living\troom"),
    ],
)
def test_serialize_parse_round_trip(device: Device) -> None:
    assert Device.parse(device.serialize()) == device


def test_serialize_is_tab_separated_triple() -> None:
    device = Device(profile=DeviceProfile.QC35, address="C8:7B:23:00:00:02", name="QC35 II")
    assert device.serialize() == "qc35\tC8:7B:23:00:00:02\tQC35 II"


def test_parse_rejects_short_record() -> None:
    with pytest.raises(MalformedRecordError):
        Device.parse("700\tC8:7B:23:00:00:01")


def test_unknown_profile_code_falls_back_to_nc700() -> None:
    device = Device.parse("qc45\tC8:7B:23:00:00:01\tNewer headset")
    assert device.profile is DeviceProfile.NC700
    assert device.name == "Newer headset"


def test_device_rejects_line_break_in_name() -> None:
    with pytest.raises(MalformedRecordError):
        Device(profile=DeviceProfile.NC700, address="C8:7B:23:00:00:01", name="a\nb")


def test_device_rejects_empty_address() -> None:
    with pytest.raises(MalformedRecordError):
        Device.parse("700\t\tBose 700")


def test_profile_codes_and_names() -> None:
    assert DeviceProfile.NC700.code == "700"
    assert DeviceProfile.QC35.code == "qc35"
    assert DeviceProfile.QC35.display_name == "Bose QC 35"
    assert DeviceProfile.lookup("unknown") is None


@pytest.mark.parametrize(
    ("token", "mode"),
    [("10", Mode.NC_10), ("5", Mode.NC_5), ("0", Mode.NC_0), ("off", Mode.OFF), ("OFF", Mode.OFF), ("7", Mode.OFF), ("", Mode.OFF)],
)
def test_mode_from_token(token: str, mode: Mode) -> None:
    assert Mode.from_token(token) is mode


def test_mode_levels() -> None:
    assert Mode.noise_cancelling(10) is Mode.NC_10
    assert Mode.NC_5.level == 5
    assert Mode.OFF.level is None
    with pytest.raises(ValueError):
        Mode.noise_cancelling(3)
