"""Linux platform backed by BlueZ, PulseAudio/PipeWire and SDP command line tools."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence

from noisectl.core.errors import DeviceDiscoveryError, TransportConnectError
from noisectl.core.model import SPP_UUID, BondedDevice

_DEVICE_LINE_RE = re.compile(r"^Device\s+([0-9A-F:]{17})\s+(.+)$", re.IGNORECASE)
_POWERED_RE = re.compile(r"^\s*Powered:\s*(yes|no)\s*$", re.IGNORECASE | re.MULTILINE)
# bluez_output.C8_7B_23_00_00_01.1 (PipeWire) or bluez_sink.C8_7B_23_00_00_01.a2dp_sink (PulseAudio)
_SINK_RE = re.compile(r"bluez_(?:output|sink)\.([0-9A-F]{2}(?:_[0-9A-F]{2}){5})", re.IGNORECASE)
_CHANNEL_RE = re.compile(r"^\s*Channel:\s*(\d+)\s*$", re.MULTILINE)
_SPP_SHORT_UUID = "0x1101"

LOGGER = logging.getLogger(__name__)


class BlueZPlatform:
    def radio_enabled(self) -> bool:
        result = _run_query(["bluetoothctl", "show"])
        if result is None or result.returncode != 0:
            return False
        match = _POWERED_RE.search(result.stdout)
        return bool(match and match.group(1).lower() == "yes")

    def active_audio_outputs(self) -> set[str]:
        addresses: set[str] = set()
        result = _run_query(["pactl", "list", "short", "sinks"])
        if result is not None and result.returncode == 0:
            for line in result.stdout.splitlines():
                match = _SINK_RE.search(line)
                if match:
                    addresses.add(match.group(1).replace("_", ":").upper())
            return addresses

        LOGGER.debug("pactl unavailable, falling back to connected Bluetooth devices")
        result = _run_query(["bluetoothctl", "devices", "Connected"])
        if result is None or result.returncode != 0:
            return addresses
        for device in _parse_device_lines(result.stdout):
            addresses.add(device.address)
        return addresses

    def bonded_devices(self) -> list[BondedDevice]:
        commands = [
            ["bluetoothctl", "devices", "Paired"],
            ["bluetoothctl", "paired-devices"],
        ]
        command_errors: list[str] = []
        for cmd in commands:
            result = _run_command(cmd)
            if result is None:
                continue
            if result.returncode != 0:
                stderr = (result.stderr or "").strip()
                if stderr:
                    command_errors.append(f"{' '.join(cmd)} -> {stderr}")
                continue
            return _parse_device_lines(result.stdout)

        if command_errors:
            joined = " | ".join(command_errors)
            raise DeviceDiscoveryError(
                f"Bluetooth discovery failed. Ensure a working D-Bus/BlueZ session. Details: {joined}"
            )
        return []

    def resolve_channel(self, address: str, service_uuid: str = SPP_UUID) -> int:
        service = _SPP_SHORT_UUID if service_uuid.lower() == SPP_UUID else service_uuid
        cmd = ["sdptool", "search", "--bdaddr", address, service]
        try:
            result = _run_command(cmd)
        except OSError as exc:
            raise TransportConnectError(f"Service lookup failed for {address}: {exc}") from exc
        if result is None:
            raise TransportConnectError(
                "sdptool not found; set 'rfcomm_channel' in the config to skip service lookup."
            )
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise TransportConnectError(f"Service lookup failed for {address}: {stderr or 'unknown error'}")
        match = _CHANNEL_RE.search(result.stdout)
        if not match:
            raise TransportConnectError(f"{address} does not offer service {service_uuid}")
        return int(match.group(1))


def _parse_device_lines(output: str) -> list[BondedDevice]:
    seen: set[str] = set()
    devices: list[BondedDevice] = []
    for line in output.splitlines():
        match = _DEVICE_LINE_RE.match(line.strip())
        if not match:
            continue
        address, name = match.group(1).upper(), match.group(2).strip()
        if address in seen:
            continue
        seen.add(address)
        devices.append(BondedDevice(address=address, name=name))
    return devices


def _run_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None


def _run_query(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    """Like `_run_command`, but an unusable executable counts as no data."""
    try:
        return _run_command(cmd)
    except OSError as exc:
        LOGGER.warning("Could not run %s: %s", cmd[0], exc)
        return None
