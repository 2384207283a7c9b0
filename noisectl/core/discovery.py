"""Selection of bonded devices worth registering, and profile matching."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from noisectl.core.model import BondedDevice, CommandTable, DeviceProfile
from noisectl.core.registry import DeviceRegistry


def _mac_prefix_match(address: str, table: CommandTable) -> bool:
    upper_address = address.upper()
    return any(upper_address.startswith(prefix) for prefix in table.match.mac_prefix)


def _name_contains_match(name: str, table: CommandTable) -> bool:
    lower_name = name.lower()
    return any(token.lower() in lower_name for token in table.match.name_contains)


def match_score(device: BondedDevice, table: CommandTable) -> int:
    mac_match = _mac_prefix_match(device.address, table)
    name_match = _name_contains_match(device.name, table)
    if mac_match and name_match:
        return 3
    if mac_match:
        return 2
    if name_match:
        return 1
    return 0


def best_profile_for_device(
    device: BondedDevice,
    tables: Mapping[DeviceProfile, CommandTable],
) -> DeviceProfile:
    best = DeviceProfile.default()
    best_score = 0
    for table in tables.values():
        score = match_score(device, table)
        if score > best_score:
            best = table.profile
            best_score = score
    return best


def has_vendor_prefix(address: str, vendor_prefixes: Iterable[str]) -> bool:
    upper_address = address.upper()
    return any(upper_address.startswith(prefix.upper()) for prefix in vendor_prefixes)


def discover_candidates(
    bonded: Iterable[BondedDevice],
    registry: DeviceRegistry,
    tables: Mapping[DeviceProfile, CommandTable],
    vendor_prefixes: Iterable[str],
) -> list[tuple[BondedDevice, DeviceProfile]]:
    """Return unregistered bonded devices from a known vendor, with their best profile."""
    prefixes = tuple(vendor_prefixes)
    candidates: list[tuple[BondedDevice, DeviceProfile]] = []
    for device in bonded:
        if not has_vendor_prefix(device.address, prefixes):
            continue
        if registry.find(device.address) is not None:
            continue
        candidates.append((device, best_profile_for_device(device, tables)))
    return candidates
