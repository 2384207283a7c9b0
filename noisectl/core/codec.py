"""Translation of an abstract mode into a profile-specific command frame."""

from __future__ import annotations

from collections.abc import Mapping

from noisectl.core.errors import UnsupportedCommandError
from noisectl.core.model import CommandTable, DeviceProfile, Mode
from noisectl.core.profile_loader import load_profiles


class CommandCodec:
    def __init__(self, tables: Mapping[DeviceProfile, CommandTable] | None = None) -> None:
        if tables is None:
            loaded = load_profiles()
            tables = loaded.tables
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.tables = tables

    def encode(self, profile: DeviceProfile, mode: Mode) -> bytes:
        table = self.tables.get(profile)
        if table is None:
            raise UnsupportedCommandError(f"No command table defined for profile '{profile.code}'")
        frame = table.frames.get(mode)
        if frame is None:
            available = ", ".join(m.token for m in table.frames)
            raise UnsupportedCommandError(
                f"Profile '{profile.code}' does not define mode '{mode.token}'. Available: {available}"
            )
        return frame

    def supported_modes(self, profile: DeviceProfile) -> tuple[Mode, ...]:
        table = self.tables.get(profile)
        if table is None:
            return ()
        return tuple(mode for mode in Mode if mode in table.frames)
