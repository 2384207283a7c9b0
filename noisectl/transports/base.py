"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

DEFAULT_REPEAT_COUNT = 3
DEFAULT_INTER_WRITE_DELAY_S = 0.333


class Transport(Protocol):
    def send(
        self,
        address: str,
        frame: bytes,
        *,
        repeat_count: int = DEFAULT_REPEAT_COUNT,
        inter_write_delay_s: float = DEFAULT_INTER_WRITE_DELAY_S,
    ) -> None:
        """Write `frame` to a device `repeat_count` times. No response is read."""
