"""Delivery of a mode to every connected registered device."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

from noisectl.core.codec import CommandCodec
from noisectl.core.errors import (
    NoisectlError,
    RadioDisabledError,
    TransportConnectError,
    TransportStreamError,
    TransportWriteError,
    UnsupportedCommandError,
)
from noisectl.core.model import Device, Mode
from noisectl.core.probe import ConnectionProbe
from noisectl.core.registry import DeviceRegistry
from noisectl.transports.base import DEFAULT_INTER_WRITE_DELAY_S, DEFAULT_REPEAT_COUNT, Transport

LOGGER = logging.getLogger(__name__)

NO_DEVICES_MESSAGE = "No configured devices connected."


class Outcome(Enum):
    SUCCESS = "success"
    RADIO_DISABLED = "radio_disabled"
    CONNECT_FAILED = "connect_failed"
    STREAM_FAILED = "stream_failed"
    WRITE_FAILED = "write_failed"
    UNSUPPORTED_COMMAND = "unsupported_command"
    FAILED = "failed"


_OUTCOME_BY_ERROR: tuple[tuple[type[NoisectlError], Outcome], ...] = (
    (RadioDisabledError, Outcome.RADIO_DISABLED),
    (TransportConnectError, Outcome.CONNECT_FAILED),
    (TransportStreamError, Outcome.STREAM_FAILED),
    (TransportWriteError, Outcome.WRITE_FAILED),
    (UnsupportedCommandError, Outcome.UNSUPPORTED_COMMAND),
)


def outcome_for_error(exc: NoisectlError) -> Outcome | None:
    for error_type, outcome in _OUTCOME_BY_ERROR:
        if isinstance(exc, error_type):
            return outcome
    return None


@dataclass(frozen=True)
class DeviceOutcome:
    device: Device
    outcome: Outcome
    frame_hex: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def describe(self) -> str:
        label = f"{self.device.name} ({self.device.address})"
        if self.ok:
            return f"Sent {self.frame_hex} to {label}"
        return f"{label}: {self.outcome.value}: {self.error}"


@dataclass(frozen=True)
class DispatchResult:
    mode: Mode
    outcomes: tuple[DeviceOutcome, ...]
    no_devices_connected: bool = False

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> tuple[DeviceOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

    def summary_lines(self) -> list[str]:
        if self.no_devices_connected:
            return [NO_DEVICES_MESSAGE]
        return [outcome.describe() for outcome in self.outcomes]


class DispatchCoordinator:
    def __init__(
        self,
        *,
        registry: DeviceRegistry,
        probe: ConnectionProbe,
        codec: CommandCodec,
        transport: Transport,
        repeat_count: int = DEFAULT_REPEAT_COUNT,
        inter_write_delay_s: float = DEFAULT_INTER_WRITE_DELAY_S,
        parallel: bool = False,
    ) -> None:
        self.registry = registry
        self.probe = probe
        self.codec = codec
        self.transport = transport
        self.repeat_count = repeat_count
        self.inter_write_delay_s = inter_write_delay_s
        self.parallel = parallel

    def dispatch(self, mode: Mode) -> DispatchResult:
        devices = self.probe.connected_devices(self.registry)
        if not devices:
            LOGGER.info(NO_DEVICES_MESSAGE)
            return DispatchResult(mode=mode, outcomes=(), no_devices_connected=True)

        if self.parallel and len(devices) > 1:
            with ThreadPoolExecutor(max_workers=len(devices), thread_name_prefix="noisectl-send") as pool:
                outcomes = tuple(pool.map(lambda d: self._deliver(d, mode), devices))
        else:
            outcomes = tuple(self._deliver(device, mode) for device in devices)
        return DispatchResult(mode=mode, outcomes=outcomes)

    def _deliver(self, device: Device, mode: Mode) -> DeviceOutcome:
        frame: bytes | None = None
        try:
            frame = self.codec.encode(device.profile, mode)
            self.transport.send(
                device.address,
                frame,
                repeat_count=self.repeat_count,
                inter_write_delay_s=self.inter_write_delay_s,
            )
        except Exception as exc:
            # Every device gets an outcome, whatever went wrong.
            if isinstance(exc, NoisectlError):
                outcome = outcome_for_error(exc) or Outcome.FAILED
                LOGGER.warning("Sending %s to %s failed: %s", mode.token, device.address, exc)
            else:
                outcome = Outcome.FAILED
                LOGGER.exception("Unexpected error sending %s to %s", mode.token, device.address)
            return DeviceOutcome(
                device=device,
                outcome=outcome,
                frame_hex=frame.hex() if frame is not None else None,
                error=str(exc),
            )

        LOGGER.info("Sent %s (%s) to %s", mode.token, frame.hex(" "), device.address)
        return DeviceOutcome(device=device, outcome=Outcome.SUCCESS, frame_hex=frame.hex())
