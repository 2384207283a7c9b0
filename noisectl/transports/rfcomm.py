"""RFCOMM transport implementation using Python sockets."""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import Callable
from enum import Enum
from typing import BinaryIO

from noisectl.core.errors import (
    NoisectlError,
    RadioDisabledError,
    TransportConnectError,
    TransportStreamError,
    TransportWriteError,
)
from noisectl.core.model import SPP_UUID
from noisectl.platform.base import Platform
from noisectl.transports.base import DEFAULT_INTER_WRITE_DELAY_S, DEFAULT_REPEAT_COUNT

LOGGER = logging.getLogger(__name__)

SocketFactory = Callable[[], socket.socket]


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WRITING = "writing"
    CLOSED = "closed"
    FAILED = "failed"


def _rfcomm_socket() -> socket.socket:
    try:
        af_bluetooth = socket.AF_BLUETOOTH
        btproto_rfcomm = socket.BTPROTO_RFCOMM
    except AttributeError as exc:
        raise TransportConnectError(
            "This Python build does not expose Bluetooth socket APIs (AF_BLUETOOTH/BTPROTO_RFCOMM)."
        ) from exc

    try:
        return socket.socket(af_bluetooth, socket.SOCK_STREAM, btproto_rfcomm)
    except OSError as exc:
        raise TransportConnectError(f"Could not create RFCOMM socket: {exc}") from exc


class TransportSession:
    """A single connect, write, close cycle against one device.

    The channel is closed on every exit path. Close failures are logged and
    never replace the error that ended the session.
    """

    def __init__(
        self,
        address: str,
        *,
        platform: Platform,
        channel: int | None = None,
        timeout_s: float = 10.0,
        socket_factory: SocketFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.address = address
        self.state = SessionState.IDLE
        self.writes = 0
        self._platform = platform
        self._channel = channel
        self._timeout_s = timeout_s
        self._socket_factory = socket_factory or _rfcomm_socket
        self._sleep = sleep

    def run(
        self,
        frame: bytes,
        *,
        repeat_count: int = DEFAULT_REPEAT_COUNT,
        inter_write_delay_s: float = DEFAULT_INTER_WRITE_DELAY_S,
    ) -> None:
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session for {self.address} already ran (state={self.state.value})")
        if repeat_count < 1:
            raise ValueError("repeat_count must be at least 1")

        self._transition(SessionState.CONNECTING)
        try:
            bt_socket = self._open()
        except Exception:
            self._transition(SessionState.FAILED)
            raise

        stream: BinaryIO | None = None
        try:
            stream = self._stream(bt_socket)
            self._write(stream, frame, repeat_count, inter_write_delay_s)
        except Exception:
            self._transition(SessionState.FAILED)
            raise
        finally:
            self._close(bt_socket, stream)

        self._transition(SessionState.CLOSED)

    def _open(self) -> socket.socket:
        if not self._platform.radio_enabled():
            raise RadioDisabledError("Bluetooth adapter not present or not powered on.")

        channel = self._channel
        if channel is None:
            try:
                channel = self._platform.resolve_channel(self.address, SPP_UUID)
            except NoisectlError:
                raise
            except Exception as exc:
                raise TransportConnectError(
                    f"Could not resolve RFCOMM channel for {self.address}: {exc}"
                ) from exc

        bt_socket = self._socket_factory()
        try:
            bt_socket.settimeout(self._timeout_s)
            bt_socket.connect((self.address, channel))
        except TimeoutError as exc:
            self._close(bt_socket, None)
            raise TransportConnectError(
                f"RFCOMM connect timed out for {self.address} on channel {channel}"
            ) from exc
        except OSError as exc:
            self._close(bt_socket, None)
            raise TransportConnectError(
                f"RFCOMM connect failed for {self.address} on channel {channel}: {exc}"
            ) from exc

        self._transition(SessionState.CONNECTED)
        return bt_socket

    def _stream(self, bt_socket: socket.socket) -> BinaryIO:
        try:
            return bt_socket.makefile("wb")
        except OSError as exc:
            raise TransportStreamError(f"Could not open output stream to {self.address}: {exc}") from exc

    def _write(self, stream: BinaryIO, frame: bytes, repeat_count: int, inter_write_delay_s: float) -> None:
        self._transition(SessionState.WRITING)
        LOGGER.debug("Writing %s to %s (%d times)", frame.hex(" "), self.address, repeat_count)
        for _ in range(repeat_count):
            try:
                stream.write(frame)
                stream.flush()
            except TimeoutError as exc:
                raise TransportWriteError(
                    f"RFCOMM write timed out for {self.address} after {self.writes} writes"
                ) from exc
            except OSError as exc:
                raise TransportWriteError(
                    f"RFCOMM write failed for {self.address} after {self.writes} writes: {exc}"
                ) from exc
            self.writes += 1
            # The delay also follows the last write so the device settles before disconnect.
            self._sleep(inter_write_delay_s)

    def _close(self, bt_socket: socket.socket, stream: BinaryIO | None) -> None:
        if stream is not None:
            try:
                stream.close()
            except OSError as exc:
                LOGGER.warning("Problem closing output stream to %s: %s", self.address, exc)
        try:
            bt_socket.close()
        except OSError as exc:
            LOGGER.warning("Problem closing RFCOMM socket to %s: %s", self.address, exc)

    def _transition(self, state: SessionState) -> None:
        LOGGER.debug("Session %s: %s -> %s", self.address, self.state.value, state.value)
        self.state = state


class RFCOMMTransport:
    def __init__(
        self,
        platform: Platform,
        *,
        channel: int | None = None,
        timeout_s: float = 10.0,
        socket_factory: SocketFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.platform = platform
        self.channel = channel
        self.timeout_s = timeout_s
        self._socket_factory = socket_factory
        self._sleep = sleep

    def send(
        self,
        address: str,
        frame: bytes,
        *,
        repeat_count: int = DEFAULT_REPEAT_COUNT,
        inter_write_delay_s: float = DEFAULT_INTER_WRITE_DELAY_S,
    ) -> None:
        session = TransportSession(
            address,
            platform=self.platform,
            channel=self.channel,
            timeout_s=self.timeout_s,
            socket_factory=self._socket_factory,
            sleep=self._sleep,
        )
        session.run(frame, repeat_count=repeat_count, inter_write_delay_s=inter_write_delay_s)
