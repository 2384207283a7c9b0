"""Background worker that serializes mode requests onto the dispatch coordinator.

Requests are handled FIFO on a single thread so transport sessions never run on
the caller's thread. With `coalesce=True`, a request that is already superseded
by a newer queued request is dropped instead of being sent.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable

from noisectl.core.dispatch import DispatchCoordinator, DispatchResult
from noisectl.core.model import Mode

LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[DispatchResult], None]

_STOP = object()


class ModeRequestWorker:
    def __init__(
        self,
        coordinator: DispatchCoordinator,
        *,
        on_result: ResultCallback | None = None,
        coalesce: bool = False,
    ) -> None:
        self.coordinator = coordinator
        self.on_result = on_result
        self.coalesce = coalesce
        self.dropped = 0
        self._queue: queue.Queue[object] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            self._ensure_thread()

    def submit(self, mode: Mode) -> None:
        with self._lock:
            self._ensure_thread()
            self._queue.put(mode)

    def request_mode(self, token: str) -> Mode:
        mode = Mode.from_token(token)
        self.submit(mode)
        return mode

    def join(self) -> None:
        """Block until every queued request has been handled."""
        self._queue.join()

    def stop(self, timeout: float | None = None) -> None:
        """Handle outstanding requests, then stop the worker thread.

        If `timeout` expires first, the thread keeps draining in the background
        and later submissions are queued behind the outstanding requests.
        """
        with self._lock:
            thread = self._thread
            if thread is None or not thread.is_alive():
                return
            self._queue.put(_STOP)
        thread.join(timeout)

    def __enter__(self) -> ModeRequestWorker:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            taken = 1
            stop = item is _STOP
            if self.coalesce and not stop:
                item, extra, stop = self._latest(item)
                taken += extra
            try:
                if isinstance(item, Mode):
                    self._handle(item)
            finally:
                for _ in range(taken):
                    self._queue.task_done()
            if stop and self._finish():
                return

    def _ensure_thread(self) -> None:
        # Caller holds the lock.
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="noisectl-dispatch", daemon=True)
        self._thread.start()

    def _finish(self) -> bool:
        with self._lock:
            if not self._queue.empty():
                # Requests submitted after stop() keep this thread running.
                return False
            self._thread = None
            return True

    def _latest(self, item: object) -> tuple[object, int, bool]:
        extra = 0
        while True:
            try:
                newer = self._queue.get_nowait()
            except queue.Empty:
                return item, extra, False
            extra += 1
            if newer is _STOP:
                return item, extra, True
            LOGGER.debug("Dropping superseded request %s", item)
            self.dropped += 1
            item = newer

    def _handle(self, mode: Mode) -> None:
        try:
            result = self.coordinator.dispatch(mode)
        except Exception:
            # Keep the worker alive for later requests.
            LOGGER.exception("Dispatch of mode %s failed", mode.token)
            return
        for line in result.summary_lines():
            LOGGER.info(line)
        if self.on_result is not None:
            self.on_result(result)
