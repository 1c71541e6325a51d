"""Optional periodic background task bound to the session cancellation event."""

from __future__ import annotations

import threading
from typing import Callable

from termchat.utils.logging_utils import ChatLogger


class PeriodicWorker:
    """Run *task* every *interval* seconds on a daemon thread until stopped."""

    def __init__(
        self,
        interval: float,
        task: Callable[[], None],
        *,
        cancel_event: threading.Event | None = None,
        logger: ChatLogger | None = None,
        name: str = "termchat-worker",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = float(interval)
        self.task = task
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.logger = logger
        self.name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _stopped(self) -> bool:
        return self._stop.is_set() or self.cancel_event.is_set()

    def _loop(self) -> None:
        while not self._stopped():
            self._stop.wait(self.interval)
            if self._stopped():
                return
            try:
                self.task()
            except Exception as exc:
                if self.logger is not None:
                    self.logger.debug(f"{self.name}: task failed: {exc}", error=exc)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
